"""Class invite code generation."""

import logging
import secrets
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH
from models.class_model import ClassModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_invite_code_violation(exc: IntegrityError) -> bool:
    """Tell whether a unique violation came from the invite code column."""
    return "invite_code" in str(exc.orig).lower()


class InviteCodeIssuer:
    """Issues short class codes that are unique across all classes."""

    def __init__(self, db: Session):
        self.db = db

    def _draw(self) -> str:
        return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))

    def _exists(self, code: str) -> bool:
        return (
            self.db.query(ClassModel.id).filter(ClassModel.invite_code == code).first()
            is not None
        )

    def generate(self) -> str:
        """Draw codes until one is not used by any class.

        Returns:
            An 8 character code from ``A-Z0-9``.
        """
        code = self._draw()
        while self._exists(code):
            logger.info("Invite code collision on %s, drawing again", code)
            code = self._draw()
        return code

    def issue(self, insert: Callable[[str], T]) -> T:
        """Generate a code and hand it to ``insert`` until the insert sticks.

        Another request can claim the same code between the uniqueness check
        and the flush; the unique constraint then rejects the row, the
        transaction is rolled back and a fresh code is drawn. ``insert`` must
        therefore be the first write of the current transaction and must
        flush before returning.

        Args:
            insert: Callable that adds the rows carrying ``code`` and flushes.

        Returns:
            Whatever ``insert`` returns.
        """
        while True:
            code = self.generate()
            try:
                return insert(code)
            except IntegrityError as exc:
                self.db.rollback()
                if not is_invite_code_violation(exc):
                    raise
                logger.warning("Invite code %s was taken concurrently, retrying", code)
