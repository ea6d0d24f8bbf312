"""Audit (action) logging.

Writes ``ActionLogModel`` rows from a background thread using its own database
session. Failures are logged and swallowed; callers never observe them.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from models.action_log import ActionLogModel
from utils import background

logger = logging.getLogger(__name__)


class AuditAction:
    USER_REGISTER = "USER_REGISTER"
    USER_LOGIN = "USER_LOGIN"
    USER_DELETE = "USER_DELETE"
    CLASS_CREATE = "CLASS_CREATE"
    CLASS_DELETE = "CLASS_DELETE"
    CLASS_ARCHIVE = "CLASS_ARCHIVE"
    CLASS_JOIN_APPLY = "CLASS_JOIN_APPLY"
    CLASS_LEAVE = "CLASS_LEAVE"
    APPROVAL_PROCESS = "APPROVAL_PROCESS"
    MEMBER_ROLE_CHANGE = "MEMBER_ROLE_CHANGE"
    MEMBER_REMOVE = "MEMBER_REMOVE"
    TASK_CREATE_PERSONAL = "TASK_CREATE_PERSONAL"
    TASK_CREATE_CLASS = "TASK_CREATE_CLASS"
    TASK_UPDATE = "TASK_UPDATE"
    TASK_DELETE = "TASK_DELETE"
    TASK_STATUS_UPDATE = "TASK_STATUS_UPDATE"
    TASK_SYNC = "TASK_SYNC"


class AuditLogger:
    """Records who did what to which entity."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        """Initialize AuditLogger.

        Args:
            session_factory: Callable returning a new Session. Defaults to
                ``core.database.SessionLocal``.
        """
        self._session_factory = session_factory

    def record(
        self,
        actor_id: Optional[int],
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Queue an action log entry and return immediately."""
        try:
            encoded = json.dumps(details, default=str, ensure_ascii=False) if details else None
        except (TypeError, ValueError):
            logger.exception("Could not encode audit details for %s", action)
            encoded = None
        entry = ActionLogModel(
            user_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=encoded,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        background.submit(self._write, entry)

    def _write(self, entry: ActionLogModel) -> None:
        factory = self._session_factory
        if factory is None:
            from core.database import SessionLocal

            factory = SessionLocal
        db = factory()
        try:
            db.add(entry)
            db.commit()
            logger.debug("ActionLog saved: %s %s#%s", entry.action, entry.entity_type, entry.entity_id)
        except Exception:
            db.rollback()
            logger.exception("Failed to save ActionLog for action %s", entry.action)
        finally:
            db.close()
