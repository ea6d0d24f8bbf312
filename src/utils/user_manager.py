"""User management utilities.

This module provides user management functionality including user storage,
password hashing, email verification, and user authentication.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import VERIFICATION_TOKEN_EXPIRE_HOURS
from core.exceptions import (
    AlreadyVerifiedError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidTokenError,
    PermissionDeniedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from models.class_membership import ClassMembershipModel
from models.class_model import ClassModel
from models.task import TaskModel, TaskType
from models.task_overlay import TaskOverlayModel
from models.user import UserModel
from utils.audit_logger import AuditAction, AuditLogger
from utils.notifier import EventKind, Notifier
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(
        self,
        db: Session,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            audit_logger: Optional audit side channel.
            notifier: Optional notification side channel.
        """
        self.db = db
        self.audit_logger = audit_logger
        self.notifier = notifier

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        password_bytes = password.encode("utf-8")
        if len(password_bytes) > BCRYPT_MAX_BYTES:
            logger.warning("Password exceeds %d bytes, truncating", BCRYPT_MAX_BYTES)
            password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Returns:
            True if password matches, False otherwise.
        """
        password_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def _issue_verification_token(self, user: UserModel) -> str:
        token = str(uuid.uuid4())
        user.verification_token = token
        user.verification_token_expiry = utc_now() + timedelta(hours=VERIFICATION_TOKEN_EXPIRE_HOURS)
        return token

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> UserModel:
        """Create a new user and send the verification email.

        Args:
            username: Username for the new user.
            email: Email address, must be unique.
            password: Plain text password.
            display_name: Optional display name.

        Returns:
            Created UserModel.

        Raises:
            UserAlreadyExistsError: If username or email already exists.
        """
        if self.get_user_by_username(username):
            raise UserAlreadyExistsError(f"Username '{username}' is already taken")
        if self.db.query(UserModel.id).filter(UserModel.email == email).first():
            raise UserAlreadyExistsError(f"Email '{email}' is already registered")

        now = utc_now()
        model = UserModel(
            username=username,
            email=email,
            password_hash=self.hash_password(password),
            display_name=display_name or username,
            email_verified=False,
            created_at=now,
            updated_at=now,
        )
        token = self._issue_verification_token(model)

        # Two requests may pass the checks above at once; the unique
        # constraints catch the loser.
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            message = str(e.orig).lower()
            if "username" in message or "email" in message or "unique" in message:
                raise UserAlreadyExistsError("Username or email is already registered") from e
            raise

        logger.info("Created user: %s", username)
        if self.audit_logger is not None:
            self.audit_logger.record(model.id, AuditAction.USER_REGISTER, "USER", model.id)
        if self.notifier is not None:
            self.notifier.notify(EventKind.VERIFY_EMAIL, model, {"token": token})
        return model

    def get_user_by_username(self, username: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.username == username).first()

    def get_user_by_id(self, user_id: int) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.id == user_id).first()

    def authenticate(self, username: str, password: str) -> UserModel:
        """Check credentials and stamp the login time.

        Raises:
            InvalidCredentialsError: If the user is unknown or the password
                does not match. Both cases read the same to the client.
        """
        user = self.get_user_by_username(username)
        if not user or not self.verify_password(password, user.password_hash):
            logger.info("Failed login attempt for username: %s", username)
            raise InvalidCredentialsError()

        user.last_login_at = utc_now()
        self.db.commit()
        self.db.refresh(user)
        logger.info("User logged in: %s", username)
        if self.audit_logger is not None:
            self.audit_logger.record(user.id, AuditAction.USER_LOGIN, "USER", user.id)
        return user

    def verify_email(self, token: str) -> UserModel:
        """Mark the email behind ``token`` as verified.

        Raises:
            InvalidTokenError: If no user holds the token.
            ExpiredTokenError: If the token is past its expiry.
        """
        user = (
            self.db.query(UserModel).filter(UserModel.verification_token == token).first()
            if token
            else None
        )
        if not user:
            raise InvalidTokenError()
        if user.verification_token_expiry and user.verification_token_expiry < utc_now():
            raise ExpiredTokenError()

        user.email_verified = True
        user.verification_token = None
        user.verification_token_expiry = None
        self.db.commit()
        self.db.refresh(user)
        logger.info("Email verified for user: %s", user.username)
        return user

    def resend_verification(self, email: str) -> None:
        """Issue a fresh verification token and email it.

        Raises:
            UserNotFoundError: If no user has this email.
            AlreadyVerifiedError: If the email is already verified.
        """
        user = self.db.query(UserModel).filter(UserModel.email == email).first()
        if not user:
            raise UserNotFoundError()
        if user.email_verified:
            raise AlreadyVerifiedError()

        token = self._issue_verification_token(user)
        self.db.commit()
        logger.info("Verification email re-issued for user: %s", user.username)
        if self.notifier is not None:
            self.notifier.notify(EventKind.VERIFY_EMAIL, user, {"token": token})

    def delete_user(self, user_id: int) -> None:
        """Delete a user account and the rows that belong only to it.

        Class tasks the user published stay with their class and pass to
        the class owner.

        Raises:
            UserNotFoundError: If the user does not exist.
            PermissionDeniedError: While the user still owns a class.
        """
        user = self.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError()
        if self.db.query(ClassModel.id).filter(ClassModel.owner_id == user_id).first():
            raise PermissionDeniedError("Delete or hand over your classes before deleting the account")

        personal_task_ids = select(TaskModel.id).where(
            TaskModel.creator_id == user_id,
            TaskModel.task_type == TaskType.PERSONAL.value,
        )
        username = user.username
        try:
            self.db.query(TaskOverlayModel).filter(
                (TaskOverlayModel.user_id == user_id) | TaskOverlayModel.task_id.in_(personal_task_ids)
            ).delete(synchronize_session=False)
            self.db.query(TaskModel).filter(
                TaskModel.creator_id == user_id,
                TaskModel.task_type == TaskType.PERSONAL.value,
            ).delete(synchronize_session=False)
            owner_of_class = (
                select(ClassModel.owner_id).where(ClassModel.id == TaskModel.class_id).scalar_subquery()
            )
            self.db.query(TaskModel).filter(
                TaskModel.creator_id == user_id,
                TaskModel.task_type == TaskType.CLASS.value,
            ).update({TaskModel.creator_id: owner_of_class}, synchronize_session=False)
            self.db.query(ClassMembershipModel).filter(
                ClassMembershipModel.user_id == user_id
            ).delete(synchronize_session=False)
            self.db.query(ClassMembershipModel).filter(
                ClassMembershipModel.approved_by == user_id
            ).update({ClassMembershipModel.approved_by: None}, synchronize_session=False)
            self.db.delete(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Deleted user: %s", username)
        if self.audit_logger is not None:
            self.audit_logger.record(None, AuditAction.USER_DELETE, "USER", user_id, {"username": username})
