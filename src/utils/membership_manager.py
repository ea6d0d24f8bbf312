"""Class membership registry.

Owns the single (user, class) membership row: its role, approval status and
timestamps. Every mutation commits in one transaction and relies on the
unique (user_id, class_id) constraint when two requests race.
"""

import logging
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import (
    AlreadyMemberError,
    CannotModifyOwnerError,
    CannotModifySelfError,
    ClassNotFoundError,
    DuplicatePendingError,
    InvalidActionError,
    NotAMemberError,
    PermissionDeniedError,
)
from models.class_membership import ClassMembershipModel, JoinStatus, RoleInClass
from models.class_model import ClassModel
from utils.audit_logger import AuditAction, AuditLogger
from utils.notifier import EventKind, Notifier
from utils.permission_checker import PermissionChecker
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)

# Roles an owner may hand out through change_role
ASSIGNABLE_ROLES = (RoleInClass.ADMIN.value, RoleInClass.MEMBER.value)


class MembershipManager:
    """Manages membership rows for classes."""

    def __init__(
        self,
        db: Session,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize MembershipManager.

        Args:
            db: SQLAlchemy Session.
            audit_logger: Optional audit side channel.
            notifier: Optional notification side channel.
        """
        self.db = db
        self.audit_logger = audit_logger
        self.notifier = notifier
        self.permissions = PermissionChecker(db)

    def _audit(self, actor_id, action, class_id, details=None) -> None:
        if self.audit_logger is not None:
            self.audit_logger.record(actor_id, action, "CLASS", class_id, details)

    def _notify(self, event_kind, user, payload) -> None:
        if self.notifier is not None:
            self.notifier.notify(event_kind, user, payload)

    def _get_class(self, class_id: int) -> ClassModel:
        model = self.db.query(ClassModel).filter(ClassModel.id == class_id).first()
        if not model:
            raise ClassNotFoundError()
        return model

    def get_membership(self, user_id: int, class_id: int) -> Optional[ClassMembershipModel]:
        """Return the membership row for the pair, whatever its status."""
        return (
            self.db.query(ClassMembershipModel)
            .filter(
                ClassMembershipModel.user_id == user_id,
                ClassMembershipModel.class_id == class_id,
            )
            .first()
        )

    def get_approved_membership(self, user_id: int, class_id: int) -> Optional[ClassMembershipModel]:
        membership = self.get_membership(user_id, class_id)
        if membership and membership.status == JoinStatus.APPROVED.value:
            return membership
        return None

    def create_owner_membership(self, class_model: ClassModel, user_id: int) -> ClassMembershipModel:
        """Add the OWNER row for a freshly created class.

        Flushes but does not commit; the caller commits it together with the
        class row.
        """
        now = utc_now()
        membership = ClassMembershipModel(
            class_id=class_model.id,
            user_id=user_id,
            role=RoleInClass.OWNER.value,
            status=JoinStatus.APPROVED.value,
            joined_at=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(membership)
        self.db.flush()
        return membership

    def apply_to_join(
        self, user_id: int, class_id: int, reason: Optional[str] = None
    ) -> ClassMembershipModel:
        """Submit a join request.

        A REJECTED or REMOVED row is reused and reset instead of adding a
        second row. The row always starts PENDING; only process_approval
        admits the user.

        Args:
            user_id: Applicant ID.
            class_id: Target class ID.
            reason: Optional free text shown to the class managers.

        Returns:
            The PENDING membership row.

        Raises:
            ClassNotFoundError: If the class does not exist.
            AlreadyMemberError: If the user is already an approved member.
            DuplicatePendingError: If a request is already pending.
        """
        class_model = self._get_class(class_id)
        membership = self.get_membership(user_id, class_id)
        if membership is not None:
            if membership.status == JoinStatus.APPROVED.value:
                raise AlreadyMemberError()
            if membership.status == JoinStatus.PENDING.value:
                raise DuplicatePendingError()

        now = utc_now()
        if membership is None:
            membership = ClassMembershipModel(user_id=user_id, class_id=class_id)
            self.db.add(membership)
        membership.role = RoleInClass.MEMBER.value
        membership.status = JoinStatus.PENDING.value
        membership.join_reason = reason
        membership.approved_by = None
        membership.approved_at = None
        membership.created_at = now
        membership.joined_at = None
        membership.updated_at = now

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Concurrent join request: user_id=%s class_id=%s (%s)", user_id, class_id, exc.orig
            )
            raise DuplicatePendingError() from exc
        self.db.refresh(membership)

        logger.info(
            "User %s applied to class %s, status=%s", user_id, class_id, membership.status
        )
        self._audit(user_id, AuditAction.CLASS_JOIN_APPLY, class_id, {"status": membership.status})
        self._notify(
            EventKind.APPLICATION_SUBMITTED,
            class_model.owner,
            {
                "class_name": class_model.name,
                "applicant": membership.user.display_name or membership.user.username,
                "reason": reason,
            },
        )
        return membership

    def change_role(
        self,
        class_id: int,
        target_user_id: int,
        new_role: Union[RoleInClass, str],
        operator_id: int,
    ) -> ClassMembershipModel:
        """Promote a member to ADMIN or demote an ADMIN to MEMBER.

        The caller has already checked that the operator owns the class.

        Raises:
            NotAMemberError: If the target is not an approved member.
            CannotModifyOwnerError: If the target row is the OWNER.
            CannotModifySelfError: If the operator targets themselves.
            InvalidActionError: If ``new_role`` is not ADMIN or MEMBER.
        """
        membership = self.get_approved_membership(target_user_id, class_id)
        if membership is None:
            raise NotAMemberError()
        if membership.role == RoleInClass.OWNER.value:
            raise CannotModifyOwnerError()
        if target_user_id == operator_id:
            raise CannotModifySelfError()

        role_value = new_role.value if isinstance(new_role, RoleInClass) else str(new_role).upper()
        if role_value not in ASSIGNABLE_ROLES:
            raise InvalidActionError("Role can only be set to ADMIN or MEMBER")
        if membership.role == role_value:
            return membership

        previous = membership.role
        membership.role = role_value
        membership.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(membership)

        logger.info(
            "Changed role of user %s in class %s: %s -> %s",
            target_user_id,
            class_id,
            previous,
            role_value,
        )
        self._audit(
            operator_id,
            AuditAction.MEMBER_ROLE_CHANGE,
            class_id,
            {"user_id": target_user_id, "from": previous, "to": role_value},
        )
        self._notify(
            EventKind.ROLE_CHANGED,
            membership.user,
            {"class_name": membership.class_.name, "role": role_value},
        )
        return membership

    def remove_member(self, class_id: int, target_user_id: int, operator_id: int) -> ClassMembershipModel:
        """Remove an approved member from a class.

        Managers may remove members; only the owner may remove an admin.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the operator may not remove the target.
            NotAMemberError: If the target is not an approved member.
            CannotModifyOwnerError: If the target is the owner.
            CannotModifySelfError: If the operator targets themselves.
        """
        self._get_class(class_id)
        if not self.permissions.can_manage(operator_id, class_id):
            raise PermissionDeniedError("Only class managers can remove members")

        membership = self.get_approved_membership(target_user_id, class_id)
        if membership is None:
            raise NotAMemberError()
        if membership.role == RoleInClass.OWNER.value:
            raise CannotModifyOwnerError()
        if target_user_id == operator_id:
            raise CannotModifySelfError("Use leave to exit a class")
        if membership.role == RoleInClass.ADMIN.value and not self.permissions.is_owner(
            operator_id, class_id
        ):
            raise PermissionDeniedError("Only the class owner can remove an admin")

        membership.status = JoinStatus.REMOVED.value
        membership.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(membership)

        logger.info("User %s removed user %s from class %s", operator_id, target_user_id, class_id)
        self._audit(operator_id, AuditAction.MEMBER_REMOVE, class_id, {"user_id": target_user_id})
        self._notify(EventKind.MEMBER_REMOVED, membership.user, {"class_name": membership.class_.name})
        return membership

    def leave(self, class_id: int, user_id: int) -> ClassMembershipModel:
        """Leave a class.

        Raises:
            ClassNotFoundError: If the class does not exist.
            NotAMemberError: If the user is not an approved member.
            CannotModifyOwnerError: If the user owns the class.
        """
        self._get_class(class_id)
        membership = self.get_approved_membership(user_id, class_id)
        if membership is None:
            raise NotAMemberError("You are not a member of this class")
        if membership.role == RoleInClass.OWNER.value:
            raise CannotModifyOwnerError("Class owner cannot leave the class")

        membership.status = JoinStatus.REMOVED.value
        membership.updated_at = utc_now()
        self.db.commit()
        logger.info("User %s left class %s", user_id, class_id)
        self._audit(user_id, AuditAction.CLASS_LEAVE, class_id)
        return membership
