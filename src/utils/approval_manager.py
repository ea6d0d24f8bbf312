"""Join request approval workflow.

A join request moves PENDING -> APPROVED or PENDING -> REJECTED and nowhere
else. Listing and processing require the caller to manage the class.
"""

import logging
from typing import Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session, aliased, joinedload

from core.exceptions import (
    ClassNotFoundError,
    InvalidActionError,
    NoPendingApplicationError,
    PermissionDeniedError,
)
from models.class_membership import MANAGER_ROLES, ClassMembershipModel, JoinStatus
from models.class_model import ClassModel
from schemas.class_schema import ApprovalInfo, ClassBrief, GlobalApprovalInfo
from schemas.common import Page
from schemas.user import UserSummary
from utils.audit_logger import AuditAction, AuditLogger
from utils.notifier import EventKind, Notifier
from utils.pagination import normalize, paginate
from utils.permission_checker import PermissionChecker
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)

APPROVE = "APPROVE"
REJECT = "REJECT"


class ApprovalManager:
    """Lists and processes pending join requests."""

    def __init__(
        self,
        db: Session,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize ApprovalManager.

        Args:
            db: SQLAlchemy Session.
            audit_logger: Optional audit side channel.
            notifier: Optional notification side channel.
        """
        self.db = db
        self.audit_logger = audit_logger
        self.notifier = notifier
        self.permissions = PermissionChecker(db)

    def _get_class(self, class_id: int) -> ClassModel:
        model = self.db.query(ClassModel).filter(ClassModel.id == class_id).first()
        if not model:
            raise ClassNotFoundError()
        return model

    def list_pending_for_class(
        self, class_id: int, requester_id: int, page: int = 0, size: int = 20
    ) -> Page[ApprovalInfo]:
        """List pending requests of one class, oldest first.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the requester does not manage the class.
        """
        self._get_class(class_id)
        if not self.permissions.can_manage(requester_id, class_id):
            raise PermissionDeniedError("Only class managers can view join requests")

        page, size = normalize(page, size)
        query = (
            self.db.query(ClassMembershipModel)
            .options(joinedload(ClassMembershipModel.user))
            .filter(
                ClassMembershipModel.class_id == class_id,
                ClassMembershipModel.status == JoinStatus.PENDING.value,
            )
            .order_by(ClassMembershipModel.created_at.asc(), ClassMembershipModel.id.asc())
        )
        rows, total = paginate(query, page, size)
        items = [
            ApprovalInfo(
                user_id=row.user_id,
                username=row.user.username,
                display_name=row.user.display_name,
                join_reason=row.join_reason,
                status=row.status,
                created_at=row.created_at,
            )
            for row in rows
        ]
        return Page[ApprovalInfo].build(items, total, page, size)

    def list_pending_across_managed_classes(
        self, manager_id: int, page: int = 0, size: int = 20
    ) -> Page[GlobalApprovalInfo]:
        """List pending requests in every class the caller manages, newest first.

        One query: an applicant row qualifies when a sibling row of the same
        class belongs to the caller with an APPROVED manager role.
        """
        page, size = normalize(page, size)
        manager = aliased(ClassMembershipModel)
        manages_class = exists().where(
            and_(
                manager.class_id == ClassMembershipModel.class_id,
                manager.user_id == manager_id,
                manager.status == JoinStatus.APPROVED.value,
                manager.role.in_(MANAGER_ROLES),
            )
        )
        query = (
            self.db.query(ClassMembershipModel)
            .options(
                joinedload(ClassMembershipModel.user),
                joinedload(ClassMembershipModel.class_),
            )
            .filter(
                ClassMembershipModel.status == JoinStatus.PENDING.value,
                manages_class,
            )
            .order_by(ClassMembershipModel.created_at.desc(), ClassMembershipModel.id.desc())
        )
        rows, total = paginate(query, page, size)
        items = [
            GlobalApprovalInfo(
                id=row.id,
                applicant=UserSummary.model_validate(row.user),
                class_info=ClassBrief(id=row.class_.id, name=row.class_.name),
                join_reason=row.join_reason,
                status=row.status,
                created_at=row.created_at,
            )
            for row in rows
        ]
        return Page[GlobalApprovalInfo].build(items, total, page, size)

    def process_approval(
        self, class_id: int, applicant_id: int, action: str, approver_id: int
    ) -> ClassMembershipModel:
        """Approve or reject a pending join request.

        Args:
            class_id: Class ID.
            applicant_id: User whose request is processed.
            action: ``APPROVE`` or ``REJECT`` (case-insensitive).
            approver_id: Manager processing the request.

        Returns:
            The updated membership row.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the approver does not manage the class.
            NoPendingApplicationError: If the applicant has no pending request.
            InvalidActionError: If ``action`` is neither APPROVE nor REJECT.
        """
        class_model = self._get_class(class_id)
        if not self.permissions.can_manage(approver_id, class_id):
            raise PermissionDeniedError("Only class managers can process join requests")

        membership = (
            self.db.query(ClassMembershipModel)
            .filter(
                ClassMembershipModel.user_id == applicant_id,
                ClassMembershipModel.class_id == class_id,
                ClassMembershipModel.status == JoinStatus.PENDING.value,
            )
            .first()
        )
        if membership is None:
            raise NoPendingApplicationError()

        normalized = (action or "").strip().upper()
        if normalized not in (APPROVE, REJECT):
            raise InvalidActionError(f"Invalid action '{action}', expected APPROVE or REJECT")

        now = utc_now()
        if normalized == APPROVE:
            membership.status = JoinStatus.APPROVED.value
            membership.joined_at = now
        else:
            membership.status = JoinStatus.REJECTED.value
        membership.approved_by = approver_id
        membership.approved_at = now
        membership.updated_at = now
        self.db.commit()
        self.db.refresh(membership)

        logger.info(
            "User %s %s join request of user %s for class %s",
            approver_id,
            "approved" if normalized == APPROVE else "rejected",
            applicant_id,
            class_id,
        )
        if self.audit_logger is not None:
            self.audit_logger.record(
                approver_id,
                AuditAction.APPROVAL_PROCESS,
                "CLASS",
                class_id,
                {"applicant_id": applicant_id, "action": normalized},
            )
        if self.notifier is not None:
            event_kind = (
                EventKind.APPLICATION_APPROVED
                if normalized == APPROVE
                else EventKind.APPLICATION_REJECTED
            )
            self.notifier.notify(event_kind, membership.user, {"class_name": class_model.name})
        return membership
