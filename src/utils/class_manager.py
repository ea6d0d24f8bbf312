"""Class management utilities."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from core.exceptions import ClassNotFoundError, PermissionDeniedError
from models.class_membership import ClassMembershipModel, JoinStatus, RoleInClass
from models.class_model import ClassModel, ClassStatus
from models.task import TaskModel
from models.task_overlay import TaskOverlayModel
from schemas.class_schema import ClassInfo, MemberInfo, RolePermissionInfo
from schemas.common import Page
from schemas.user import UserSummary
from utils.audit_logger import AuditAction, AuditLogger
from utils.invite_code import InviteCodeIssuer
from utils.membership_manager import MembershipManager
from utils.pagination import normalize, paginate
from utils.permission_checker import PermissionChecker
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def build_class_info(class_model: ClassModel) -> ClassInfo:
    return ClassInfo(
        id=class_model.id,
        name=class_model.name,
        description=class_model.description,
        invite_code=class_model.invite_code,
        is_public=class_model.is_public,
        join_approval_required=class_model.join_approval_required,
        status=class_model.status,
        created_at=class_model.created_at,
        owner=UserSummary.model_validate(class_model.owner),
    )


class ClassManager:
    """Manages classes and the read side of their memberships."""

    def __init__(self, db: Session, audit_logger: Optional[AuditLogger] = None):
        self.db = db
        self.audit_logger = audit_logger
        self.permissions = PermissionChecker(db)
        self.memberships = MembershipManager(db)

    def create_class(
        self,
        owner_id: int,
        name: str,
        description: Optional[str] = None,
        is_public: bool = True,
        join_approval_required: bool = True,
    ) -> ClassModel:
        """Create a class together with its invite code and owner membership.

        Both rows are committed in one transaction, so a class never exists
        without its OWNER membership.
        """

        def insert(code: str) -> ClassModel:
            now = utc_now()
            class_model = ClassModel(
                name=name,
                description=description,
                invite_code=code,
                is_public=is_public,
                join_approval_required=join_approval_required,
                owner_id=owner_id,
                status=ClassStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(class_model)
            self.db.flush()
            self.memberships.create_owner_membership(class_model, owner_id)
            return class_model

        class_model = InviteCodeIssuer(self.db).issue(insert)
        self.db.commit()
        self.db.refresh(class_model)

        logger.info(
            "Created class %s '%s' with invite code %s", class_model.id, name, class_model.invite_code
        )
        if self.audit_logger is not None:
            self.audit_logger.record(
                owner_id, AuditAction.CLASS_CREATE, "CLASS", class_model.id, {"name": name}
            )
        return class_model

    def get_class(self, class_id: int) -> ClassModel:
        model = (
            self.db.query(ClassModel)
            .options(joinedload(ClassModel.owner))
            .filter(ClassModel.id == class_id)
            .first()
        )
        if not model:
            raise ClassNotFoundError()
        return model

    def find_by_invite_code(self, invite_code: str) -> ClassModel:
        """Look up a class by invite code, ignoring case and surrounding blanks."""
        code = (invite_code or "").strip().upper()
        model = self.db.query(ClassModel).filter(ClassModel.invite_code == code).first()
        if not model:
            raise ClassNotFoundError("No class matches this invite code")
        return model

    def search_public(self, name: Optional[str] = None, page: int = 0, size: int = 20) -> Page[ClassInfo]:
        page, size = normalize(page, size)
        query = self.db.query(ClassModel).options(joinedload(ClassModel.owner)).filter(
            ClassModel.is_public.is_(True),
            ClassModel.status == ClassStatus.ACTIVE.value,
        )
        if name and name.strip():
            query = query.filter(ClassModel.name.ilike(f"%{name.strip()}%"))
        query = query.order_by(ClassModel.created_at.desc(), ClassModel.id.desc())
        rows, total = paginate(query, page, size)
        return Page[ClassInfo].build([build_class_info(row) for row in rows], total, page, size)

    def list_my_classes(self, user_id: int, page: int = 0, size: int = 20) -> Page[ClassInfo]:
        """Classes in which the user holds an APPROVED membership."""
        page, size = normalize(page, size)
        query = (
            self.db.query(ClassModel)
            .options(joinedload(ClassModel.owner))
            .join(ClassMembershipModel, ClassMembershipModel.class_id == ClassModel.id)
            .filter(
                ClassMembershipModel.user_id == user_id,
                ClassMembershipModel.status == JoinStatus.APPROVED.value,
            )
            .order_by(ClassMembershipModel.joined_at.desc(), ClassModel.id.desc())
        )
        rows, total = paginate(query, page, size)
        return Page[ClassInfo].build([build_class_info(row) for row in rows], total, page, size)

    def list_members(self, class_id: int, page: int = 0, size: int = 20) -> Page[MemberInfo]:
        self.get_class(class_id)
        page, size = normalize(page, size)
        query = (
            self.db.query(ClassMembershipModel)
            .options(joinedload(ClassMembershipModel.user))
            .filter(
                ClassMembershipModel.class_id == class_id,
                ClassMembershipModel.status == JoinStatus.APPROVED.value,
            )
            .order_by(ClassMembershipModel.joined_at.asc(), ClassMembershipModel.id.asc())
        )
        rows, total = paginate(query, page, size)
        items = [
            MemberInfo(
                user_id=row.user_id,
                username=row.user.username,
                display_name=row.user.display_name,
                role=row.role,
                joined_at=row.joined_at,
            )
            for row in rows
        ]
        return Page[MemberInfo].build(items, total, page, size)

    def get_role_in_class(self, user_id: int, class_id: int) -> RolePermissionInfo:
        """Describe what the user may do in the class.

        Non-members get an all-false answer rather than an error.
        """
        self.get_class(class_id)
        membership = self.memberships.get_approved_membership(user_id, class_id)
        if membership is None:
            return RolePermissionInfo()

        is_owner = membership.role == RoleInClass.OWNER.value
        is_admin = membership.role == RoleInClass.ADMIN.value
        can_manage = is_owner or is_admin
        return RolePermissionInfo(
            is_member=True,
            role=membership.role,
            is_owner=is_owner,
            is_admin=is_admin,
            can_manage_members=can_manage,
            can_publish_tasks=can_manage,
            can_view_approvals=can_manage,
            can_manage_class=is_owner,
            joined_at=membership.joined_at,
        )

    def archive_class(self, class_id: int, operator_id: int) -> ClassModel:
        class_model = self.get_class(class_id)
        if not self.permissions.is_owner(operator_id, class_id):
            raise PermissionDeniedError("Only the class owner can archive the class")
        class_model.status = ClassStatus.ARCHIVED.value
        class_model.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(class_model)
        logger.info("Archived class %s", class_id)
        if self.audit_logger is not None:
            self.audit_logger.record(operator_id, AuditAction.CLASS_ARCHIVE, "CLASS", class_id)
        return class_model

    def delete_class(self, class_id: int, operator_id: int) -> None:
        """Delete a class and everything hanging off it.

        Only the class owner can delete the class. Overlays on the class's
        tasks, the tasks, and the memberships go in the same transaction.

        Raises:
            ClassNotFoundError: If class not found.
            PermissionDeniedError: If the operator is not the owner.
        """
        class_model = self.get_class(class_id)
        if not self.permissions.is_owner(operator_id, class_id):
            raise PermissionDeniedError("Only the class owner can delete the class")

        class_name = class_model.name
        task_ids = select(TaskModel.id).where(TaskModel.class_id == class_id)
        try:
            # Children first, foreign keys point at the class
            self.db.query(TaskOverlayModel).filter(
                TaskOverlayModel.task_id.in_(task_ids)
            ).delete(synchronize_session=False)
            self.db.query(TaskModel).filter(TaskModel.class_id == class_id).delete(
                synchronize_session=False
            )
            self.db.query(ClassMembershipModel).filter(
                ClassMembershipModel.class_id == class_id
            ).delete(synchronize_session=False)
            self.db.delete(class_model)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Deleted class: %s", class_id)
        if self.audit_logger is not None:
            self.audit_logger.record(
                operator_id, AuditAction.CLASS_DELETE, "CLASS", class_id, {"name": class_name}
            )
