from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from utils.time_utils import utc_now
from .base import Base


class RoleInClass(str, PyEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class JoinStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REMOVED = "REMOVED"


# Roles that may approve applicants and manage class tasks
MANAGER_ROLES = (RoleInClass.OWNER.value, RoleInClass.ADMIN.value)


class ClassMembershipModel(Base):
    __tablename__ = "class_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "class_id", name="uq_class_memberships_user_class"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    role = Column(String(20), nullable=False, default=RoleInClass.MEMBER.value)
    status = Column(String(20), nullable=False, default=JoinStatus.PENDING.value)
    join_reason = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    joined_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = relationship("UserModel", foreign_keys=[user_id])
    approver = relationship("UserModel", foreign_keys=[approved_by])
    class_ = relationship("ClassModel")
