"""Class, membership, and approval schema definitions."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.user import UserSummary


class CreateClassRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    is_public: bool = True
    join_approval_required: bool = True


class ClassInfo(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    invite_code: str
    is_public: bool
    join_approval_required: bool
    status: str
    created_at: datetime
    owner: UserSummary


class JoinClassRequest(BaseModel):
    join_reason: Optional[str] = Field(default=None, max_length=500)


class JoinClassResponse(BaseModel):
    class_id: int
    status: str = Field(description="Membership status after applying, always PENDING.")
    message: str


class ApprovalActionRequest(BaseModel):
    action: str = Field(description="APPROVE or REJECT.")


class ApprovalInfo(BaseModel):
    """A pending application inside one class."""

    user_id: int
    username: str
    display_name: Optional[str] = None
    join_reason: Optional[str] = None
    status: str
    created_at: datetime


class ClassBrief(BaseModel):
    id: int
    name: str


class GlobalApprovalInfo(BaseModel):
    """A pending application in any class the caller manages."""

    id: int = Field(description="Membership row id.")
    applicant: UserSummary
    class_info: ClassBrief
    join_reason: Optional[str] = None
    status: str
    created_at: datetime


class MemberInfo(BaseModel):
    user_id: int
    username: str
    display_name: Optional[str] = None
    role: str
    joined_at: Optional[datetime] = None


class RolePermissionInfo(BaseModel):
    """The caller's standing in a class."""

    is_member: bool = False
    role: Optional[str] = None
    is_owner: bool = False
    is_admin: bool = False
    can_manage_members: bool = False
    can_publish_tasks: bool = False
    can_view_approvals: bool = False
    can_manage_class: bool = False
    joined_at: Optional[datetime] = None


class PermissionCheckResponse(BaseModel):
    can_manage: bool


class InviteCodeInfo(BaseModel):
    invite_code: str
