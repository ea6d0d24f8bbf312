"""Class management routes."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from api.routes.auth import get_current_user
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.dependencies import (
    ApprovalManagerDep,
    ClassManagerDep,
    MembershipManagerDep,
    PermissionCheckerDep,
)
from core.exceptions import PermissionDeniedError
from models.class_membership import JoinStatus, RoleInClass
from models.user import UserModel
from schemas.class_schema import (
    ApprovalActionRequest,
    ApprovalInfo,
    ClassInfo,
    CreateClassRequest,
    InviteCodeInfo,
    JoinClassRequest,
    JoinClassResponse,
    MemberInfo,
    PermissionCheckResponse,
    RolePermissionInfo,
)
from schemas.common import MessageResponse, Page
from utils.class_manager import build_class_info

router = APIRouter(prefix="/api/classes", tags=["Class"])

PageParam = Annotated[int, Query(ge=0, description="Zero-based page index.")]
SizeParam = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]


def _require_member(permissions, user_id: int, class_id: int) -> None:
    if not permissions.is_member(user_id, class_id):
        raise PermissionDeniedError("Only class members can view this")


@router.post("", response_model=ClassInfo, summary="Create class")
def create_class(
    req: CreateClassRequest,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> ClassInfo:
    class_model = class_manager.create_class(
        current_user.id,
        req.name.strip(),
        description=req.description,
        is_public=req.is_public,
        join_approval_required=req.join_approval_required,
    )
    return build_class_info(class_model)


@router.get("/search", response_model=ClassInfo, summary="Find class by invite code")
def search_by_invite_code(
    class_manager: ClassManagerDep,
    invite_code: str = Query(..., min_length=1),
    current_user: UserModel = Depends(get_current_user),
) -> ClassInfo:
    return build_class_info(class_manager.find_by_invite_code(invite_code))


@router.get("/public", response_model=Page[ClassInfo], summary="Search public classes")
def search_public_classes(
    class_manager: ClassManagerDep,
    name: Optional[str] = None,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[ClassInfo]:
    return class_manager.search_public(name, page, size)


@router.get("/my", response_model=Page[ClassInfo], summary="List my classes")
def list_my_classes(
    class_manager: ClassManagerDep,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[ClassInfo]:
    return class_manager.list_my_classes(current_user.id, page, size)


@router.get("/{class_id}", response_model=ClassInfo, summary="Class details")
def get_class(
    class_id: int,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    current_user: UserModel = Depends(get_current_user),
) -> ClassInfo:
    class_model = class_manager.get_class(class_id)
    _require_member(permissions, current_user.id, class_id)
    return build_class_info(class_model)


@router.delete("/{class_id}", response_model=MessageResponse, summary="Delete class")
def delete_class(
    class_id: int,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    class_manager.delete_class(class_id, current_user.id)
    return MessageResponse(message="Class deleted")


@router.post("/{class_id}/archive", response_model=ClassInfo, summary="Archive class")
def archive_class(
    class_id: int,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> ClassInfo:
    return build_class_info(class_manager.archive_class(class_id, current_user.id))


@router.post("/{class_id}/join", response_model=JoinClassResponse, summary="Apply to join")
def join_class(
    class_id: int,
    membership_manager: MembershipManagerDep,
    req: Optional[JoinClassRequest] = None,
    current_user: UserModel = Depends(get_current_user),
) -> JoinClassResponse:
    """Submit a join request for the class managers to review."""
    reason = req.join_reason if req else None
    membership = membership_manager.apply_to_join(current_user.id, class_id, reason)
    return JoinClassResponse(
        class_id=class_id,
        status=membership.status,
        message="Application submitted, waiting for approval",
    )


@router.get("/{class_id}/approvals", response_model=Page[ApprovalInfo], summary="Pending join requests")
def list_pending_approvals(
    class_id: int,
    approval_manager: ApprovalManagerDep,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[ApprovalInfo]:
    return approval_manager.list_pending_for_class(class_id, current_user.id, page, size)


@router.put("/{class_id}/approvals/{user_id}", response_model=MessageResponse, summary="Process join request")
def process_approval(
    class_id: int,
    user_id: int,
    req: ApprovalActionRequest,
    approval_manager: ApprovalManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    membership = approval_manager.process_approval(class_id, user_id, req.action, current_user.id)
    if membership.status == JoinStatus.APPROVED.value:
        return MessageResponse(message="Application approved")
    return MessageResponse(message="Application rejected")


def _change_role(class_manager, permissions, membership_manager, class_id, user_id, role, operator_id):
    class_manager.get_class(class_id)
    if not permissions.is_owner(operator_id, class_id):
        raise PermissionDeniedError("Only the class owner can change member roles")
    membership_manager.change_role(class_id, user_id, role, operator_id)


@router.put("/{class_id}/members/{user_id}/promote", response_model=MessageResponse, summary="Promote to admin")
def promote_member(
    class_id: int,
    user_id: int,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    membership_manager: MembershipManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    _change_role(
        class_manager, permissions, membership_manager, class_id, user_id, RoleInClass.ADMIN, current_user.id
    )
    return MessageResponse(message="Member promoted to admin")


@router.put("/{class_id}/members/{user_id}/demote", response_model=MessageResponse, summary="Demote to member")
def demote_member(
    class_id: int,
    user_id: int,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    membership_manager: MembershipManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    _change_role(
        class_manager, permissions, membership_manager, class_id, user_id, RoleInClass.MEMBER, current_user.id
    )
    return MessageResponse(message="Admin demoted to member")


@router.delete("/{class_id}/members/{user_id}", response_model=MessageResponse, summary="Remove member")
def remove_member(
    class_id: int,
    user_id: int,
    membership_manager: MembershipManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    membership_manager.remove_member(class_id, user_id, current_user.id)
    return MessageResponse(message="Member removed")


@router.delete("/{class_id}/leave", response_model=MessageResponse, summary="Leave class")
def leave_class(
    class_id: int,
    membership_manager: MembershipManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    membership_manager.leave(class_id, current_user.id)
    return MessageResponse(message="You left the class")


@router.get("/{class_id}/members", response_model=Page[MemberInfo], summary="List members")
def list_members(
    class_id: int,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[MemberInfo]:
    class_manager.get_class(class_id)
    _require_member(permissions, current_user.id, class_id)
    return class_manager.list_members(class_id, page, size)


@router.get("/{class_id}/permission", response_model=PermissionCheckResponse, summary="Can I manage")
def check_permission(
    class_id: int,
    permissions: PermissionCheckerDep,
    current_user: UserModel = Depends(get_current_user),
) -> PermissionCheckResponse:
    return PermissionCheckResponse(can_manage=permissions.can_manage(current_user.id, class_id))


@router.get("/{class_id}/my-role", response_model=RolePermissionInfo, summary="My role in class")
def get_my_role(
    class_id: int,
    class_manager: ClassManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> RolePermissionInfo:
    return class_manager.get_role_in_class(current_user.id, class_id)


@router.get("/{class_id}/invite-code", response_model=InviteCodeInfo, summary="Class invite code")
def get_invite_code(
    class_id: int,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    current_user: UserModel = Depends(get_current_user),
) -> InviteCodeInfo:
    class_model = class_manager.get_class(class_id)
    _require_member(permissions, current_user.id, class_id)
    return InviteCodeInfo(invite_code=class_model.invite_code)
