"""Cross-class approval routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.routes.auth import get_current_user
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.dependencies import ApprovalManagerDep
from models.user import UserModel
from schemas.class_schema import GlobalApprovalInfo
from schemas.common import Page

router = APIRouter(prefix="/api/approvals", tags=["Approval"])


@router.get("/pending", response_model=Page[GlobalApprovalInfo], summary="Pending requests in my classes")
def list_pending(
    approval_manager: ApprovalManagerDep,
    page: Annotated[int, Query(ge=0)] = 0,
    size: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[GlobalApprovalInfo]:
    """Every pending join request in classes the caller owns or administers."""
    return approval_manager.list_pending_across_managed_classes(current_user.id, page, size)
