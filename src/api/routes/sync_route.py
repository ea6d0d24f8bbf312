"""Smart sync routes."""

from fastapi import APIRouter, Depends, Query

from api.routes.auth import get_current_user
from core.dependencies import ClassManagerDep, PermissionCheckerDep, SyncManagerDep
from core.exceptions import PermissionDeniedError
from models.user import UserModel
from schemas.sync import SyncResult
from utils.sync_manager import SYNC_RANGES

router = APIRouter(prefix="/api/sync", tags=["Sync"])


@router.post("/class/{class_id}", response_model=SyncResult, summary="Sync class tasks")
def sync_class_tasks(
    class_id: int,
    sync_manager: SyncManagerDep,
    class_manager: ClassManagerDep,
    permissions: PermissionCheckerDep,
    sync_range: str = Query(..., alias="range", description=f"One of: {', '.join(SYNC_RANGES)}"),
    current_user: UserModel = Depends(get_current_user),
) -> SyncResult:
    """Add recent class tasks to the caller's own list.

    Only tasks the caller does not track yet are added, so calling it again
    is harmless.
    """
    class_manager.get_class(class_id)
    if not permissions.is_member(current_user.id, class_id):
        raise PermissionDeniedError("Only class members can sync class tasks")
    return sync_manager.sync_class_tasks(current_user.id, class_id, sync_range)
