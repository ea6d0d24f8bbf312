"""Task routes.

Personal tasks, class tasks, the calendar view and each user's own status on
a task.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, Query

from api.routes.auth import get_current_user
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.dependencies import TaskManagerDep
from models.user import UserModel
from schemas.common import MessageResponse, Page
from schemas.task import CalendarTaskView, TaskCreateRequest, TaskStatusUpdateRequest, TaskView

router = APIRouter(prefix="/api", tags=["Task"])

PageParam = Annotated[int, Query(ge=0, description="Zero-based page index.")]
SizeParam = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]


@router.post("/tasks/personal", response_model=TaskView, summary="Create personal task")
def create_personal_task(
    req: TaskCreateRequest,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> TaskView:
    return task_manager.create_personal_task(current_user.id, req)


@router.get("/tasks/personal", response_model=Page[TaskView], summary="List personal tasks")
def list_personal_tasks(
    task_manager: TaskManagerDep,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[TaskView]:
    return task_manager.list_personal_tasks(current_user.id, page, size)


@router.post("/classes/{class_id}/tasks", response_model=TaskView, summary="Publish class task")
def create_class_task(
    class_id: int,
    req: TaskCreateRequest,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> TaskView:
    """Publish a task to a class. Owners and admins only."""
    return task_manager.create_class_task(current_user.id, class_id, req)


@router.get("/classes/{class_id}/tasks", response_model=Page[TaskView], summary="List class tasks")
def list_class_tasks(
    class_id: int,
    task_manager: TaskManagerDep,
    page: PageParam = 0,
    size: SizeParam = DEFAULT_PAGE_SIZE,
    current_user: UserModel = Depends(get_current_user),
) -> Page[TaskView]:
    return task_manager.list_class_tasks(current_user.id, class_id, page, size)


@router.get("/calendar", response_model=List[CalendarTaskView], summary="Calendar view")
def get_calendar(
    task_manager: TaskManagerDep,
    year: Annotated[int, Query(ge=1970, le=9999)],
    month: Annotated[int, Query(ge=1, le=12)],
    current_user: UserModel = Depends(get_current_user),
) -> List[CalendarTaskView]:
    return task_manager.calendar_tasks(current_user.id, year, month)


@router.get("/tasks/{task_id}", response_model=TaskView, summary="Task details")
def get_task(
    task_id: int,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> TaskView:
    return task_manager.get_task_detail(current_user.id, task_id)


@router.put("/tasks/{task_id}", response_model=TaskView, summary="Update task")
def update_task(
    task_id: int,
    req: TaskCreateRequest,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> TaskView:
    return task_manager.update_task(current_user.id, task_id, req)


@router.delete("/tasks/{task_id}", response_model=MessageResponse, summary="Delete task")
def delete_task(
    task_id: int,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> MessageResponse:
    task_manager.delete_task(current_user.id, task_id)
    return MessageResponse(message="Task deleted")


@router.put("/tasks/{task_id}/status", response_model=TaskView, summary="Update my status")
def update_task_status(
    task_id: int,
    req: TaskStatusUpdateRequest,
    task_manager: TaskManagerDep,
    current_user: UserModel = Depends(get_current_user),
) -> TaskView:
    """Record the caller's own status, deadline and notes on a task."""
    return task_manager.update_task_status(
        current_user.id,
        task_id,
        req.status,
        personal_deadline=req.personal_deadline,
        personal_notes=req.personal_notes,
    )
