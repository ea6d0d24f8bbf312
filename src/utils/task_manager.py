"""Task management utilities.

Shared task rows are created and edited here; each user's progress on a task
goes through ``TaskOverlayStore``.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import Session, joinedload

from core.exceptions import (
    ClassNotFoundError,
    PermissionDeniedError,
    TaskNotAccessibleError,
    TaskNotFoundError,
)
from models.class_model import ClassModel
from models.task import TaskModel, TaskType
from models.task_overlay import TaskOverlayModel, TaskStatus
from schemas.common import Page
from schemas.task import CalendarTaskView, TaskCreateRequest, TaskView
from utils.audit_logger import AuditAction, AuditLogger
from utils.pagination import normalize, paginate
from utils.permission_checker import PermissionChecker
from utils.task_overlay_store import TaskOverlayStore
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def _month_bounds(year: int, month: int):
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


class TaskManager:
    """Manages personal and class tasks."""

    def __init__(self, db: Session, audit_logger: Optional[AuditLogger] = None):
        """Initialize TaskManager.

        Args:
            db: SQLAlchemy Session.
            audit_logger: Optional audit side channel.
        """
        self.db = db
        self.audit_logger = audit_logger
        self.permissions = PermissionChecker(db)
        self.overlays = TaskOverlayStore(db)

    def _audit(self, user_id: int, action: str, task_id: int, details=None) -> None:
        if self.audit_logger is not None:
            self.audit_logger.record(user_id, action, "TASK", task_id, details)

    def _query(self):
        return self.db.query(TaskModel).options(
            joinedload(TaskModel.creator), joinedload(TaskModel.class_)
        )

    def _get_live_task(self, task_id: int) -> TaskModel:
        task = self._query().filter(TaskModel.id == task_id).first()
        if task is None or task.is_deleted:
            raise TaskNotFoundError(task_id)
        return task

    def _present_many(self, user_id: int, tasks: List[TaskModel]) -> List[TaskView]:
        overlays = self.overlays.overlays_by_task(user_id, [task.id for task in tasks])
        return [TaskOverlayStore.present(task, overlays.get(task.id)) for task in tasks]

    def _create(self, user_id: int, data: TaskCreateRequest, task_type: TaskType, class_id=None) -> TaskModel:
        now = utc_now()
        task = TaskModel(
            title=data.title,
            description=data.description,
            course_name=data.course_name,
            task_type=task_type.value,
            deadline=data.deadline,
            creator_id=user_id,
            class_id=class_id,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def create_personal_task(self, user_id: int, data: TaskCreateRequest) -> TaskView:
        task = self._create(user_id, data, TaskType.PERSONAL)
        logger.info("User %s created personal task %s", user_id, task.id)
        self._audit(user_id, AuditAction.TASK_CREATE_PERSONAL, task.id, {"title": task.title})
        return TaskOverlayStore.present(task)

    def create_class_task(self, user_id: int, class_id: int, data: TaskCreateRequest) -> TaskView:
        """Publish a task to every member of a class.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the user does not manage the class.
        """
        if not self.db.query(ClassModel.id).filter(ClassModel.id == class_id).first():
            raise ClassNotFoundError()
        if not self.permissions.can_manage(user_id, class_id):
            raise PermissionDeniedError("Only class managers can publish class tasks")

        task = self._create(user_id, data, TaskType.CLASS, class_id=class_id)
        logger.info("User %s created task %s in class %s", user_id, task.id, class_id)
        self._audit(
            user_id, AuditAction.TASK_CREATE_CLASS, task.id, {"class_id": class_id, "title": task.title}
        )
        return TaskOverlayStore.present(task)

    def get_task_detail(self, user_id: int, task_id: int) -> TaskView:
        """Return a task merged with the caller's overlay.

        Raises:
            TaskNotFoundError: If the task is missing or deleted.
            TaskNotAccessibleError: If the caller cannot see it.
        """
        task = self._get_live_task(task_id)
        if not self.permissions.can_access_task(user_id, task):
            raise TaskNotAccessibleError()
        return TaskOverlayStore.present(task, self.overlays.get_overlay(user_id, task.id))

    def list_class_tasks(self, user_id: int, class_id: int, page: int = 0, size: int = 20) -> Page[TaskView]:
        """List a class's live tasks by deadline, with the caller's overlays.

        Raises:
            ClassNotFoundError: If the class does not exist.
            PermissionDeniedError: If the caller is not a member.
        """
        if not self.db.query(ClassModel.id).filter(ClassModel.id == class_id).first():
            raise ClassNotFoundError()
        if not self.permissions.is_member(user_id, class_id):
            raise PermissionDeniedError("Only class members can view class tasks")

        page, size = normalize(page, size)
        query = (
            self._query()
            .filter(
                TaskModel.class_id == class_id,
                TaskModel.task_type == TaskType.CLASS.value,
                TaskModel.is_deleted.is_(False),
            )
            .order_by(TaskModel.deadline.asc(), TaskModel.id.asc())
        )
        tasks, total = paginate(query, page, size)
        return Page[TaskView].build(self._present_many(user_id, tasks), total, page, size)

    def list_personal_tasks(self, user_id: int, page: int = 0, size: int = 20) -> Page[TaskView]:
        page, size = normalize(page, size)
        query = (
            self._query()
            .filter(
                TaskModel.creator_id == user_id,
                TaskModel.task_type == TaskType.PERSONAL.value,
                TaskModel.is_deleted.is_(False),
            )
            .order_by(TaskModel.deadline.asc(), TaskModel.id.asc())
        )
        tasks, total = paginate(query, page, size)
        return Page[TaskView].build(self._present_many(user_id, tasks), total, page, size)

    def calendar_tasks(self, user_id: int, year: int, month: int) -> List[CalendarTaskView]:
        """Tasks the user tracks that were created or fall due in the month.

        That is the user's own personal tasks plus the class tasks they hold
        an overlay for, ordered by deadline.
        """
        start, end = _month_bounds(year, month)
        has_overlay = exists().where(
            and_(
                TaskOverlayModel.task_id == TaskModel.id,
                TaskOverlayModel.user_id == user_id,
            )
        )
        tasks = (
            self._query()
            .filter(
                TaskModel.is_deleted.is_(False),
                or_(
                    and_(
                        TaskModel.task_type == TaskType.PERSONAL.value,
                        TaskModel.creator_id == user_id,
                    ),
                    and_(TaskModel.task_type == TaskType.CLASS.value, has_overlay),
                ),
                or_(
                    and_(TaskModel.created_at >= start, TaskModel.created_at < end),
                    and_(TaskModel.deadline >= start, TaskModel.deadline < end),
                ),
            )
            .order_by(TaskModel.deadline.asc(), TaskModel.id.asc())
            .all()
        )
        views = self._present_many(user_id, tasks)
        return [
            CalendarTaskView(
                id=view.id,
                title=view.title,
                description=view.description,
                course_name=view.course_name,
                task_type=view.task_type,
                deadline=view.deadline,
                created_at=view.created_at,
                class_name=view.class_name,
                personal_status=view.personal_status,
                personal_deadline=view.personal_deadline,
            )
            for view in views
        ]

    def update_task(self, user_id: int, task_id: int, data: TaskCreateRequest) -> TaskView:
        """Edit the shared fields of a task.

        Raises:
            TaskNotFoundError: If the task is missing or deleted.
            PermissionDeniedError: If the user may not edit it.
        """
        task = self._get_live_task(task_id)
        if not self.permissions.can_edit_task(user_id, task):
            raise PermissionDeniedError("You cannot edit this task")

        task.title = data.title
        task.description = data.description
        task.course_name = data.course_name
        task.deadline = data.deadline
        task.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(task)

        logger.info("User %s updated task %s", user_id, task_id)
        self._audit(user_id, AuditAction.TASK_UPDATE, task_id)
        return TaskOverlayStore.present(task, self.overlays.get_overlay(user_id, task_id))

    def delete_task(self, user_id: int, task_id: int) -> None:
        """Soft delete a task; overlays stay but the task no longer lists."""
        task = self._get_live_task(task_id)
        if not self.permissions.can_edit_task(user_id, task):
            raise PermissionDeniedError("You cannot delete this task")

        task.is_deleted = True
        task.updated_at = utc_now()
        self.db.commit()
        logger.info("User %s deleted task %s", user_id, task_id)
        self._audit(user_id, AuditAction.TASK_DELETE, task_id)

    def update_task_status(
        self,
        user_id: int,
        task_id: int,
        status: TaskStatus,
        personal_deadline: Optional[datetime] = None,
        personal_notes: Optional[str] = None,
    ) -> TaskView:
        """Record the caller's own status on a task.

        Raises:
            TaskNotFoundError: If the task is missing or deleted.
            TaskNotAccessibleError: If the caller cannot see it.
        """
        task = self._get_live_task(task_id)
        if not self.permissions.can_access_task(user_id, task):
            raise TaskNotAccessibleError()

        overlay = self.overlays.record_status(
            user_id, task, status, personal_deadline=personal_deadline, personal_notes=personal_notes
        )
        self._audit(user_id, AuditAction.TASK_STATUS_UPDATE, task_id, {"status": overlay.status})
        return TaskOverlayStore.present(task, overlay)
