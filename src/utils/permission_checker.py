"""Authorization predicates derived from class memberships.

Every predicate answers with a plain bool. Lookup faults are logged and
answered with ``False`` so a caller's allow/deny decision never depends on an
exception.
"""

import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from models.class_membership import (
    MANAGER_ROLES,
    ClassMembershipModel,
    JoinStatus,
    RoleInClass,
)
from models.task import TaskModel, TaskType

logger = logging.getLogger(__name__)

TaskRef = Union[TaskModel, int, None]


class PermissionChecker:
    """Answers capability questions for a (user, class) or (user, task) pair."""

    def __init__(self, db: Session):
        self.db = db

    def _approved_role(self, user_id: int, class_id: int) -> Optional[str]:
        row = (
            self.db.query(ClassMembershipModel.role)
            .filter(
                ClassMembershipModel.user_id == user_id,
                ClassMembershipModel.class_id == class_id,
                ClassMembershipModel.status == JoinStatus.APPROVED.value,
            )
            .first()
        )
        return row[0] if row else None

    def _resolve_task(self, task: TaskRef) -> Optional[TaskModel]:
        if task is None or isinstance(task, TaskModel):
            return task
        return self.db.query(TaskModel).filter(TaskModel.id == task).first()

    def is_member(self, user_id: Optional[int], class_id: Optional[int]) -> bool:
        """True iff the user has an APPROVED membership in the class."""
        if user_id is None or class_id is None:
            return False
        try:
            return self._approved_role(user_id, class_id) is not None
        except Exception:
            logger.exception("Membership check failed: class_id=%s, user_id=%s", class_id, user_id)
            return False

    def can_manage(self, user_id: Optional[int], class_id: Optional[int]) -> bool:
        """True iff the user is an APPROVED ADMIN or OWNER of the class."""
        if user_id is None or class_id is None:
            return False
        try:
            return self._approved_role(user_id, class_id) in MANAGER_ROLES
        except Exception:
            logger.exception("Manage check failed: class_id=%s, user_id=%s", class_id, user_id)
            return False

    def is_owner(self, user_id: Optional[int], class_id: Optional[int]) -> bool:
        """True iff the user is the APPROVED OWNER of the class."""
        if user_id is None or class_id is None:
            return False
        try:
            return self._approved_role(user_id, class_id) == RoleInClass.OWNER.value
        except Exception:
            logger.exception("Owner check failed: class_id=%s, user_id=%s", class_id, user_id)
            return False

    def can_access_task(self, user_id: Optional[int], task: TaskRef) -> bool:
        """Whether the user may view the task and record a personal status.

        Personal tasks are visible to their creator only; class tasks to every
        approved member of the class.

        Args:
            user_id: Caller ID.
            task: A loaded ``TaskModel`` or a task ID.
        """
        if user_id is None:
            return False
        try:
            task_model = self._resolve_task(task)
            if task_model is None:
                return False
            if task_model.task_type == TaskType.PERSONAL.value:
                return task_model.creator_id == user_id
            if task_model.task_type == TaskType.CLASS.value:
                if task_model.class_id is None:
                    return False
                return self.is_member(user_id, task_model.class_id)
            return False
        except Exception:
            logger.exception("Task access check failed: task=%s, user_id=%s", task, user_id)
            return False

    def can_edit_task(self, user_id: Optional[int], task: TaskRef) -> bool:
        """Whether the user may update or delete the shared task itself.

        Personal tasks: creator only. Class tasks: the creator or any
        manager of the class.
        """
        if user_id is None:
            return False
        try:
            task_model = self._resolve_task(task)
            if task_model is None:
                return False
            if task_model.task_type == TaskType.PERSONAL.value:
                return task_model.creator_id == user_id
            if task_model.task_type == TaskType.CLASS.value:
                if task_model.class_id is None:
                    return False
                if task_model.creator_id == user_id:
                    return True
                return self.can_manage(user_id, task_model.class_id)
            return False
        except Exception:
            logger.exception("Task edit check failed: task=%s, user_id=%s", task, user_id)
            return False
