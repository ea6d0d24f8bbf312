"""Per-user overlays on shared tasks.

The shared task row is never touched here. A user's status, deadline and
notes live in their own ``TaskOverlayModel`` row, created only when the user
records a status or syncs a class.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.task import TaskModel
from models.task_overlay import TaskOverlayModel, TaskStatus
from schemas.task import TaskView
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class TaskOverlayStore:
    """Reads and writes one user's overlay rows for shared tasks.

    There is at most one overlay per (user, task); a missing row means the
    task reads as TODO for that user.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_overlay(self, user_id: int, task_id: int) -> Optional[TaskOverlayModel]:
        return (
            self.db.query(TaskOverlayModel)
            .filter(TaskOverlayModel.user_id == user_id, TaskOverlayModel.task_id == task_id)
            .first()
        )

    def overlays_by_task(self, user_id: int, task_ids: Iterable[int]) -> Dict[int, TaskOverlayModel]:
        """Map task id -> the user's overlay, for the given tasks only."""
        task_ids = list(task_ids)
        if not task_ids:
            return {}
        rows = (
            self.db.query(TaskOverlayModel)
            .filter(TaskOverlayModel.user_id == user_id, TaskOverlayModel.task_id.in_(task_ids))
            .all()
        )
        return {row.task_id: row for row in rows}

    def record_status(
        self,
        user_id: int,
        task: TaskModel,
        status: Union[TaskStatus, str],
        personal_deadline: Optional[datetime] = None,
        personal_notes: Optional[str] = None,
    ) -> TaskOverlayModel:
        """Find or create the user's overlay and record a status on it.

        Access must already be checked by the caller. A new overlay starts
        from the task deadline. ``personal_deadline`` is only written when
        given; ``personal_notes`` is always written, so ``None`` clears it.

        Returns:
            The saved overlay.
        """
        status_value = TaskStatus(status).value
        now = utc_now()

        overlay = self.get_overlay(user_id, task.id)
        if overlay is None:
            overlay = TaskOverlayModel(
                user_id=user_id,
                task_id=task.id,
                personal_deadline=task.deadline,
                created_at=now,
            )
            self.db.add(overlay)

        self._apply(overlay, status_value, personal_deadline, personal_notes, now)

        try:
            self.db.commit()
        except IntegrityError as exc:
            # Another request created the overlay first; update that row instead
            self.db.rollback()
            logger.warning(
                "Concurrent overlay insert: user_id=%s task_id=%s (%s)", user_id, task.id, exc.orig
            )
            overlay = self.get_overlay(user_id, task.id)
            if overlay is None:
                raise
            self._apply(overlay, status_value, personal_deadline, personal_notes, now)
            self.db.commit()
        self.db.refresh(overlay)
        logger.info("User %s set task %s to %s", user_id, task.id, status_value)
        return overlay

    @staticmethod
    def _apply(
        overlay: TaskOverlayModel,
        status_value: str,
        personal_deadline: Optional[datetime],
        personal_notes: Optional[str],
        now: datetime,
    ) -> None:
        overlay.status = status_value
        if personal_deadline is not None:
            overlay.personal_deadline = personal_deadline
        overlay.personal_notes = personal_notes
        overlay.completed_at = now if status_value == TaskStatus.DONE.value else None
        overlay.updated_at = now

    @staticmethod
    def present(task: TaskModel, overlay: Optional[TaskOverlayModel] = None) -> TaskView:
        """Merge the shared task with one user's overlay.

        Without an overlay the task reads as TODO with no personal fields;
        nothing is written.
        """
        view = TaskView(
            id=task.id,
            title=task.title,
            description=task.description,
            course_name=task.course_name,
            task_type=task.task_type,
            deadline=task.deadline,
            created_at=task.created_at,
            updated_at=task.updated_at,
            creator_id=task.creator_id,
            creator_name=(task.creator.display_name or task.creator.username) if task.creator else None,
            class_id=task.class_id,
            class_name=task.class_.name if task.class_ else None,
        )
        if overlay is not None:
            view.personal_status = TaskStatus(overlay.status)
            view.personal_deadline = overlay.personal_deadline
            view.personal_notes = overlay.personal_notes
            view.completed_at = overlay.completed_at
        return view
