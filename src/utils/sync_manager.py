"""Smart sync of class tasks into a user's personal task list."""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from core.exceptions import ClassNotFoundError, InvalidRangeError
from models.class_model import ClassModel
from models.task import TaskModel, TaskType
from models.task_overlay import TaskOverlayModel, TaskStatus
from schemas.sync import SyncResult
from utils.audit_logger import AuditAction, AuditLogger
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)

SYNC_RANGES = ("day", "week", "month", "semester", "year")


def _months_before(value: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping the day to the target month."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def resolve_range_start(range_keyword: str, now: Optional[datetime] = None) -> datetime:
    """Translate a range keyword into the earliest creation time it covers.

    Args:
        range_keyword: One of ``day``, ``week``, ``month``, ``semester`` or
            ``year``, case-insensitive.
        now: Reference time; defaults to the current UTC time.

    Raises:
        InvalidRangeError: For any other keyword.
    """
    now = now or utc_now()
    keyword = (range_keyword or "").strip().lower()
    if keyword == "day":
        return now - timedelta(days=1)
    if keyword == "week":
        return now - timedelta(weeks=1)
    if keyword == "month":
        return _months_before(now, 1)
    if keyword == "semester":
        return _months_before(now, 6)
    if keyword == "year":
        return _months_before(now, 12)
    raise InvalidRangeError(range_keyword)


class SyncManager:
    """Links a user to the class tasks they do not track yet."""

    def __init__(self, db: Session, audit_logger: Optional[AuditLogger] = None):
        self.db = db
        self.audit_logger = audit_logger

    def sync_class_tasks(self, user_id: int, class_id: int, range_keyword: str) -> SyncResult:
        """Create TODO overlays for recent class tasks the user has no overlay for.

        Running it twice in a row creates nothing the second time.

        Args:
            user_id: User to sync for. Membership is checked by the caller.
            class_id: Class whose tasks are scanned.
            range_keyword: How far back to look, see ``resolve_range_start``.

        Returns:
            SyncResult with the created count and the number of tasks found.

        Raises:
            InvalidRangeError: For an unknown range keyword.
            ClassNotFoundError: If the class does not exist.
        """
        start = resolve_range_start(range_keyword)
        exists = self.db.query(ClassModel.id).filter(ClassModel.id == class_id).first()
        if not exists:
            raise ClassNotFoundError()

        candidates = (
            self.db.query(TaskModel)
            .filter(
                TaskModel.class_id == class_id,
                TaskModel.task_type == TaskType.CLASS.value,
                TaskModel.is_deleted.is_(False),
                TaskModel.created_at >= start,
            )
            .all()
        )
        linked_ids = {
            task_id
            for (task_id,) in self.db.query(TaskOverlayModel.task_id)
            .filter(TaskOverlayModel.user_id == user_id)
            .all()
        }
        missing = [task for task in candidates if task.id not in linked_ids]

        if missing:
            now = utc_now()
            self.db.add_all(
                [
                    TaskOverlayModel(
                        user_id=user_id,
                        task_id=task.id,
                        status=TaskStatus.TODO.value,
                        personal_deadline=task.deadline,
                        created_at=now,
                        updated_at=now,
                    )
                    for task in missing
                ]
            )
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.exception("Sync failed for user %s in class %s", user_id, class_id)
                raise

        keyword = range_keyword.strip().lower()
        logger.info(
            "Synced %d of %d tasks from class %s for user %s (range=%s)",
            len(missing),
            len(candidates),
            class_id,
            user_id,
            keyword,
        )
        if self.audit_logger is not None:
            self.audit_logger.record(
                user_id,
                AuditAction.TASK_SYNC,
                "CLASS",
                class_id,
                {"range": keyword, "synced": len(missing), "found": len(candidates)},
            )
        return SyncResult(synced_count=len(missing), sync_range=keyword, total_found=len(candidates))
