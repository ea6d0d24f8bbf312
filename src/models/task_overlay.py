"""Per-user overlay on a shared task.

A row holds one user's personal status, deadline, and notes for a task.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from utils.time_utils import utc_now
from .base import Base


class TaskStatus(str, PyEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskOverlayModel(Base):
    __tablename__ = "task_overlays"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_task_overlays_user_task"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    task_id = Column(Integer, ForeignKey("tasks.id"), index=True, nullable=False)
    status = Column(String(20), nullable=False, default=TaskStatus.TODO.value)
    personal_deadline = Column(DateTime, nullable=True)
    personal_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    task = relationship("TaskModel")
