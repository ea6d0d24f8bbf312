"""Task and personal overlay schema definitions."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.task_overlay import TaskStatus
from utils.time_utils import to_naive_utc


class TaskCreateRequest(BaseModel):
    """Body for creating or updating a task."""

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    course_name: str = Field(min_length=1, max_length=100)
    deadline: datetime

    @field_validator("title", "course_name")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class TaskStatusUpdateRequest(BaseModel):
    """Body for recording a personal status.

    Omitting ``personal_deadline`` keeps the current one; omitting
    ``personal_notes`` clears the notes.
    """

    status: TaskStatus
    personal_deadline: Optional[datetime] = None
    personal_notes: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("personal_deadline")
    @classmethod
    def normalize_deadline(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class TaskView(BaseModel):
    """A shared task merged with the caller's personal overlay."""

    id: int
    title: str
    description: Optional[str] = None
    course_name: Optional[str] = None
    task_type: str
    deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    creator_id: int
    creator_name: Optional[str] = None

    class_id: Optional[int] = None
    class_name: Optional[str] = None

    personal_status: TaskStatus = TaskStatus.TODO
    personal_deadline: Optional[datetime] = None
    personal_notes: Optional[str] = None
    completed_at: Optional[datetime] = None


class CalendarTaskView(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    course_name: Optional[str] = None
    task_type: str
    deadline: Optional[datetime] = None
    created_at: datetime
    class_name: Optional[str] = None
    personal_status: TaskStatus = TaskStatus.TODO
    personal_deadline: Optional[datetime] = None
