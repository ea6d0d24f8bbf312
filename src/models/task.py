from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from utils.time_utils import utc_now
from .base import Base


class TaskType(str, PyEnum):
    PERSONAL = "PERSONAL"
    CLASS = "CLASS"


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    course_name = Column(String(100), nullable=True)
    task_type = Column(String(20), nullable=False)
    deadline = Column(DateTime, nullable=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    # Set iff task_type is CLASS
    class_id = Column(Integer, ForeignKey("classes.id"), index=True, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    creator = relationship("UserModel")
    class_ = relationship("ClassModel")
