"""Database models.

Importing this package registers every model with ``Base.metadata``.
"""

from .base import Base
from .user import UserModel
from .class_model import ClassModel, ClassStatus
from .class_membership import ClassMembershipModel, JoinStatus, RoleInClass
from .task import TaskModel, TaskType
from .task_overlay import TaskOverlayModel, TaskStatus
from .action_log import ActionLogModel

__all__ = [
    "Base",
    "UserModel",
    "ClassModel",
    "ClassStatus",
    "ClassMembershipModel",
    "JoinStatus",
    "RoleInClass",
    "TaskModel",
    "TaskType",
    "TaskOverlayModel",
    "TaskStatus",
    "ActionLogModel",
]
