"""Dependency injection module for FastAPI.

Managers are built per request around the request-scoped DB session. The
audit logger and notifier are process-wide singletons.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import approval_manager
from utils import audit_logger
from utils import class_manager
from utils import membership_manager
from utils import notifier
from utils import permission_checker
from utils import sync_manager
from utils import task_manager
from utils import user_manager

# Singletons for the fire-and-forget collaborators
_audit_logger_instance: audit_logger.AuditLogger = None
_notifier_instance: notifier.Notifier = None


def get_audit_logger() -> audit_logger.AuditLogger:
    """Get AuditLogger singleton instance."""
    global _audit_logger_instance
    if _audit_logger_instance is None:
        _audit_logger_instance = audit_logger.AuditLogger()
    return _audit_logger_instance


def get_notifier() -> notifier.Notifier:
    """Get Notifier singleton instance."""
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = notifier.Notifier()
    return _notifier_instance


AuditLoggerDep = Annotated[audit_logger.AuditLogger, Depends(get_audit_logger)]
NotifierDep = Annotated[notifier.Notifier, Depends(get_notifier)]


def get_user_manager(
    db: Session = Depends(get_db),
    audit: AuditLoggerDep = None,
    notify: NotifierDep = None,
) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.
        audit: Audit logger singleton.
        notify: Notifier singleton.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db, audit, notify)


def get_permission_checker(db: Session = Depends(get_db)) -> permission_checker.PermissionChecker:
    return permission_checker.PermissionChecker(db)


def get_class_manager(
    db: Session = Depends(get_db), audit: AuditLoggerDep = None
) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db, audit)


def get_membership_manager(
    db: Session = Depends(get_db),
    audit: AuditLoggerDep = None,
    notify: NotifierDep = None,
) -> membership_manager.MembershipManager:
    """Get MembershipManager instance with request-scoped DB session."""
    return membership_manager.MembershipManager(db, audit, notify)


def get_approval_manager(
    db: Session = Depends(get_db),
    audit: AuditLoggerDep = None,
    notify: NotifierDep = None,
) -> approval_manager.ApprovalManager:
    """Get ApprovalManager instance with request-scoped DB session."""
    return approval_manager.ApprovalManager(db, audit, notify)


def get_task_manager(
    db: Session = Depends(get_db), audit: AuditLoggerDep = None
) -> task_manager.TaskManager:
    """Get TaskManager instance with request-scoped DB session."""
    return task_manager.TaskManager(db, audit)


def get_sync_manager(
    db: Session = Depends(get_db), audit: AuditLoggerDep = None
) -> sync_manager.SyncManager:
    """Get SyncManager instance with request-scoped DB session."""
    return sync_manager.SyncManager(db, audit)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
PermissionCheckerDep = Annotated[
    permission_checker.PermissionChecker, Depends(get_permission_checker)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
MembershipManagerDep = Annotated[
    membership_manager.MembershipManager, Depends(get_membership_manager)
]
ApprovalManagerDep = Annotated[
    approval_manager.ApprovalManager, Depends(get_approval_manager)
]
TaskManagerDep = Annotated[
    task_manager.TaskManager, Depends(get_task_manager)
]
SyncManagerDep = Annotated[
    sync_manager.SyncManager, Depends(get_sync_manager)
]
