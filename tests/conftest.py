from datetime import timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from models.base import Base
from models.user import UserModel
from utils import user_manager as user_manager_module
from utils.approval_manager import ApprovalManager
from utils.audit_logger import AuditLogger
from utils.class_manager import ClassManager
from utils.membership_manager import MembershipManager
from utils.notifier import Notifier
from utils.time_utils import utc_now


class RecordingAuditLogger(AuditLogger):
    """Keeps audit entries in memory instead of writing them from a thread."""

    def __init__(self):
        super().__init__()
        self.entries = []

    def record(self, actor_id, action, entity_type=None, entity_id=None, details=None,
               ip_address=None, user_agent=None):
        self.entries.append(
            {
                "actor_id": actor_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": details or {},
            }
        )

    def actions(self):
        return [entry["action"] for entry in self.entries]


class RecordingNotifier(Notifier):
    """Keeps notifications in memory instead of sending mail."""

    def __init__(self):
        self.sent = []

    def notify(self, event_kind, user, payload=None):
        self.sent.append((event_kind, user.id, dict(payload or {})))

    def kinds(self):
        return [kind for kind, _, _ in self.sent]


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(user_manager_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope="function")
def test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(test_engine) -> Generator[Session, None, None]:
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def audit():
    return RecordingAuditLogger()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_user(test_db: Session):
    """Create users directly, skipping password hashing."""
    counter = {"n": 0}

    def _make(username=None, **fields):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        now = utc_now()
        user = UserModel(
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password_hash=fields.pop("password_hash", "not-a-real-hash"),
            display_name=fields.pop("display_name", username.title()),
            email_verified=fields.pop("email_verified", True),
            created_at=now,
            updated_at=now,
            **fields,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("alice")


@pytest.fixture
def make_class(test_db: Session, owner):
    def _make(name="Algorithms", created_by=None, **options):
        manager = ClassManager(test_db)
        return manager.create_class((created_by or owner).id, name, **options)

    return _make


@pytest.fixture
def add_member(test_db: Session, owner):
    """Put a user through apply -> approve, optionally promoting them."""

    def _add(class_model, user, role="MEMBER"):
        MembershipManager(test_db).apply_to_join(user.id, class_model.id, "please")
        membership = MembershipManager(test_db).get_membership(user.id, class_model.id)
        if membership.status == "PENDING":
            ApprovalManager(test_db).process_approval(
                class_model.id, user.id, "APPROVE", class_model.owner_id
            )
        if role == "ADMIN":
            MembershipManager(test_db).change_role(
                class_model.id, user.id, "ADMIN", class_model.owner_id
            )
        return MembershipManager(test_db).get_membership(user.id, class_model.id)

    return _add


@pytest.fixture
def deadline():
    return (utc_now() + timedelta(days=7)).replace(microsecond=0)


@pytest.fixture(scope="function")
def test_client(test_db: Session, audit, notifier) -> TestClient:
    """Create a test client wired to the test session and recording side channels."""
    from app import app
    from core.database import get_db
    from core.dependencies import get_audit_logger, get_notifier

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_logger] = lambda: audit
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from api.routes.auth import create_access_token

    def _headers(user: UserModel):
        token = create_access_token(data={"sub": str(user.id), "username": user.username})
        return {"Authorization": f"Bearer {token}"}

    return _headers
