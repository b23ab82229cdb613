from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from collections.abc import Callable, Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.deps import get_current_user
from app.core.db import Base, get_db
from app.main import app
from app.models.membership_request import MembershipRequest
from app.models.role import Role
from app.models.user import User
from app.schemas.membership_request import MembershipRequestCreate
from app.services.membership_workflow import ApprovalWorkflow, get_workflow
from app.services.notifications import NotificationGateway

SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


class RecordingNotifier(NotificationGateway):
    """Keeps every notification it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, list[str]]] = []

    def notify_applicant_received(self, request: MembershipRequest) -> list[str]:
        recipients = super().notify_applicant_received(request)
        self.sent.append(("received", request.request_number, recipients))
        return recipients

    def notify_board_vote_required(self, request, voters, policy_description) -> list[str]:
        recipients = super().notify_board_vote_required(request, voters, policy_description)
        self.sent.append(("board", request.request_number, recipients))
        return recipients

    def notify_applicant_outcome(self, request: MembershipRequest, outcome: str) -> list[str]:
        recipients = super().notify_applicant_outcome(request, outcome)
        self.sent.append((outcome.lower(), request.request_number, recipients))
        return recipients

    def notify_board_vote_reminder(self, request, voters, policy_description) -> list[str]:
        recipients = super().notify_board_vote_reminder(request, voters, policy_description)
        self.sent.append(("reminder", request.request_number, recipients))
        return recipients

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def workflow(notifier: RecordingNotifier) -> ApprovalWorkflow:
    return ApprovalWorkflow(notifier=notifier)


@pytest.fixture()
def client(db_session: Session, workflow: ApprovalWorkflow) -> Generator[TestClient, None, None]:
    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_workflow] = lambda: workflow
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def authorize(client: TestClient):
    def _apply(user: User):
        app.dependency_overrides[get_current_user] = lambda: user

    yield _apply
    app.dependency_overrides.pop(get_current_user, None)


def _ensure_role(session: Session, name: str) -> Role:
    role = session.query(Role).filter_by(name=name).first()
    if role is None:
        role = Role(name=name)
        session.add(role)
        session.commit()
        session.refresh(role)
    return role


def create_user(session: Session, email: str, *roles: str, active: bool = True) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), hashed_password="hash", is_active=active)
    for name in roles:
        user.roles.append(_ensure_role(session, name))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make(email: str, *roles: str, active: bool = True) -> User:
        return create_user(db_session, email, *roles, active=active)

    return _make


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    return create_user(db_session, "admin@example.com", "Admin")


@pytest.fixture()
def moderator_user(db_session: Session) -> User:
    return create_user(db_session, "moderator@example.com", "Moderator")


@pytest.fixture()
def outsider_user(db_session: Session) -> User:
    return create_user(db_session, "outsider@example.com")


@pytest.fixture()
def board(db_session: Session) -> Callable[[int], list[User]]:
    def _board(size: int) -> list[User]:
        return [create_user(db_session, f"board{index}@example.com", "Board") for index in range(1, size + 1)]

    return _board


def application_payload(**overrides) -> dict:
    payload = {
        "first_name": "Sokha",
        "last_name": "Chan",
        "email": "sokha.chan@example.com",
        "phone": "+46701234567",
        "date_of_birth": date(1994, 4, 12).isoformat(),
        "address": "Storgatan 12",
        "city": "Uppsala",
        "postal_code": "753 20",
        "residence_status": "WORK_PERMIT",
        "motivation": "I want to help organize cultural events for the community.",
        "requested_member_type": "REGULAR",
        "preferred_language": "en",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def submit_request(db_session: Session, workflow: ApprovalWorkflow) -> Callable[..., MembershipRequest]:
    def _submit(*, approval_system: str = "MULTI_BOARD", designated_approver_id: int | None = None, **overrides):
        payload = MembershipRequestCreate(**application_payload(**overrides))
        return workflow.submit(
            db_session,
            payload,
            approval_system=approval_system,
            designated_approver_id=designated_approver_id,
        )

    return _submit


@pytest.fixture()
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Sessions on a file database, each with its own connection and real transactions."""

    file_engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}", connect_args={"timeout": 1})

    @event.listens_for(file_engine, "connect")
    def _disable_implicit_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(file_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(bind=file_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    Base.metadata.drop_all(bind=file_engine)
    file_engine.dispose()


@pytest.fixture()
def user_in() -> Callable[..., User]:
    return create_user


@pytest.fixture()
def application() -> Callable[..., dict]:
    return application_payload
