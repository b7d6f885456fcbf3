import os
import tempfile
import uuid

# Settings are read at import time, so point them at a scratch database first
_TEST_DB_DIR = tempfile.mkdtemp(prefix="messaging-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test_messaging.db')}"
os.environ["LOG_TO_FILE"] = "false"
os.environ["ENVIRONMENT"] = "development"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


class RecordingPushTransport:
    """Stands in for the Expo gateway; records every message it is asked to send."""

    def __init__(self):
        self.sent: list[dict] = []
        self.tickets: dict[str, dict] = {}
        self.error: Exception | None = None

    async def send(self, messages: list[dict]) -> list[dict]:
        if self.error is not None:
            raise self.error
        self.sent.extend(messages)
        return [self.tickets.get(m["to"], {"status": "ok", "id": str(uuid.uuid4())}) for m in messages]

    def sent_to(self, token: str) -> list[dict]:
        return [m for m in self.sent if m["to"] == token]


@pytest.fixture(scope="session")
def app():
    import main as main_module
    return main_module.app


@pytest.fixture()
def db_session(app):
    from app.db.database import SessionLocal
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def push_transport(monkeypatch):
    from app.services.push_service import push_dispatcher

    transport = RecordingPushTransport()
    monkeypatch.setattr(push_dispatcher, "transport", transport)
    return transport


@pytest.fixture()
def make_user(db_session):
    """Create a user with the profile row matching its type."""
    from app.models.user import Company, Coordinator, Student, User, UserType

    def _make(user_type=UserType.STUDENT, first_name=None, last_name=None, id_number=None,
              company_name=None, email=None, is_active=True, with_profile=True):
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=email or f"user-{suffix}@example.com",
            user_type=user_type,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        if with_profile:
            if user_type == UserType.STUDENT:
                db_session.add(Student(
                    user_id=user.id,
                    first_name=first_name or "Stu",
                    last_name=last_name or f"Dent{suffix}",
                    id_number=id_number,
                ))
            elif user_type == UserType.COORDINATOR:
                db_session.add(Coordinator(
                    user_id=user.id,
                    first_name=first_name or "Coor",
                    last_name=last_name or f"Dinator{suffix}",
                ))
            elif user_type == UserType.COMPANY:
                db_session.add(Company(user_id=user.id, company_name=company_name or f"Acme {suffix}"))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    from app.core.security import create_access_token

    def _headers(user) -> dict:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def expo_token():
    return lambda: f"ExponentPushToken[{uuid.uuid4().hex[:22]}]"
