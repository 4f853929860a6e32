"""Pytest configuration and shared fixtures."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from officedesk.auth import AuthContext
from officedesk.dashboard.client import ApiClient
from officedesk.database import Base, get_db
from officedesk.main import app
from officedesk.models.domain import Contact, ContactSuggestion, Memo
from officedesk.models.enums import (
    ActorRole,
    ContactPosition,
    ContactType,
    MemoStatus,
    SuggestionStatus,
    SuggestionType,
)


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads, fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def api(engine):
    """TestClient against the real app, wired to the test database."""
    TestingSessionLocal = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class RecordingSession:
    """Forwards to the TestClient and remembers every request the dashboard made."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs.get("json")))
        return self.inner.request(method, url, **kwargs)

    def calls_to(self, method):
        return [call for call in self.calls if call[0] == method]


@pytest.fixture
def dashboard(api):
    """Build ApiClients for the dashboard that go through the test app, one per actor."""
    def make(auth):
        session = RecordingSession(api)
        return ApiClient(auth, base_url="http://testserver/api", session=session), session
    return make


@pytest.fixture
def admin():
    return AuthContext("admin_1", ActorRole.ADMIN)


@pytest.fixture
def staff():
    return AuthContext("staff_1", ActorRole.STAFF)


@pytest.fixture
def desk_head():
    return AuthContext("desk_1", ActorRole.DESK_HEAD)


@pytest.fixture
def leo():
    return AuthContext("leo_1", ActorRole.LEO)


@pytest.fixture
def sample_contact(db_session):
    contact = Contact(
        institute_name="St. Paul's Hospital",
        individual_name="Dr. Abebe Kebede",
        position=ContactPosition.MEDICAL_DIRECTOR,
        phone_number="+251-11-000-0000",
        email_address="abebe@example.org",
        organization_type=ContactType.FEDERAL_HOSPITALS,
        region="ADDIS_ABABA",
    )
    db_session.add(contact)
    db_session.commit()
    db_session.refresh(contact)
    return contact


@pytest.fixture
def pending_suggestion(db_session, sample_contact, staff):
    """An UPDATE suggestion from staff, waiting on an admin."""
    suggestion = ContactSuggestion(
        suggestion_type=SuggestionType.UPDATE,
        status=SuggestionStatus.PENDING,
        contact_id=sample_contact.id,
        existing_data={"phone_number": sample_contact.phone_number},
        suggested_changes={"phone_number": "+251-11-111-1111"},
        reason="Number changed last month",
        created_by=staff.actor_id,
        version=1,
    )
    db_session.add(suggestion)
    db_session.commit()
    db_session.refresh(suggestion)
    return suggestion


@pytest.fixture
def draft_memo(db_session, staff):
    memo = Memo(
        title="Quarterly review meeting",
        department="Planning",
        body="The quarterly review will be held on Monday.",
        recipients=["all_staff"],
        status=MemoStatus.DRAFT,
        created_by=staff.actor_id,
        version=1,
    )
    db_session.add(memo)
    db_session.commit()
    db_session.refresh(memo)
    return memo
