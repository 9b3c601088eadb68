import os

# Keep the app engine in memory and Twilio in dry-run mode for every test.
# Set before any padelmatch import; load_dotenv never overrides existing keys.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
for _key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
    os.environ[_key] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from padelmatch.config import EngineSettings  # noqa: E402
from padelmatch.database import get_session  # noqa: E402
from padelmatch.main import app  # noqa: E402
from padelmatch.services.notifier import Notifier  # noqa: E402
from padelmatch.services.repository import MatchRepository  # noqa: E402
from padelmatch.services.twilio_service import TwilioService  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables dropped and recreated per test (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a clean schema."""
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="other_session")
def other_session_fixture(session: Session):
    """A second session on the same database, standing in for a concurrent request."""
    with Session(test_engine) as other:
        yield other


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="settings")
def settings_fixture() -> EngineSettings:
    return EngineSettings()


@pytest.fixture(name="repo")
def repo_fixture(session: Session) -> MatchRepository:
    return MatchRepository(session)


@pytest.fixture(name="notifier")
def notifier_fixture(repo: MatchRepository) -> Notifier:
    twilio = TwilioService()
    assert twilio.dry_run
    return Notifier(repo, twilio=twilio)
