"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from app.main import app
from app.auth.jwt import issue_access_token
from app.db.database import make_engine
from app.exceptions import RemoteUnavailableError
from app.schemas import RemoteConfig, RemoteSnapshot
from app.sync.cache import LocalCache
from app.sync.remote import RemoteStore
from app.sync.session import SyncSession, get_sync_session


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


@pytest.fixture(scope="session")
def anyio_backend():
    """Backend for async tests."""
    return "asyncio"


class FakeRemoteStore(RemoteStore):
    """In-memory remote store that records every call."""

    def __init__(self):
        self.loans = []
        self.users = []
        self.calls = []
        self.fail = False
        self.on_push = None

    def _check(self, name):
        self.calls.append(name)
        if self.fail:
            raise RemoteUnavailableError("Remote store unreachable")

    async def pull(self) -> RemoteSnapshot:
        self._check("pull")
        return RemoteSnapshot(loans=list(self.loans), users=list(self.users))

    async def push_loans(self, loans):
        self._check("push_loans")
        if self.on_push is not None:
            hook, self.on_push = self.on_push, None
            hook()
        self.loans = list(loans)

    async def push_users(self, users):
        self._check("push_users")
        self.users = list(users)

    async def delete_loan(self, loan_id):
        self._check("delete_loan")
        self.loans = [loan for loan in self.loans if loan.id != loan_id]


@pytest.fixture
def cache():
    """Local cache on an in-memory database."""
    return LocalCache(make_engine("sqlite://"))


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def session(cache, remote):
    """Loaded session on a fresh device, wired to the fake remote store."""
    sync_session = SyncSession(cache, remote_factory=lambda config: remote)
    sync_session.load()
    sync_session.remote_config = RemoteConfig(database_url="sqlite://")
    sync_session.status.remote_configured = True
    return sync_session


@pytest.fixture
def admin(session):
    return session.setup_admin("Admin", "1234", phone="01711111111")


@pytest.fixture
def borrower(session, admin):
    return session.add_user(admin, "Rahim", "5678", phone="01722222222")


@pytest.fixture
def loan(session, admin, borrower):
    return session.create_loan(admin, borrower.name, 10000, date(2025, 1, 15), 3)


@pytest.fixture
def client(session):
    """Test client whose requests all go to the test session."""
    app.dependency_overrides[get_sync_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    token = issue_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def borrower_headers(borrower):
    return auth_headers(borrower)
