"""
Test configuration and fixtures for the authguard tests
"""

import datetime
import os
import sys
import tempfile

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set environment variables for testing before importing the app
os.environ["ENVIRONMENT"] = "testing"
os.environ["TESTING"] = "true"

if not os.environ.get("SECRET_KEY"):
    os.environ["SECRET_KEY"] = "test-secret-key-for-ci"

# Use environment DATABASE_URL if available (for CI), otherwise use a
# temporary SQLite file shared by every test in the session
if not os.environ.get("DATABASE_URL"):
    _db_fd, _db_path = tempfile.mkstemp(suffix=".sqlite")
    os.close(_db_fd)
    os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"

from authguard import app as flask_app  # noqa: E402
from authguard import db  # noqa: E402
from authguard.models import User  # noqa: E402
from authguard.stores import MemoryAccountStore, MemoryThrottleStore  # noqa: E402

START_TIME = datetime.datetime(2026, 3, 1, 12, 0, 0)


class FakeClock:
    """Injectable clock that only moves when told to"""

    def __init__(self, start=START_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def app():
    """Application with freshly created tables"""
    with flask_app.app_context():
        db.create_all()
        try:
            yield flask_app
        finally:
            db.session.remove()
            db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def throttle_store():
    return MemoryThrottleStore()


@pytest.fixture
def account_store():
    return MemoryAccountStore()


@pytest.fixture
def memory_account(account_store):
    """An unlocked account in the in-process store"""
    return account_store.add_account("acct-1").account_id


@pytest.fixture
def user(app):
    """Create a test user and return its id as a string"""
    user = User(email="lockout_test@test.com", name="Lockout Test User")
    db.session.add(user)
    db.session.commit()
    user_id = str(user.id)
    # Stores write on their own connections; start tests with an empty session
    db.session.remove()
    return user_id
