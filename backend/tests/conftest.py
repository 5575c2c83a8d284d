"""
Pytest fixtures for the QR rewards backend tests.

Provides the app (in-memory SQLite), a clean database per test, the token
store, and helpers for issuing tokens and building admin headers.
"""

from datetime import timedelta

import pytest

from qrewards import create_app
from qrewards.extensions import db
from qrewards.services import issuance_service
from qrewards.services.token_store import TokenStore
from qrewards.time_utils import utcnow


ADMIN_SECRET = "test-admin-secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_PASSWORD': ADMIN_SECRET,
        'PUBLIC_BASE_URL': 'https://rewards.example.com',
        'REWARD_POLICY': 'fixed',
        'REWARD_AMOUNT_CENTS': 100,
        'MAX_BATCH_SIZE': 500,
        'STORE_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """Token store bound to the test session."""
    return TokenStore(db_session, retry_backoff=0)


@pytest.fixture(scope='function')
def issue(store):
    """Issue tokens directly through the service. Returns the new ids."""
    def _issue(count=1, product_name="Elite Reward Product", batch_id="BATCH2026JAN", expiry_date=None):
        return issuance_service.issue_batch(
            store,
            product_name=product_name,
            batch_id=batch_id,
            count=count,
            expiry_date=expiry_date,
        )
    return _issue


@pytest.fixture(scope='function')
def yesterday():
    return utcnow() - timedelta(days=1)


@pytest.fixture(scope='function')
def admin_headers():
    return admin_auth_headers(ADMIN_SECRET)


def admin_auth_headers(secret: str) -> dict:
    """Helper to create admin headers."""
    return {'X-Admin-Password': secret}
