"""
Pytest fixtures for filmstock backend tests.

Provides test database setup, a fake external cash ledger, stock seeding
helpers, and test client.
"""

import httpx
import pytest

from filmstock import create_app
from filmstock.extensions import db
from filmstock.services import stock_service

ADMIN_TOKEN = "test-admin-token"


class FakeCashLedger:
    """
    In-process stand-in for the external cash ledger, served through
    httpx.MockTransport.

    - fail_with: HTTP status code, or "connect" for a transport error
    - failures_remaining: how many requests fail before it recovers
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.requests = []
        self.fail_with = None
        self.failures_remaining = 0

    def fail(self, fail_with, times=10_000):
        self.fail_with = fail_with
        self.failures_remaining = times

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            if self.fail_with == "connect":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(self.fail_with, json={"error": "cash ledger unavailable"})
        return httpx.Response(201, json={"id": f"cash-{len(self.requests)}"})


_fake_ledger = FakeCashLedger()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_TOKEN': ADMIN_TOKEN,
        'DEFAULT_VIRGIN_PRICE': 1500,
        'DEFAULT_COLORED_PRICE': 1200,
        'CASH_LEDGER_URL': 'https://cash-ledger.test/api',
        'CASH_LEDGER_PROJECT_ID': 'project-1',
        'CASH_LEDGER_USER_ID': 'user-1',
        'CASH_LEDGER_RETRY_ATTEMPTS': 3,
        'CASH_LEDGER_RETRY_BACKOFF': 0,
        'CASH_LEDGER_MAX_ATTEMPTS': 3,
        'CASH_LEDGER_TRANSPORT': httpx.MockTransport(_fake_ledger.handler),
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
def cash_ledger(app):
    """The fake external cash ledger, reset for each test."""
    _fake_ledger.reset()
    yield _fake_ledger
    _fake_ledger.reset()


@pytest.fixture(scope='function')
def raw_stock(db_session):
    """Raw material: 100 kg virgin, 50 kg colored."""
    stock_service.adjust("rawMaterial", "virgin", 100, description="Initial delivery")
    stock_service.adjust("rawMaterial", "colored", 50, description="Initial delivery")
    return stock_service.get_pool("rawMaterial")


@pytest.fixture(scope='function')
def finished_stock(db_session):
    """Finished pool seeded directly: 60 kg virgin, 30 kg colored."""
    stock_service.set_levels("finished", virgin=60, colored=30)
    return stock_service.get_pool("finished")


def auth_headers(token: str = ADMIN_TOKEN) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
