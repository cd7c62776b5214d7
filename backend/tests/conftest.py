"""
Shared fixtures for the referral service test suite.

Every test gets its own SQLite file database, so tests are isolated and the
concurrency tests exercise real cross-connection locking.
"""

import pytest
from fastapi.testclient import TestClient

from telemed.api.main import app
from telemed.auth.actor import Actor, Role
from telemed.payments.service import CommissionService
from telemed.referral.admin import ReferralCodeService
from telemed.referral.models import ReferralCode
from telemed.referral.service import ReferralPricingEngine
from telemed.storage.db import Database, get_database


@pytest.fixture
def database(tmp_path):
    """Fresh database with all tables created."""
    database = Database(f"sqlite:///{tmp_path / 'telemed_test.db'}")
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def agent():
    return Actor(user_id="agent-1", role=Role.AGENT)


@pytest.fixture
def patient():
    return Actor(user_id="patient-1", role=Role.PATIENT)


@pytest.fixture
def engine(database):
    return ReferralPricingEngine(database)


@pytest.fixture
def code_service(database):
    return ReferralCodeService(database)


@pytest.fixture
def commission_service(database):
    return CommissionService(database)


@pytest.fixture
def make_code(code_service, admin):
    """Factory creating codes owned by agent-1 (15% off, 60% commission)."""

    def _make(**overrides) -> ReferralCode:
        params = {
            "agent_id": "agent-1",
            "discount_type": "percentage",
            "discount_value": 15,
            "commission_rate": 60,
            "max_usage": 100,
        }
        params.update(overrides)
        return code_service.create_code(admin, **params)

    return _make


@pytest.fixture
def set_usage(database):
    """Force a code's usage_count, as if earlier bookings had used it."""

    def _set(code_id: int, usage_count: int) -> None:
        with database.session() as session:
            session.get(ReferralCode, code_id).usage_count = usage_count

    return _set


@pytest.fixture
def load_code(database):
    """Re-read a code from the database."""

    def _load(code_id: int) -> ReferralCode:
        with database.session() as session:
            return session.get(ReferralCode, code_id)

    return _load


@pytest.fixture
def client(database):
    """API client bound to the test database."""
    app.dependency_overrides[get_database] = lambda: database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Build the actor headers the upstream auth layer would forward."""

    def _headers(actor: Actor) -> dict[str, str]:
        return {"X-Actor-Id": actor.user_id, "X-Actor-Role": actor.role.value}

    return _headers
