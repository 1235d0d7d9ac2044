"""API test fixtures: throwaway SQLite database, logged-in clients, reference data."""
import os
import tempfile

import pytest

# Must be set before oilstock.config is imported
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"oilstock_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256"
os.environ["SUPERUSER_LOGIN"] = "admin"
os.environ["SUPERUSER_PASSWORD"] = "admin1234"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from oilstock.core.database import Base
from oilstock import models  # noqa: F401  registers the tables

SUPERUSER_LOGIN = "admin"
SUPERUSER_PASSWORD = "admin1234"


@pytest.fixture
def sync_engine():
    """Plain sqlite3 engine on the test database, for setup and direct checks."""
    eng = create_engine(f"sqlite:///{TEST_DB_PATH}")
    yield eng
    eng.dispose()


@pytest.fixture
def client(sync_engine):
    """Application client on an empty schema (lifespan recreates tables and the superuser)."""
    Base.metadata.drop_all(sync_engine)
    from oilstock.main import app
    with TestClient(app) as c:
        yield c


def login(client, username, password):
    r = client.post("/auth/login", data={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    """Authorization header of the superuser."""
    return login(client, SUPERUSER_LOGIN, SUPERUSER_PASSWORD)


@pytest.fixture
def make_staff(client, auth_headers):
    """Create a staff member with the given capabilities and return their auth header."""
    def _make(login_name, capabilities=None, role="staff", password="secret123"):
        body = {"name": login_name.title(), "login": login_name, "password": password, "role": role}
        if capabilities is not None:
            body["capabilities"] = capabilities
        r = client.post("/staff", json=body, headers=auth_headers)
        assert r.status_code == 200, r.text
        return login(client, login_name, password)
    return _make


@pytest.fixture
def airline(client, auth_headers):
    r = client.post("/airlines", json={"name": "Air Seychelles", "code": "hm"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def other_airline(client, auth_headers):
    r = client.post("/airlines", json={"name": "Emirates", "code": "EK"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def oil_type(client, auth_headers):
    r = client.post("/oil-types", json={"name": "Mobil Jet Oil II"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def receive(client, auth_headers, oil_type):
    """Post a stock-in and return the batch."""
    def _receive(quantity, batch_number="B-001", owner="internal", owner_airline_id=None,
                 received_at=None, oil_type_id=None):
        body = {
            "oil_type_id": oil_type_id or oil_type["id"],
            "owner": owner,
            "owner_airline_id": owner_airline_id,
            "batch_number": batch_number,
            "quantity_received": quantity,
        }
        if received_at:
            body["received_at"] = received_at
        r = client.post("/stock/batches", json=body, headers=auth_headers)
        assert r.status_code == 200, r.text
        return r.json()
    return _receive


@pytest.fixture
def use(client, auth_headers, oil_type, airline):
    """Post a stock-out and return the raw response."""
    def _use(quantity, owner="internal", owner_airline_id=None, registration="s7-abc", oil_type_id=None):
        body = {
            "oil_type_id": oil_type_id or oil_type["id"],
            "owner": owner,
            "owner_airline_id": owner_airline_id,
            "airline_id": airline["id"],
            "aircraft_registration": registration,
            "quantity_used": quantity,
        }
        return client.post("/usage", json=body, headers=auth_headers)
    return _use


@pytest.fixture
def batch_state(client, auth_headers):
    """Current state of a batch as the stock-in list reports it."""
    def _state(batch_id):
        r = client.get("/stock/batches", headers=auth_headers)
        assert r.status_code == 200, r.text
        return next(b for b in r.json() if b["id"] == batch_id)
    return _state
