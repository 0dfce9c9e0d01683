import pytest
from fastapi.testclient import TestClient

from hackathon_registration_api.app.core.config import Settings
from hackathon_registration_api.app.core.db import build_file_storage
from hackathon_registration_api.app.core.state import AppState
from hackathon_registration_api.app.main import create_app


ADMIN_USER = "admin"
ADMIN_PASS = "s3cret"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_file=str(tmp_path / "data.json"),
        catalog_file="",
        mongodb_uri="",
        admin_user=ADMIN_USER,
        admin_password=ADMIN_PASS,
        secret_key="test-secret",
        lock_retries=2000,
        lock_retry_delay_ms=5,
        lock_stale_seconds=30.0,
        managed_environment=False,
        auto_reset=False,
    )


@pytest.fixture
def storage(settings):
    backend = build_file_storage(settings)
    backend.init()
    return backend


@pytest.fixture
def state(settings, storage):
    return AppState(settings, storage)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/v1/admin/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
    assert resp.status_code == 200
    return client


def registration(team_number, problem_statement_id="ps001", **overrides):
    payload = {
        "teamNumber": team_number,
        "teamName": f"Team {team_number}",
        "teamLeader": f"Leader {team_number}",
        "problemStatementId": problem_statement_id,
    }
    payload.update(overrides)
    return payload
