import json

from fastapi.testclient import TestClient

from hackathon_registration_api.app.core.exceptions import LockAcquisitionError, TransactionContentionError
from hackathon_registration_api.app.main import create_app

from conftest import registration


API = "/api/v1"


def test_register_then_full(client):
    first = client.post(f"{API}/register", json=registration("T1"))
    assert first.status_code == 201
    body = first.json()
    assert body["success"] is True
    assert body["problem_statement"]["status"] == "1/2 slots filled"

    assert client.post(f"{API}/register", json=registration("T2")).status_code == 201
    third = client.post(f"{API}/register", json=registration("T3"))
    assert third.status_code == 409
    assert third.json()["reason"] == "full"
    assert third.json()["problem_statement"]["status"] == "2/2 slots filled"


def test_register_rejections(client):
    missing = client.post(f"{API}/register", json={"teamNumber": "T1"})
    assert missing.status_code == 400
    assert missing.json()["missing_fields"] == ["teamName", "teamLeader", "problemStatementId"]

    assert client.post(f"{API}/register", json=registration("T1", "nope")).status_code == 404

    assert client.post(f"{API}/register", json=registration("T1")).status_code == 201
    duplicate = client.post(f"{API}/register", json=registration("T1", "ps002"))
    assert duplicate.status_code == 409
    assert duplicate.json()["reason"] == "duplicate_team"


def test_team_registered_lookup(client):
    assert client.get(f"{API}/teams/T9/registered").json() == {"registered": False}
    client.post(f"{API}/register", json=registration("T9"))
    assert client.get(f"{API}/teams/T9/registered").json() == {"registered": True}


def test_admin_routes_require_login(client):
    assert client.get(f"{API}/registrations").status_code == 401
    assert client.post(f"{API}/admin/reset").status_code == 401
    assert client.post(f"{API}/admin/release", json={"released": True}).status_code == 401
    assert client.get(f"{API}/export/registrations.csv").status_code == 401


def test_bad_credentials_rejected(client):
    resp = client.post(f"{API}/admin/login", json={"username": "admin", "password": "wrong"})
    assert resp.status_code == 401


def test_forged_cookie_rejected(client):
    resp = client.get(f"{API}/registrations", headers={"Cookie": "admin_session=eyJzdWIiOiJhZG1pbiJ9.AAAA"})
    assert resp.status_code == 401


def test_release_gates_public_list(admin_client):
    assert admin_client.get(f"{API}/release-status").json() == {"released": False}
    assert admin_client.get(f"{API}/problem-statements").json() == []
    hidden = admin_client.get(f"{API}/problem-statements", params={"includeUnreleased": "true"}).json()
    assert len(hidden) == 3

    resp = admin_client.post(f"{API}/admin/release", json={"released": "true"})
    assert resp.json() == {"released": True}
    listed = admin_client.get(f"{API}/problem-statements")
    assert [p["id"] for p in listed.json()] == ["ps001", "ps002", "ps003"]
    assert listed.headers["cache-control"].startswith("no-cache")


def test_release_survives_restart(settings, admin_client):
    admin_client.post(f"{API}/admin/release", json={"released": True})
    with TestClient(create_app(settings)) as restarted:
        assert restarted.get(f"{API}/release-status").json() == {"released": True}


def test_admin_lists_and_deletes_registrations(admin_client):
    admin_client.post(f"{API}/register", json=registration("T1"))
    listed = admin_client.get(f"{API}/registrations").json()
    assert [r["team_number"] for r in listed] == ["T1"]
    assert listed[0]["problem_title"] == "Secure Authentication System"

    by_problem = admin_client.get(f"{API}/problem-statements/ps001/registrations").json()
    assert [r["team_number"] for r in by_problem] == ["T1"]

    deleted = admin_client.delete(f"{API}/registrations/T1")
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] == 1
    assert admin_client.delete(f"{API}/registrations/T1").status_code == 404


def test_problem_statement_crud(admin_client):
    created = admin_client.post(
        f"{API}/problem-statements",
        json={"id": "ps004", "title": "Edge Cache", "maxSelections": "3", "technologies": ["Go"]},
    )
    assert created.status_code == 201
    assert created.json()["max_selections"] == 3

    again = admin_client.post(f"{API}/problem-statements", json={"id": "ps004", "title": "Again"})
    assert again.status_code == 409

    updated = admin_client.put(f"{API}/problem-statements/ps004", json={"maxSelections": 1})
    assert updated.json()["max_selections"] == 1
    assert updated.json()["title"] == "Edge Cache"

    assert admin_client.get(f"{API}/problem-statements/ps004").status_code == 200
    assert admin_client.delete(f"{API}/problem-statements/ps004").status_code == 204
    assert admin_client.get(f"{API}/problem-statements/ps004").status_code == 404
    assert admin_client.put(f"{API}/problem-statements/ps004", json={"title": "x"}).status_code == 404


def test_replace_catalog_clears_registrations_and_releases(admin_client):
    admin_client.post(f"{API}/register", json=registration("T1"))
    resp = admin_client.post(
        f"{API}/admin/replace-catalog",
        json={"problemStatements": [{"id": "n1", "title": "One"}, {"id": "n2", "title": "Two", "maxSelections": 2}]},
    )
    assert resp.json() == {"ok": True, "importedProblems": 2}
    assert admin_client.get(f"{API}/release-status").json() == {"released": True}
    assert [p["id"] for p in admin_client.get(f"{API}/problem-statements").json()] == ["n1", "n2"]
    assert admin_client.get(f"{API}/registrations").json() == []


def test_replace_catalog_rejects_malformed_document(admin_client):
    resp = admin_client.post(f"{API}/admin/replace-catalog", json={"problems": []})
    assert resp.status_code == 422
    assert len(admin_client.get(f"{API}/problem-statements", params={"includeUnreleased": "1"}).json()) == 3


def test_replace_with_missing_data_file(admin_client):
    assert admin_client.post(f"{API}/admin/replace-with-data-file").status_code == 404


def test_replace_with_data_file(settings, tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text(
        json.dumps(
            {
                "problemStatements": [{"id": "c1", "title": "From file", "maxSelections": 2}],
                "evaluationCriteria": {"criteria": [{"name": "Impact", "weight": 40}]},
            }
        )
    )
    settings.catalog_file = str(catalog)
    with TestClient(create_app(settings)) as client:
        client.post(f"{API}/admin/login", json={"username": "admin", "password": "s3cret"})
        resp = client.post(f"{API}/admin/replace-with-data-file")
        assert resp.json() == {"ok": True, "importedProblems": 1}
        assert [p["id"] for p in client.get(f"{API}/problem-statements").json()] == ["c1"]
        assert client.get(f"{API}/evaluation-criteria").json()["criteria"][0]["name"] == "Impact"


def test_evaluation_criteria_missing(client):
    assert client.get(f"{API}/evaluation-criteria").status_code == 404


def test_import_and_limit_one_all(admin_client):
    imported = admin_client.post(
        f"{API}/admin/import-catalog",
        json={"problemStatements": [{"id": "ps001", "title": "Clash"}, {"id": "ps010", "title": "Ten"}]},
    )
    assert imported.json()["importedProblems"] == 1
    limited = admin_client.post(f"{API}/admin/limit-one-all").json()
    assert limited == {"ok": True, "updated": 4, "total": 4}


def test_reset_clears_registrations(admin_client):
    admin_client.post(f"{API}/register", json=registration("T1"))
    assert admin_client.post(f"{API}/admin/reset").json() == {"ok": True}
    assert admin_client.get(f"{API}/registrations").json() == []


def test_csv_export(admin_client):
    admin_client.post(f"{API}/register", json=registration("T1", teamName="Null, Pointers"))
    resp = admin_client.get(f"{API}/export/registrations.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("Team #,Team Name,Leader")
    assert lines[1].startswith('T1,"Null, Pointers",Leader T1,ps001')


def test_full_report(admin_client):
    admin_client.post(f"{API}/register", json=registration("T1"))
    admin_client.post(f"{API}/register", json=registration("T2"))
    report = admin_client.get(f"{API}/export/report").json()
    assert report["totals"] == {"problem_statements": 3, "registrations": 2, "full": 1}


def test_lock_contention_maps_to_503(client):
    storage = client.app.state.registration.storage

    def busy(_registration):
        raise LockAcquisitionError("lock held")

    storage.create_registration_atomic = busy
    resp = client.post(f"{API}/register", json=registration("T1"))
    assert resp.status_code == 503
    assert resp.json()["kind"] == "contention"
    assert resp.json()["retryable"] is True


def test_transaction_contention_maps_to_503(client):
    storage = client.app.state.registration.storage

    def conflicting(_registration):
        raise TransactionContentionError("write conflict")

    storage.create_registration_atomic = conflicting
    resp = client.post(f"{API}/register", json=registration("T1"))
    assert resp.status_code == 503
    assert resp.json()["retryable"] is True


def test_overflowing_capacity_counts_as_one(admin_client):
    resp = admin_client.post(
        f"{API}/problem-statements",
        content='{"id": "ps009", "title": "Huge", "maxSelections": 1e999}',
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 201
    assert resp.json()["max_selections"] == 1
