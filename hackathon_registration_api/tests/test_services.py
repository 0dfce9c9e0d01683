import asyncio
from unittest.mock import MagicMock

import pytest

from hackathon_registration_api.app.core.exceptions import (
    ProblemStatementNotFoundError,
    RegistrationConflict,
    StorageConnectivityError,
)
from hackathon_registration_api.app.core.state import AppState
from hackathon_registration_api.app.schemas.problem_statement import CatalogDocument
from hackathon_registration_api.app.services.catalog_service import CatalogService
from hackathon_registration_api.app.services.notification_service import EventBroadcaster, format_sse
from hackathon_registration_api.app.services.registration_service import RegistrationService
from hackathon_registration_api.app.services.settings_service import ReleaseService
from hackathon_registration_api.app.storage.json_store import JSONFileStorage
from hackathon_registration_api.app.storage.mongo_store import MongoStorage

from conftest import registration


def test_register_success_reports_status(state):
    outcome = asyncio.run(RegistrationService(state).register(registration("T1")))
    assert outcome.success
    assert outcome.registration["teamNumber"] == "T1"
    assert outcome.registration["problemStatement"]["id"] == "ps001"
    assert outcome.problem_statement.status == "1/2 slots filled"


def test_register_missing_fields(state):
    outcome = asyncio.run(RegistrationService(state).register({"teamNumber": " ", "problemStatementId": "ps001"}))
    assert not outcome.success
    assert outcome.reason == "missing_fields"
    assert outcome.missing_fields == ["teamNumber", "teamName", "teamLeader"]


def test_register_full_includes_status(state):
    service = RegistrationService(state)

    async def scenario():
        await service.register(registration("T1"))
        await service.register(registration("T2"))
        return await service.register(registration("T3"))

    outcome = asyncio.run(scenario())
    assert outcome.reason == "full"
    assert outcome.problem_statement.status == "2/2 slots filled"


def test_register_duplicate_team(state):
    service = RegistrationService(state)

    async def scenario():
        await service.register(registration("T1", "ps001"))
        return await service.register(registration("T1", "ps002"))

    assert asyncio.run(scenario()).reason == "duplicate_team"


def test_concurrent_register_unknown_statement(state):
    service = RegistrationService(state)

    async def scenario():
        return await asyncio.gather(*(service.register(registration(f"T{i}", "nope")) for i in range(10)))

    outcomes = asyncio.run(scenario())
    assert [o.reason for o in outcomes] == ["not_found"] * 10
    assert state.storage.get_all_registrations() == []


def test_concurrent_register_respects_capacity(state):
    service = RegistrationService(state)

    async def scenario():
        return await asyncio.gather(*(service.register(registration(f"T{i}", "ps002")) for i in range(8)))

    outcomes = asyncio.run(scenario())
    assert sum(o.success for o in outcomes) == 2
    assert {o.reason for o in outcomes if not o.success} == {"full"}


def test_generic_conflict_is_reported_as_conflict(state):
    state.storage = MagicMock(wraps=state.storage)
    state.storage.create_registration_atomic.side_effect = RegistrationConflict("write conflict")
    outcome = asyncio.run(RegistrationService(state).register(registration("T1")))
    assert outcome.reason == "conflict"


def test_registration_and_deletion_are_broadcast(state):
    service = RegistrationService(state)

    async def scenario():
        queue = state.broadcaster.subscribe()
        await service.register(registration("T1"))
        await service.delete_registration("T1")
        return [queue.get_nowait(), queue.get_nowait()]

    registered, deleted = asyncio.run(scenario())
    assert registered["type"] == "registration"
    assert registered["data"]["newRegistration"]["teamNumber"] == "T1"
    assert [r["team_number"] for r in registered["data"]["registrations"]] == ["T1"]
    assert deleted["type"] == "deletion"
    assert deleted["data"]["deletedTeamNumber"] == "T1"
    assert deleted["data"]["registrations"] == []


def test_broadcast_failure_does_not_fail_registration(state):
    service = RegistrationService(state)
    state.broadcaster.publish = MagicMock(side_effect=RuntimeError("subscriber exploded"))

    async def scenario():
        state.broadcaster.subscribe()
        return await service.register(registration("T1"))

    assert asyncio.run(scenario()).success
    assert state.storage.is_team_number_taken("T1")


def test_slow_subscriber_is_dropped():
    broadcaster = EventBroadcaster(queue_size=1)

    async def scenario():
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()
        broadcaster.publish("registration")
        fast.get_nowait()
        delivered = broadcaster.publish("deletion")
        return slow, fast, delivered

    slow, fast, delivered = asyncio.run(scenario())
    assert delivered == 1
    assert broadcaster.subscriber_count == 1
    assert fast.get_nowait()["type"] == "deletion"


def test_format_sse_frame():
    assert format_sse({"type": "heartbeat"}) == 'data: {"type": "heartbeat"}\n\n'


def test_release_flag_persists(state):
    asyncio.run(ReleaseService(state).set_released(True))
    assert state.problems_released is True
    reloaded = AppState(state.settings, state.storage)
    reloaded.load_settings()
    assert reloaded.problems_released is True


def test_catalog_hidden_until_released(state):
    service = CatalogService(state)
    assert asyncio.run(service.list_problem_statements()) == []
    assert len(asyncio.run(service.list_problem_statements(include_unreleased=True))) == 3
    state.problems_released = True
    assert [v["id"] for v in asyncio.run(service.list_problem_statements())] == ["ps001", "ps002", "ps003"]


def test_replace_catalog_releases(state):
    document = CatalogDocument.model_validate({"problemStatements": [{"id": "z1", "title": "Z", "maxSelections": "2"}]})
    imported = asyncio.run(CatalogService(state).replace_catalog(document))
    assert imported == 1
    assert state.problems_released is True
    assert state.storage.get_settings()["problemsReleased"] is True


def test_limit_all_to_one(state):
    result = asyncio.run(CatalogService(state).limit_all_to_one())
    assert result == {"updated": 3, "total": 3}
    views = asyncio.run(CatalogService(state).list_problem_statements(include_unreleased=True))
    assert {v["max_selections"] for v in views} == {1}


def test_registrations_for_unknown_statement(state):
    with pytest.raises(ProblemStatementNotFoundError):
        asyncio.run(CatalogService(state).registrations_for("nope"))


def test_read_falls_back_to_file_when_database_unreachable(state):
    unreachable = MagicMock(spec=MongoStorage)
    unreachable.get_all_problem_statements.side_effect = StorageConnectivityError("down")
    state.storage = unreachable

    views = asyncio.run(CatalogService(state).list_problem_statements(include_unreleased=True))

    assert [v["id"] for v in views] == ["ps001", "ps002", "ps003"]
    assert state.fell_back
    unreachable.close.assert_called_once()


def test_managed_environment_does_not_fall_back(state):
    state.settings.managed_environment = True
    unreachable = MagicMock(spec=MongoStorage)
    unreachable.get_all_problem_statements.side_effect = StorageConnectivityError("down")
    state.storage = unreachable

    with pytest.raises(StorageConnectivityError):
        asyncio.run(CatalogService(state).list_problem_statements(include_unreleased=True))
    assert state.storage is unreachable


def test_repeated_fall_back_keeps_file_backend(state):
    unreachable = MagicMock(spec=MongoStorage)
    state.storage = unreachable
    error = StorageConnectivityError("down")

    first = state.fall_back(error)
    second = state.fall_back(error)

    assert isinstance(first, JSONFileStorage)
    assert second is first
    assert state.storage is first
    unreachable.close.assert_called_once()
