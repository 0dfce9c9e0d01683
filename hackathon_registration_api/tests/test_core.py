import dataclasses
import os
from unittest.mock import MagicMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from hackathon_registration_api.app.core.db import build_storage, init_storage
from hackathon_registration_api.app.core.exceptions import StorageConnectivityError, StorageError
from hackathon_registration_api.app.core.security import create_session_token, decode_session_token, verify_credentials
from hackathon_registration_api.app.storage.json_store import JSONFileStorage
from hackathon_registration_api.app.storage.mongo_store import MongoStorage


def _unreachable_mongo():
    storage = MagicMock(spec=MongoStorage)
    storage.name = "mongo"
    storage.init.side_effect = StorageConnectivityError("no servers")
    return storage


def test_json_backend_selected_without_uri(settings):
    assert isinstance(build_storage(settings), JSONFileStorage)


def test_init_falls_back_to_file(settings):
    mongo = _unreachable_mongo()
    storage = init_storage(settings, mongo)
    assert isinstance(storage, JSONFileStorage)
    assert str(storage.data_file) == settings.data_file
    assert len(storage.get_all_problem_statements()) == 3
    mongo.close.assert_called_once()


def test_managed_environment_fails_fast(settings):
    managed = dataclasses.replace(settings, managed_environment=True)
    with pytest.raises(StorageConnectivityError):
        init_storage(managed, _unreachable_mongo())


def test_rejected_credentials_do_not_fall_back(settings):
    mongo = MongoStorage("mongodb://unused", client=MagicMock())
    mongo.client.admin.command.side_effect = OperationFailure("Authentication failed.", code=18)

    with pytest.raises(StorageError) as excinfo:
        init_storage(settings, mongo)

    assert not isinstance(excinfo.value, StorageConnectivityError)
    assert excinfo.value.retryable is False
    assert not os.path.exists(settings.data_file)


def test_raw_driver_connection_failure_falls_back(settings):
    mongo = MagicMock(spec=MongoStorage)
    mongo.name = "mongo"
    mongo.init.side_effect = ServerSelectionTimeoutError("no servers")

    assert isinstance(init_storage(settings, mongo), JSONFileStorage)


def test_raw_driver_error_is_wrapped_and_raised(settings):
    mongo = MagicMock(spec=MongoStorage)
    mongo.name = "mongo"
    mongo.init.side_effect = OperationFailure("not authorized", code=13)

    with pytest.raises(StorageError):
        init_storage(settings, mongo)
    mongo.close.assert_not_called()


def test_session_token_roundtrip(settings):
    token = create_session_token("admin", settings)
    assert decode_session_token(token, settings)["sub"] == "admin"


def test_session_token_rejects_other_key_and_expiry(settings):
    token = create_session_token("admin", settings)
    other = dataclasses.replace(settings, secret_key="another-secret")
    assert decode_session_token(token, other) is None
    expired = create_session_token("admin", settings, expires_in=-10)
    assert decode_session_token(expired, settings) is None
    assert decode_session_token("garbage", settings) is None


def test_login_disabled_without_credentials(settings):
    assert verify_credentials("admin", "s3cret", settings)
    assert not verify_credentials("admin", "nope", settings)
    unset = dataclasses.replace(settings, admin_user="", admin_password="")
    assert not verify_credentials("", "", unset)
