"""Tests for settings loading and validation."""

import os
from pathlib import Path

import pytest

from daily_export.config import ExportSettings, load_settings, substitute_env_vars
from daily_export.exceptions import ConfigValidationError

FULL_CONFIG = """
cosmos:
  endpoint: https://acct.documents.azure.com:443/
  database: chat
  container: messages
storage:
  account_name: exportstore
  container_name: exports
export:
  state_blob_name: export-state.json
"""


def _write(tmp_path: Path, text: str, name: str = "export.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_load_full_config(tmp_path):
    settings = load_settings(_write(tmp_path, FULL_CONFIG), environ={}, load_env_file=False)

    assert settings.cosmos.database == "chat"
    assert settings.storage.backend == "azure"
    assert settings.storage.access_tier == "Cool"
    assert settings.export.prefix == "cosmosdb"
    assert settings.export.file_suffix == "Messages.csv"
    assert settings.export.page_size == 500
    assert settings.export.oversize_policy == "truncate"
    assert settings.export.state_key == "cosmosdb/export-state.json"
    assert settings.cosmos.request_timeout_seconds == 90


def test_default_file_picked_up_from_cwd(tmp_path):
    _write(tmp_path, FULL_CONFIG)
    settings = load_settings(environ={}, load_env_file=False)
    assert settings.storage.container_name == "exports"


def test_environment_only(tmp_path):
    env = {
        "CosmosDbEndpoint": "https://acct.documents.azure.com:443/",
        "CosmosDbDatabase": "chat",
        "CosmosDbContainer": "messages",
        "StorageAccountName": "exportstore",
        "StorageContainerName": "exports",
        "StateBlobName": "state.json",
    }
    settings = load_settings(environ=env, load_env_file=False)
    assert settings.cosmos.container == "messages"
    assert settings.export.state_blob_name == "state.json"


def test_upper_snake_env_and_precedence(tmp_path):
    path = _write(tmp_path, FULL_CONFIG)
    env = {"COSMOS_DB_DATABASE": "other", "CosmosDbContainer": "pascal", "COSMOS_DB_CONTAINER": "snake"}
    settings = load_settings(path, environ=env, load_env_file=False)
    assert settings.cosmos.database == "other"
    assert settings.cosmos.container == "pascal"


def test_missing_keys_listed(tmp_path):
    with pytest.raises(ConfigValidationError) as excinfo:
        load_settings(environ={}, load_env_file=False)
    message = str(excinfo.value)
    for key in ("cosmos.endpoint", "cosmos.database", "cosmos.container",
                "export.state_blob_name", "storage.account_name", "storage.container_name"):
        assert key in message


def test_backend_specific_requirements():
    settings = ExportSettings.model_validate({
        "cosmos": {"endpoint": "e", "database": "d", "container": "c"},
        "storage": {"backend": "S3"},
        "export": {"state_blob_name": "s.json"},
    })
    assert settings.storage.backend == "s3"
    assert settings.missing_keys() == ["storage.s3_bucket"]


def test_connection_string_satisfies_account(tmp_path):
    settings = ExportSettings.model_validate({
        "cosmos": {"endpoint": "e", "database": "d", "container": "c"},
        "storage": {"connection_string": "UseDevelopmentStorage=true", "container_name": "x"},
        "export": {"state_blob_name": "s.json"},
    })
    assert settings.missing_keys() == []


def test_env_substitution_in_yaml(tmp_path):
    text = FULL_CONFIG.replace("database: chat", "database: ${DB_NAME:fallback}")
    path = _write(tmp_path, text)
    assert load_settings(path, environ={}, load_env_file=False).cosmos.database == "fallback"
    assert load_settings(path, environ={"DB_NAME": "prod"}, load_env_file=False).cosmos.database == "prod"


def test_env_substitution_missing_variable(tmp_path):
    path = _write(tmp_path, FULL_CONFIG.replace("database: chat", "database: ${DB_NAME}"))
    with pytest.raises(ConfigValidationError):
        load_settings(path, environ={}, load_env_file=False)


def test_environment_overlay(tmp_path):
    path = _write(tmp_path, FULL_CONFIG)
    _write(tmp_path, "export:\n  page_size: 100\n  oversize_policy: fail\n", "export.Development.yaml")

    settings = load_settings(path, environ={"EXPORT_ENV": "Development"}, load_env_file=False)
    assert settings.export.page_size == 100
    assert settings.export.oversize_policy == "fail"
    assert settings.export.state_blob_name == "export-state.json"


def test_invalid_values_rejected(tmp_path):
    path = _write(tmp_path, FULL_CONFIG + "  page_size: 0\n")
    with pytest.raises(ConfigValidationError) as excinfo:
        load_settings(path, environ={}, load_env_file=False)
    assert "page_size" in str(excinfo.value)


def test_unknown_policy_rejected(tmp_path):
    path = _write(tmp_path, FULL_CONFIG + "  oversize_policy: ignore\n")
    with pytest.raises(ConfigValidationError):
        load_settings(path, environ={}, load_env_file=False)


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigValidationError):
        load_settings(tmp_path / "nope.yaml", environ={}, load_env_file=False)


def test_invalid_yaml(tmp_path):
    path = _write(tmp_path, "cosmos: [unclosed")
    with pytest.raises(ConfigValidationError):
        load_settings(path, environ={}, load_env_file=False)


def test_access_tier_normalized():
    settings = ExportSettings.model_validate({"storage": {"access_tier": "hot"}})
    assert settings.storage.access_tier == "Hot"
    assert ExportSettings.model_validate({"storage": {"access_tier": "none"}}).storage.access_tier is None


def test_dotenv_loaded(tmp_path):
    (tmp_path / ".env").write_text(
        "COSMOS_DB_ENDPOINT=https://dotenv.documents.azure.com:443/\n", encoding="utf-8"
    )
    path = _write(tmp_path, FULL_CONFIG.replace("  endpoint: https://acct.documents.azure.com:443/\n", ""))
    try:
        settings = load_settings(path)
    finally:
        os.environ.pop("COSMOS_DB_ENDPOINT", None)
    assert settings.cosmos.endpoint == "https://dotenv.documents.azure.com:443/"


def test_substitute_env_vars_nested():
    value = {"a": ["${X}", {"b": "${Y:two}"}]}
    assert substitute_env_vars(value, {"X": "one"}) == {"a": ["one", {"b": "two"}]}
