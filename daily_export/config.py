"""Settings for the export job.

Sources, lowest precedence first:

1. built-in defaults
2. YAML file (``--config``, else ``export.yaml`` when present), with
   ``${VAR}`` / ``${VAR:default}`` substitution
3. ``export.<EXPORT_ENV>.yaml`` overlay next to the base file
4. environment variables (after loading ``.env``)

Example export.yaml::

    cosmos:
      endpoint: https://myaccount.documents.azure.com:443/
      database: chat
      container: messages
    storage:
      account_name: mystorage
      container_name: exports
    export:
      state_blob_name: export-state.json
"""

from __future__ import annotations

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from daily_export.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "CosmosSettings",
    "DEFAULT_CONFIG_FILE",
    "ENV_OVERRIDES",
    "ExportOptions",
    "ExportSettings",
    "StorageSettings",
    "load_settings",
    "substitute_env_vars",
]

DEFAULT_CONFIG_FILE = "export.yaml"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

# Environment variable -> (section, field). Earlier names win when several are set.
ENV_OVERRIDES: List[Tuple[str, str, str]] = [
    ("CosmosDbEndpoint", "cosmos", "endpoint"),
    ("COSMOS_DB_ENDPOINT", "cosmos", "endpoint"),
    ("CosmosDbDatabase", "cosmos", "database"),
    ("COSMOS_DB_DATABASE", "cosmos", "database"),
    ("CosmosDbContainer", "cosmos", "container"),
    ("COSMOS_DB_CONTAINER", "cosmos", "container"),
    ("COSMOS_DB_KEY", "cosmos", "key"),
    ("StorageAccountName", "storage", "account_name"),
    ("STORAGE_ACCOUNT_NAME", "storage", "account_name"),
    ("StorageContainerName", "storage", "container_name"),
    ("STORAGE_CONTAINER_NAME", "storage", "container_name"),
    ("STORAGE_BACKEND", "storage", "backend"),
    ("AZURE_STORAGE_CONNECTION_STRING", "storage", "connection_string"),
    ("S3_BUCKET", "storage", "s3_bucket"),
    ("S3_ENDPOINT_URL", "storage", "s3_endpoint_url"),
    ("StateBlobName", "export", "state_blob_name"),
    ("STATE_BLOB_NAME", "export", "state_blob_name"),
]


class CosmosSettings(BaseModel):
    """Document store connection."""

    endpoint: Optional[str] = None
    database: Optional[str] = None
    container: Optional[str] = None
    # Account key; when unset the job authenticates with DefaultAzureCredential
    key: Optional[str] = Field(default=None, repr=False)
    request_timeout_seconds: int = Field(default=90, ge=1)


class StorageSettings(BaseModel):
    """Output object store."""

    backend: Literal["azure", "s3", "local"] = "azure"
    account_name: Optional[str] = None
    container_name: Optional[str] = None
    account_url: Optional[str] = None
    connection_string: Optional[str] = Field(default=None, repr=False)
    account_key: Optional[str] = Field(default=None, repr=False)
    access_tier: Optional[str] = "Cool"
    key_prefix: str = ""
    s3_bucket: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None
    local_path: Optional[str] = None

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("access_tier", mode="before")
    @classmethod
    def _normalize_tier(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if value.lower() in ("", "none"):
                return None
            return value.capitalize()
        return value


class ExportOptions(BaseModel):
    """What to export and where to put it."""

    prefix: str = "cosmosdb"
    file_suffix: str = "Messages.csv"
    state_blob_name: Optional[str] = None
    record_type: str = "Message"
    page_size: int = Field(default=500, ge=1)
    lookback_years: int = Field(default=2, ge=0)
    oversize_policy: Literal["truncate", "fail"] = "truncate"

    @property
    def state_key(self) -> str:
        prefix = self.prefix.strip("/")
        name = self.state_blob_name or ""
        return f"{prefix}/{name}" if prefix else name


class ExportSettings(BaseModel):
    """Root settings model."""

    model_config = ConfigDict(extra="forbid")

    cosmos: CosmosSettings = Field(default_factory=CosmosSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    export: ExportOptions = Field(default_factory=ExportOptions)

    def missing_keys(self) -> List[str]:
        """Return the dotted names of required settings that are unset."""
        missing = [
            f"cosmos.{name}"
            for name in ("endpoint", "database", "container")
            if not getattr(self.cosmos, name)
        ]
        if not self.export.state_blob_name:
            missing.append("export.state_blob_name")

        storage = self.storage
        if storage.backend == "azure":
            if not (storage.account_name or storage.account_url or storage.connection_string):
                missing.append("storage.account_name")
            if not storage.container_name:
                missing.append("storage.container_name")
        elif storage.backend == "s3":
            if not storage.s3_bucket:
                missing.append("storage.s3_bucket")
        elif storage.backend == "local":
            if not storage.local_path:
                missing.append("storage.local_path")
        return missing

    def validate_required(self) -> "ExportSettings":
        missing = self.missing_keys()
        if missing:
            raise ConfigValidationError(
                "Missing required configuration: " + ", ".join(missing),
                key=missing[0],
            )
        return self


def substitute_env_vars(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Recursively substitute ``${VAR}`` and ``${VAR:default}`` in config values.

    Raises:
        ValueError: If a referenced variable is not set and has no default
    """
    env = os.environ if environ is None else environ
    if isinstance(value, str):

        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            env_value = env.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Environment variable '{var_name}' is not set and no default provided")

        return _ENV_VAR_PATTERN.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(item, env) for item in value]
    else:
        return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    logger.info("Loading config from %s", path)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            cfg = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in config file: {exc}", config_path=str(path)) from exc

    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ConfigValidationError("Config must be a YAML dictionary/object", config_path=str(path))
    return cfg


def _deep_merge(base: Dict[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _overlay_path(base: Path, env_name: str) -> Path:
    return base.with_name(f"{base.stem}.{env_name}{base.suffix}")


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    applied = set()
    for var_name, section, key in ENV_OVERRIDES:
        value = environ.get(var_name)
        if not value or (section, key) in applied:
            continue
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][key] = value
        applied.add((section, key))
        logger.debug("Config %s.%s taken from environment variable %s", section, key, var_name)
    return data


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    load_env_file: bool = True,
    require: bool = True,
) -> ExportSettings:
    """Build :class:`ExportSettings` from files and environment.

    Args:
        config_path: YAML file; defaults to ``export.yaml`` when it exists
        environ: Environment mapping (defaults to ``os.environ``)
        load_env_file: Load a ``.env`` file into ``os.environ`` first
        require: Raise when required keys are missing

    Raises:
        ConfigValidationError: On unreadable files, bad values or missing keys
    """
    if load_env_file:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    env = os.environ if environ is None else environ

    data: Dict[str, Any] = {}
    base_path: Optional[Path] = None
    if config_path is not None:
        base_path = Path(config_path)
        if not base_path.exists():
            raise ConfigValidationError(f"Config file not found: {base_path}", config_path=str(base_path))
    elif Path(DEFAULT_CONFIG_FILE).exists():
        base_path = Path(DEFAULT_CONFIG_FILE)

    if base_path is not None:
        data = _read_yaml(base_path)
        env_name = env.get("EXPORT_ENV")
        if env_name:
            overlay = _overlay_path(base_path, env_name)
            if overlay.exists():
                data = _deep_merge(data, _read_yaml(overlay))
            else:
                logger.debug("No %s overlay at %s", env_name, overlay)

    try:
        data = substitute_env_vars(data, env)
    except ValueError as exc:
        raise ConfigValidationError(str(exc), config_path=str(base_path) if base_path else None) from exc

    data = _apply_env_overrides(data, env)
    # an empty YAML section ("cosmos:") means defaults
    data = {k: v for k, v in data.items() if v is not None}

    try:
        settings = ExportSettings.model_validate(data)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigValidationError(
            f"Invalid configuration: {errors}",
            config_path=str(base_path) if base_path else None,
        ) from exc

    if require:
        settings.validate_required()
    return settings
