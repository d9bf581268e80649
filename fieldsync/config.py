"""Configuration for the fieldsync server and offline client.

Every setting is resolved from, highest precedence first:
- an environment variable,
- a one-value text file under `config/` (named `<section>.<field>`),
- `fieldsync_config.json` at the project root,
- the development default.

The resolved strings are validated by pydantic models; invalid values are
logged and re-raised as `ValidationError`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("fieldsync_config.json")
logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class LocalStoreConfig(BaseModel):
    url: str
    max_bytes: int = Field(gt=0)


class SyncConfig(BaseModel):
    api_base_url: str
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=5, ge=1)
    backoff_base_seconds: float = Field(default=2.0, ge=0)
    backoff_max_seconds: float = Field(default=300.0, ge=0)
    interval_seconds: float = Field(default=300.0, gt=0)

    @field_validator("api_base_url")
    @classmethod
    def base_url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("sync.api_base_url must be an http(s) URL")
        return v.rstrip("/")


class ClaimsConfig(BaseModel):
    enabled: bool = True
    ttl_minutes: int = Field(default=30, gt=0)

    @field_validator("enabled", mode="before")
    @classmethod
    def enabled_from_text(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower() in {"1", "true", "yes", "on"}
        return v


class AppConfig(BaseModel):
    database: DatabaseConfig
    local_store: LocalStoreConfig
    sync: SyncConfig
    claims: ClaimsConfig


# (section, field, environment variable, default)
SETTINGS: tuple[tuple[str, str, str, str], ...] = (
    ("database", "dsn", "DATABASE_URL", "sqlite+pysqlite:///:memory:"),
    ("local_store", "url", "FIELDSYNC_LOCAL_STORE_URL", "sqlite:///fieldsync_local.db"),
    ("local_store", "max_bytes", "FIELDSYNC_LOCAL_STORE_MAX_BYTES", "52428800"),
    ("sync", "api_base_url", "FIELDSYNC_API_BASE_URL", "http://localhost:8000/api/v1"),
    ("sync", "request_timeout_seconds", "FIELDSYNC_REQUEST_TIMEOUT", "10"),
    ("sync", "max_attempts", "FIELDSYNC_MAX_ATTEMPTS", "5"),
    ("sync", "backoff_base_seconds", "FIELDSYNC_BACKOFF_BASE", "2"),
    ("sync", "backoff_max_seconds", "FIELDSYNC_BACKOFF_MAX", "300"),
    ("sync", "interval_seconds", "FIELDSYNC_SYNC_INTERVAL", "300"),
    ("claims", "enabled", "FIELDSYNC_CLAIMS_ENABLED", "true"),
    ("claims", "ttl_minutes", "FIELDSYNC_CLAIM_TTL_MINUTES", "30"),
)


def _override_file(name: str) -> Optional[str]:
    path = CONFIG_DIR / name
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8").strip() or None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("config_override_unreadable path=%s error=%s", path, e)
        return None


def _json_document() -> dict:
    if not ROOT_CONFIG.is_file():
        return {}
    try:
        data = json.loads(ROOT_CONFIG.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("config_json_unreadable path=%s error=%s", ROOT_CONFIG, e)
        return {}
    return data if isinstance(data, dict) else {}


def _resolve(section: str, field: str, env_key: str, default: str, document: dict) -> str:
    from_env = os.environ.get(env_key)
    if from_env:
        return from_env.strip()
    from_file = _override_file(f"{section}.{field}")
    if from_file is not None:
        return from_file
    block = document.get(section)
    value: Any = block.get(field) if isinstance(block, dict) else None
    if value is None:
        return default
    return str(value).lower() if isinstance(value, bool) else str(value).strip()


def load_config() -> AppConfig:
    """Resolve every setting and validate the result into an AppConfig."""
    document = _json_document()
    raw: dict[str, dict[str, str]] = {}
    for section, field, env_key, default in SETTINGS:
        raw.setdefault(section, {})[field] = _resolve(section, field, env_key, default, document)
    try:
        return AppConfig.model_validate(raw)
    except PydanticValidationError as e:
        logger.error("config_invalid errors=%s", e.error_count())
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "LocalStoreConfig",
    "SyncConfig",
    "ClaimsConfig",
    "SETTINGS",
    "load_config",
]
