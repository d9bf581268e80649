"""Functional tests for configuration loading and logging setup."""

from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from fieldsync import config as config_module
from fieldsync.config import load_config
from fieldsync.logging_setup import configure_logging


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "ROOT_CONFIG", tmp_path / "fieldsync_config.json")
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "config")
    for key in ("FIELDSYNC_API_BASE_URL", "FIELDSYNC_MAX_ATTEMPTS", "FIELDSYNC_CLAIMS_ENABLED", "FIELDSYNC_CLAIM_TTL_MINUTES"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def test_defaults_apply_without_sources(isolated_config) -> None:
    cfg = load_config()
    assert cfg.sync.api_base_url == "http://localhost:8000/api/v1"
    assert (cfg.sync.max_attempts, cfg.sync.backoff_base_seconds, cfg.sync.backoff_max_seconds) == (5, 2.0, 300.0)
    assert cfg.claims.enabled is True and cfg.claims.ttl_minutes == 30


def test_env_beats_files_and_files_beat_json(isolated_config, monkeypatch) -> None:
    (isolated_config / "fieldsync_config.json").write_text(
        json.dumps({"sync": {"api_base_url": "https://json.example/api/v1/", "max_attempts": 3}, "claims": {"ttl_minutes": 5}}),
        encoding="utf-8",
    )
    (isolated_config / "config").mkdir()
    (isolated_config / "config" / "claims.ttl_minutes").write_text("12\n", encoding="utf-8")
    monkeypatch.setenv("FIELDSYNC_MAX_ATTEMPTS", "9")
    monkeypatch.setenv("FIELDSYNC_CLAIMS_ENABLED", "off")

    cfg = load_config()
    assert cfg.sync.api_base_url == "https://json.example/api/v1"
    assert cfg.sync.max_attempts == 9
    assert cfg.claims.ttl_minutes == 12
    assert cfg.claims.enabled is False


def test_invalid_values_are_rejected(isolated_config, monkeypatch) -> None:
    monkeypatch.setenv("FIELDSYNC_API_BASE_URL", "ftp://nowhere")
    with pytest.raises(ValidationError):
        load_config()


def test_configure_logging_is_idempotent() -> None:
    root = logging.getLogger()
    configure_logging()
    handlers = list(root.handlers)
    configure_logging("DEBUG")
    assert root.handlers == handlers
