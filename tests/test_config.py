from __future__ import annotations

import logging
from pathlib import Path

import pytest

from blockguide.config import Settings, public_base_url
from blockguide.main import configure_logging


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BLOCKGUIDE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BLOCKGUIDE_AUTOSAVE_DEBOUNCE_S", "2.5")
    monkeypatch.setenv("BLOCKGUIDE_MAX_UPLOAD_BYTES", "not-a-number")
    monkeypatch.setenv("BLOCKGUIDE_LOG_LEVEL", "debug")
    monkeypatch.setenv("BLOCKGUIDE_VIEWER_TTL_S", "120")
    monkeypatch.delenv("BLOCKGUIDE_MAX_VIEWER_SESSIONS", raising=False)
    for name in ("BLOCKGUIDE_DB_PATH", "BLOCKGUIDE_MEDIA_DIR", "BLOCKGUIDE_DRAFTS_DIR"):
        monkeypatch.delenv(name, raising=False)

    s = Settings.from_env()
    assert s.data_dir == tmp_path
    assert s.db_path == tmp_path / "blockguide.db"
    assert s.drafts_dir == tmp_path / "drafts"
    assert s.autosave_debounce_s == 2.5
    assert s.max_upload_bytes == 10 * 1024 * 1024
    assert s.log_level == "DEBUG"
    assert s.viewer_idle_ttl_s == 120.0
    assert s.max_viewer_sessions == 1000


def test_public_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    assert public_base_url("http://testserver/") == "http://testserver"
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://guides.example.com/")
    assert public_base_url("http://testserver/") == "https://guides.example.com"


def test_configure_logging_is_idempotent() -> None:
    configure_logging("DEBUG")
    configure_logging("INFO")
    logger = logging.getLogger("blockguide")
    assert logger.level == logging.INFO
    assert sum(1 for h in logger.handlers if getattr(h, "_blockguide", False)) == 1
