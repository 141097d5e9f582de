from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[3]
DATA_DIR = REPO_ROOT / "data"

AUTOSAVE_DEBOUNCE_S = 1.0
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
VIEWER_IDLE_TTL_S = 3600.0
MAX_VIEWER_SESSIONS = 1000

ALLOWED_UPLOAD_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/zip",
    "application/x-zip-compressed",
)

DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]


def public_base_url(fallback: str) -> str:
    """
    Public base URL for share links and QR codes.
    Prefer PUBLIC_BASE_URL env var, otherwise fall back to request.base_url.
    """
    return (os.environ.get("PUBLIC_BASE_URL") or fallback).rstrip("/")


def _env_path(name: str, default: Path) -> Path:
    raw = (os.environ.get(name) or "").strip()
    return Path(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DATA_DIR
    db_path: Path = DATA_DIR / "blockguide.db"
    media_dir: Path = DATA_DIR / "media"
    drafts_dir: Path = DATA_DIR / "drafts"
    autosave_debounce_s: float = AUTOSAVE_DEBOUNCE_S
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    allowed_upload_types: tuple[str, ...] = ALLOWED_UPLOAD_TYPES
    cors_origins: list[str] = field(default_factory=lambda: list(DEV_CORS_ORIGINS))
    viewer_idle_ttl_s: float = VIEWER_IDLE_TTL_S
    max_viewer_sessions: int = MAX_VIEWER_SESSIONS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        data_dir = _env_path("BLOCKGUIDE_DATA_DIR", DATA_DIR)
        return cls(
            data_dir=data_dir,
            db_path=_env_path("BLOCKGUIDE_DB_PATH", data_dir / "blockguide.db"),
            media_dir=_env_path("BLOCKGUIDE_MEDIA_DIR", data_dir / "media"),
            drafts_dir=_env_path("BLOCKGUIDE_DRAFTS_DIR", data_dir / "drafts"),
            autosave_debounce_s=_env_float("BLOCKGUIDE_AUTOSAVE_DEBOUNCE_S", AUTOSAVE_DEBOUNCE_S),
            max_upload_bytes=int(_env_float("BLOCKGUIDE_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES)),
            viewer_idle_ttl_s=_env_float("BLOCKGUIDE_VIEWER_TTL_S", VIEWER_IDLE_TTL_S),
            max_viewer_sessions=int(_env_float("BLOCKGUIDE_MAX_VIEWER_SESSIONS", MAX_VIEWER_SESSIONS)),
            log_level=(os.environ.get("BLOCKGUIDE_LOG_LEVEL") or "INFO").strip().upper(),
        )
