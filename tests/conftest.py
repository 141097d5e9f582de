from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "apps" / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from blockguide.config import Settings  # noqa: E402
from blockguide.storage import GuideStore  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Iterator[GuideStore]:
    s = GuideStore(":memory:")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "blockguide.db",
        media_dir=tmp_path / "media",
        drafts_dir=tmp_path / "drafts",
        autosave_debounce_s=1.0,
        max_upload_bytes=1024,
    )


@pytest.fixture
def client(settings: Settings):
    from fastapi.testclient import TestClient

    from blockguide.main import create_app

    with TestClient(create_app(settings)) as c:
        yield c
