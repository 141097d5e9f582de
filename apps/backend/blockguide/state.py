from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import Request

from .config import Settings
from .drafts import DraftSession
from .interfaces import DraftStore
from .services.media_service import LocalMediaStorage
from .storage import GuideStore
from .viewer import ViewerSession


@dataclass
class AppState:
    """
    Everything one app instance owns: settings, stores and the live
    editor/viewer sessions. Built by create_app and kept on app.state.
    """

    settings: Settings
    store: GuideStore
    drafts: DraftStore
    media: LocalMediaStorage
    # guide id -> editing session (one editor per guide)
    editors: dict[str, DraftSession] = field(default_factory=dict)
    # viewer session id -> session
    viewers: dict[str, ViewerSession] = field(default_factory=dict)
    # viewer session id -> clock reading at last use
    viewer_seen: dict[str, float] = field(default_factory=dict)
    clock: Callable[[], float] = time.monotonic
    lock: threading.RLock = field(default_factory=threading.RLock)


def app_state(request: Request) -> AppState:
    """FastAPI dependency: the AppState attached by create_app."""
    return request.app.state.blockguide
