from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import UploadFile
from fastapi.responses import Response

from ..models import new_id
from ..render import render_slide
from ..state import AppState
from ..viewer import ViewerSession

logger = logging.getLogger("blockguide.viewer_service")


def _not_found(session_id: str) -> Response:
    return Response(status_code=404, content=f"Viewer session not found: {session_id}", media_type="text/plain")


def _get(state: AppState, session_id: str) -> ViewerSession | None:
    with state.lock:
        v = state.viewers.get(session_id)
        if v is not None:
            state.viewer_seen[session_id] = state.clock()
        return v


def sweep(state: AppState, reserve: int = 0) -> int:
    """
    Drop viewer sessions idle longer than settings.viewer_idle_ttl_s, then
    the least recently used ones until `reserve` more fit under
    settings.max_viewer_sessions. Returns how many were dropped.
    """
    with state.lock:
        now = state.clock()
        ttl = state.settings.viewer_idle_ttl_s
        stale = {sid for sid in state.viewers if now - state.viewer_seen.get(sid, now) > ttl}
        overflow = len(state.viewers) - len(stale) + reserve - max(state.settings.max_viewer_sessions, 1)
        if overflow > 0:
            live = sorted((state.viewer_seen.get(sid, now), sid) for sid in state.viewers if sid not in stale)
            stale.update(sid for _, sid in live[:overflow])
        for sid in stale:
            state.viewers.pop(sid, None)
            state.viewer_seen.pop(sid, None)
    if stale:
        logger.info("Dropped %d idle viewer sessions", len(stale))
    return len(stale)


def snapshot(session_id: str, v: ViewerSession) -> dict:
    v.tick()
    slide = v.slide
    out: dict[str, Any] = {
        "session_id": session_id,
        "guide_id": v.guide.id,
        "title": v.guide.title,
        "user_identifier": v.user_identifier,
        "state": v.state,
        "current_slide": v.current_slide,
        "slide_count": len(v.guide.slides),
        "progress": v.progress(),
        "completion_progress": v.completion_progress,
        "dialog_open": v.dialog_open,
        "has_shown_congrats": v.has_shown_congrats,
        "can_submit": v.can_submit(),
        "submitted": bool(slide and slide.id in v.submitted_slides),
        "answers": dict(v.answers),
        "files": {k: f.to_dict() for k, f in v.files.items()},
        "upload_status": dict(v.upload_status),
        "upload_errors": dict(v.upload_errors),
        "notice": asdict(v.notice) if v.notice else None,
        "slide": render_slide(slide) if slide is not None and v.started else None,
    }
    return out


def create_session(state: AppState, payload: dict) -> dict | Response:
    """Start viewing a guide (by id or custom URL) with a fresh user identifier."""
    key = str(payload.get("guide_id") or payload.get("slug") or "").strip()
    if not key:
        return Response(status_code=400, content="Missing guide_id", media_type="text/plain")
    guide = state.store.find_guide(key)
    if guide is None:
        return Response(status_code=404, content=f"Guide not found: {key}", media_type="text/plain")
    session_id = new_id()
    session = ViewerSession(guide=guide)
    with state.lock:
        sweep(state, reserve=1)
        state.viewers[session_id] = session
        state.viewer_seen[session_id] = state.clock()
        logger.info("Viewer session %s opened for guide %s", session_id, guide.id)
        return snapshot(session_id, session)


def get_session(state: AppState, session_id: str) -> dict | Response:
    with state.lock:
        v = _get(state, session_id)
        if v is None:
            return _not_found(session_id)
        return snapshot(session_id, v)


def close_session(state: AppState, session_id: str) -> dict | Response:
    with state.lock:
        v = state.viewers.pop(session_id, None)
        state.viewer_seen.pop(session_id, None)
    if v is None:
        return _not_found(session_id)
    logger.info("Viewer session %s closed", session_id)
    return {"ok": True}


def navigate(state: AppState, session_id: str, action: str, payload: dict | None = None) -> dict | Response:
    with state.lock:
        v = _get(state, session_id)
        if v is None:
            return _not_found(session_id)
        v.notice = None
        if action == "start":
            v.start()
        elif action == "next":
            v.next()
        elif action == "previous":
            v.previous()
        elif action == "goto":
            try:
                index = int((payload or {}).get("index"))
            except (TypeError, ValueError):
                return Response(status_code=400, content="Missing index", media_type="text/plain")
            v.go_to(index)
        elif action == "start-over":
            v.start_over()
        elif action == "close-dialog":
            v.close_dialog()
        else:
            return Response(status_code=400, content=f"Unknown action: {action}", media_type="text/plain")
        return snapshot(session_id, v)


def answer(state: AppState, session_id: str, payload: dict) -> dict | Response:
    with state.lock:
        v = _get(state, session_id)
        if v is None:
            return _not_found(session_id)
        block_id = str(payload.get("block_id") or "").strip()
        if not v.set_answer(block_id, str(payload.get("answer") or "")):
            return Response(status_code=400, content=f"Not an input field: {block_id}", media_type="text/plain")
        return snapshot(session_id, v)


async def attach_file(state: AppState, session_id: str, block_id: str, file: UploadFile) -> dict | Response:
    v = _get(state, session_id)
    if v is None:
        return _not_found(session_id)
    if v.guide.block_at(block_id) is None:
        return Response(status_code=404, content=f"Block not found: {block_id}", media_type="text/plain")
    data = await file.read()
    await v.attach_file(state.media, block_id, data or b"", file.filename or "file", (file.content_type or "").lower())
    with state.lock:
        return snapshot(session_id, v)


async def remove_file(state: AppState, session_id: str, block_id: str) -> dict | Response:
    v = _get(state, session_id)
    if v is None:
        return _not_found(session_id)
    await v.remove_file(state.media, block_id)
    with state.lock:
        return snapshot(session_id, v)


def submit(state: AppState, session_id: str) -> dict | Response:
    with state.lock:
        v = _get(state, session_id)
        if v is None:
            return _not_found(session_id)
        # Refusals are decided locally; anything else failing is the store.
        refused = not v.can_submit()
        if not v.submit(state.store):
            return Response(
                status_code=400 if refused else 502,
                content=v.notice.description if v.notice else "Nothing to submit",
                media_type="text/plain",
            )
        return snapshot(session_id, v)
