from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi.responses import Response

from ..content_writer import guide_to_dict
from ..drafts import DraftSession
from ..editor import Box, EditorSession
from ..errors import GuideError, error_response
from ..models import GUIDE_STATUSES, validate_slug
from ..state import AppState

logger = logging.getLogger("blockguide.editor_service")


def _not_open(guide_id: str) -> Response:
    return Response(status_code=404, content=f"No editor open for guide {guide_id}", media_type="text/plain")


def _box(raw: Any) -> Box:
    raw = raw if isinstance(raw, dict) else {}
    return Box(
        left=float(raw.get("left", 0)),
        top=float(raw.get("top", 0)),
        right=float(raw.get("right", 0)),
        bottom=float(raw.get("bottom", 0)),
    )


def snapshot(session: DraftSession) -> dict:
    ed = session.editor
    notice = session.notice or (ed.notice if ed else None)
    out: dict[str, Any] = {
        "guide_id": session.guide_id,
        "unsaved": session.unsaved,
        "pending_autosave": session.debouncer.pending,
        "notice": asdict(notice) if notice else None,
    }
    if ed is not None:
        out.update(
            {
                "guide": guide_to_dict(ed.guide),
                "current_slide": ed.current_slide,
                "selected_block_id": ed.selected_block_id,
                "preview": ed.preview,
                "aspect_lock": ed.aspect_lock,
                "drag": asdict(ed.drag),
            }
        )
    return out


def open_editor(state: AppState, guide_id: str) -> dict | Response:
    """Mount (or return the already mounted) editing session for a guide."""
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None:
            session = DraftSession(
                guide_id,
                state.store,
                state.drafts,
                debounce_s=state.settings.autosave_debounce_s,
            )
            try:
                session.mount()
            except GuideError as e:
                return error_response(e)
            state.editors[guide_id] = session
            logger.info("Opened editor for %s (draft restored: %s)", guide_id, session.unsaved)
        return snapshot(session)


def get_state(state: AppState, guide_id: str) -> dict | Response:
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None:
            return _not_open(guide_id)
        return snapshot(session)


def _dispatch(ed: EditorSession, op: str, p: dict) -> bool | str | None:
    """Run one named editor operation with arguments taken from the payload."""
    if op == "add_block":
        return ed.add_block(str(p.get("kind") or p.get("type") or ""))
    if op == "delete_block":
        return ed.delete_block(str(p.get("block_id") or ""))
    if op == "update_block":
        updates = p.get("updates")
        return ed.update_block(
            str(p.get("block_id") or ""), updates if isinstance(updates, dict) else {}, markdown=bool(p.get("markdown"))
        )
    if op == "update_block_style":
        return ed.update_block_style(str(p.get("block_id") or ""), str(p.get("key") or ""), p.get("value"))
    if op == "reset_block_styles":
        return ed.reset_block_styles(str(p.get("block_id") or ""))
    if op == "resize_media":
        w = p.get("width")
        h = p.get("height")
        return ed.resize_media(
            str(p.get("block_id") or ""),
            width=float(w) if w is not None else None,
            height=float(h) if h is not None else None,
        )
    if op == "set_aspect_lock":
        ed.set_aspect_lock(bool(p.get("on")))
        return True
    if op == "select_block":
        bid = p.get("block_id")
        return ed.select_block(str(bid) if bid else None)
    if op == "toggle_preview":
        ed.toggle_preview()
        return True
    if op == "set_preview":
        ed.set_preview(bool(p.get("on")))
        return True
    if op == "key_down":
        return ed.key_down(str(p.get("key") or ""), in_text_control=bool(p.get("in_text_control")))
    if op == "add_slide":
        return ed.add_slide()
    if op == "delete_slide":
        return ed.delete_slide(int(p.get("index", -1)))
    if op == "set_active_slide":
        return ed.set_active_slide(int(p.get("index", 0)))
    if op == "rename_slide":
        return ed.rename_slide(int(p.get("index", -1)), str(p.get("title") or ""))
    if op == "set_title":
        return ed.set_title(str(p.get("title") or ""))
    if op == "add_tag":
        return ed.add_tag(str(p.get("tag") or ""))
    if op == "remove_tag":
        return ed.remove_tag(str(p.get("tag") or ""))
    if op == "drag_start":
        return ed.drag_start(str(p.get("block_id") or ""))
    if op == "drag_over":
        return ed.drag_over(str(p.get("block_id") or ""), float(p.get("client_y", 0)), _box(p.get("box")))
    if op == "drag_leave":
        ed.drag_leave(float(p.get("client_x", 0)), float(p.get("client_y", 0)), _box(p.get("box")))
        return True
    if op == "drop":
        return ed.drop(str(p.get("target_id") or ""))
    if op == "drag_end":
        ed.drag_end()
        return True
    if op == "dismiss_notice":
        ed.dismiss_notice()
        return True
    raise KeyError(op)


def apply_op(state: AppState, guide_id: str, payload: dict) -> dict | Response:
    op = str(payload.get("op") or "").strip()
    if not op:
        return Response(status_code=400, content="Missing op", media_type="text/plain")
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None or session.editor is None:
            return _not_open(guide_id)
        session.notice = None
        session.editor.notice = None
        try:
            result = _dispatch(session.editor, op, payload)
        except KeyError:
            return Response(status_code=400, content=f"Unknown op: {op}", media_type="text/plain")
        except (TypeError, ValueError):
            return Response(status_code=400, content=f"Invalid arguments for {op}", media_type="text/plain")
        session.note_change()
        out = snapshot(session)
        out["result"] = result
        return out


def poll(state: AppState, guide_id: str) -> dict | Response:
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None:
            return _not_open(guide_id)
        written = session.poll()
        out = snapshot(session)
        out["draft_written"] = written
        return out


def save(state: AppState, guide_id: str, payload: dict) -> dict | Response:
    status = str(payload.get("status") or "draft").strip()
    custom_url = payload.get("custom_url")
    if status not in GUIDE_STATUSES:
        return Response(status_code=400, content=f"Invalid status: {status}", media_type="text/plain")
    custom_url = str(custom_url) if custom_url is not None else None
    if status == "published":
        try:
            validate_slug(custom_url)
        except GuideError as e:
            return error_response(e)
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None:
            return _not_open(guide_id)
        if not session.save(status, custom_url):
            msg = session.notice.description if session.notice else "Failed to save guide."
            return Response(status_code=502, content=msg, media_type="text/plain")
        return snapshot(session)


def close(state: AppState, guide_id: str, payload: dict) -> dict | Response:
    """
    Leave the editor. With unsaved changes the caller must confirm; the
    draft then survives for the next visit.
    """
    with state.lock:
        session = state.editors.get(guide_id)
        if session is None:
            return _not_open(guide_id)
        message = session.request_leave()
        if message and not payload.get("confirm"):
            return Response(status_code=409, content=message, media_type="text/plain")
        session.unmount()
        state.editors.pop(guide_id, None)
        return {"ok": True, "draft_kept": guide_id in state.drafts}
