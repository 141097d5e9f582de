from __future__ import annotations

import logging

from fastapi.responses import Response

from ..content_loader import guide_from_dict
from ..content_writer import guide_to_dict
from ..errors import GuideError, InvariantViolation, error_response
from ..models import DEFAULT_USER_ID, validate_slug
from ..render import render_guide
from ..state import AppState

logger = logging.getLogger("blockguide.guide_service")


def _not_found(guide_id: str) -> Response:
    return Response(status_code=404, content=f"Guide not found: {guide_id}", media_type="text/plain")


def list_guides(state: AppState, user_id: str | None = None) -> dict:
    guides = state.store.list_guides(user_id or None)
    return {"guides": [guide_to_dict(g, include_slides=False) for g in guides]}


def create_guide(state: AppState, payload: dict) -> dict | Response:
    """
    Create a draft guide. title and type are required; tags are trimmed,
    de-duplicated and capped.
    """
    tags = payload.get("tags") or []
    if not isinstance(tags, list):
        return Response(status_code=400, content="tags must be a list", media_type="text/plain")
    try:
        guide = state.store.create_guide(
            title=str(payload.get("title") or ""),
            type=str(payload.get("type") or ""),
            description=str(payload.get("description") or ""),
            tags=[str(t) for t in tags],
            user_id=str(payload.get("user_id") or payload.get("userId") or DEFAULT_USER_ID),
        )
    except GuideError as e:
        return error_response(e)
    return {"guide": guide_to_dict(guide)}


def get_guide(state: AppState, guide_id: str) -> dict | Response:
    guide = state.store.load_guide(guide_id)
    if guide is None:
        return _not_found(guide_id)
    return {"guide": guide_to_dict(guide)}


def update_guide(state: AppState, guide_id: str, payload: dict) -> dict | Response:
    """
    Replace a stored guide with the posted document.

    Without a "slides" key only the metadata changes; an explicit empty
    slide list is refused.
    """
    raw = payload.get("guide") if isinstance(payload.get("guide"), dict) else payload
    raw = {**raw, "id": guide_id}
    existing = state.store.load_guide(guide_id)
    if existing is None:
        return _not_found(guide_id)
    if "views" not in raw:
        raw["views"] = existing.views
    if "slides" not in raw:
        raw["slides"] = guide_to_dict(existing)["slides"]
    try:
        raw["custom_url"] = validate_slug(raw.get("custom_url"))
        guide = guide_from_dict(raw)
        if not guide.slides:
            raise InvariantViolation("A guide must have at least one slide.")
        saved = state.store.save_guide(guide)
    except GuideError as e:
        return error_response(e)
    if not saved:
        return Response(status_code=409, content="Failed to save guide", media_type="text/plain")
    return {"guide": guide_to_dict(state.store.load_guide(guide_id) or guide)}


def delete_guide(state: AppState, guide_id: str) -> dict | Response:
    if not state.store.delete_guide(guide_id):
        return _not_found(guide_id)
    with state.lock:
        state.editors.pop(guide_id, None)
    state.drafts.delete(guide_id)
    logger.info("Deleted guide %s", guide_id)
    return {"ok": True}


def render(state: AppState, guide_id: str) -> dict | Response:
    guide = state.store.load_guide(guide_id)
    if guide is None:
        return _not_found(guide_id)
    return render_guide(guide)


def open_public(state: AppState, slug_or_id: str) -> dict | Response:
    """Guide for the public viewer (custom URL or id); counts one view."""
    guide = state.store.find_guide(slug_or_id)
    if guide is None:
        return _not_found(slug_or_id)
    views = state.store.increment_views(guide.id)
    out = render_guide(guide)
    out["views"] = views
    out["status"] = guide.status
    return out
