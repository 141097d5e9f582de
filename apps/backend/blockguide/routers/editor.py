from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ..services import editor_service
from ..state import AppState, app_state

router = APIRouter()


@router.post("/api/editor/{guide_id}/open")
def open_editor(guide_id: str, state: AppState = Depends(app_state)):
    return editor_service.open_editor(state, guide_id)


@router.get("/api/editor/{guide_id}")
def editor_state(guide_id: str, state: AppState = Depends(app_state)):
    return editor_service.get_state(state, guide_id)


@router.post("/api/editor/{guide_id}/ops")
def editor_op(guide_id: str, payload: dict = Body(...), state: AppState = Depends(app_state)):
    return editor_service.apply_op(state, guide_id, payload)


@router.post("/api/editor/{guide_id}/poll")
def editor_poll(guide_id: str, state: AppState = Depends(app_state)):
    # Clients call this on an interval; it writes the draft once edits go quiet.
    return editor_service.poll(state, guide_id)


@router.post("/api/editor/{guide_id}/save")
def editor_save(guide_id: str, payload: dict = Body(default={}), state: AppState = Depends(app_state)):
    return editor_service.save(state, guide_id, payload)


@router.post("/api/editor/{guide_id}/close")
def editor_close(guide_id: str, payload: dict = Body(default={}), state: AppState = Depends(app_state)):
    return editor_service.close(state, guide_id, payload)
