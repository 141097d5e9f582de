from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ..services import guide_service
from ..state import AppState, app_state

router = APIRouter()


@router.get("/api/guides")
def list_guides(user_id: str | None = None, state: AppState = Depends(app_state)):
    return guide_service.list_guides(state, user_id)


@router.post("/api/guides")
def create_guide(payload: dict = Body(...), state: AppState = Depends(app_state)):
    return guide_service.create_guide(state, payload)


@router.get("/api/guides/{guide_id}")
def get_guide(guide_id: str, state: AppState = Depends(app_state)):
    return guide_service.get_guide(state, guide_id)


@router.put("/api/guides/{guide_id}")
def update_guide(guide_id: str, payload: dict = Body(...), state: AppState = Depends(app_state)):
    return guide_service.update_guide(state, guide_id, payload)


@router.delete("/api/guides/{guide_id}")
def delete_guide(guide_id: str, state: AppState = Depends(app_state)):
    return guide_service.delete_guide(state, guide_id)


@router.get("/api/guides/{guide_id}/render")
def render_guide(guide_id: str, state: AppState = Depends(app_state)):
    return guide_service.render(state, guide_id)


@router.get("/api/g/{slug_or_id}")
def public_guide(slug_or_id: str, state: AppState = Depends(app_state)):
    return guide_service.open_public(state, slug_or_id)
