from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ..services import response_service
from ..state import AppState, app_state

router = APIRouter()


@router.post("/api/responses")
def submit_responses(payload: dict = Body(...), state: AppState = Depends(app_state)):
    return response_service.submit_responses(state, payload)


@router.get("/api/responses")
def list_responses(
    guide_id: str | None = None,
    user_identifier: str | None = None,
    block_id: str | None = None,
    state: AppState = Depends(app_state),
):
    return response_service.list_responses(state, guide_id, user_identifier, block_id)
