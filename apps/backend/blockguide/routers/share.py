from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..services.share_service import share_info, share_qr
from ..state import AppState, app_state

router = APIRouter()


@router.get("/api/guides/{guide_id}/share")
def share(guide_id: str, request: Request, state: AppState = Depends(app_state)):
    return share_info(state, guide_id, str(request.base_url))


@router.get("/api/guides/{guide_id}/qr.png")
def share_qr_png(guide_id: str, request: Request, state: AppState = Depends(app_state)):
    return share_qr(state, guide_id, str(request.base_url))
