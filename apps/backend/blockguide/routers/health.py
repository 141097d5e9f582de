from __future__ import annotations

from fastapi import APIRouter, Depends

from ..state import AppState, app_state

router = APIRouter()


@router.get("/api/health")
def health(state: AppState = Depends(app_state)):
    """Liveness plus the number of open editor and viewer sessions."""
    with state.lock:
        return {"ok": True, "editors": len(state.editors), "viewer_sessions": len(state.viewers)}
