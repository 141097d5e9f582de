from __future__ import annotations

from fastapi import APIRouter, Body, Depends, File, UploadFile

from ..services import viewer_service
from ..state import AppState, app_state

router = APIRouter()

# Plain handlers run in the threadpool and serialize on state.lock.
# The file handlers are async: they await the upload body and the media store.


@router.post("/api/viewer/sessions")
def create_session(payload: dict = Body(...), state: AppState = Depends(app_state)):
    return viewer_service.create_session(state, payload)


@router.get("/api/viewer/sessions/{session_id}")
def get_session(session_id: str, state: AppState = Depends(app_state)):
    return viewer_service.get_session(state, session_id)


@router.delete("/api/viewer/sessions/{session_id}")
def close_session(session_id: str, state: AppState = Depends(app_state)):
    return viewer_service.close_session(state, session_id)


@router.post("/api/viewer/sessions/{session_id}/answer")
def answer(session_id: str, payload: dict = Body(...), state: AppState = Depends(app_state)):
    return viewer_service.answer(state, session_id, payload)


@router.post("/api/viewer/sessions/{session_id}/submit")
def submit(session_id: str, state: AppState = Depends(app_state)):
    return viewer_service.submit(state, session_id)


@router.post("/api/viewer/sessions/{session_id}/files/{block_id}")
async def attach_file(session_id: str, block_id: str, file: UploadFile = File(...), state: AppState = Depends(app_state)):
    return await viewer_service.attach_file(state, session_id, block_id, file)


@router.delete("/api/viewer/sessions/{session_id}/files/{block_id}")
async def remove_file(session_id: str, block_id: str, state: AppState = Depends(app_state)):
    return await viewer_service.remove_file(state, session_id, block_id)


@router.post("/api/viewer/sessions/{session_id}/{action}")
def navigate(session_id: str, action: str, payload: dict = Body(default={}), state: AppState = Depends(app_state)):
    # start | next | previous | goto | start-over | close-dialog
    return viewer_service.navigate(state, session_id, action, payload)
