from __future__ import annotations

from fastapi import APIRouter, Body, Depends, File, UploadFile
from fastapi.responses import FileResponse, Response

from ..services.media_service import delete_file, upload_file
from ..state import AppState, app_state

router = APIRouter()


@router.get("/media/{media_path:path}")
def media(media_path: str, state: AppState = Depends(app_state)):
    # Stored names are unique per upload, so short caching is safe.
    p = state.media.resolve(media_path)
    if p is None:
        return Response(status_code=400)
    if not p.exists() or not p.is_file():
        return Response(status_code=404)
    return FileResponse(p, headers={"Cache-Control": "public, max-age=60, must-revalidate"})


@router.post("/api/upload")
async def upload(file: UploadFile = File(...), state: AppState = Depends(app_state)):
    return await upload_file(state.media, file)


@router.delete("/api/upload")
async def delete_upload(payload: dict = Body(...), state: AppState = Depends(app_state)):
    return await delete_file(state.media, payload)
