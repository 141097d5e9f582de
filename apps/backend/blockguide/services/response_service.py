from __future__ import annotations

import logging

from fastapi.responses import JSONResponse, Response

from ..state import AppState

logger = logging.getLogger("blockguide.response_service")

REQUIRED_FIELDS = ("guide_id", "slide_id", "block_id", "user_identifier", "question")


def _opt_int(v) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def submit_responses(state: AppState, payload: dict) -> dict | Response:
    """
    Upsert a batch of responses ({"responses": [...]} or a single object).

    Every item is attempted; the batch answers 400 if any item failed.
    """
    items = payload.get("responses") if isinstance(payload.get("responses"), list) else [payload]
    if not items:
        return Response(status_code=400, content="No responses provided", media_type="text/plain")

    results: list[dict] = []
    for item in items:
        if not isinstance(item, dict):
            results.append({"error": "Invalid response", "block_id": None})
            continue
        block_id = item.get("block_id")
        if not all(str(item.get(k) or "").strip() for k in REQUIRED_FIELDS):
            results.append({"error": "Missing required fields", "block_id": block_id})
            continue
        try:
            row = state.store.upsert_response(
                guide_id=str(item["guide_id"]),
                slide_id=str(item["slide_id"]),
                block_id=str(block_id),
                user_identifier=str(item["user_identifier"]),
                question=str(item["question"]),
                answer=item.get("answer"),
                file_url=item.get("file_url"),
                file_name=item.get("file_name"),
                file_size=_opt_int(item.get("file_size")),
            )
        except Exception:
            logger.exception("Saving response for block %s failed", block_id)
            results.append({"error": "Failed to save response", "block_id": block_id})
            continue
        results.append({"response": row, "block_id": block_id})

    if any("error" in r for r in results):
        return JSONResponse(status_code=400, content={"error": "Some responses failed", "results": results})
    return {"results": results}


def list_responses(
    state: AppState,
    guide_id: str | None = None,
    user_identifier: str | None = None,
    block_id: str | None = None,
) -> dict:
    rows = state.store.list_responses(guide_id=guide_id, user_identifier=user_identifier, block_id=block_id)
    return {"responses": rows}
