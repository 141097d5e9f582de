from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .errors import InvariantViolation, ValidationError
from .models import (
    BLOCK_KINDS,
    DEFAULT_GUIDE_TITLE,
    DEFAULT_USER_ID,
    GUIDE_STATUSES,
    ContentBlock,
    Guide,
    Slide,
    check_sub_block_kind,
    new_id,
    normalize_tags,
    now_iso,
    renumber,
)
from .styles import coerce_styles

logger = logging.getLogger("blockguide.content_loader")


def _str(v: Any, default: str = "") -> str:
    if v is None:
        return default
    return str(v)


def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)


def _int(v: Any, default: int) -> int:
    if isinstance(v, bool):
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _tags(v: Any) -> tuple[str, ...]:
    if isinstance(v, str):
        # Stored as JSON text in the database.
        try:
            v = json.loads(v) if v.strip().startswith("[") else [v]
        except json.JSONDecodeError:
            v = [v]
    if not isinstance(v, (list, tuple)):
        return ()
    return normalize_tags(v)


def block_from_dict(raw: Mapping[str, Any], slide_id: str, *, position: int = 1) -> ContentBlock:
    """
    Build a ContentBlock from untrusted input (API payload, draft file, db row).

    Styles are coerced here so nothing downstream sees non-scalar values.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Block must be an object")
    kind = _str(raw.get("type")).strip()
    if kind not in BLOCK_KINDS:
        raise ValidationError(f"Unknown block type: {kind!r}")

    styles = raw.get("styles")
    if isinstance(styles, str):
        try:
            styles = json.loads(styles)
        except json.JSONDecodeError:
            logger.warning("Unparseable styles for block %s, using empty map", raw.get("id"))
            styles = {}

    left_type = _opt_str(raw.get("left_type"))
    right_type = _opt_str(raw.get("right_type"))
    if kind == "two-column":
        left_type = left_type or "paragraph"
        right_type = right_type or "paragraph"
        check_sub_block_kind(left_type)
        check_sub_block_kind(right_type)
    elif left_type == "two-column" or right_type == "two-column":
        raise InvariantViolation("Two-column blocks cannot be nested inside a two-column block.")

    ts = now_iso()
    return ContentBlock(
        id=_str(raw.get("id")).strip() or new_id(),
        slide_id=slide_id,
        type=kind,
        content=_opt_str(raw.get("content")),
        styles=coerce_styles(styles),
        position=_int(raw.get("position"), position),
        left_type=left_type,
        left_content=_opt_str(raw.get("left_content")),
        right_type=right_type,
        right_content=_opt_str(raw.get("right_content")),
        created_at=_str(raw.get("created_at")) or ts,
        updated_at=_str(raw.get("updated_at")) or ts,
    )


def slide_from_dict(raw: Mapping[str, Any], guide_id: str, *, position: int = 1) -> Slide:
    if not isinstance(raw, Mapping):
        raise ValidationError("Slide must be an object")
    slide_id = _str(raw.get("id")).strip() or new_id()
    blocks_raw = raw.get("blocks") or raw.get("content_blocks") or []
    if not isinstance(blocks_raw, list):
        raise ValidationError("Slide blocks must be a list")
    blocks = [block_from_dict(b, slide_id, position=i) for i, b in enumerate(blocks_raw, start=1)]
    blocks.sort(key=lambda b: b.position)
    ts = now_iso()
    return Slide(
        id=slide_id,
        guide_id=guide_id,
        title=_str(raw.get("title")),
        position=_int(raw.get("position"), position),
        blocks=tuple(blocks),
        created_at=_str(raw.get("created_at")) or ts,
        updated_at=_str(raw.get("updated_at")) or ts,
    )


def guide_from_dict(raw: Mapping[str, Any]) -> Guide:
    """
    Parse a whole guide (with nested slides and blocks).

    Slides and blocks are ordered by their stored position, then renumbered
    to 1..n.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Guide must be an object")
    gid = _str(raw.get("id")).strip() or new_id()
    slides_raw = raw.get("slides") or []
    if not isinstance(slides_raw, list):
        raise ValidationError("Guide slides must be a list")
    slides = [slide_from_dict(s, gid, position=i) for i, s in enumerate(slides_raw, start=1)]
    slides.sort(key=lambda s: s.position)

    status = _str(raw.get("status"), "draft")
    if status not in GUIDE_STATUSES:
        logger.warning("Unknown guide status %r for %s, using draft", status, gid)
        status = "draft"

    ts = now_iso()
    guide = Guide(
        id=gid,
        user_id=_str(raw.get("user_id")) or DEFAULT_USER_ID,
        title=_str(raw.get("title")) or DEFAULT_GUIDE_TITLE,
        description=_str(raw.get("description")),
        type=_str(raw.get("type")),
        tags=_tags(raw.get("tags")),
        status=status,
        custom_url=_opt_str(raw.get("custom_url")) or None,
        views=max(0, _int(raw.get("views"), 0)),
        slides=tuple(slides),
        created_at=_str(raw.get("created_at")) or ts,
        updated_at=_str(raw.get("updated_at")) or ts,
    )
    return renumber(guide)


def read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from disk; missing or corrupt files read as None."""
    if not path.exists():
        return None
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.warning("Could not read %s", path, exc_info=True)
        return None
    if not isinstance(obj, dict):
        logger.warning("%s does not contain a JSON object", path)
        return None
    return obj
