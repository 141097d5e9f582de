from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .models import ContentBlock, Guide, Slide


def block_to_dict(block: ContentBlock) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": block.id,
        "slide_id": block.slide_id,
        "type": block.type,
        "content": block.content,
        "styles": dict(block.styles),
        "position": block.position,
        "created_at": block.created_at,
        "updated_at": block.updated_at,
    }
    if block.type == "two-column":
        out.update(
            {
                "left_type": block.left_type,
                "left_content": block.left_content,
                "right_type": block.right_type,
                "right_content": block.right_content,
            }
        )
    return out


def slide_to_dict(slide: Slide) -> dict[str, Any]:
    return {
        "id": slide.id,
        "guide_id": slide.guide_id,
        "title": slide.title,
        "position": slide.position,
        "blocks": [block_to_dict(b) for b in slide.blocks],
        "created_at": slide.created_at,
        "updated_at": slide.updated_at,
    }


def guide_to_dict(guide: Guide, *, include_slides: bool = True) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": guide.id,
        "user_id": guide.user_id,
        "title": guide.title,
        "description": guide.description,
        "type": guide.type,
        "tags": list(guide.tags),
        "status": guide.status,
        "custom_url": guide.custom_url,
        "views": guide.views,
        "created_at": guide.created_at,
        "updated_at": guide.updated_at,
    }
    if include_slides:
        out["slides"] = [slide_to_dict(s) for s in guide.slides]
    else:
        out["slide_count"] = len(guide.slides)
    return out


def write_json(path: Path, obj: dict[str, Any]) -> None:
    """
    Write a JSON object atomically (temp file + rename) so a crash never
    leaves a half-written file behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, path)
