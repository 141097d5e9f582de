from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .models import DEFAULT_CONTENT, ContentBlock, Guide, Slide
from .sanitizer import has_block_html, sanitize_content
from .styles import resolve_css, resolve_styles

logger = logging.getLogger("blockguide.render")

_SAFE_SCHEMES = {"", "http", "https"}
_EMBED_ALLOW = "accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture"


def safe_src(url: str | None, fallback: str = "") -> str:
    """Media sources must be relative or http(s); anything else falls back."""
    url = (url or "").strip()
    if not url:
        return fallback
    try:
        scheme = urlparse(url).scheme.lower()
    except ValueError:
        scheme = "invalid"
    if scheme not in _SAFE_SCHEMES:
        logger.warning("Rejected media source with scheme %r", scheme)
        return fallback
    return url


def _media_html(kind: str, content: str | None) -> str:
    soup = BeautifulSoup("", "html.parser")
    if kind in ("image", "gif"):
        el = soup.new_tag("img", attrs={"src": safe_src(content, DEFAULT_CONTENT[kind]), "alt": "Content"})
    elif kind == "video":
        el = soup.new_tag("video", attrs={"src": safe_src(content), "controls": ""})
    else:
        src = safe_src(content)
        if not src:
            return ""
        el = soup.new_tag(
            "iframe",
            attrs={"src": src, "title": "Embedded content", "allow": _EMBED_ALLOW, "allowfullscreen": ""},
        )
    soup.append(el)
    return str(soup)


def render_single(kind: str, content: str | None, styles: dict[str, Any], column: str | None = None) -> dict[str, Any]:
    """Sanitized markup plus resolved CSS for one (sub-)block."""
    out: dict[str, Any] = {"type": kind, "css": resolve_css(kind, styles)}
    if kind == "heading":
        out["tag"] = "div" if has_block_html(content) else "h2"
        out["html"] = sanitize_content(content, kind)
    elif kind == "paragraph":
        out["tag"] = "div"
        out["html"] = sanitize_content(content, kind, column)
    elif kind in ("image", "gif", "video", "embed"):
        out["tag"] = "div"
        out["html"] = _media_html(kind, content)
    else:
        # Interactive kinds: the content is the question text.
        out["tag"] = "div"
        out["html"] = sanitize_content(content, kind) if (content or "").strip() else ""
        placeholder = resolve_styles(styles).get("placeholder")
        if isinstance(placeholder, str):
            out["placeholder"] = placeholder
    return out


def render_block(block: ContentBlock) -> dict[str, Any]:
    if block.type == "two-column":
        out: dict[str, Any] = {"type": block.type, "tag": "div", "css": resolve_css(block.type, block.styles)}
        out["columns"] = [
            {"side": "left", **render_single(block.left_type or "paragraph", block.left_content, block.styles, "left")},
            {"side": "right", **render_single(block.right_type or "paragraph", block.right_content, block.styles, "right")},
        ]
    else:
        out = render_single(block.type, block.content, block.styles)
    out["id"] = block.id
    out["position"] = block.position
    out["interactive"] = block.is_interactive
    return out


def render_slide(slide: Slide) -> dict[str, Any]:
    return {
        "id": slide.id,
        "title": slide.title,
        "position": slide.position,
        "blocks": [render_block(b) for b in slide.blocks],
    }


def render_guide(guide: Guide) -> dict[str, Any]:
    return {
        "id": guide.id,
        "title": guide.title,
        "description": guide.description,
        "tags": list(guide.tags),
        "slides": [render_slide(s) for s in guide.slides],
    }
