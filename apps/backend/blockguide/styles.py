from __future__ import annotations

import logging
import math
from collections.abc import Mapping

logger = logging.getLogger("blockguide.styles")

StyleValue = str | int | float | bool

FOREGROUND = "hsl(var(--foreground))"

_TEXT = {"textAlign": "left", "backgroundColor": "transparent"}
_MEDIA = {"padding": 0, "backgroundColor": "transparent", "width": 100}

DEFAULT_STYLES: dict[str, dict[str, StyleValue]] = {
    "heading": {"fontSize": 24, "color": FOREGROUND, **_TEXT},
    "paragraph": {"fontSize": 16, "color": FOREGROUND, **_TEXT},
    "image": {"borderRadius": 8, **_MEDIA, "height": 300},
    "gif": {"borderRadius": 8, **_MEDIA, "height": 300},
    "video": {"borderRadius": 12, **_MEDIA, "height": 400},
    "embed": {"borderRadius": 8, **_MEDIA, "height": 400},
    "two-column": {"backgroundColor": "transparent", "columnGap": 16, "leftColumnWidth": 50, "rightColumnWidth": 50},
    "input-field": {"fontSize": 16, "backgroundColor": "transparent", "placeholder": "Type your answer here..."},
    "file-upload": {"backgroundColor": "transparent", "placeholder": "Drop a file here or click to upload"},
}

# Slider ranges of the style panel.
STYLE_RANGES: dict[str, tuple[int, int]] = {
    "fontSize": (12, 72),
    "padding": (0, 50),
    "paddingTop": (0, 50),
    "paddingRight": (0, 50),
    "paddingBottom": (0, 50),
    "paddingLeft": (0, 50),
    "borderRadius": (0, 20),
    "width": (10, 100),
    "height": (50, 800),
}

TEXT_ALIGNS = ("left", "center", "right")
_PADDING_SIDES = ("paddingTop", "paddingRight", "paddingBottom", "paddingLeft")


def default_styles(kind: str) -> dict[str, StyleValue]:
    """Fresh default style map for a block kind."""
    return dict(DEFAULT_STYLES.get(kind) or {"backgroundColor": "transparent"})


def coerce_style_value(key: str, value: object) -> tuple[bool, StyleValue | None]:
    """
    Reduce an incoming style value to a scalar.

    Returns (keep, value). A list/tuple collapses to its first element,
    anything that is not str/int/float/bool is dropped.
    """
    if isinstance(value, (list, tuple)):
        if not value:
            logger.warning("Dropping empty array style value for %s", key)
            return False, None
        logger.warning("Style value for %s is an array, using first element", key)
        value = value[0]
    if isinstance(value, (str, bool, int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            logger.warning("Dropping non-finite style value for %s", key)
            return False, None
        return True, value
    logger.warning("Dropping invalid style value for %s: %r", key, type(value).__name__)
    return False, None


def coerce_styles(raw: object) -> dict[str, StyleValue]:
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("Style map is not a mapping (%s), using empty map", type(raw).__name__)
        return {}
    out: dict[str, StyleValue] = {}
    for key, value in raw.items():
        keep, scalar = coerce_style_value(str(key), value)
        if keep:
            out[str(key)] = scalar  # type: ignore[assignment]
    return out


def _number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().removesuffix("px").removesuffix("%"))
        except ValueError:
            return None
    return None


def clamp(key: str, value: float) -> float:
    lo, hi = STYLE_RANGES.get(key, (-math.inf, math.inf))
    return max(lo, min(hi, value))


def _tidy(n: float) -> int | float:
    return int(n) if float(n).is_integer() else n


def resolve_styles(styles: Mapping[str, object] | None) -> dict[str, StyleValue]:
    """Coerced copy with slider-bound numbers clamped; omitted keys stay omitted."""
    out = coerce_styles(styles or {})
    for key in STYLE_RANGES:
        if key not in out:
            continue
        n = _number(out[key])
        if n is None:
            logger.warning("Dropping non-numeric value for %s: %r", key, out[key])
            del out[key]
            continue
        out[key] = _tidy(clamp(key, n))
    return out


def _px(n: int | float) -> str:
    return f"{_tidy(n)}px"


def _pct(n: int | float) -> str:
    return f"{_tidy(n)}%"


def is_gradient(value: object) -> bool:
    return isinstance(value, str) and "gradient(" in value


def resolve_css(kind: str, styles: Mapping[str, object] | None) -> dict[str, str]:
    """
    Turn a block's style map into concrete CSS properties (camelCase keys).

    Missing values fall back to the kind defaults.
    """
    s = {**default_styles(kind), **resolve_styles(styles)}
    css: dict[str, str] = {}

    bg = s.get("backgroundColor") or "transparent"
    if is_gradient(bg):
        css["background"] = str(bg)
    else:
        css["backgroundColor"] = str(bg)

    align = s.get("textAlign")
    if align in TEXT_ALIGNS:
        css["textAlign"] = str(align)

    if "borderRadius" in s:
        css["borderRadius"] = _px(s["borderRadius"])  # type: ignore[arg-type]

    if s.get("individualPadding") is True:
        for side in _PADDING_SIDES:
            css[side] = _px(s.get(side, 0))  # type: ignore[arg-type]
    elif "padding" in s:
        css["padding"] = _px(s["padding"])  # type: ignore[arg-type]

    if kind in ("heading", "paragraph", "input-field"):
        css["fontSize"] = _px(s.get("fontSize", 24 if kind == "heading" else 16))  # type: ignore[arg-type]
        css["color"] = str(s.get("color") or FOREGROUND)
    elif "color" in s:
        css["color"] = str(s["color"])

    if kind in ("image", "gif", "video", "embed"):
        css["width"] = _pct(s.get("width", 100))  # type: ignore[arg-type]
        css["height"] = _px(s.get("height", 300))  # type: ignore[arg-type]

    if kind == "two-column":
        gap = _number(s.get("columnGap"))
        left = _number(s.get("leftColumnWidth"))
        right = _number(s.get("rightColumnWidth"))
        css["columnGap"] = _px(16 if gap is None else max(0.0, gap))
        css["gridTemplateColumns"] = f"{_tidy(50 if left is None else left)}% {_tidy(50 if right is None else right)}%"
    return css


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def resize_media(
    styles: Mapping[str, object] | None,
    width: float | None = None,
    height: float | None = None,
    lock_aspect: bool = True,
) -> dict[str, StyleValue]:
    """
    Apply a width and/or height change to a media style map.

    With the aspect lock on, a width change rescales height by the current
    width/height ratio and a height change rescales width.
    """
    out = coerce_styles(styles or {})
    cur_w = _number(out.get("width"))
    cur_h = _number(out.get("height"))

    if width is not None:
        w = clamp("width", float(width))
        out["width"] = _tidy(w)
        if lock_aspect and cur_h is not None and cur_h > 0:
            ratio = (cur_w or 100) / cur_h
            out["height"] = int(clamp("height", _round_half_up(w / ratio)))
        return out

    if height is not None:
        h = clamp("height", float(height))
        out["height"] = _tidy(h)
        if lock_aspect and cur_w is not None and cur_w > 0:
            ratio = cur_w / (cur_h or 300)
            out["width"] = int(clamp("width", _round_half_up(h * ratio)))
    return out
