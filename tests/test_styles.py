from __future__ import annotations

import math

from blockguide.styles import (
    FOREGROUND,
    coerce_style_value,
    coerce_styles,
    default_styles,
    resize_media,
    resolve_css,
    resolve_styles,
)


def test_array_value_collapses_to_first_element() -> None:
    assert coerce_style_value("fontSize", [42]) == (True, 42)
    assert coerce_style_value("fontSize", ["18", 20]) == (True, "18")


def test_object_and_empty_values_are_omitted() -> None:
    assert coerce_style_value("color", {}) == (False, None)
    assert coerce_style_value("color", []) == (False, None)
    assert coerce_style_value("width", math.nan) == (False, None)
    assert coerce_styles({"fontSize": [42], "color": {}, "bold": True}) == {"fontSize": 42, "bold": True}


def test_coerce_styles_non_mapping_is_empty() -> None:
    assert coerce_styles(None) == {}
    assert coerce_styles(["fontSize"]) == {}


def test_default_styles_are_fresh_copies() -> None:
    a = default_styles("heading")
    a["fontSize"] = 99
    assert default_styles("heading")["fontSize"] == 24
    assert default_styles("mystery") == {"backgroundColor": "transparent"}


def test_resolve_styles_clamps_and_parses_numbers() -> None:
    out = resolve_styles({"fontSize": 100, "padding": "20px", "width": "wide", "height": 10})
    assert out["fontSize"] == 72
    assert out["padding"] == 20
    assert out["height"] == 50
    assert "width" not in out


def test_resolve_css_heading_defaults() -> None:
    assert resolve_css("heading", {}) == {
        "backgroundColor": "transparent",
        "textAlign": "left",
        "fontSize": "24px",
        "color": FOREGROUND,
    }


def test_resolve_css_gradient_background() -> None:
    css = resolve_css("paragraph", {"backgroundColor": "linear-gradient(90deg, #fff, #000)"})
    assert css["background"] == "linear-gradient(90deg, #fff, #000)"
    assert "backgroundColor" not in css


def test_resolve_css_individual_padding() -> None:
    css = resolve_css("paragraph", {"individualPadding": True, "paddingTop": 4, "paddingLeft": 12, "padding": 30})
    assert css["paddingTop"] == "4px"
    assert css["paddingRight"] == "0px"
    assert css["paddingBottom"] == "0px"
    assert css["paddingLeft"] == "12px"
    assert "padding" not in css


def test_resolve_css_media_and_columns() -> None:
    css = resolve_css("image", {"width": 60})
    assert css["width"] == "60%"
    assert css["height"] == "300px"
    assert css["borderRadius"] == "8px"
    assert css["padding"] == "0px"

    cols = resolve_css("two-column", {"columnGap": 24, "leftColumnWidth": 30, "rightColumnWidth": 70})
    assert cols["columnGap"] == "24px"
    assert cols["gridTemplateColumns"] == "30% 70%"


def test_resize_media_keeps_aspect_ratio_when_locked() -> None:
    styles = {"width": 100, "height": 300}
    assert resize_media(styles, width=50) == {"width": 50, "height": 150}
    assert resize_media(styles, height=150) == {"width": 50, "height": 150}


def test_resize_media_unlocked_changes_one_dimension() -> None:
    styles = {"width": 100, "height": 300}
    assert resize_media(styles, height=600, lock_aspect=False) == {"width": 100, "height": 600}


def test_resize_media_clamps() -> None:
    out = resize_media({"width": 100, "height": 300}, width=500)
    assert out["width"] == 100
    assert out["height"] == 300
