from __future__ import annotations

from dataclasses import replace

from blockguide.models import new_block, new_slide
from blockguide.render import render_block, render_slide, safe_src


def test_safe_src() -> None:
    assert safe_src("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
    assert safe_src("/media/a.png") == "/media/a.png"
    assert safe_src("javascript:alert(1)", "/fallback.png") == "/fallback.png"
    assert safe_src("data:image/png;base64,xx") == ""
    assert safe_src("", "/x.png") == "/x.png"


def test_heading_tag_depends_on_block_html() -> None:
    plain = render_block(new_block("heading", "s1", content="Welcome"))
    assert plain["tag"] == "h2"
    assert plain["html"] == "Welcome"

    rich = render_block(new_block("heading", "s1", content="<ul><li>a</li></ul>"))
    assert rich["tag"] == "div"
    assert "<li>a</li>" in rich["html"]


def test_image_with_unsafe_source_uses_placeholder() -> None:
    out = render_block(new_block("image", "s1", content="javascript:alert(1)"))
    assert 'src="/placeholder.png"' in out["html"]
    assert out["css"]["height"] == "300px"


def test_embed_renders_iframe() -> None:
    out = render_block(new_block("embed", "s1", content="https://www.youtube.com/embed/abc"))
    assert "<iframe" in out["html"]
    assert 'src="https://www.youtube.com/embed/abc"' in out["html"]
    assert "allowfullscreen" in out["html"]


def test_two_column_renders_both_sides() -> None:
    block = replace(new_block("two-column", "s1"), right_type="image", right_content="/media/r.png")
    out = render_block(block)
    assert out["type"] == "two-column"
    left, right = out["columns"]
    assert left["side"] == "left"
    assert left["html"] == "Left Column"
    assert right["side"] == "right"
    assert 'src="/media/r.png"' in right["html"]
    assert out["css"]["gridTemplateColumns"] == "50% 50%"


def test_interactive_block_carries_placeholder() -> None:
    out = render_block(new_block("input-field", "s1", content="What did you learn?"))
    assert out["interactive"] is True
    assert out["html"] == "What did you learn?"
    assert out["placeholder"] == "Type your answer here..."


def test_render_slide_keeps_block_order() -> None:
    slide = new_slide("g1", "Intro")
    blocks = (
        new_block("heading", slide.id, content="A", position=1),
        new_block("paragraph", slide.id, content="B", position=2),
    )
    out = render_slide(replace(slide, blocks=blocks))
    assert out["title"] == "Intro"
    assert [b["html"] for b in out["blocks"]] == ["A", "B"]
    assert [b["position"] for b in out["blocks"]] == [1, 2]
