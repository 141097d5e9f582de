from __future__ import annotations

from blockguide.sanitizer import (
    has_block_html,
    markdown_to_html,
    plain_text,
    sanitize_content,
    to_embed_url,
)


def test_anchor_gets_target_and_rel() -> None:
    out = sanitize_content('<a href="https://x.com">go</a>')
    assert 'target="_blank"' in out
    assert 'rel="noopener noreferrer"' in out
    assert 'href="https://x.com"' in out


def test_existing_anchor_target_is_kept() -> None:
    out = sanitize_content('<a href="https://x.com" target="_self">go</a>')
    assert 'target="_self"' in out
    assert "_blank" not in out


def test_script_and_handlers_are_removed() -> None:
    out = sanitize_content('<p onclick="steal()">hi</p><script>alert(1)</script><style>p{}</style>')
    assert "<p>hi</p>" in out
    assert "alert" not in out
    assert "onclick" not in out
    assert "<style" not in out


def test_javascript_links_lose_their_href() -> None:
    out = sanitize_content('<a href="javascript:alert(1)">x</a>')
    assert "javascript" not in out
    assert "_blank" not in out


def test_empty_content_uses_placeholder() -> None:
    assert sanitize_content("", "heading") == "Heading"
    assert sanitize_content("   ", "paragraph") == "Paragraph"
    assert sanitize_content(None, "paragraph", "left") == "Left Column"
    assert sanitize_content(None, "paragraph", "right") == "Right Column"
    assert sanitize_content("", "input-field") == ""


def test_non_string_content_falls_back_to_placeholder() -> None:
    assert sanitize_content({"html": "<b>x</b>"}, "heading") == "Heading"


def test_checkbox_in_label_becomes_styled_widget() -> None:
    out = sanitize_content('<label><input type="checkbox" checked> Done</label>')
    assert "checkbox-wrapper-33" in out
    assert "checkbox__trigger" in out
    assert '<p class="checkbox__textwrapper">Done</p>' in out
    assert "checked" in out


def test_other_inputs_are_dropped() -> None:
    out = sanitize_content('<p>a<input type="text" value="x">b</p>')
    assert "<input" not in out
    assert "a" in out and "b" in out


def test_has_block_html() -> None:
    assert has_block_html("<ul><li>x</li></ul>")
    assert has_block_html("<H2>Title</H2>")
    assert not has_block_html("plain <b>bold</b>")
    assert not has_block_html(None)


def test_markdown_to_html() -> None:
    html = markdown_to_html("**bold** text\n\n- one\n- two")
    assert "<strong>bold</strong>" in html
    assert "<li>one</li>" in html
    assert markdown_to_html("") == ""


def test_plain_text() -> None:
    assert plain_text("<p>Hi <b>there</b></p>") == "Hi there"
    assert plain_text(None) == ""


def test_to_embed_url() -> None:
    assert to_embed_url("https://www.youtube.com/watch?v=abc123&t=10") == "https://www.youtube.com/embed/abc123"
    assert to_embed_url("https://youtu.be/xyz") == "https://www.youtube.com/embed/xyz"
    assert to_embed_url("https://vimeo.com/12345") == "https://player.vimeo.com/video/12345"
    assert (
        to_embed_url("https://open.spotify.com/track/42")
        == "https://open.spotify.com/embed/track/42"
    )
    assert to_embed_url("https://www.google.com/maps/place/x") == "https://www.google.com/maps/embed/place/x"
    assert to_embed_url("https://example.com/page") == "https://example.com/page"
    assert to_embed_url("  ") == ""
