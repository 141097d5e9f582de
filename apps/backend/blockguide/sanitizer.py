from __future__ import annotations

import logging
import re

import bleach
import markdown
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger("blockguide.sanitizer")

ALLOWED_TAGS = frozenset(
    {
        "a", "abbr", "b", "blockquote", "br", "code", "del", "div", "em",
        "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "input", "ins",
        "label", "li", "mark", "ol", "p", "pre", "s", "small", "span", "strong",
        "sub", "sup", "table", "tbody", "td", "th", "thead", "tr", "u", "ul",
    }
)
ALLOWED_ATTRIBUTES = {
    "*": ["class", "dir", "title"],
    "a": ["href", "target", "rel", "name"],
    "img": ["src", "alt", "width", "height"],
    "input": ["type", "checked", "disabled"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan"],
}
ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel"})

# Elements removed together with their text, before the allow-list pass.
_DROP_WITH_CONTENT = ("script", "style", "template", "noscript", "iframe", "object", "embed", "textarea", "select")

_BLOCK_HTML_RE = re.compile(r"<(ul|ol|li|p|div|h[1-6])\b", re.IGNORECASE)

_YOUTUBE_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&\n?#]+)")
_VIMEO_RE = re.compile(r"vimeo\.com/(\d+)")
_SPOTIFY_RE = re.compile(r"open\.spotify\.com/(track|album|playlist)/")

_MARKDOWN_EXTENSIONS = ["extra", "sane_lists", "nl2br"]


def placeholder_for(kind: str, column: str | None = None) -> str:
    if kind == "heading":
        return "Heading"
    if kind == "paragraph":
        if column == "left":
            return "Left Column"
        if column == "right":
            return "Right Column"
        return "Paragraph"
    return ""


def has_block_html(content: str | None) -> bool:
    """True when content carries block-level tags (lists, paragraphs, divs, headings)."""
    return bool(content) and bool(_BLOCK_HTML_RE.search(content))


def _drop_dangerous(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    found = False
    for el in soup.find_all(_DROP_WITH_CONTENT):
        el.decompose()
        found = True
    return str(soup) if found else html


def _enhance_anchors(soup: BeautifulSoup) -> None:
    for a in soup.find_all("a"):
        if not a.get("href"):
            continue
        if not a.has_attr("target"):
            a["target"] = "_blank"
        if not a.has_attr("rel"):
            a["rel"] = "noopener noreferrer"


def _checkbox_widget(soup: BeautifulSoup, *, checked: bool, disabled: bool, label: str | None) -> Tag:
    wrapper = soup.new_tag("div", attrs={"class": "checkbox-wrapper-33"})
    lbl = soup.new_tag("label", attrs={"class": "checkbox"})
    trigger = soup.new_tag("input", attrs={"class": "checkbox__trigger visuallyhidden", "type": "checkbox"})
    if checked:
        trigger["checked"] = ""
    if disabled:
        trigger["disabled"] = ""
    symbol = soup.new_tag("span", attrs={"class": "checkbox__symbol"})
    svg = soup.new_tag(
        "svg",
        attrs={
            "aria-hidden": "true",
            "class": "icon-checkbox",
            "width": "28px",
            "height": "28px",
            "viewBox": "0 0 28 28",
            "version": "1",
            "xmlns": "http://www.w3.org/2000/svg",
        },
    )
    svg.append(
        soup.new_tag(
            "path",
            attrs={"d": "M4 14l8 7L24 7", "fill": "none", "stroke": "currentColor", "stroke-width": "3"},
        )
    )
    symbol.append(svg)
    lbl.append(trigger)
    lbl.append(symbol)
    if label:
        text = soup.new_tag("p", attrs={"class": "checkbox__textwrapper"})
        text.string = label
        lbl.append(text)
    wrapper.append(lbl)
    return wrapper


def _fancy_checkboxes(soup: BeautifulSoup) -> None:
    for inp in soup.find_all("input"):
        if (inp.get("type") or "").lower() != "checkbox":
            inp.decompose()
            continue
        checked = inp.has_attr("checked")
        disabled = inp.has_attr("disabled")
        parent = inp.parent
        if isinstance(parent, Tag) and parent.name == "label":
            inp.extract()
            label = parent.get_text(" ", strip=True) or None
            parent.replace_with(_checkbox_widget(soup, checked=checked, disabled=disabled, label=label))
        else:
            inp.replace_with(_checkbox_widget(soup, checked=checked, disabled=disabled, label=None))


def sanitize_content(content: object, kind: str = "paragraph", column: str | None = None) -> str:
    """
    Turn authored rich content into markup that is safe to render.

    Empty content is replaced by the kind placeholder first. Never raises:
    on failure the escaped placeholder is returned and the anomaly logged.
    """
    placeholder = placeholder_for(kind, column)
    if content is not None and not isinstance(content, str):
        logger.warning("Non-string %s content (%s), using placeholder", kind, type(content).__name__)
        content = None
    html = content if content and content.strip() else placeholder
    if not html:
        return ""
    try:
        clean = bleach.clean(
            _drop_dangerous(html),
            tags=ALLOWED_TAGS,
            attributes=ALLOWED_ATTRIBUTES,
            protocols=ALLOWED_PROTOCOLS,
            strip=True,
            strip_comments=True,
        )
        soup = BeautifulSoup(clean, "html.parser")
        _enhance_anchors(soup)
        _fancy_checkboxes(soup)
        return str(soup)
    except Exception:
        logger.exception("Failed to sanitize %s content, using placeholder", kind)
        return bleach.clean(placeholder, tags=set(), strip=True)


def markdown_to_html(text: str | None) -> str:
    """Markdown to HTML; the result still has to go through sanitize_content."""
    if not text:
        return ""
    return markdown.markdown(text, extensions=_MARKDOWN_EXTENSIONS)


def plain_text(content: str | None) -> str:
    if not content:
        return ""
    return BeautifulSoup(content, "html.parser").get_text(" ", strip=True)


def to_embed_url(url: str | None) -> str:
    """Normalize share links (YouTube, Vimeo, Google Maps, Spotify) to their embeddable form."""
    url = (url or "").strip()
    if not url:
        return ""
    if "youtube.com" in url or "youtu.be" in url:
        m = _YOUTUBE_RE.search(url)
        if m:
            return f"https://www.youtube.com/embed/{m.group(1)}"
    if "vimeo.com" in url and "player.vimeo.com" not in url:
        m = _VIMEO_RE.search(url)
        if m:
            return f"https://player.vimeo.com/video/{m.group(1)}"
    if "google.com/maps" in url and "/maps/embed" not in url:
        return url.replace("/maps/", "/maps/embed/", 1)
    if _SPOTIFY_RE.search(url):
        return url.replace("open.spotify.com/", "open.spotify.com/embed/", 1)
    return url
