"""Document model: guides, slides and content blocks."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from .errors import InvariantViolation, ValidationError
from .styles import StyleValue, default_styles

BLOCK_KINDS: tuple[str, ...] = (
    "heading",
    "paragraph",
    "image",
    "video",
    "gif",
    "embed",
    "two-column",
    "input-field",
    "file-upload",
)
# Kinds allowed inside a two-column block (no nesting).
SUB_BLOCK_KINDS: tuple[str, ...] = tuple(k for k in BLOCK_KINDS if k != "two-column")
INTERACTIVE_KINDS = frozenset({"input-field", "file-upload"})
MEDIA_KINDS = frozenset({"image", "video", "gif", "embed"})
GUIDE_STATUSES = ("draft", "published")

MAX_TAGS = 10
DEFAULT_USER_ID = "00000000-0000-0000-0000-000000000000"
DEFAULT_GUIDE_TITLE = "My New Guide"

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

DEFAULT_CONTENT: dict[str, str] = {
    "heading": "",
    "paragraph": "",
    "image": "/placeholder.png",
    "video": "https://example.com/video.mp4",
    "gif": "/placeholder.png",
    "embed": "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "two-column": "",
    "input-field": "",
    "file-upload": "",
}


def new_id() -> str:
    return str(uuid4())


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class ContentBlock:
    """One typed content unit within a slide."""

    id: str
    slide_id: str
    type: str
    content: str | None = None
    styles: dict[str, StyleValue] = field(default_factory=dict)
    position: int = 1
    left_type: str | None = None
    left_content: str | None = None
    right_type: str | None = None
    right_content: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_interactive(self) -> bool:
        return self.type in INTERACTIVE_KINDS


@dataclass(frozen=True)
class Slide:
    """Ordered block container; position is 1-based within its guide."""

    id: str
    guide_id: str
    title: str
    position: int = 1
    blocks: tuple[ContentBlock, ...] = ()
    created_at: str = ""
    updated_at: str = ""

    def block_index(self, block_id: str) -> int:
        for i, block in enumerate(self.blocks):
            if block.id == block_id:
                return i
        return -1

    @property
    def interactive_blocks(self) -> tuple[ContentBlock, ...]:
        return tuple(b for b in self.blocks if b.is_interactive)


@dataclass(frozen=True)
class Guide:
    """A multi-slide guide owned by one author."""

    id: str
    user_id: str
    title: str
    description: str = ""
    type: str = ""
    tags: tuple[str, ...] = ()
    status: str = "draft"
    custom_url: str | None = None
    views: int = 0
    slides: tuple[Slide, ...] = ()
    created_at: str = ""
    updated_at: str = ""

    def slide_at(self, index: int) -> Slide | None:
        if 0 <= index < len(self.slides):
            return self.slides[index]
        return None

    def slide_index(self, slide_id: str) -> int:
        for i, slide in enumerate(self.slides):
            if slide.id == slide_id:
                return i
        return -1

    def locate_block(self, block_id: str) -> tuple[int, int] | None:
        """Return (slide index, block index) for a block id, or None."""
        for si, slide in enumerate(self.slides):
            bi = slide.block_index(block_id)
            if bi != -1:
                return si, bi
        return None

    def block_at(self, block_id: str) -> ContentBlock | None:
        loc = self.locate_block(block_id)
        if loc is None:
            return None
        return self.slides[loc[0]].blocks[loc[1]]


def new_block(
    kind: str,
    slide_id: str,
    *,
    content: str | None = None,
    styles: dict[str, StyleValue] | None = None,
    position: int = 1,
) -> ContentBlock:
    """Create a block with a fresh id and kind defaults."""
    if kind not in BLOCK_KINDS:
        raise ValidationError(f"Unknown block type: {kind!r}")
    ts = now_iso()
    block = ContentBlock(
        id=new_id(),
        slide_id=slide_id,
        type=kind,
        content=DEFAULT_CONTENT.get(kind, "") if content is None else content,
        styles=default_styles(kind) if styles is None else dict(styles),
        position=position,
        created_at=ts,
        updated_at=ts,
    )
    if kind == "two-column":
        block = replace(block, left_type="paragraph", right_type="paragraph", left_content="", right_content="")
    return block


def new_slide(guide_id: str, title: str, *, position: int = 1, blocks: Iterable[ContentBlock] = ()) -> Slide:
    ts = now_iso()
    slide_id = new_id()
    owned = tuple(replace(b, slide_id=slide_id) for b in blocks)
    return Slide(id=slide_id, guide_id=guide_id, title=title, position=position, blocks=owned, created_at=ts, updated_at=ts)


def starter_slide(guide_id: str) -> Slide:
    """The "Introduction" slide every new document starts from."""
    slide = new_slide(guide_id, "Introduction")
    heading = new_block(
        "heading",
        slide.id,
        content="Welcome to Your Guide",
        styles={"fontSize": 32, "color": "#1f2937", "textAlign": "center"},
        position=1,
    )
    paragraph = new_block(
        "paragraph",
        slide.id,
        content="This is your first slide. Start editing to create amazing content!",
        styles={"fontSize": 16, "color": "#6b7280", "textAlign": "center"},
        position=2,
    )
    return replace(slide, blocks=(heading, paragraph))


def default_guide(
    guide_id: str | None = None,
    *,
    user_id: str = DEFAULT_USER_ID,
    title: str = DEFAULT_GUIDE_TITLE,
    description: str = "",
    type: str = "",
    tags: Iterable[str] = (),
) -> Guide:
    gid = guide_id or new_id()
    ts = now_iso()
    return Guide(
        id=gid,
        user_id=user_id,
        title=title,
        description=description,
        type=type,
        tags=normalize_tags(tags),
        slides=(starter_slide(gid),),
        created_at=ts,
        updated_at=ts,
    )


def renumber_blocks(slide: Slide) -> Slide:
    """Positions 1..n in list order; also re-asserts slide ownership."""
    changed = False
    blocks: list[ContentBlock] = []
    for i, block in enumerate(slide.blocks, start=1):
        if block.position != i or block.slide_id != slide.id:
            block = replace(block, position=i, slide_id=slide.id)
            changed = True
        blocks.append(block)
    if not changed:
        return slide
    return replace(slide, blocks=tuple(blocks))


def renumber(guide: Guide) -> Guide:
    """Dense 1-based positions for every slide and every block."""
    slides: list[Slide] = []
    for i, slide in enumerate(guide.slides, start=1):
        if slide.position != i or slide.guide_id != guide.id:
            slide = replace(slide, position=i, guide_id=guide.id)
        slides.append(renumber_blocks(slide))
    return replace(guide, slides=tuple(slides))


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Trimmed, non-empty, unique (case-sensitive), first MAX_TAGS in order."""
    out: list[str] = []
    for raw in tags or ():
        tag = str(raw).strip()
        if not tag or tag in out:
            continue
        if len(out) >= MAX_TAGS:
            break
        out.append(tag)
    return tuple(out)


def is_sub_block_kind(kind: str | None) -> bool:
    return kind in SUB_BLOCK_KINDS


def check_sub_block_kind(kind: str | None) -> None:
    if kind == "two-column":
        raise InvariantViolation("Two-column blocks cannot be nested inside a two-column block.")
    if not is_sub_block_kind(kind):
        raise ValidationError(f"Unknown column type: {kind!r}")


def validate_slug(slug: str | None) -> str | None:
    """Normalize an optional custom URL slug; empty means none."""
    value = (slug or "").strip()
    if not value:
        return None
    if not _SLUG_RE.match(value):
        raise ValidationError("Custom URL may only contain lowercase letters, numbers and hyphens.")
    return value
