from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from .errors import GuideError
from .models import (
    BLOCK_KINDS,
    MAX_TAGS,
    ContentBlock,
    Guide,
    Slide,
    check_sub_block_kind,
    new_block,
    new_slide,
    now_iso,
    renumber_blocks,
)
from .sanitizer import markdown_to_html, to_embed_url
from .styles import coerce_style_value, default_styles, resize_media

logger = logging.getLogger("blockguide.editor")

BLOCK_FIELDS = ("content", "type", "left_type", "left_content", "right_type", "right_content")


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: str = "default"


@dataclass(frozen=True)
class Box:
    """Bounding box of a rendered block, in client coordinates."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def mid_y(self) -> float:
        return self.top + (self.bottom - self.top) / 2

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass
class DragState:
    dragged_id: str | None = None
    over_id: str | None = None
    position: str | None = None

    def reset(self) -> None:
        self.dragged_id = None
        self.over_id = None
        self.position = None


def insertion_index(dragged_index: int, target_index: int, position: str | None) -> int:
    """
    Index at which the dragged block is re-inserted, once it has been removed.

    Indices are taken before removal. Only a "below" drop onto an earlier
    block shifts past the target.
    """
    if position == "below" and dragged_index > target_index:
        return target_index + 1
    return target_index


def reorder_blocks(
    blocks: tuple[ContentBlock, ...], dragged_id: str, target_id: str, position: str | None
) -> tuple[ContentBlock, ...] | None:
    """New block order for a drop, or None when the drop is not applicable."""
    if dragged_id == target_id:
        return None
    ids = [b.id for b in blocks]
    if dragged_id not in ids or target_id not in ids:
        return None
    dragged_index = ids.index(dragged_id)
    target_index = ids.index(target_id)
    out = list(blocks)
    item = out.pop(dragged_index)
    out.insert(insertion_index(dragged_index, target_index, position), item)
    return tuple(out)


@dataclass
class EditorSession:
    """
    In-memory editing state for one guide.

    Every operation is total: a refused operation sets `notice` and returns
    False, an applied one replaces `guide` with a new object and returns True.
    """

    guide: Guide
    current_slide: int = 0
    selected_block_id: str | None = None
    preview: bool = False
    aspect_lock: bool = True
    drag: DragState = field(default_factory=DragState)
    notice: Notice | None = None

    # ---- helpers ----

    @property
    def active_slide(self) -> Slide | None:
        return self.guide.slide_at(self.current_slide)

    def _refuse(self, title: str, description: str, variant: str = "destructive") -> bool:
        self.notice = Notice(title=title, description=description, variant=variant)
        logger.info("Editor refused operation on %s: %s", self.guide.id, description)
        return False

    def _set_slides(self, slides: list[Slide] | tuple[Slide, ...]) -> None:
        self.guide = replace(self.guide, slides=tuple(slides), updated_at=now_iso())

    def _put_slide(self, index: int, slide: Slide) -> None:
        slides = list(self.guide.slides)
        slides[index] = renumber_blocks(slide)
        self._set_slides(slides)

    def _map_block(self, block_id: str, fn) -> bool:
        """Replace one block (found in any slide) with fn(block)."""
        loc = self.guide.locate_block(block_id)
        if loc is None:
            return False
        si, bi = loc
        slide = self.guide.slides[si]
        blocks = list(slide.blocks)
        blocks[bi] = replace(fn(blocks[bi]), updated_at=now_iso())
        self._put_slide(si, replace(slide, blocks=tuple(blocks)))
        return True

    def _set_current(self, index: int) -> None:
        if index != self.current_slide:
            self.selected_block_id = None
        self.current_slide = index

    def dismiss_notice(self) -> None:
        self.notice = None

    # ---- blocks ----

    def add_block(self, kind: str) -> bool:
        """Insert a new block after the selected one (or at the end) of the active slide."""
        slide = self.active_slide
        if slide is None:
            return self._refuse("Cannot Add Block", "There is no active slide.")
        try:
            block = new_block(kind, slide.id, position=len(slide.blocks) + 1)
        except GuideError as e:
            return self._refuse("Cannot Add Block", str(e))
        blocks = list(slide.blocks)
        index = slide.block_index(self.selected_block_id) if self.selected_block_id else -1
        if index == -1:
            blocks.append(block)
        else:
            blocks.insert(index + 1, block)
        self._put_slide(self.current_slide, replace(slide, blocks=tuple(blocks)))
        self.selected_block_id = block.id
        return True

    def delete_block(self, block_id: str) -> bool:
        loc = self.guide.locate_block(block_id)
        if loc is None:
            return False
        si, bi = loc
        slide = self.guide.slides[si]
        blocks = slide.blocks[:bi] + slide.blocks[bi + 1:]
        self._put_slide(si, replace(slide, blocks=blocks))
        if self.selected_block_id == block_id:
            self.selected_block_id = None
        return True

    def update_block(self, block_id: str, updates: dict, *, markdown: bool = False) -> bool:
        """
        Apply field updates to a block wherever it lives.

        Only content/type and the two-column sub-block fields may change.
        With markdown=True, text content is converted to HTML first.
        """
        block = self.guide.block_at(block_id)
        if block is None:
            return self._refuse("Block Not Found", f"No block with id {block_id}.")
        changes = {k: v for k, v in (updates or {}).items() if k in BLOCK_FIELDS}
        unknown = set(updates or {}) - set(BLOCK_FIELDS)
        if unknown:
            logger.warning("Ignoring unsupported block fields: %s", ", ".join(sorted(unknown)))
        if not changes:
            return False

        kind = changes.get("type", block.type)
        if kind not in BLOCK_KINDS:
            return self._refuse("Invalid Block Type", f"Unknown block type: {kind!r}")
        try:
            for side in ("left_type", "right_type"):
                if changes.get(side) is not None:
                    check_sub_block_kind(changes[side])
        except GuideError as e:
            return self._refuse("Invalid Column Type", str(e))

        for key in ("content", "left_content", "right_content"):
            if key in changes and changes[key] is not None:
                changes[key] = str(changes[key])
                if markdown:
                    changes[key] = markdown_to_html(changes[key])
        if kind == "embed" and changes.get("content"):
            changes["content"] = to_embed_url(changes["content"])
        if kind == "two-column":
            changes.setdefault("left_type", block.left_type or "paragraph")
            changes.setdefault("right_type", block.right_type or "paragraph")

        return self._map_block(block_id, lambda b: replace(b, **changes))

    def update_block_style(self, block_id: str, key: str, value: object) -> bool:
        keep, scalar = coerce_style_value(key, value)
        if not keep:
            return False
        if self.guide.block_at(block_id) is None:
            return False
        return self._map_block(block_id, lambda b: replace(b, styles={**b.styles, key: scalar}))

    def reset_block_styles(self, block_id: str) -> bool:
        return self._map_block(block_id, lambda b: replace(b, styles=default_styles(b.type)))

    def resize_media(self, block_id: str, *, width: float | None = None, height: float | None = None) -> bool:
        block = self.guide.block_at(block_id)
        if block is None or (width is None and height is None):
            return False
        styles = resize_media(block.styles, width=width, height=height, lock_aspect=self.aspect_lock)
        return self._map_block(block_id, lambda b: replace(b, styles=styles))

    def select_block(self, block_id: str | None) -> bool:
        if block_id is not None and self.guide.block_at(block_id) is None:
            return False
        self.selected_block_id = block_id
        return True

    def set_preview(self, on: bool) -> None:
        self.preview = bool(on)

    def toggle_preview(self) -> None:
        self.preview = not self.preview

    def set_aspect_lock(self, on: bool) -> None:
        self.aspect_lock = bool(on)

    def key_down(self, key: str, *, in_text_control: bool = False) -> bool:
        if key != "Delete" or self.selected_block_id is None or self.preview or in_text_control:
            return False
        return self.delete_block(self.selected_block_id)

    # ---- slides ----

    def add_slide(self) -> bool:
        n = len(self.guide.slides)
        slide = new_slide(self.guide.id, f"Slide {n + 1}", position=n + 1)
        self._set_slides(self.guide.slides + (slide,))
        self._set_current(n)
        return True

    def delete_slide(self, index: int) -> bool:
        slides = self.guide.slides
        if len(slides) <= 1:
            return self._refuse("Cannot Delete", "You must have at least one slide in your guide.")
        if not 0 <= index < len(slides):
            return self._refuse("Cannot Delete", f"There is no slide {index + 1}.")
        remaining = [
            replace(s, position=i) for i, s in enumerate(slides[:index] + slides[index + 1:], start=1)
        ]
        self._set_slides(remaining)
        if self.current_slide >= index:
            self._set_current(max(0, self.current_slide - 1))
        self.notice = Notice(title="Slide Deleted", description="The slide has been removed from your guide.")
        return True

    def set_active_slide(self, index: int) -> bool:
        if not self.guide.slides:
            return False
        self._set_current(max(0, min(int(index), len(self.guide.slides) - 1)))
        return True

    def rename_slide(self, index: int, title: str) -> bool:
        slide = self.guide.slide_at(index)
        if slide is None:
            return False
        self._put_slide(index, replace(slide, title=str(title), updated_at=now_iso()))
        return True

    # ---- guide metadata ----

    def set_title(self, title: str) -> bool:
        title = "" if title is None else str(title)
        if title == self.guide.title:
            return False
        self.guide = replace(self.guide, title=title, updated_at=now_iso())
        return True

    def add_tag(self, tag: str) -> bool:
        text = str(tag or "").strip()
        if not text or text in self.guide.tags:
            return False
        if len(self.guide.tags) >= MAX_TAGS:
            return self._refuse("Too Many Tags", f"A guide can have at most {MAX_TAGS} tags.", variant="default")
        self.guide = replace(self.guide, tags=self.guide.tags + (text,), updated_at=now_iso())
        return True

    def remove_tag(self, tag: str) -> bool:
        if tag not in self.guide.tags:
            return False
        self.guide = replace(self.guide, tags=tuple(t for t in self.guide.tags if t != tag), updated_at=now_iso())
        return True

    # ---- drag and drop ----

    def drag_start(self, block_id: str) -> bool:
        if self.guide.block_at(block_id) is None:
            return False
        self.drag.reset()
        self.drag.dragged_id = block_id
        return True

    def drag_over(self, block_id: str, client_y: float, box: Box) -> str | None:
        """Update the insertion indicator; returns "above", "below" or None."""
        if self.drag.dragged_id is None or self.drag.dragged_id == block_id:
            self.drag.over_id = None
            self.drag.position = None
            return None
        self.drag.over_id = block_id
        self.drag.position = "above" if client_y < box.mid_y else "below"
        return self.drag.position

    def drag_leave(self, client_x: float, client_y: float, box: Box) -> None:
        if not box.contains(client_x, client_y):
            self.drag.over_id = None
            self.drag.position = None

    def drop(self, target_id: str) -> bool:
        """Move the dragged block next to target_id within the active slide."""
        dragged = self.drag.dragged_id
        position = self.drag.position
        self.drag.reset()
        slide = self.active_slide
        if dragged is None or slide is None:
            return False
        blocks = reorder_blocks(slide.blocks, dragged, target_id, position)
        if blocks is None:
            return False
        self._put_slide(self.current_slide, replace(slide, blocks=blocks))
        self.selected_block_id = dragged
        return True

    def drag_end(self) -> None:
        self.drag.reset()
