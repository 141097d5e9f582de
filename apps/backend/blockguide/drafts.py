from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from .content_loader import read_json, slide_from_dict
from .content_writer import slide_to_dict, write_json
from .editor import EditorSession, Notice
from .errors import GuideError, TransientIOError, ValidationError
from .interfaces import Draft, DraftStore, GuidePersistence
from .models import GUIDE_STATUSES, Guide, default_guide, normalize_tags, now_iso, renumber, starter_slide, validate_slug

logger = logging.getLogger("blockguide.drafts")

LEAVE_MESSAGE = "You have unsaved changes. Are you sure you want to leave?"

_GUIDE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def draft_key(guide_id: str) -> str:
    return f"guide-editor-{guide_id}"


def draft_from_guide(guide: Guide) -> Draft:
    return Draft(
        guide_id=guide.id,
        title=guide.title,
        tags=guide.tags,
        slides=[slide_to_dict(s) for s in guide.slides],
        last_modified=now_iso(),
    )


def apply_draft(guide: Guide, draft: Draft) -> Guide:
    """Working document built from a draft on top of the persisted metadata."""
    slides = tuple(slide_from_dict(s, guide.id, position=i) for i, s in enumerate(draft.slides, start=1))
    return renumber(replace(guide, title=draft.title or guide.title, tags=normalize_tags(draft.tags), slides=slides))


class MemoryDraftStore:
    def __init__(self) -> None:
        self._drafts: dict[str, Draft] = {}

    def load(self, guide_id: str) -> Draft | None:
        return self._drafts.get(guide_id)

    def write(self, draft: Draft) -> None:
        self._drafts[draft.guide_id] = draft

    def delete(self, guide_id: str) -> None:
        self._drafts.pop(guide_id, None)

    def __contains__(self, guide_id: str) -> bool:
        return guide_id in self._drafts


class FileDraftStore:
    """One JSON file per guide under `root`, replaced whole on every write."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, guide_id: str) -> Path:
        if not _GUIDE_ID_RE.match(guide_id or ""):
            raise ValidationError(f"Invalid guide id: {guide_id!r}")
        return self.root / f"{draft_key(guide_id)}.json"

    def load(self, guide_id: str) -> Draft | None:
        obj = read_json(self._path(guide_id))
        if obj is None:
            return None
        slides = obj.get("slides")
        if not isinstance(slides, list):
            logger.warning("Ignoring draft for %s without a slide list", guide_id)
            return None
        tags = obj.get("tags")
        return Draft(
            guide_id=guide_id,
            title=str(obj.get("title") or ""),
            tags=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
            slides=slides,
            last_modified=str(obj.get("lastModified") or ""),
        )

    def write(self, draft: Draft) -> None:
        write_json(
            self._path(draft.guide_id),
            {
                "title": draft.title,
                "tags": list(draft.tags),
                "slides": draft.slides,
                "lastModified": draft.last_modified,
            },
        )

    def delete(self, guide_id: str) -> None:
        self._path(guide_id).unlink(missing_ok=True)

    def __contains__(self, guide_id: str) -> bool:
        return self._path(guide_id).exists()


class Debouncer:
    """Quiet-window timer driven by an explicit clock value."""

    def __init__(self, window_s: float) -> None:
        self.window_s = window_s
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def touch(self, now: float) -> None:
        self._deadline = now + self.window_s

    def due(self, now: float) -> bool:
        return self._deadline is not None and now >= self._deadline

    def cancel(self) -> None:
        self._deadline = None


class DraftSession:
    """
    Shadows an EditorSession into the draft store and hands the working
    document to persistence on save.
    """

    def __init__(
        self,
        guide_id: str,
        persistence: GuidePersistence,
        drafts: DraftStore,
        *,
        debounce_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.guide_id = guide_id
        self.persistence = persistence
        self.drafts = drafts
        self.clock = clock
        self.debouncer = Debouncer(debounce_s)
        self.editor: EditorSession | None = None
        self.unsaved = False
        self.notice: Notice | None = None
        self._last_seen: Guide | None = None

    def mount(self) -> EditorSession:
        """Load the working document: a local draft wins over the persisted guide."""
        try:
            persisted = self.persistence.load_guide(self.guide_id)
        except GuideError:
            raise
        except Exception as e:
            logger.exception("Failed to load guide %s", self.guide_id)
            raise TransientIOError("Failed to load guide data.") from e

        base = persisted or default_guide(self.guide_id)
        if not base.slides:
            base = replace(base, slides=(starter_slide(base.id),))

        guide = base
        self.unsaved = False
        draft = self.drafts.load(self.guide_id)
        if draft is not None:
            try:
                guide = apply_draft(base, draft)
                self.unsaved = True
            except GuideError:
                logger.warning("Discarding unreadable draft for %s", self.guide_id, exc_info=True)
        if not guide.slides:
            guide = replace(guide, slides=(starter_slide(guide.id),))

        self.editor = EditorSession(guide=guide)
        self._last_seen = guide
        self.debouncer.cancel()
        return self.editor

    def _now(self, now: float | None) -> float:
        return self.clock() if now is None else now

    def note_change(self, now: float | None = None) -> bool:
        """Restart the quiet window if the working document changed since last seen."""
        if self.editor is None or self.editor.guide is self._last_seen:
            return False
        self._last_seen = self.editor.guide
        self.debouncer.touch(self._now(now))
        return True

    def poll(self, now: float | None = None) -> bool:
        """Write the draft once the quiet window has elapsed; True when written."""
        now = self._now(now)
        self.note_change(now)
        if not self.debouncer.due(now):
            return False
        self.flush()
        return True

    def flush(self) -> None:
        self.debouncer.cancel()
        if self.editor is None:
            return
        try:
            self.drafts.write(draft_from_guide(self.editor.guide))
        except OSError:
            logger.warning("Could not write draft for %s", self.guide_id, exc_info=True)
            return
        self.unsaved = True

    def save(self, status: str = "draft", custom_url: str | None = None) -> bool:
        if self.editor is None:
            return False
        if status not in GUIDE_STATUSES:
            self.notice = Notice("Error", f"Unknown status: {status!r}", "destructive")
            return False
        guide = self.editor.guide
        if status == "published":
            try:
                slug = validate_slug(custom_url)
            except ValidationError as e:
                self.notice = Notice("Invalid URL", str(e), "destructive")
                return False
        else:
            slug = guide.custom_url
        guide = renumber(replace(guide, status=status, custom_url=slug, updated_at=now_iso()))

        try:
            ok = self.persistence.save_guide(guide)
        except Exception:
            logger.exception("Saving guide %s failed", guide.id)
            ok = False
        if not ok:
            self.notice = Notice("Error", "Failed to save guide. Please try again.", "destructive")
            return False

        self.editor.guide = guide
        self._last_seen = guide
        self.debouncer.cancel()
        self.drafts.delete(guide.id)
        self.unsaved = False
        if status == "published":
            self.notice = Notice("Guide Published", "Your guide is now live.")
        else:
            self.notice = Notice("Draft Saved", "Your guide has been saved as a draft.")
        logger.info("Saved guide %s as %s", guide.id, status)
        return True

    def request_leave(self) -> str | None:
        """Confirmation message when leaving would abandon unsaved changes."""
        self.note_change()
        if self.unsaved or self.debouncer.pending:
            return LEAVE_MESSAGE
        return None

    def before_unload(self) -> str | None:
        return self.request_leave()

    def unmount(self) -> None:
        """Flush pending edits; the draft survives only while it is unsaved."""
        self.note_change()
        if self.debouncer.pending:
            self.flush()
        if not self.unsaved:
            self.drafts.delete(self.guide_id)
        self.editor = None
        self._last_seen = None
