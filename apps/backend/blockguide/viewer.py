from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .editor import Notice
from .errors import StorageRejected
from .interfaces import ObjectStorage, ResponseStore
from .models import ContentBlock, Guide, Slide, new_id
from .sanitizer import plain_text

logger = logging.getLogger("blockguide.viewer")

NOT_STARTED = "not-started"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"

# Completion sequence timing, in milliseconds.
PROGRESS_STEP = 3
PROGRESS_TICK_MS = 30
DIALOG_DELAY_MS = 1500

UNTITLED_QUESTION = "Untitled question"


@dataclass(frozen=True)
class UploadedFile:
    name: str
    url: str
    stored_name: str
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "stored_name": self.stored_name, "size": self.size}


def question_text(block: ContentBlock) -> str:
    return plain_text(block.content) or UNTITLED_QUESTION


@dataclass
class ViewerSession:
    """
    One viewer stepping through a guide.

    Navigation drives the completion sequence; `tick()` advances it using the
    injected clock. Responses are collected per block and submitted per slide.
    """

    guide: Guide
    user_identifier: str = field(default_factory=new_id)
    clock: Callable[[], float] = time.monotonic
    started: bool = False
    current_slide: int = 0
    completion_progress: int = 0
    has_shown_congrats: bool = False
    dialog_open: bool = False
    answers: dict[str, str] = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)
    upload_status: dict[str, str] = field(default_factory=dict)
    upload_errors: dict[str, str] = field(default_factory=dict)
    submitted_slides: set[str] = field(default_factory=set)
    notice: Notice | None = None
    _sequence_started_ms: int | None = field(default=None, init=False, repr=False)
    _steps_applied: int = field(default=0, init=False, repr=False)

    # ---- progression ----

    @property
    def last_index(self) -> int:
        return max(0, len(self.guide.slides) - 1)

    @property
    def on_last_slide(self) -> bool:
        return bool(self.guide.slides) and self.current_slide == self.last_index

    @property
    def state(self) -> str:
        if not self.started:
            return NOT_STARTED
        if self.on_last_slide:
            return COMPLETED
        return IN_PROGRESS

    @property
    def slide(self) -> Slide | None:
        return self.guide.slide_at(self.current_slide)

    @property
    def sequence_running(self) -> bool:
        return self._sequence_started_ms is not None

    def progress(self) -> float:
        n = len(self.guide.slides)
        if not self.started or n == 0:
            return 0.0
        if self.has_shown_congrats and self.on_last_slide:
            return float(self.completion_progress)
        return (self.current_slide + 1) / n * 100

    def _now_ms(self) -> int:
        return int(round(self.clock() * 1000))

    def _moved(self) -> None:
        if self.started and self.on_last_slide and not self.has_shown_congrats:
            if self._sequence_started_ms is None:
                self._sequence_started_ms = self._now_ms()
                self._steps_applied = 0
        else:
            # Leaving before the dialog is shown cancels the pending sequence.
            self._sequence_started_ms = None

    def start(self) -> bool:
        if self.started or not self.guide.slides:
            return False
        self.started = True
        self.current_slide = 0
        self._moved()
        return True

    def go_to(self, index: int) -> bool:
        if not self.started or not self.guide.slides:
            return False
        target = max(0, min(int(index), self.last_index))
        if target == self.current_slide:
            return False
        self.current_slide = target
        self._moved()
        return True

    def next(self) -> bool:
        return self.go_to(self.current_slide + 1)

    def previous(self) -> bool:
        return self.go_to(self.current_slide - 1)

    def tick(self) -> None:
        """Advance the completion animation; opens the dialog once its delay elapsed."""
        if self._sequence_started_ms is None:
            return
        elapsed = self._now_ms() - self._sequence_started_ms
        steps = elapsed // PROGRESS_TICK_MS
        if steps > self._steps_applied:
            gained = (steps - self._steps_applied) * PROGRESS_STEP
            self.completion_progress = min(100, self.completion_progress + gained)
            self._steps_applied = steps
        if elapsed >= DIALOG_DELAY_MS:
            self.dialog_open = True
            # Committed only once the dialog is actually shown.
            self.has_shown_congrats = True
            self._sequence_started_ms = None

    def close_dialog(self) -> None:
        self.dialog_open = False

    def start_over(self) -> bool:
        if not self.started:
            return False
        self.dialog_open = False
        self.has_shown_congrats = False
        self.completion_progress = 0
        self._sequence_started_ms = None
        self.current_slide = 0
        self._moved()
        return True

    # ---- responses ----

    def _interactive_block(self, block_id: str, kind: str | None = None) -> ContentBlock | None:
        block = self.guide.block_at(block_id)
        if block is None or not block.is_interactive:
            return None
        if kind is not None and block.type != kind:
            return None
        return block

    def set_answer(self, block_id: str, text: str) -> bool:
        if self._interactive_block(block_id, "input-field") is None:
            return False
        self.answers[block_id] = "" if text is None else str(text)
        return True

    async def attach_file(
        self, storage: ObjectStorage, block_id: str, data: bytes, filename: str, content_type: str
    ) -> bool:
        """
        Upload a file for a file-upload block, replacing any previous one.

        The previous object is deleted first on a best-effort basis.
        """
        if self._interactive_block(block_id, "file-upload") is None:
            return False
        if self.upload_status.get(block_id) == "uploading":
            return False

        self.upload_status[block_id] = "uploading"
        self.upload_errors.pop(block_id, None)
        previous = self.files.pop(block_id, None)
        if previous is not None:
            await self._delete_quietly(storage, previous)

        try:
            stored = await storage.upload(data, filename, content_type)
        except StorageRejected as e:
            self.upload_status[block_id] = "error"
            self.upload_errors[block_id] = str(e)
            return False
        except Exception as e:
            logger.warning("Upload for block %s failed: %s", block_id, e)
            self.upload_status[block_id] = "error"
            self.upload_errors[block_id] = "Failed to upload file. Please try again."
            return False

        self.files[block_id] = UploadedFile(
            name=filename, url=stored.url, stored_name=stored.stored_name, size=stored.size or len(data)
        )
        self.upload_status[block_id] = "success"
        return True

    async def remove_file(self, storage: ObjectStorage, block_id: str) -> bool:
        if self.upload_status.get(block_id) == "uploading":
            return False
        current = self.files.pop(block_id, None)
        self.upload_status.pop(block_id, None)
        self.upload_errors.pop(block_id, None)
        if current is None:
            return False
        await self._delete_quietly(storage, current)
        return True

    async def _delete_quietly(self, storage: ObjectStorage, f: UploadedFile) -> None:
        try:
            await storage.delete(f.stored_name)
        except Exception:
            # Object may be orphaned; the local state moves on regardless.
            logger.warning("Could not delete stored file %s", f.stored_name, exc_info=True)

    def missing_responses(self, slide: Slide | None = None) -> list[str]:
        slide = slide or self.slide
        if slide is None:
            return []
        missing = []
        for block in slide.interactive_blocks:
            if block.type == "input-field":
                if not (self.answers.get(block.id) or "").strip():
                    missing.append(block.id)
            elif self.upload_status.get(block.id) != "success" or block.id not in self.files:
                missing.append(block.id)
        return missing

    def is_uploading(self, slide: Slide | None = None) -> bool:
        slide = slide or self.slide
        if slide is None:
            return False
        return any(self.upload_status.get(b.id) == "uploading" for b in slide.blocks)

    def can_submit(self) -> bool:
        slide = self.slide
        if not self.started or slide is None or not slide.interactive_blocks:
            return False
        if slide.id in self.submitted_slides or self.is_uploading(slide):
            return False
        return not self.missing_responses(slide)

    def build_payload(self, slide: Slide | None = None) -> list[dict[str, Any]]:
        slide = slide or self.slide
        if slide is None:
            return []
        items = []
        for block in slide.interactive_blocks:
            item: dict[str, Any] = {
                "guide_id": self.guide.id,
                "slide_id": slide.id,
                "block_id": block.id,
                "user_identifier": self.user_identifier,
                "question": question_text(block),
            }
            if block.type == "input-field":
                item["answer"] = (self.answers.get(block.id) or "").strip()
            else:
                f = self.files[block.id]
                item.update({"file_url": f.url, "file_name": f.name, "file_size": f.size})
            items.append(item)
        return items

    def submit(self, store: ResponseStore) -> bool:
        """Upsert one response per interactive block on the current slide."""
        slide = self.slide
        if slide is None or not self.started:
            return False
        if slide.id in self.submitted_slides:
            self.notice = Notice("Already Submitted", "You have already submitted this slide.")
            return False
        if self.is_uploading(slide):
            self.notice = Notice("Upload In Progress", "Please wait for uploads to finish.")
            return False
        missing = self.missing_responses(slide)
        if missing or not slide.interactive_blocks:
            self.notice = Notice(
                "Missing Responses", "Please answer every question on this slide before submitting.", "destructive"
            )
            return False

        try:
            for item in self.build_payload(slide):
                store.upsert_response(**item)
        except Exception as e:
            logger.warning("Submitting slide %s failed: %s", slide.id, e)
            self.notice = Notice("Error", "Failed to submit responses. Please try again.", "destructive")
            return False

        self.submitted_slides.add(slide.id)
        self.notice = Notice("Responses Submitted", "Thank you! Your responses have been saved.")
        logger.info("Submitted %d responses for slide %s", len(slide.interactive_blocks), slide.id)
        return True
