from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from blockguide.drafts import (
    LEAVE_MESSAGE,
    Debouncer,
    DraftSession,
    FileDraftStore,
    MemoryDraftStore,
    draft_from_guide,
)
from blockguide.errors import TransientIOError, ValidationError
from blockguide.models import Guide, default_guide


class FakePersistence:
    def __init__(self, *guides: Guide) -> None:
        self.guides = {g.id: g for g in guides}
        self.ok = True
        self.fail_load = False
        self.saved: list[Guide] = []

    def load_guide(self, guide_id: str) -> Guide | None:
        if self.fail_load:
            raise RuntimeError("database is locked")
        return self.guides.get(guide_id)

    def save_guide(self, guide: Guide) -> bool:
        if not self.ok:
            return False
        self.saved.append(guide)
        self.guides[guide.id] = guide
        return True


def _session(persisted: Guide | None = None, drafts=None, clock=None) -> DraftSession:
    persistence = FakePersistence(*([persisted] if persisted else []))
    return DraftSession(
        "g1",
        persistence,
        drafts if drafts is not None else MemoryDraftStore(),
        debounce_s=1.0,
        clock=clock or (lambda: 0.0),
    )


def test_mount_without_draft_uses_persisted_guide() -> None:
    guide = replace(default_guide("g1"), title="Stored")
    session = _session(guide)
    ed = session.mount()
    assert ed.guide.title == "Stored"
    assert session.unsaved is False


def test_mount_unknown_guide_starts_from_default() -> None:
    session = _session()
    ed = session.mount()
    assert ed.guide.id == "g1"
    assert [s.title for s in ed.guide.slides] == ["Introduction"]


def test_draft_takes_precedence_over_persisted() -> None:
    guide = replace(default_guide("g1"), title="Stored")
    slide = guide.slides[0]
    edited_block = replace(slide.blocks[0], content="From the draft")
    edited = replace(guide, title="Draft title", slides=(replace(slide, blocks=(edited_block,) + slide.blocks[1:]),))
    drafts = MemoryDraftStore()
    drafts.write(draft_from_guide(edited))

    session = _session(guide, drafts)
    ed = session.mount()
    assert session.unsaved is True
    assert ed.guide.title == "Draft title"
    assert [b.content for b in ed.guide.slides[0].blocks] == [b.content for b in edited.slides[0].blocks]
    assert [b.id for b in ed.guide.slides[0].blocks] == [b.id for b in edited.slides[0].blocks]


def test_unreadable_draft_is_ignored() -> None:
    guide = replace(default_guide("g1"), title="Stored")
    drafts = MemoryDraftStore()
    bad = replace(draft_from_guide(guide), slides=[{"blocks": [{"type": "marquee"}]}])
    drafts.write(bad)
    session = _session(guide, drafts)
    ed = session.mount()
    assert ed.guide.title == "Stored"
    assert session.unsaved is False


def test_load_failure_is_transient() -> None:
    session = _session()
    session.persistence.fail_load = True
    with pytest.raises(TransientIOError):
        session.mount()


def test_draft_written_after_quiet_window() -> None:
    drafts = MemoryDraftStore()
    session = _session(default_guide("g1"), drafts)
    ed = session.mount()

    ed.add_block("heading")
    assert session.note_change(now=10.0)
    ed.set_title("Edited")
    session.note_change(now=10.6)
    assert session.poll(now=11.2) is False
    assert "g1" not in drafts
    assert session.poll(now=11.6) is True
    assert "g1" in drafts
    assert drafts.load("g1").title == "Edited"
    assert session.unsaved is True
    assert session.poll(now=20.0) is False


def test_save_clears_draft() -> None:
    drafts = MemoryDraftStore()
    session = _session(default_guide("g1"), drafts)
    ed = session.mount()
    ed.set_title("Edited")
    session.poll(now=0.0)
    session.poll(now=5.0)
    assert "g1" in drafts

    assert session.save("draft")
    assert "g1" not in drafts
    assert session.unsaved is False
    assert session.notice.title == "Draft Saved"
    assert session.persistence.guides["g1"].title == "Edited"


def test_publish_sets_slug_and_status() -> None:
    session = _session(default_guide("g1"))
    session.mount()
    assert session.save("published", "my-guide")
    saved = session.persistence.guides["g1"]
    assert saved.status == "published"
    assert saved.custom_url == "my-guide"
    assert session.notice.title == "Guide Published"


def test_publish_with_invalid_slug_is_refused() -> None:
    session = _session(default_guide("g1"))
    session.mount()
    assert session.save("published", "Not Valid") is False
    assert session.notice.title == "Invalid URL"
    assert session.persistence.saved == []


def test_failed_save_keeps_draft_and_unsaved() -> None:
    drafts = MemoryDraftStore()
    session = _session(default_guide("g1"), drafts)
    ed = session.mount()
    ed.set_title("Edited")
    session.poll(now=0.0)
    session.poll(now=5.0)

    session.persistence.ok = False
    assert session.save("draft") is False
    assert session.notice.title == "Error"
    assert session.notice.description == "Failed to save guide. Please try again."
    assert session.unsaved is True
    assert "g1" in drafts


def test_leave_guard() -> None:
    session = _session(default_guide("g1"))
    ed = session.mount()
    assert session.request_leave() is None
    ed.set_title("Edited")
    assert session.request_leave() == LEAVE_MESSAGE
    assert session.before_unload() == LEAVE_MESSAGE
    session.save("draft")
    assert session.request_leave() is None


def test_unmount_keeps_unsaved_draft() -> None:
    drafts = MemoryDraftStore()
    session = _session(default_guide("g1"), drafts)
    ed = session.mount()
    ed.set_title("Edited")
    session.unmount()
    assert drafts.load("g1").title == "Edited"
    assert session.editor is None


def test_unmount_after_save_leaves_no_draft() -> None:
    drafts = MemoryDraftStore()
    session = _session(default_guide("g1"), drafts)
    ed = session.mount()
    ed.set_title("Edited")
    session.save("draft")
    session.unmount()
    assert "g1" not in drafts


def test_debouncer() -> None:
    d = Debouncer(1.0)
    assert not d.pending
    d.touch(5.0)
    assert d.pending
    assert not d.due(5.5)
    assert d.due(6.0)
    d.cancel()
    assert not d.due(10.0)


def test_file_draft_store(tmp_path: Path) -> None:
    store = FileDraftStore(tmp_path)
    guide = replace(default_guide("g1"), title="Draft", tags=("a",))
    store.write(draft_from_guide(guide))
    assert (tmp_path / "guide-editor-g1.json").exists()
    assert "g1" in store

    draft = store.load("g1")
    assert draft.title == "Draft"
    assert draft.tags == ("a",)
    assert draft.slides[0]["title"] == "Introduction"

    store.delete("g1")
    assert "g1" not in store
    assert store.load("g1") is None


def test_file_draft_store_rejects_bad_ids_and_corrupt_files(tmp_path: Path) -> None:
    store = FileDraftStore(tmp_path)
    with pytest.raises(ValidationError):
        store.load("../etc/passwd")
    (tmp_path / "guide-editor-g2.json").write_text("{not json", encoding="utf-8")
    assert store.load("g2") is None
