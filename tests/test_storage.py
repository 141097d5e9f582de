from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from blockguide.errors import InvariantViolation, ValidationError
from blockguide.models import new_block
from blockguide.storage import GuideStore


def _count(store: GuideStore, table: str) -> int:
    return int(store._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])  # noqa: SLF001


def test_migration_sets_user_version(store: GuideStore) -> None:
    version = int(store._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == 1


def test_reopening_file_database_keeps_data(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "guides.db"
    first = GuideStore(db)
    guide = first.create_guide(title="Persisted", type="tutorial")
    first.close()

    second = GuideStore(db)
    try:
        assert second.load_guide(guide.id).title == "Persisted"
    finally:
        second.close()


def test_create_guide_requires_title_and_type(store: GuideStore) -> None:
    with pytest.raises(ValidationError, match="Title and type are required"):
        store.create_guide(title="  ", type="tutorial")
    with pytest.raises(ValidationError):
        store.create_guide(title="Guide", type="")


def test_create_guide_starts_as_draft_with_empty_intro(store: GuideStore) -> None:
    guide = store.create_guide(title="Guide", type="tutorial", tags=["a", " a", "b"])
    loaded = store.load_guide(guide.id)
    assert loaded.status == "draft"
    assert loaded.tags == ("a", "b")
    assert [s.title for s in loaded.slides] == ["Introduction"]
    assert loaded.slides[0].blocks == ()


def test_save_and_load_blocks_with_styles(store: GuideStore) -> None:
    guide = store.create_guide(title="Guide", type="tutorial")
    slide = guide.slides[0]
    blocks = (
        new_block("heading", slide.id, content="Hi", styles={"fontSize": 30, "textAlign": "center"}, position=4),
        new_block("paragraph", slide.id, content="Body", position=9),
    )
    assert store.save_guide(replace(guide, slides=(replace(slide, blocks=blocks),)))

    loaded = store.load_guide(guide.id)
    out = loaded.slides[0].blocks
    assert [b.content for b in out] == ["Hi", "Body"]
    assert [b.position for b in out] == [1, 2]
    assert out[0].styles == {"fontSize": 30, "textAlign": "center"}


def test_save_purges_removed_slides_and_blocks(store: GuideStore) -> None:
    guide = store.create_guide(title="Guide", type="tutorial")
    slide = guide.slides[0]
    blocks = tuple(new_block("paragraph", slide.id, content=str(i), position=i) for i in (1, 2, 3))
    full = replace(guide, slides=(replace(slide, blocks=blocks),))
    store.save_guide(full)
    assert _count(store, "content_blocks") == 3

    trimmed = replace(full, slides=(replace(full.slides[0], blocks=blocks[:1]),))
    assert store.save_guide(trimmed)
    assert _count(store, "content_blocks") == 1
    assert [b.content for b in store.load_guide(guide.id).slides[0].blocks] == ["1"]


def test_custom_url_must_be_unique(store: GuideStore) -> None:
    a = store.create_guide(title="A", type="t")
    b = store.create_guide(title="B", type="t")
    assert store.save_guide(replace(a, status="published", custom_url="shared"))
    assert store.save_guide(replace(b, status="published", custom_url="shared")) is False
    assert store.load_guide(b.id).custom_url is None


def test_save_refuses_slides_and_blocks_of_another_guide(store: GuideStore) -> None:
    a = store.create_guide(title="A", type="t")
    a_slide = a.slides[0]
    block = new_block("paragraph", a_slide.id, content="Mine")
    assert store.save_guide(replace(a, slides=(replace(a_slide, blocks=(block,)),)))
    b = store.create_guide(title="B", type="t")

    with pytest.raises(InvariantViolation, match="another guide"):
        store.save_guide(replace(b, slides=(replace(a_slide, blocks=()),)))
    with pytest.raises(InvariantViolation, match="another guide"):
        store.save_guide(replace(b, slides=(replace(b.slides[0], blocks=(replace(block, slide_id=b.slides[0].id),)),)))

    loaded = store.load_guide(a.id)
    assert [s.id for s in loaded.slides] == [a_slide.id]
    assert [blk.content for blk in loaded.slides[0].blocks] == ["Mine"]
    assert [s.id for s in store.load_guide(b.id).slides] == [b.slides[0].id]


def test_find_guide_by_slug_or_id(store: GuideStore) -> None:
    published = store.create_guide(title="Pub", type="t")
    store.save_guide(replace(published, status="published", custom_url="pub-guide"))
    draft = store.create_guide(title="Draft", type="t")
    store.save_guide(replace(draft, custom_url="draft-guide"))

    assert store.find_guide("pub-guide").id == published.id
    assert store.find_guide("draft-guide") is None
    assert store.find_guide(draft.id).id == draft.id


def test_views_survive_saves(store: GuideStore) -> None:
    guide = store.create_guide(title="Guide", type="t")
    assert store.increment_views(guide.id) == 1
    assert store.increment_views(guide.id) == 2
    store.save_guide(replace(guide, title="Renamed"))
    loaded = store.load_guide(guide.id)
    assert loaded.views == 2
    assert loaded.title == "Renamed"


def test_list_and_delete_guides(store: GuideStore) -> None:
    mine = store.create_guide(title="Mine", type="t", user_id="u1")
    store.create_guide(title="Theirs", type="t", user_id="u2")
    assert [g.title for g in store.list_guides("u1")] == ["Mine"]
    assert len(store.list_guides()) == 2

    assert store.delete_guide(mine.id)
    assert store.delete_guide(mine.id) is False
    assert store.load_guide(mine.id) is None
    assert _count(store, "slides") == 1


def test_upsert_response_updates_existing_row(store: GuideStore) -> None:
    kw = dict(guide_id="g1", slide_id="s1", block_id="b1", user_identifier="u1", question="Name?")
    first = store.upsert_response(**kw, answer="Ada")
    second = store.upsert_response(**kw, answer="Grace")
    assert first["id"] == second["id"]
    assert second["answer"] == "Grace"
    assert _count(store, "user_responses") == 1


def test_upsert_response_requires_fields(store: GuideStore) -> None:
    with pytest.raises(ValidationError):
        store.upsert_response(guide_id="g1", slide_id="s1", block_id="", user_identifier="u1", question="Q")


def test_list_responses_filters(store: GuideStore) -> None:
    store.upsert_response(guide_id="g1", slide_id="s1", block_id="b1", user_identifier="u1", question="Q", answer="x")
    store.upsert_response(guide_id="g1", slide_id="s1", block_id="b1", user_identifier="u2", question="Q", answer="y")
    store.upsert_response(guide_id="g2", slide_id="s9", block_id="b9", user_identifier="u1", question="Q", answer="z")

    assert len(store.list_responses(guide_id="g1")) == 2
    assert [r["answer"] for r in store.list_responses(user_identifier="u1", guide_id="g2")] == ["z"]
    assert len(store.list_responses()) == 3
