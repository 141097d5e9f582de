"""SQLite persistence for guides, slides, content blocks and viewer responses."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from .content_loader import guide_from_dict
from .errors import InvariantViolation, ValidationError
from .models import DEFAULT_USER_ID, Guide, new_id, new_slide, normalize_tags, now_iso, renumber

logger = logging.getLogger("blockguide.storage")

SCHEMA_VERSION = 1

_RESPONSE_COLUMNS = (
    "id",
    "guide_id",
    "slide_id",
    "block_id",
    "user_identifier",
    "question",
    "answer",
    "file_url",
    "file_name",
    "file_size",
    "created_at",
    "updated_at",
)


class GuideStore:
    """Database access layer for guides and responses."""

    def __init__(self, db_path: Path | str) -> None:
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        # Shared by FastAPI's worker threads; every access goes through _lock.
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")
        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS guides (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'draft',
                    custom_url TEXT UNIQUE,
                    views INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS slides (
                    id TEXT PRIMARY KEY,
                    guide_id TEXT NOT NULL REFERENCES guides(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS content_blocks (
                    id TEXT PRIMARY KEY,
                    slide_id TEXT NOT NULL REFERENCES slides(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    content TEXT,
                    left_type TEXT,
                    left_content TEXT,
                    right_type TEXT,
                    right_content TEXT,
                    styles TEXT NOT NULL DEFAULT '{}',
                    position INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS user_responses (
                    id TEXT PRIMARY KEY,
                    guide_id TEXT NOT NULL,
                    slide_id TEXT NOT NULL,
                    block_id TEXT NOT NULL,
                    user_identifier TEXT NOT NULL,
                    question TEXT NOT NULL,
                    answer TEXT,
                    file_url TEXT,
                    file_name TEXT,
                    file_size INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (block_id, user_identifier)
                )
                """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_slides_guide ON slides (guide_id)")
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_blocks_slide ON content_blocks (slide_id)")
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_responses_guide ON user_responses (guide_id)")

    # ---- guides ----

    def _guide_ids(self, user_id: str | None = None) -> list[str]:
        if user_id:
            rows = self._conn.execute(
                "SELECT id FROM guides WHERE user_id = ? ORDER BY updated_at DESC", (user_id,)
            ).fetchall()
        else:
            rows = self._conn.execute("SELECT id FROM guides ORDER BY updated_at DESC").fetchall()
        return [str(row["id"]) for row in rows]

    def list_guides(self, user_id: str | None = None) -> list[Guide]:
        """Guides (with slides) ordered by most recently updated."""
        with self._lock:
            out = []
            for gid in self._guide_ids(user_id):
                guide = self._load(gid)
                if guide is not None:
                    out.append(guide)
            return out

    def create_guide(
        self,
        *,
        title: str,
        type: str,
        description: str = "",
        tags: Iterable[str] = (),
        user_id: str = DEFAULT_USER_ID,
    ) -> Guide:
        """Create a draft guide with one empty "Introduction" slide."""
        title = (title or "").strip()
        type = (type or "").strip()
        if not title or not type:
            raise ValidationError("Title and type are required")
        gid = new_id()
        ts = now_iso()
        guide = Guide(
            id=gid,
            user_id=user_id or DEFAULT_USER_ID,
            title=title,
            description=(description or "").strip(),
            type=type,
            tags=normalize_tags(tags),
            status="draft",
            slides=(new_slide(gid, "Introduction", position=1),),
            created_at=ts,
            updated_at=ts,
        )
        if not self.save_guide(guide):
            raise ValidationError("Could not create guide")
        logger.info("Created guide %s", gid)
        return guide

    def load_guide(self, guide_id: str) -> Guide | None:
        with self._lock:
            return self._load(guide_id)

    def _load(self, guide_id: str) -> Guide | None:
        row = self._conn.execute("SELECT * FROM guides WHERE id = ?", (guide_id,)).fetchone()
        if row is None:
            return None
        raw: dict[str, Any] = dict(row)
        slides = []
        for srow in self._conn.execute(
            "SELECT * FROM slides WHERE guide_id = ? ORDER BY position", (guide_id,)
        ).fetchall():
            slide = dict(srow)
            slide["blocks"] = [
                dict(brow)
                for brow in self._conn.execute(
                    "SELECT * FROM content_blocks WHERE slide_id = ? ORDER BY position", (slide["id"],)
                ).fetchall()
            ]
            slides.append(slide)
        raw["slides"] = slides
        return guide_from_dict(raw)

    def find_guide(self, slug_or_id: str) -> Guide | None:
        """Published guide by custom URL, or any guide by id."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id FROM guides WHERE custom_url = ? AND status = 'published'", (slug_or_id,)
            ).fetchone()
            gid = str(row["id"]) if row is not None else slug_or_id
            return self._load(gid)

    def save_guide(self, guide: Guide) -> bool:
        """
        Upsert the guide with its slides and blocks in one transaction.

        Slides and blocks stored for this guide but absent from `guide` are
        purged; positions are renumbered 1..n before writing. Raises
        InvariantViolation when a slide or block id belongs to another guide.
        """
        guide = renumber(guide)
        ts = now_iso()
        try:
            with self._lock, self._conn:
                self._check_ownership(guide)
                self._upsert_guide_row(replace(guide, updated_at=ts))
                self._purge_orphans(guide)
                for slide in guide.slides:
                    self._conn.execute(
                        """
                        INSERT INTO slides (id, guide_id, title, position, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            guide_id = excluded.guide_id,
                            title = excluded.title,
                            position = excluded.position,
                            updated_at = excluded.updated_at
                        """,
                        (slide.id, guide.id, slide.title, slide.position, slide.created_at or ts, ts),
                    )
                    for block in slide.blocks:
                        self._conn.execute(
                            """
                            INSERT INTO content_blocks (
                                id, slide_id, type, content, left_type, left_content,
                                right_type, right_content, styles, position, created_at, updated_at
                            )
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                            ON CONFLICT(id) DO UPDATE SET
                                slide_id = excluded.slide_id,
                                type = excluded.type,
                                content = excluded.content,
                                left_type = excluded.left_type,
                                left_content = excluded.left_content,
                                right_type = excluded.right_type,
                                right_content = excluded.right_content,
                                styles = excluded.styles,
                                position = excluded.position,
                                updated_at = excluded.updated_at
                            """,
                            (
                                block.id,
                                slide.id,
                                block.type,
                                block.content,
                                block.left_type,
                                block.left_content,
                                block.right_type,
                                block.right_content,
                                json.dumps(block.styles),
                                block.position,
                                block.created_at or ts,
                                ts,
                            ),
                        )
        except sqlite3.IntegrityError as e:
            logger.warning("Saving guide %s rejected: %s", guide.id, e)
            return False
        return True

    def _upsert_guide_row(self, guide: Guide) -> None:
        self._conn.execute(
            """
            INSERT INTO guides (
                id, user_id, title, description, type, tags, status,
                custom_url, views, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                user_id = excluded.user_id,
                title = excluded.title,
                description = excluded.description,
                type = excluded.type,
                tags = excluded.tags,
                status = excluded.status,
                custom_url = excluded.custom_url,
                updated_at = excluded.updated_at
            """,
            (
                guide.id,
                guide.user_id,
                guide.title,
                guide.description,
                guide.type,
                json.dumps(list(guide.tags)),
                guide.status,
                guide.custom_url,
                guide.views,
                guide.created_at or guide.updated_at,
                guide.updated_at,
            ),
        )

    def _check_ownership(self, guide: Guide) -> None:
        # A slide belongs to exactly one guide; a block to a slide of that guide.
        for slide in guide.slides:
            row = self._conn.execute("SELECT guide_id FROM slides WHERE id = ?", (slide.id,)).fetchone()
            if row is not None and row["guide_id"] != guide.id:
                logger.warning("Refusing slide %s of guide %s in save of %s", slide.id, row["guide_id"], guide.id)
                raise InvariantViolation(f"Slide {slide.id} belongs to another guide.")
            for block in slide.blocks:
                row = self._conn.execute(
                    """
                    SELECT s.guide_id FROM content_blocks b JOIN slides s ON s.id = b.slide_id
                    WHERE b.id = ?
                    """,
                    (block.id,),
                ).fetchone()
                if row is not None and row["guide_id"] != guide.id:
                    logger.warning("Refusing block %s of guide %s in save of %s", block.id, row["guide_id"], guide.id)
                    raise InvariantViolation(f"Block {block.id} belongs to another guide.")

    def _purge_orphans(self, guide: Guide) -> None:
        slide_ids = {s.id for s in guide.slides}
        block_ids = {b.id for s in guide.slides for b in s.blocks}
        stored = self._conn.execute(
            """
            SELECT s.id AS slide_id, b.id AS block_id
            FROM slides s LEFT JOIN content_blocks b ON b.slide_id = s.id
            WHERE s.guide_id = ?
            """,
            (guide.id,),
        ).fetchall()
        orphan_slides = {str(r["slide_id"]) for r in stored} - slide_ids
        orphan_blocks = {str(r["block_id"]) for r in stored if r["block_id"] is not None} - block_ids
        if orphan_blocks:
            logger.info("Deleting %d orphaned blocks of guide %s", len(orphan_blocks), guide.id)
            self._conn.executemany("DELETE FROM content_blocks WHERE id = ?", [(i,) for i in orphan_blocks])
        if orphan_slides:
            logger.info("Deleting %d orphaned slides of guide %s", len(orphan_slides), guide.id)
            self._conn.executemany("DELETE FROM slides WHERE id = ?", [(i,) for i in orphan_slides])

    def delete_guide(self, guide_id: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM guides WHERE id = ?", (guide_id,))
        return cursor.rowcount > 0

    def increment_views(self, guide_id: str) -> int:
        with self._lock, self._conn:
            self._conn.execute("UPDATE guides SET views = views + 1 WHERE id = ?", (guide_id,))
            row = self._conn.execute("SELECT views FROM guides WHERE id = ?", (guide_id,)).fetchone()
        return int(row["views"]) if row is not None else 0

    # ---- responses ----

    def upsert_response(
        self,
        *,
        guide_id: str,
        slide_id: str,
        block_id: str,
        user_identifier: str,
        question: str,
        answer: str | None = None,
        file_url: str | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
    ) -> dict[str, Any]:
        """Insert the response, or update the row already stored for (block, user)."""
        if not (guide_id and slide_id and block_id and user_identifier and question):
            raise ValidationError("Missing required fields")
        now = now_iso()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO user_responses (
                    id, guide_id, slide_id, block_id, user_identifier, question,
                    answer, file_url, file_name, file_size, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(block_id, user_identifier) DO UPDATE SET
                    answer = excluded.answer,
                    file_url = excluded.file_url,
                    file_name = excluded.file_name,
                    file_size = excluded.file_size,
                    updated_at = excluded.updated_at
                """,
                (
                    new_id(),
                    guide_id,
                    slide_id,
                    block_id,
                    user_identifier,
                    question,
                    answer,
                    file_url,
                    file_name,
                    file_size,
                    now,
                    now,
                ),
            )
            row = self._conn.execute(
                "SELECT * FROM user_responses WHERE block_id = ? AND user_identifier = ?",
                (block_id, user_identifier),
            ).fetchone()
        return {k: row[k] for k in _RESPONSE_COLUMNS}

    def list_responses(
        self,
        *,
        guide_id: str | None = None,
        user_identifier: str | None = None,
        block_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Responses matching every given filter, newest first."""
        clauses = []
        params: list[str] = []
        for column, value in (("guide_id", guide_id), ("user_identifier", user_identifier), ("block_id", block_id)):
            if value:
                clauses.append(f"{column} = ?")
                params.append(value)
        sql = "SELECT * FROM user_responses"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, rowid DESC"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [{k: row[k] for k in _RESPONSE_COLUMNS} for row in rows]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()
