from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .models import Guide


@dataclass(frozen=True)
class StoredObject:
    url: str
    stored_name: str
    size: int = 0


@dataclass(frozen=True)
class Draft:
    """Ephemeral snapshot of a guide being edited."""

    guide_id: str
    title: str
    tags: tuple[str, ...]
    slides: list[dict[str, Any]]
    last_modified: str


class GuidePersistence(Protocol):
    def load_guide(self, guide_id: str) -> Guide | None: ...

    def save_guide(self, guide: Guide) -> bool: ...


class DraftStore(Protocol):
    def load(self, guide_id: str) -> Draft | None: ...

    def write(self, draft: Draft) -> None: ...

    def delete(self, guide_id: str) -> None: ...

    def __contains__(self, guide_id: str) -> bool: ...


class ObjectStorage(Protocol):
    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredObject: ...

    async def delete(self, stored_name: str) -> None: ...


class ResponseStore(Protocol):
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
    ) -> dict[str, Any]: ...
