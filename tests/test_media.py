from __future__ import annotations

import asyncio
import re
from pathlib import Path

import pytest

from blockguide.config import ALLOWED_UPLOAD_TYPES
from blockguide.errors import StorageRejected
from blockguide.services.media_service import LocalMediaStorage, stored_name_from, unique_filename


def _storage(tmp_path: Path, max_bytes: int = 16) -> LocalMediaStorage:
    return LocalMediaStorage(tmp_path / "media", max_bytes=max_bytes, allowed_types=ALLOWED_UPLOAD_TYPES)


def test_unique_filename_keeps_extension() -> None:
    name = unique_filename("Report Final.PDF")
    assert re.fullmatch(r"\d+-[a-z0-9]{13}\.pdf", name)
    assert unique_filename("report.pdf") != unique_filename("report.pdf")


def test_stored_name_from_url() -> None:
    assert stored_name_from("/media/123-abc.pdf") == "123-abc.pdf"
    assert stored_name_from("https://host/media/123-abc.pdf") == "123-abc.pdf"
    assert stored_name_from("123-abc.pdf") == "123-abc.pdf"


def test_resolve_refuses_escaping_paths(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    assert storage.resolve("../secret.txt") is None
    assert storage.resolve("") is None
    assert storage.resolve("a.png") == (tmp_path / "media" / "a.png").resolve()


def test_resolve_refuses_sibling_dir_sharing_prefix(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    (tmp_path / "media2").mkdir()
    assert storage.resolve("../media2/x.txt") is None
    assert storage.resolve("../media-old/x.txt") is None


def test_upload_and_delete(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    stored = asyncio.run(storage.upload(b"hello", "notes.txt", "text/plain"))
    path = tmp_path / "media" / stored.stored_name
    assert stored.url == f"/media/{stored.stored_name}"
    assert stored.size == 5
    assert path.read_bytes() == b"hello"

    asyncio.run(storage.delete(stored.url))
    assert not path.exists()


def test_upload_rejects_oversize_and_disallowed_types(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    with pytest.raises(StorageRejected) as big:
        asyncio.run(storage.upload(b"x" * 17, "big.txt", "text/plain"))
    assert big.value.status_code == 413

    with pytest.raises(StorageRejected, match="File type not allowed"):
        asyncio.run(storage.upload(b"MZ", "tool.exe", "application/x-msdownload"))
    assert list((tmp_path / "media").glob("*")) == []


def test_content_type_parameters_are_ignored(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    stored = asyncio.run(storage.upload(b"hi", "a.txt", "text/plain; charset=utf-8"))
    assert stored.stored_name.endswith(".txt")
