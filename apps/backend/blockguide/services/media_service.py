from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path

from fastapi import UploadFile
from fastapi.responses import Response

from ..errors import StorageRejected, TransientIOError, error_response
from ..interfaces import StoredObject

logger = logging.getLogger("blockguide.media_service")

_ALPHABET = string.ascii_lowercase + string.digits


def unique_filename(original: str) -> str:
    """<epoch ms>-<random>.<original extension>"""
    name = (original or "").strip()
    ext = name.rsplit(".", 1)[1] if "." in name else ""
    ext = "".join(ch for ch in ext if ch.isalnum()).lower()[:16]
    rand = "".join(secrets.choice(_ALPHABET) for _ in range(13))
    return f"{int(time.time() * 1000)}-{rand}.{ext}"


def stored_name_from(value: str) -> str:
    """A full URL (or path) reduces to its last path segment."""
    value = (value or "").strip()
    if "/" in value:
        value = value.rstrip("/").rsplit("/", 1)[-1]
    return value


class LocalMediaStorage:
    """Object storage backed by a directory; objects are served under /media."""

    def __init__(
        self,
        media_dir: Path,
        *,
        max_bytes: int,
        allowed_types: tuple[str, ...],
        url_prefix: str = "/media",
    ) -> None:
        self.media_dir = Path(media_dir)
        self.max_bytes = max_bytes
        self.allowed_types = allowed_types
        self.url_prefix = url_prefix.rstrip("/")

    def resolve(self, name: str) -> Path | None:
        """Path for a stored name, or None when it would escape the media dir."""
        root = self.media_dir.resolve()
        p = (self.media_dir / name).resolve()
        if not p.is_relative_to(root) or p == root:
            return None
        return p

    def check(self, size: int, content_type: str) -> None:
        if size > self.max_bytes:
            raise StorageRejected(f"File size must be less than {self.max_bytes // (1024 * 1024)}MB", status_code=413)
        ct = (content_type or "").split(";", 1)[0].strip().lower()
        if ct not in self.allowed_types:
            raise StorageRejected("File type not allowed. Please upload images, documents, or archives.")

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredObject:
        self.check(len(data), content_type)
        name = unique_filename(filename)
        out = self.resolve(name)
        if out is None:
            raise StorageRejected("Invalid filename")
        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
            out.write_bytes(data)
        except OSError as e:
            logger.exception("Writing %s failed", out)
            raise TransientIOError("Failed to upload file to storage") from e
        logger.info("Stored upload %s (%d bytes)", name, len(data))
        return StoredObject(url=f"{self.url_prefix}/{name}", stored_name=name, size=len(data))

    async def delete(self, stored_name: str) -> None:
        p = self.resolve(stored_name_from(stored_name))
        if p is None:
            raise StorageRejected("Invalid filename")
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            raise TransientIOError("Failed to delete file from storage") from e


async def upload_file(storage: LocalMediaStorage, file: UploadFile) -> dict | Response:
    """
    Store one uploaded file and return its public URL.
    """
    if file is None or not file.filename:
        return Response(status_code=400, content="No file provided", media_type="text/plain")
    data = await file.read()
    if data is None:
        data = b""
    ct = (file.content_type or "").lower()
    try:
        stored = await storage.upload(data, file.filename, ct)
    except TransientIOError as e:
        return error_response(e)
    return {
        "url": stored.url,
        "filename": stored.stored_name,
        "originalName": file.filename,
        "size": stored.size,
        "type": ct,
    }


async def delete_file(storage: LocalMediaStorage, payload: dict) -> dict | Response:
    filename = stored_name_from(str(payload.get("filename") or ""))
    if not filename:
        return Response(status_code=400, content="No filename provided", media_type="text/plain")
    try:
        await storage.delete(filename)
    except TransientIOError as e:
        return error_response(e)
    return {"success": True, "message": "File deleted successfully"}
