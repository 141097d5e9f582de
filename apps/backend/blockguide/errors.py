from __future__ import annotations

from fastapi.responses import Response


class GuideError(Exception):
    """Base class for errors raised by the guide service."""

    status_code = 400


class ValidationError(GuideError):
    """Input rejected before any operation is attempted (missing title, empty answer...)."""

    status_code = 400


class InvariantViolation(GuideError):
    """A mutation would break a document invariant (last slide, nested two-column)."""

    status_code = 409


class TransientIOError(GuideError):
    """A collaborator (store, object storage) failed; local state is kept so the caller can retry."""

    status_code = 502


class StorageRejected(TransientIOError):
    """
    Object storage refused the payload by policy.
    status_code mirrors the HTTP status the upload route answers with.
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


def error_response(e: GuideError) -> Response:
    return Response(status_code=e.status_code, content=str(e), media_type="text/plain")
