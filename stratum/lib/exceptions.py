"""Domain errors and their HTTP rendering.

Every error raised by the core derives from :class:`StratumError`. None of
them represent corrupted state; they are recoverable at the request boundary
and are rendered as JSON with the status code carried by the error class.
"""

import logging
from typing import Any

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import HTTP_500_INTERNAL_SERVER_ERROR

from stratum.lib import observability

logger = logging.getLogger(__name__)


class StratumError(Exception):
    """Base class for all expected, user-facing errors."""

    status_code: int = 400
    default_message: str = "Request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Additional fields included in the rendered error body."""
        return {}


class ResourceLocked(StratumError):
    """A mutation was blocked by the entity's own lock or an ancestor's."""

    status_code = 423
    default_message = "Resource is locked."

    def __init__(self, message: str | None = None, lock_info: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.lock_info = lock_info

    @property
    def source(self) -> str | None:
        return (self.lock_info or {}).get("source")

    def extra(self) -> dict[str, Any]:
        return {"lock_info": self.lock_info}


class NotFound(StratumError):
    status_code = 404
    default_message = "Not found."


class CollectionNotFound(NotFound):
    default_message = "Collection not found."


class ContentNotFound(NotFound):
    default_message = "Content not found."


class ElementNotFound(NotFound):
    default_message = "Element not found."


class VersionNotFound(NotFound):
    """Restore, compare or show referenced a version number that does not exist."""

    def __init__(self, version_number: int) -> None:
        self.version_number = version_number
        super().__init__(f"Version {version_number} not found.")

    def extra(self) -> dict[str, Any]:
        return {"version_number": self.version_number}


class ReleaseNotFound(NotFound):
    """The release name is absent from the collection's timeline."""

    def __init__(self, release: str, available_releases: list[str] | None = None) -> None:
        self.release = release
        self.available_releases = available_releases or []
        super().__init__(f"Release '{release}' not found in this collection.")

    def extra(self) -> dict[str, Any]:
        return {"available_releases": self.available_releases}


class SlugConflict(StratumError):
    """Another entity in the same scope already uses the slug."""

    status_code = 409

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Slug '{slug}' is already in use.")


class DuplicateRelease(StratumError):
    status_code = 409

    def __init__(self, release: str) -> None:
        self.release = release
        super().__init__(f"Release '{release}' already exists in this collection.")


class InvalidElement(StratumError):
    """An element edit would break the element tree rules."""

    status_code = 422
    default_message = "Invalid element."


def stratum_exception_handler(request: Request, exc: StratumError) -> Response:
    """Render a domain error as JSON using the error's own status code."""
    return Response(
        content={"status_code": exc.status_code, "detail": exc.message, **exc.extra()},
        status_code=exc.status_code,
        media_type="application/json",
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Render framework HTTP exceptions (validation, routing) as JSON."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    content: dict[str, Any] = {"status_code": exc.status_code, "detail": detail}
    if exc.extra:
        content["extra"] = exc.extra
    return Response(content=content, status_code=exc.status_code, media_type="application/json")


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Log an unexpected exception and render a generic 500."""
    logged = observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    )
    if not logged:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)

    return Response(
        content={"status_code": HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal Server Error"},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )


EXCEPTION_HANDLERS: dict[type[Exception], Any] = {
    StratumError: stratum_exception_handler,
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}
