"""Error taxonomy shared by the relay, vendor clients, poller and API layer.

Every error carries an HTTP-ish ``status_code`` for the API boundary and a
``retriable`` flag telling the caller whether asking again can help.
"""

from __future__ import annotations

from typing import Any


class CastForgeError(Exception):
    """Base class for all structured CastForge errors."""

    status_code: int = 500
    retriable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retriable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if retriable is not None:
            self.retriable = retriable

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "type": type(self).__name__}


class ConfigurationError(CastForgeError):
    """A required credential or setting is missing."""

    status_code = 500


class ValidationError(CastForgeError):
    """Job input is missing or malformed; raised before any network call."""

    status_code = 400


class VendorApiError(CastForgeError):
    """Vendor answered with a non-success application code."""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        vendor: str | None = None,
        code: int | str | None = None,
        retry_after: int | None = None,
        status_code: int | None = None,
        retriable: bool | None = None,
        base_image_url: str | None = None,
    ):
        super().__init__(message, status_code=status_code, retriable=retriable)
        self.vendor = vendor
        self.code = code
        self.retry_after = retry_after
        # already-rendered Replicate base image, reusable as existing_base_image
        self.base_image_url = base_image_url

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        if self.base_image_url:
            body["baseImageUrl"] = self.base_image_url
        return body


class GenerationFailedError(CastForgeError):
    """Vendor reports the job itself failed."""

    status_code = 502

    def __init__(self, message: str, *, vendor: str | None = None, task_id: str | None = None):
        super().__init__(message)
        self.vendor = vendor
        self.task_id = task_id


class PollingTimeoutError(CastForgeError):
    """Attempt budget exhausted; the job may still finish vendor-side."""

    status_code = 504
    retriable = True

    def __init__(self, message: str, *, task_id: str | None = None, attempts: int = 0):
        super().__init__(message)
        self.task_id = task_id
        self.attempts = attempts


class PollingCancelledError(CastForgeError):
    """Caller revoked the poll loop before a terminal state was seen."""

    status_code = 499

    def __init__(self, message: str, *, task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class TransportError(CastForgeError):
    """Network failure or a response body that is not JSON."""

    status_code = 502
    retriable = True
