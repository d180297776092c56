"""Exception taxonomy for the sync core."""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for errors raised by the SDK."""


class PersistenceError(SyncError):
    """Durable storage could not be written; a queued operation is at risk."""


class MalformedPayloadError(SyncError):
    """The payload failed validation and must never be queued."""


class TransientNetworkError(SyncError):
    """Timeouts and connection failures. Always retried later."""


class BackendRejected(SyncError):
    def __init__(self, status_code: int, reason: str, *, permanent: bool = False) -> None:
        super().__init__(f"backend rejected request status={status_code}: {reason}")
        self.status_code = status_code
        self.reason = reason
        self.permanent = permanent

    @staticmethod
    def is_permanent_status(status_code: Optional[int]) -> bool:
        # Rate limiting and request timeouts are worth retrying.
        if status_code is None:
            return False
        return 400 <= status_code < 500 and status_code not in (408, 429)


__all__ = [
    "BackendRejected",
    "MalformedPayloadError",
    "PersistenceError",
    "SyncError",
    "TransientNetworkError",
]
