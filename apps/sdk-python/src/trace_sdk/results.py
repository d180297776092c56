"""Explicit result types passed between the sync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from .errors import BackendRejected, MalformedPayloadError, SyncError
from .models import LocationSample


class SubmitStatus(str, Enum):
    SENT = "sent"
    QUEUED = "queued"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SubmitOutcome:
    status: SubmitStatus
    reason: Optional[str] = None
    record: Optional[dict] = None

    @classmethod
    def sent(cls, record: Optional[dict] = None) -> "SubmitOutcome":
        return cls(status=SubmitStatus.SENT, record=record)

    @classmethod
    def queued(cls, reason: Optional[str] = None) -> "SubmitOutcome":
        return cls(status=SubmitStatus.QUEUED, reason=reason)

    @classmethod
    def rejected(cls, reason: str) -> "SubmitOutcome":
        return cls(status=SubmitStatus.REJECTED, reason=reason)

    @property
    def accepted(self) -> bool:
        """True for anything other than a rejection; deferred delivery is not a failure."""
        return self.status is not SubmitStatus.REJECTED


@dataclass(frozen=True)
class TransportResult:
    ok: bool
    status_code: Optional[int] = None
    diagnostic: Optional[str] = None
    data: Any = None
    error: Optional[SyncError] = None

    @classmethod
    def success(cls, status_code: int, data: Any = None) -> "TransportResult":
        return cls(ok=True, status_code=status_code, data=data)

    @classmethod
    def failure(cls, diagnostic: str, *, status_code: Optional[int] = None, error: Optional[SyncError] = None) -> "TransportResult":
        return cls(ok=False, status_code=status_code, diagnostic=diagnostic, error=error)

    @property
    def permanent(self) -> bool:
        if self.ok:
            return False
        if isinstance(self.error, MalformedPayloadError):
            return True
        return isinstance(self.error, BackendRejected) and self.error.permanent


@dataclass
class DrainReport:
    sent: int = 0
    dead_lettered: int = 0
    remaining: int = 0
    stopped_reason: Optional[str] = None
    skipped: bool = False


@dataclass(frozen=True)
class QueryResult:
    samples: List[LocationSample] = field(default_factory=list)
    source: str = "remote"
    diagnostic: Optional[str] = None


__all__ = ["DrainReport", "QueryResult", "SubmitOutcome", "SubmitStatus", "TransportResult"]
