"""Named-slot persistent storage backing the offline queue."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import PersistenceError

logger = logging.getLogger(__name__)


class CorruptSlotError(ValueError):
    """The stored document exists but cannot be parsed."""


class SlotStore:
    """Key/value document store holding JSON values under named slots.

    Every write replaces the whole document on disk through a temp file and
    ``os.replace`` so a crash mid-write leaves the previous snapshot intact.
    Without a path the store keeps its slots in memory only.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._memory: Dict[str, Any] = {}
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def durable(self) -> bool:
        return self._path is not None

    def read(self, slot: str, default: Any = None) -> Any:
        with self._lock:
            document = self._load()
        return document.get(slot, default)

    def write(self, slot: str, value: Any) -> None:
        self.write_many({slot: value})

    def write_many(self, values: Dict[str, Any]) -> None:
        """Replace several slots in one snapshot write."""
        with self._lock:
            if self._path is None:
                self._memory.update(json.loads(json.dumps(values)))
                return
            try:
                document = self._load()
            except CorruptSlotError:
                document = {}
            document.update(values)
            self._dump(document)

    def quarantine(self) -> Optional[Path]:
        """Move an unreadable document aside so the next write starts fresh."""
        if self._path is None or not self._path.exists():
            return None
        target = self._path.with_name(self._path.name + ".corrupt")
        with self._lock:
            os.replace(self._path, target)
        return target

    def _load(self) -> Dict[str, Any]:
        if self._path is None:
            return self._memory
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptSlotError(f"{self._path} is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"failed to read {self._path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CorruptSlotError(f"{self._path} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise CorruptSlotError(f"{self._path} does not hold a slot mapping")
        return document

    def _dump(self, document: Dict[str, Any]) -> None:
        assert self._path is not None
        payload = json.dumps(document, separators=(",", ":"))
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=str(self._path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"failed to write {self._path}: {exc}") from exc


__all__ = ["CorruptSlotError", "SlotStore"]
