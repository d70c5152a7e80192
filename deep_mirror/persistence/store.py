"""
Versioned snapshot store.

PersistedStore keeps one JSON snapshot under a fixed key. It never raises to
its caller because of the medium: if the backend fails, the store switches to
in-memory operation for the rest of the process and logs a warning.

Contract:
    - save(partial) shallow-merges into the last known snapshot
    - load() returns the snapshot, or None when absent, corrupt, or tagged
      with a different version
    - clear() removes the snapshot from memory and from the medium
"""

import copy
import json
import time
from typing import Any, Dict, Optional

import structlog

from deep_mirror.persistence.backends import STORAGE_ERRORS, StorageBackend

log = structlog.get_logger(__name__)


class PersistedStore:
    """Single-slot snapshot storage with version tagging and degradation."""

    def __init__(
        self,
        backend: StorageBackend,
        key: str,
        version: str,
        defaults: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            backend: Medium the snapshot is written to
            key: Fixed key the snapshot lives under
            version: Expected version tag; other versions load as None
            defaults: Field values of a fresh snapshot
        """
        self.backend = backend
        self.key = key
        self.version = version
        self.defaults = dict(defaults or {})
        self._snapshot: Optional[Dict[str, Any]] = None
        self._loaded = False
        self._degraded = False

    @property
    def degraded(self) -> bool:
        """True once the medium failed and only memory is used."""
        return self._degraded

    def _degrade(self, operation: str, error: Exception) -> None:
        if not self._degraded:
            log.warning(
                "storage_degraded_to_memory",
                operation=operation,
                backend=self.backend.name,
                error=str(error),
            )
        self._degraded = True

    def _accept(self, data: Any) -> Optional[Dict[str, Any]]:
        """Apply the version gate to a decoded snapshot."""
        if not isinstance(data, dict):
            log.warning("snapshot_not_an_object", key=self.key)
            return None
        if data.get("version") != self.version:
            log.info(
                "snapshot_version_mismatch",
                key=self.key,
                found=data.get("version"),
                expected=self.version,
            )
            return None
        return data

    async def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored snapshot or None."""
        self._loaded = True

        if self._degraded:
            return copy.deepcopy(self._snapshot)

        try:
            raw = await self.backend.read(self.key)
        except STORAGE_ERRORS as e:
            self._degrade("load", e)
            return copy.deepcopy(self._snapshot)

        if raw is None:
            self._snapshot = None
            return None

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            log.warning("snapshot_corrupt", key=self.key, error=str(e))
            self._snapshot = None
            return None

        self._snapshot = self._accept(data)
        return copy.deepcopy(self._snapshot)

    async def save(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merge partial into the last known snapshot and write it.

        Returns:
            The full snapshot as written
        """
        if not self._loaded:
            await self.load()

        merged: Dict[str, Any] = dict(self.defaults)
        if self._snapshot:
            merged.update(self._snapshot)
        merged.update(partial)
        merged["version"] = self.version
        merged["last_updated"] = int(time.time() * 1000)

        serialized = json.dumps(merged, ensure_ascii=False)
        # Memory copy goes through JSON too, so memory and medium agree
        self._snapshot = json.loads(serialized)

        if not self._degraded:
            try:
                await self.backend.write(self.key, serialized)
            except STORAGE_ERRORS as e:
                self._degrade("save", e)

        log.debug("snapshot_saved", key=self.key, degraded=self._degraded)
        return copy.deepcopy(self._snapshot)

    async def clear(self) -> None:
        """Remove every trace of the snapshot."""
        self._snapshot = None
        self._loaded = True

        if not self._degraded:
            try:
                await self.backend.delete(self.key)
            except STORAGE_ERRORS as e:
                self._degrade("clear", e)

        log.info("snapshot_cleared", key=self.key)

    async def health(self) -> Dict[str, Any]:
        if self._degraded:
            return {"status": "degraded", "backend": "memory"}
        return await self.backend.health()
