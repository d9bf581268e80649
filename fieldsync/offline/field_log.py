"""Field Log: append-only diagnostic entries kept on the device.

Entries are for support staff reading them off a device; business logic never
consults them. Only an explicit `clear()` removes entries.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fieldsync.models.offline import FieldLogEntry, FieldLogLevel
from fieldsync.offline.local_store import LocalStore

logger = logging.getLogger(__name__)

FIELD_LOG_NAMESPACE = "field_log"


class FieldLog:
    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def append(self, level: str, message: str, details: Optional[Any] = None) -> FieldLogEntry:
        entry = FieldLogEntry(level=level, message=message, details=details)
        await self._store.put(FIELD_LOG_NAMESPACE, entry.id, entry.to_blob())
        return entry

    async def info(self, message: str, details: Optional[Any] = None) -> FieldLogEntry:
        return await self.append(FieldLogLevel.INFO, message, details)

    async def error(self, message: str, details: Optional[Any] = None) -> FieldLogEntry:
        return await self.append(FieldLogLevel.ERROR, message, details)

    async def entries(self) -> list[FieldLogEntry]:
        """Return entries oldest first."""
        return [FieldLogEntry.from_blob(b) for b in await self._store.values(FIELD_LOG_NAMESPACE)]

    async def clear(self) -> int:
        removed = await self._store.clear(FIELD_LOG_NAMESPACE)
        logger.info("field_log_cleared count=%s", removed)
        return removed


__all__ = ["FIELD_LOG_NAMESPACE", "FieldLog"]
