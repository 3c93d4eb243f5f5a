"""
In-memory session store.

Records are keyed by ``(collection, id)``. Reads and writes go through deep
copies so callers can never mutate stored state in place.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Optional


class InMemorySessionStore:
    """Async key-value store for ``sessions`` and ``turns`` records."""

    def __init__(self, initial: dict[str, dict[str, dict[str, Any]]] | None = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = copy.deepcopy(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        record = self._data.get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, record_id: str, record: dict[str, Any]) -> None:
        async with self._lock:
            self._data.setdefault(collection, {})[record_id] = copy.deepcopy(record)
