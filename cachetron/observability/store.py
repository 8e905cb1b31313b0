"""
Cachetron - Metrics Sink

Append-only JSON array file of MetricsSnapshot records. Every append reads
the whole array, pushes one record and writes the whole array back.
Corrupt or non-array content is treated as empty and overwritten.

The file grows without bound unless max_entries is set, in which case only
the newest max_entries records are kept.

I/O operations are performed using aiofiles to avoid blocking the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import aiofiles.os

if TYPE_CHECKING:
    from ..cache.metrics import MetricsSnapshot

logger = logging.getLogger(__name__)


class MetricsStore:
    """JSON array file holding metrics snapshots."""

    def __init__(self, path: str | Path, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.path = Path(path)
        self.max_entries = max_entries
        self._lock = asyncio.Lock()

    async def read_all(self) -> list[dict[str, Any]]:
        """Return every stored record; missing or corrupt files read as empty."""
        if not await aiofiles.os.path.exists(self.path):
            return []

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
            records = json.loads(content)
        except (OSError, ValueError) as e:
            logger.warning(
                "Metrics file unreadable, treating as empty",
                extra={"path": str(self.path), "error": str(e)},
            )
            return []

        if not isinstance(records, list):
            logger.warning("Metrics file is not a JSON array, treating as empty", extra={"path": str(self.path)})
            return []
        return records

    async def append(self, snapshot: MetricsSnapshot) -> int:
        """
        Append one snapshot and rewrite the file.

        Returns:
            Number of records in the file after the write
        """
        async with self._lock:
            records = await self.read_all()
            records.append(snapshot.to_record())
            if self.max_entries is not None and len(records) > self.max_entries:
                records = records[-self.max_entries :]

            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(records, indent=2))

        logger.debug("Metrics file updated", extra={"path": str(self.path), "records": len(records)})
        return len(records)

    async def latest(self) -> dict[str, Any] | None:
        """Most recent record, or None when the file is empty."""
        records = await self.read_all()
        return records[-1] if records else None
