"""Bounded, persistent execution history.

Architecture:
    - One JSON blob: {"records": [HistoryRecord, ...]}
    - Newest-first ordering, capped at max_records (oldest records evicted)
    - Write-through: every mutation rewrites the blob (temp file + rename)
      while holding an asyncio.Lock
    - Load-on-demand: no in-memory cache, always read from the filesystem
    - Fail soft: read errors yield an empty history, write errors are logged
      and swallowed so history loss never aborts an execution
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..formatting import format_timestamp as render_timestamp
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RECORDS = 100


class HistoryRecord(BaseModel):
    """One execution attempt, immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique record ID")
    input: str = Field(description="Human-readable encoding of the parameter set")
    result: str = Field(default="", description="Terminal payload (empty on failure)")
    timestamp: int = Field(description="Creation time in milliseconds since the epoch")
    success: bool = Field(description="Whether the attempt succeeded")
    error: str | None = Field(default=None, description="Error message if failed")


class HistoryStore:
    """Persistent, bounded log of execution attempts.

    Example:
        store = HistoryStore(Path("~/.workflow-hub/history.json").expanduser())

        await store.append(input="url: https://x.test", result="ok", success=True)
        records = await store.list()      # newest first
        await store.remove(records[0].id)
        await store.clear()
    """

    def __init__(self, path: Path, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._path = Path(path)
        self._max_records = max_records
        # Serializes read-modify-write cycles on the blob
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_records(self) -> int:
        return self._max_records

    async def append(
        self,
        input: str,
        result: str,
        success: bool,
        error: str | None = None,
    ) -> HistoryRecord:
        """Prepend a new record and persist, evicting the oldest beyond the cap.

        Always succeeds from the caller's perspective: persistence failures
        are logged, never raised.

        Returns:
            The created record (even if it could not be persisted)
        """
        record = HistoryRecord(
            id=uuid.uuid4().hex,
            input=input,
            result=result,
            timestamp=int(time.time() * 1000),
            success=success,
            error=error,
        )

        def _append() -> None:
            records = self._read_records()
            records.insert(0, record)
            self._write_records(records[: self._max_records])

        try:
            async with self._lock:
                await self._run_in_executor(_append)
        except PersistenceError as e:
            logger.error(f"Failed to save history record: {e}")

        return record

    async def list(self) -> list[HistoryRecord]:
        """Return all records, newest first ([] on missing or unreadable data)."""
        async with self._lock:
            return await self._run_in_executor(self._read_records)

    async def get(self, record_id: str) -> HistoryRecord | None:
        for record in await self.list():
            if record.id == record_id:
                return record
        return None

    async def remove(self, record_id: str) -> None:
        """Delete the record with this id (no-op if absent)."""

        def _remove() -> None:
            records = self._read_records()
            remaining = [r for r in records if r.id != record_id]
            if len(remaining) != len(records):
                self._write_records(remaining)

        try:
            async with self._lock:
                await self._run_in_executor(_remove)
        except PersistenceError as e:
            logger.error(f"Failed to delete history record {record_id}: {e}")

    async def clear(self) -> None:
        """Delete all records."""

        def _clear() -> None:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Cannot remove {self._path}: {e}") from e

        try:
            async with self._lock:
                await self._run_in_executor(_clear)
        except PersistenceError as e:
            logger.error(f"Failed to clear history: {e}")

    @staticmethod
    def format_timestamp(timestamp: int) -> str:
        """Render a millisecond timestamp as local time, e.g. 2025/01/31 14:05:09."""
        return render_timestamp(timestamp)

    # Blob I/O (runs in thread pool)

    def _read_records(self) -> list[HistoryRecord]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
            return [HistoryRecord.model_validate(item) for item in data.get("records") or []]
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.error(f"Failed to read history from {self._path}: {e}")
            return []

    def _write_records(self, records: list[HistoryRecord]) -> None:
        data = {"records": [r.model_dump(exclude_none=True) for r in records]}
        temp_file = self._path.with_suffix(".json.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_file.replace(self._path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self._path}: {e}") from e

    async def _run_in_executor(self, func: Callable[[], T]) -> T:
        """Run blocking function in thread pool executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)


__all__ = ["HistoryRecord", "HistoryStore", "DEFAULT_MAX_RECORDS"]
