"""Persisted key/value settings shared across sessions.

Holds the last-used workflow id and workspace id. The store is injected into
the ExecutionEngine and the WorkflowDirectoryClient at construction time
instead of living as process-wide state.

File I/O runs in the default thread pool executor; updates take an
asyncio.Lock around the read-modify-write of the JSON file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

LAST_WORKFLOW_ID = "last_workflow_id"
LAST_WORKSPACE_ID = "last_workspace_id"


class SettingsStore:
    """Small JSON-backed key/value store.

    Reads fail soft (missing or corrupt file -> empty settings) and writes
    are logged and swallowed, like the history store.

    Example:
        store = SettingsStore(Path("~/.workflow-hub/settings.json").expanduser())

        await store.set_last_workflow_id("7549775278664024079")
        workflow_id = await store.get_last_workflow_id()
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def get(self, key: str, default: Any = None) -> Any:
        data = await self._run_in_executor(self._load)
        return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        """Persist one value (no write when it is unchanged)."""

        def _set() -> None:
            data = self._load()
            if data.get(key) == value:
                return
            data[key] = value
            self._save(data)

        try:
            async with self._lock:
                await self._run_in_executor(_set)
        except PersistenceError as e:
            logger.error(f"Failed to save setting '{key}': {e}")

    async def get_last_workflow_id(self) -> str | None:
        return await self.get(LAST_WORKFLOW_ID)

    async def set_last_workflow_id(self, workflow_id: str) -> None:
        await self.set(LAST_WORKFLOW_ID, workflow_id)

    async def get_last_workspace_id(self) -> str | None:
        return await self.get(LAST_WORKSPACE_ID)

    async def set_last_workspace_id(self, workspace_id: str) -> None:
        await self.set(LAST_WORKSPACE_ID, workspace_id)

    # File I/O (runs in thread pool)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self._path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
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


__all__ = ["SettingsStore", "LAST_WORKFLOW_ID", "LAST_WORKSPACE_ID"]
