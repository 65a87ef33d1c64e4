"""
Durable key/value stores backing the telemetry queue.

The queue only needs ``get(key)`` and ``set(key, value)``; values are plain
JSON-compatible structures. Setting ``None`` removes the key.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

from loguru import logger

from ..errors import StoreError


class KeyValueStore(Protocol):
    """Protocol for the opaque persistence capability used by TelemetryQueue."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> bool:
        ...


class InMemoryStore:
    """Dict-backed store for tests and ephemeral processes.

    Values are deep-copied in and out so callers never alias stored state.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> bool:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = copy.deepcopy(value)
        return True

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """Single JSON document on disk, rewritten atomically on every set.

    File I/O runs in a worker thread so the event loop is never blocked.
    """

    def __init__(self, path: Union[str, Path], *, mkdirs: bool = True) -> None:
        self.path = Path(path)
        if mkdirs:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            data = await self._load()
            return copy.deepcopy(data.get(key))

    async def set(self, key: str, value: Any) -> bool:
        async with self._lock:
            updated = dict(await self._load())
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = copy.deepcopy(value)
            await asyncio.to_thread(self._write, updated)
            # Cache follows disk only once the write landed
            self._data = updated
            return True

    async def _load(self) -> Dict[str, Any]:
        if self._data is None:
            self._data = await asyncio.to_thread(self._read)
        return self._data

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as exc:
            raise StoreError(f"cannot read {self.path}: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"corrupt store file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"store file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        except OSError as exc:
            raise StoreError(f"cannot write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, separators=(",", ":"))
            os.replace(tmp, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise StoreError(f"cannot write {self.path}: {exc}") from exc
        logger.trace(f"Store flushed to {self.path} ({len(data)} keys)")
