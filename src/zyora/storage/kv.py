from __future__ import annotations

import abc
import asyncio
import json
from pathlib import Path
from typing import Dict, Iterable

from ..errors import StorageError


class KeyValueStore(abc.ABC):
    """Async string key-value store backing local persistence."""

    @abc.abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    @abc.abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abc.abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete ``key``; removing an absent key is not an error."""

    async def multi_remove(self, keys: Iterable[str]) -> None:
        # Removals run concurrently; there is no cross-key atomicity.
        await asyncio.gather(*(self.remove_item(key) for key in keys))


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class JSONFileKeyValueStore(KeyValueStore):
    """
    Store every entry in a single JSON object file.

    File access runs in a worker thread. Operations are serialized by an
    ``asyncio.Lock`` so they hit the file in call order, but a caller's
    read-modify-write spanning two operations is not atomic.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(str(self._path), f"Unreadable storage file: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(str(self._path), "Storage file does not contain a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def _update(self, key: str, value: str | None) -> None:
        data = self._read()
        if value is None:
            if key not in data:
                return
            data.pop(key)
        else:
            data[key] = value
        self._write(data)

    async def get_item(self, key: str) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, key, value)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, key, None)
