from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List

from pydantic import TypeAdapter, ValidationError

from ..errors import StorageError
from ..types import SavedLook, UserProfile
from .kv import KeyValueStore

MAX_SAVED_LOOKS = 50

_LOOKS_ADAPTER = TypeAdapter(List[SavedLook])


class StorageKeys:
    USER = "zyora:user"
    LOOKS_COUNT = "zyora:looks:count"
    SAVED_LOOKS = "zyora:saved_looks"
    DEV_MODE = "zyora:dev_mode"

    @classmethod
    def all(cls) -> list[str]:
        return [cls.USER, cls.LOOKS_COUNT, cls.SAVED_LOOKS, cls.DEV_MODE]


async def _get(store: KeyValueStore, key: str) -> str | None:
    try:
        return await store.get_item(key)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(key, f"Read failed: {exc}") from exc


async def _set(store: KeyValueStore, key: str, value: str) -> None:
    try:
        await store.set_item(key, value)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(key, f"Write failed: {exc}") from exc


async def _remove(store: KeyValueStore, key: str) -> None:
    try:
        await store.remove_item(key)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(key, f"Remove failed: {exc}") from exc


def _is_absent(raw: str | None) -> bool:
    # A stored JSON null reads back the same as a missing key.
    return not raw or raw.strip() == "null"


class UserStorage:
    """Persists the signed-in user profile."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def save(self, user: UserProfile) -> None:
        await _set(self._store, StorageKeys.USER, user.to_json())

    async def get(self) -> UserProfile | None:
        raw = await _get(self._store, StorageKeys.USER)
        if _is_absent(raw):
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageError(StorageKeys.USER, "Stored user profile is invalid") from exc

    async def remove(self) -> None:
        await _remove(self._store, StorageKeys.USER)

    async def update_quota(self, quota: int) -> None:
        user = await self.get()
        if user is not None:
            await self.save(user.with_quota(quota))


class LooksStorage:
    """
    Persists saved looks as one JSON array, newest first.

    ``save`` and ``remove`` read the whole list, modify it and write it back, so
    two overlapping calls can lose one of the updates.
    """

    def __init__(self, store: KeyValueStore, max_looks: int = MAX_SAVED_LOOKS) -> None:
        self._store = store
        self._max_looks = max_looks

    @property
    def max_looks(self) -> int:
        return self._max_looks

    async def _write(self, looks: List[SavedLook]) -> None:
        payload = _LOOKS_ADAPTER.dump_json(looks, by_alias=True).decode("utf-8")
        await _set(self._store, StorageKeys.SAVED_LOOKS, payload)

    async def save(self, look: SavedLook) -> None:
        looks = await self.get_all()
        looks.insert(0, look)
        await self._write(looks[: self._max_looks])

    async def get_all(self) -> List[SavedLook]:
        raw = await _get(self._store, StorageKeys.SAVED_LOOKS)
        if _is_absent(raw):
            return []
        try:
            return _LOOKS_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            raise StorageError(StorageKeys.SAVED_LOOKS, "Stored looks are invalid") from exc

    async def remove(self, look_id: str) -> None:
        looks = await self.get_all()
        await self._write([look for look in looks if look.id != look_id])

    async def clear(self) -> None:
        await _remove(self._store, StorageKeys.SAVED_LOOKS)


class DevModeStorage:
    """Persists the developer-mode flag as the literal ``"true"`` or ``"false"``."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def is_enabled(self) -> bool:
        value = await _get(self._store, StorageKeys.DEV_MODE)
        return value == "true"

    async def set_enabled(self, enabled: bool) -> None:
        await _set(self._store, StorageKeys.DEV_MODE, json.dumps(bool(enabled)))

    async def remove(self) -> None:
        await _remove(self._store, StorageKeys.DEV_MODE)


async def clear_all_data(store: KeyValueStore) -> None:
    """Remove every persisted key. Each removal is independent of the others."""
    try:
        await store.multi_remove(StorageKeys.all())
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(", ".join(StorageKeys.all()), f"Clear failed: {exc}") from exc


@dataclass(slots=True)
class StorageAdapters:
    """The three typed adapters sharing one key-value store."""

    store: KeyValueStore
    user: UserStorage
    looks: LooksStorage
    dev_mode: DevModeStorage

    @classmethod
    def from_store(cls, store: KeyValueStore, max_looks: int = MAX_SAVED_LOOKS) -> "StorageAdapters":
        return cls(
            store=store,
            user=UserStorage(store),
            looks=LooksStorage(store, max_looks=max_looks),
            dev_mode=DevModeStorage(store),
        )

    async def clear(self) -> None:
        await clear_all_data(self.store)
