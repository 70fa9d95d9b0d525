"""Shared fakes for the test suite."""

from __future__ import annotations

import asyncio
import io
from typing import Iterable

from PIL import Image

from zyora.clients.identity import DeveloperIdentityProvider, IdentityProvider
from zyora.errors import IdentityError
from zyora.storage import MemoryKeyValueStore, StorageAdapters
from zyora.store import AppStore
from zyora.types import ProviderProfile


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (8, 8), color=(200, 30, 30)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = (*color, 255) if mode == "RGBA" else color
    buffer = io.BytesIO()
    Image.new(mode, size, fill).save(buffer, format=fmt)
    return buffer.getvalue()


class FailingKeyValueStore(MemoryKeyValueStore):
    """Raises OSError for any operation touching one of ``fail_keys``."""

    def __init__(self, fail_keys: Iterable[str] = (), initial=None) -> None:
        super().__init__(initial)
        self.fail_keys = set(fail_keys)

    def _check(self, key: str) -> None:
        if key in self.fail_keys:
            raise OSError(f"disk unavailable for {key}")

    async def get_item(self, key: str) -> str | None:
        self._check(key)
        return await super().get_item(key)

    async def set_item(self, key: str, value: str) -> None:
        self._check(key)
        await super().set_item(key, value)

    async def remove_item(self, key: str) -> None:
        self._check(key)
        await super().remove_item(key)


class YieldingKeyValueStore(MemoryKeyValueStore):
    """Suspends on every read so overlapping read-modify-writes interleave."""

    async def get_item(self, key: str) -> str | None:
        value = await super().get_item(key)
        await asyncio.sleep(0)
        return value


class FailingIdentityProvider(DeveloperIdentityProvider):
    def __init__(self) -> None:
        self.sign_out_calls = 0

    async def sign_in_with_provider(self, token: str) -> ProviderProfile:
        raise IdentityError("provider unavailable")

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        raise IdentityError("provider unavailable")


def build_store(
    kv: MemoryKeyValueStore | None = None,
    identity: IdentityProvider | None = None,
    max_quota: int = 10,
) -> tuple[AppStore, MemoryKeyValueStore]:
    kv = kv if kv is not None else MemoryKeyValueStore()
    store = AppStore(
        StorageAdapters.from_store(kv),
        identity or DeveloperIdentityProvider(),
        max_quota=max_quota,
    )
    return store, kv
