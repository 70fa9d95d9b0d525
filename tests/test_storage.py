"""Tests for the key-value stores and typed storage adapters."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from conftest import FailingKeyValueStore, YieldingKeyValueStore
from zyora.errors import StorageError
from zyora.storage import (
    DevModeStorage,
    JSONFileKeyValueStore,
    LooksStorage,
    MemoryKeyValueStore,
    StorageAdapters,
    StorageKeys,
    UserStorage,
    clear_all_data,
)
from zyora.types import SavedLook, UserProfile


def _profile(**overrides) -> UserProfile:
    data = {
        "uid": "google-42",
        "display_name": "Ada",
        "email": "ada@example.com",
        "photo_url": None,
        "quota": 3,
        "max_quota": 10,
    }
    data.update(overrides)
    return UserProfile(**data)


def test_user_storage_roundtrip_uses_camel_case_json() -> None:
    kv = MemoryKeyValueStore()
    users = UserStorage(kv)
    profile = _profile()

    async def scenario() -> UserProfile | None:
        await users.save(profile)
        return await users.get()

    assert asyncio.run(scenario()) == profile
    stored = json.loads(kv.data[StorageKeys.USER])
    assert stored == {
        "uid": "google-42",
        "displayName": "Ada",
        "email": "ada@example.com",
        "photoURL": None,
        "quota": 3,
        "maxQuota": 10,
    }


def test_user_storage_missing_and_removed() -> None:
    kv = MemoryKeyValueStore()
    users = UserStorage(kv)

    async def scenario():
        missing = await users.get()
        await users.save(_profile())
        await users.remove()
        return missing, await users.get()

    assert asyncio.run(scenario()) == (None, None)


def test_stored_json_null_reads_as_absent() -> None:
    kv = MemoryKeyValueStore({StorageKeys.USER: "null", StorageKeys.SAVED_LOOKS: "null"})

    async def scenario():
        return await UserStorage(kv).get(), await LooksStorage(kv).get_all()

    assert asyncio.run(scenario()) == (None, [])


def test_user_storage_corrupt_entry_raises_storage_error() -> None:
    kv = MemoryKeyValueStore({StorageKeys.USER: "{not json"})
    with pytest.raises(StorageError):
        asyncio.run(UserStorage(kv).get())


def test_user_storage_wraps_backend_failures() -> None:
    kv = FailingKeyValueStore(fail_keys={StorageKeys.USER})
    users = UserStorage(kv)
    with pytest.raises(StorageError) as excinfo:
        asyncio.run(users.save(_profile()))
    assert excinfo.value.key == StorageKeys.USER
    assert isinstance(excinfo.value.__cause__, OSError)


def test_update_quota_rewrites_stored_profile_only_when_present() -> None:
    kv = MemoryKeyValueStore()
    users = UserStorage(kv)

    async def scenario():
        await users.update_quota(5)
        assert StorageKeys.USER not in kv.data
        await users.save(_profile(quota=1))
        await users.update_quota(2)
        return await users.get()

    assert asyncio.run(scenario()).quota == 2


def test_looks_storage_prepends_and_caps_at_fifty() -> None:
    kv = MemoryKeyValueStore()
    looks = LooksStorage(kv)
    saved = [SavedLook(id=str(i), image=f"data:image/png;base64,{i}", created_at=i) for i in range(55)]

    async def scenario():
        for look in saved:
            await looks.save(look)
        return await looks.get_all()

    stored = asyncio.run(scenario())
    assert len(stored) == 50
    assert [look.id for look in stored] == [str(i) for i in range(54, 4, -1)]


def test_looks_storage_remove_absent_id_leaves_list_unchanged() -> None:
    kv = MemoryKeyValueStore()
    looks = LooksStorage(kv)

    async def scenario():
        await looks.save(SavedLook(id="a", image="x"))
        await looks.save(SavedLook(id="b", image="y"))
        await looks.remove("missing")
        first = await looks.get_all()
        await looks.remove("a")
        return first, await looks.get_all()

    first, second = asyncio.run(scenario())
    assert [look.id for look in first] == ["b", "a"]
    assert [look.id for look in second] == ["b"]


def test_looks_storage_persists_optional_uris_by_alias() -> None:
    kv = MemoryKeyValueStore()
    look = SavedLook(id="1", image="data:image/png;base64,AAA", created_at=7, user_image_uri="file:///u.jpg")
    asyncio.run(LooksStorage(kv).save(look))

    stored = json.loads(kv.data[StorageKeys.SAVED_LOOKS])
    assert stored == [
        {
            "id": "1",
            "image": "data:image/png;base64,AAA",
            "createdAt": 7,
            "userImageUri": "file:///u.jpg",
            "fitImageUri": None,
        }
    ]


def test_overlapping_look_saves_can_lose_an_update() -> None:
    # Known race: both saves read the same list before either writes it back.
    kv = YieldingKeyValueStore()
    looks = LooksStorage(kv)
    first = SavedLook(id="first", image="a")
    second = SavedLook(id="second", image="b")

    async def scenario():
        await asyncio.gather(looks.save(first), looks.save(second))
        return await looks.get_all()

    stored_ids = {look.id for look in asyncio.run(scenario())}
    assert stored_ids & {"first", "second"}


def test_dev_mode_storage_uses_string_literals() -> None:
    kv = MemoryKeyValueStore()
    dev_mode = DevModeStorage(kv)

    async def scenario():
        states = [await dev_mode.is_enabled()]
        await dev_mode.set_enabled(True)
        states.append(kv.data[StorageKeys.DEV_MODE])
        states.append(await dev_mode.is_enabled())
        await dev_mode.set_enabled(False)
        states.append(kv.data[StorageKeys.DEV_MODE])
        states.append(await dev_mode.is_enabled())
        return states

    assert asyncio.run(scenario()) == [False, "true", True, "false", False]


def test_clear_all_data_removes_only_app_keys() -> None:
    kv = MemoryKeyValueStore(
        {
            StorageKeys.USER: "{}",
            StorageKeys.SAVED_LOOKS: "[]",
            StorageKeys.DEV_MODE: "true",
            StorageKeys.LOOKS_COUNT: "3",
            "other:key": "keep",
        }
    )
    asyncio.run(clear_all_data(kv))
    assert kv.data == {"other:key": "keep"}


def test_storage_adapters_clear_wraps_failures() -> None:
    kv = FailingKeyValueStore(fail_keys={StorageKeys.DEV_MODE})
    adapters = StorageAdapters.from_store(kv)
    with pytest.raises(StorageError):
        asyncio.run(adapters.clear())


def test_json_file_store_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "state" / "storage.json"
    kv = JSONFileKeyValueStore(path)

    async def scenario():
        await kv.set_item("a", "1")
        await kv.set_item("b", "2")
        await kv.remove_item("a")
        await kv.remove_item("never-set")
        return await kv.get_item("a"), await kv.get_item("b")

    assert asyncio.run(scenario()) == (None, "2")
    assert json.loads(path.read_text()) == {"b": "2"}

    reopened = JSONFileKeyValueStore(path)
    assert asyncio.run(reopened.get_item("b")) == "2"


def test_json_file_store_corrupt_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("[1, 2")
    users = UserStorage(JSONFileKeyValueStore(path))
    with pytest.raises(StorageError):
        asyncio.run(users.get())
