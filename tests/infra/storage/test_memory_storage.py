"""
MemoryStorage 单元测试
"""

import asyncio

import pytest

from core.errors import BackendConstructionError, StorageNotFoundError
from infra.storage.memory import MemoryBuckets, MemoryStorage


class TestMemoryStorage:
    def test_name_is_required(self):
        with pytest.raises(BackendConstructionError):
            MemoryStorage({})

    def test_missing_bucket_is_not_found(self):
        with pytest.raises(StorageNotFoundError):
            asyncio.run(MemoryStorage({"name": "absent"}).load())

    def test_initial_data(self):
        storage = MemoryStorage({"name": "main", "data": "hello"})
        assert asyncio.run(storage.load()) == b"hello"

    def test_initial_data_does_not_overwrite_existing_bucket(self):
        buckets = MemoryBuckets()
        MemoryStorage({"name": "main", "data": "first"}, buckets)
        storage = MemoryStorage({"name": "main", "data": "second"}, buckets)
        assert asyncio.run(storage.load()) == b"first"

    def test_buckets_are_shared(self):
        buckets = MemoryBuckets()
        asyncio.run(MemoryStorage({"name": "rt"}, buckets).save(b"saved"))
        assert asyncio.run(MemoryStorage({"name": "rt"}, buckets).load()) == b"saved"

    def test_separate_buckets_are_isolated(self):
        asyncio.run(MemoryStorage({"name": "rt"}).save(b"saved"))
        with pytest.raises(StorageNotFoundError):
            asyncio.run(MemoryStorage({"name": "rt"}).load())


class TestMemoryStorageNotify:
    def test_save_notifies_until_cancelled(self):
        buckets = MemoryBuckets()
        storage = MemoryStorage({"name": "main"}, buckets)
        seen = []

        async def scenario():
            cancel = asyncio.Event()
            await storage.register_notify(cancel, seen.append)
            await storage.save(b"one")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            cancel.set()
            await storage.save(b"two")
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert seen == ["main"]

    def test_listeners_on_other_buckets_are_not_notified(self):
        buckets = MemoryBuckets()
        seen = []

        async def scenario():
            cancel = asyncio.Event()
            await MemoryStorage({"name": "a"}, buckets).register_notify(cancel, seen.append)
            await MemoryStorage({"name": "b"}, buckets).save(b"x")
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert seen == []

    def test_pending_notify_tasks_are_held_until_done(self):
        buckets = MemoryBuckets()
        storage = MemoryStorage({"name": "main"}, buckets)
        seen = []

        async def scenario():
            cancel = asyncio.Event()
            await storage.register_notify(cancel, seen.append)
            await storage.save(b"one")
            held = len(buckets._pending)
            await asyncio.sleep(0.01)
            return held

        assert asyncio.run(scenario()) == 1
        assert seen == ["main"]
        assert buckets._pending == set()
