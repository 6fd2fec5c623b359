"""
ProfileManager 单元测试

热重载：防抖、失败保留旧 Profile、取消旧监听
"""

import asyncio

import pytest

from core.conf.applier import ConfigApplier
from core.conf.loader import ConfigLoader
from core.conf.manager import ConfigSource, ProfileManager
from core.errors import StorageNotFoundError
from core.namespace.registry import NamespaceRegistry, ProfileRegistry
from core.rule.types import RequestInfo
from core.runtime.store import load_runtime

V1 = "[Server]\nPROXY1 = ss, 1.2.3.4, 8388\n[Rule]\nDOMAIN,example.com,PROXY1\nFINAL,,DIRECT\n"
V2 = "[Server]\nPROXY1 = ss, 1.2.3.4, 8388\n[Rule]\nDOMAIN,example.com,REJECT\nFINAL,,DIRECT\n"
BROKEN = "[Rule]\nDOMAIN,example.com,MISSING\n"


def _manager(storages, encodings, debounce=0.01, reload_retries=0):
    async def build():
        runtime = await load_runtime("memory", "json", {"name": "runtime"}, storages, encodings)
        namespaces = NamespaceRegistry()
        manager = ProfileManager(
            loader=ConfigLoader(storages, encodings),
            applier=ConfigApplier(ProfileRegistry(), namespaces),
            runtime=runtime,
            source=ConfigSource("memory", "conf", {"name": "main"}),
            debounce=debounce,
            reload_retries=reload_retries,
            retry_base_delay=0,
        )
        return manager, namespaces

    return build()


async def _resolve(namespaces, domain="example.com"):
    return await namespaces.get("default").resolve(RequestInfo(domain=domain))


class TestProfileManagerStart:
    def test_start_publishes_profile(self, storages, encodings, seed):
        seed("main", V1)

        async def scenario():
            manager, namespaces = await _manager(storages, encodings)
            profile = await manager.start()
            rule = await _resolve(namespaces)
            await manager.stop()
            return profile, rule

        profile, rule = asyncio.run(scenario())
        assert profile.name == "main"
        assert rule.proxy == "PROXY1"

    def test_start_failure_propagates(self, storages, encodings):
        async def scenario():
            manager, namespaces = await _manager(storages, encodings)
            try:
                await manager.start()
            finally:
                assert namespaces.get("default") is None

        with pytest.raises(StorageNotFoundError):
            asyncio.run(scenario())

    def test_start_retries_load(self, storages, encodings, seed):
        async def scenario():
            manager, namespaces = await _manager(storages, encodings, reload_retries=3)
            manager.retry_base_delay = 0.02

            async def late_seed():
                await asyncio.sleep(0.01)
                seed("main", V1)

            seeding = asyncio.create_task(late_seed())
            profile = await manager.start()
            await seeding
            await manager.stop()
            return profile

        assert asyncio.run(scenario()).name == "main"


class TestProfileManagerReload:
    def test_change_triggers_debounced_reload(self, storages, encodings, seed):
        seed("main", V1)
        storage = storages.get("memory", {"name": "main"})

        async def scenario():
            manager, namespaces = await _manager(storages, encodings, debounce=0.05)
            await manager.start()

            await storage.save(V2.encode())
            await storage.save(V2.encode())
            await asyncio.sleep(0.2)

            rule = await _resolve(namespaces)
            count = manager.reload_count
            await manager.stop()
            return rule, count

        rule, count = asyncio.run(scenario())
        assert rule.proxy == "REJECT"
        assert count == 1

    def test_failed_reload_keeps_previous_profile(self, storages, encodings, seed):
        seed("main", V1)
        storage = storages.get("memory", {"name": "main"})

        async def scenario():
            manager, namespaces = await _manager(storages, encodings)
            first = await manager.start()

            await storage.save(BROKEN.encode())
            await asyncio.sleep(0.1)

            rule = await _resolve(namespaces)
            current = manager.profile
            await manager.stop()
            return first, current, rule

        first, current, rule = asyncio.run(scenario())
        assert current is first
        assert rule.proxy == "PROXY1"

    def test_successful_reload_cancels_previous_watchers(self, storages, encodings, seed):
        seed("main", V1)

        async def scenario():
            manager, _ = await _manager(storages, encodings)
            await manager.start()
            first_event = manager._cancel_event

            await manager.reload()
            second_event = manager._cancel_event

            await manager.stop()
            return first_event, second_event

        first_event, second_event = asyncio.run(scenario())
        assert first_event.is_set()
        assert second_event.is_set()
        assert first_event is not second_event

    def test_mode_survives_reload(self, storages, encodings, seed):
        seed("main", V1)

        async def scenario():
            manager, namespaces = await _manager(storages, encodings)
            await manager.start()
            await namespaces.get("default").set_mode("global")
            await manager.reload()
            rule = await _resolve(namespaces)
            await manager.stop()
            return rule

        assert asyncio.run(scenario()).proxy == "GLOBAL"

    def test_stop_ignores_later_changes(self, storages, encodings, seed):
        seed("main", V1)
        storage = storages.get("memory", {"name": "main"})

        async def scenario():
            manager, _ = await _manager(storages, encodings)
            await manager.start()
            await manager.stop()
            await storage.save(V2.encode())
            await asyncio.sleep(0.05)
            return manager.reload_count

        assert asyncio.run(scenario()) == 0
