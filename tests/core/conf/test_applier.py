"""
ConfigApplier 单元测试

加载 -> 应用 -> 通过命名空间解析请求的端到端路径
"""

import asyncio
from dataclasses import replace

import pytest

from core.collaborators import builtin_collaborators
from core.conf.applier import DEFAULT_RULE, ConfigApplier
from core.conf.loader import ConfigLoader
from core.conf.model import Configuration
from core.errors import DownstreamApplyError
from core.namespace.registry import NamespaceRegistry, ProfileRegistry
from core.rule.types import Mode, RequestInfo, Rule
from core.runtime.store import load_runtime


@pytest.fixture
def runtime(storages, encodings):
    return asyncio.run(load_runtime("memory", "json", {"name": "runtime"}, storages, encodings))


def _apply(config, runtime, collaborators=None, name="default"):
    profiles, namespaces = ProfileRegistry(), NamespaceRegistry()
    applier = ConfigApplier(profiles, namespaces, collaborators)
    profile = asyncio.run(applier.apply(config, runtime, name))
    return profile, profiles, namespaces


def _load(storages, encodings, params):
    return asyncio.run(ConfigLoader(storages, encodings).load("memory", "conf", params))


class TestApplyScenario:
    """主配置 DOMAIN,example.com,PROXY1 + include FINAL,,DIRECT"""

    def test_rules_from_primary_and_include(self, storages, encodings, seed_scenario, runtime):
        config = _load(storages, encodings, seed_scenario)
        profile, profiles, namespaces = _apply(config, runtime)
        namespace = namespaces.get("default")

        hit = asyncio.run(namespace.resolve(RequestInfo(domain="example.com", port=443)))
        miss = asyncio.run(namespace.resolve(RequestInfo(domain="other.org", port=443)))

        assert hit == Rule(type="DOMAIN", proxy="PROXY1", value="example.com", profile="main")
        assert (miss.type, miss.proxy) == ("FINAL", "DIRECT")
        assert profiles.get("main") is profile
        assert set(profile.servers) == {"DIRECT", "REJECT", "PROXY1"}

    def test_global_mode_overrides_matching_rule(self, storages, encodings, seed_scenario, runtime):
        config = _load(storages, encodings, seed_scenario)
        _, _, namespaces = _apply(config, runtime)
        namespace = namespaces.get("default")

        async def scenario():
            await namespace.set_mode(Mode.GLOBAL)
            return await namespace.resolve(RequestInfo(domain="example.com"))

        rule = asyncio.run(scenario())
        assert (rule.type, rule.proxy, rule.profile) == ("GLOBAL", "GLOBAL", "main")
        assert runtime.snapshot() == {"default.mode": "global"}

    def test_direct_mode_on_udp_chain(self, storages, encodings, seed_scenario, runtime):
        config = _load(storages, encodings, seed_scenario)
        _, _, namespaces = _apply(config, runtime)
        namespace = namespaces.get("default")

        async def scenario():
            await namespace.set_mode("direct")
            return await namespace.resolve(RequestInfo(domain="example.com", network="udp"), datagram=True)

        rule = asyncio.run(scenario())
        assert (rule.type, rule.proxy) == ("DIRECT", "DIRECT")


class TestApplyDefaults:
    def test_empty_rules_use_default_rule(self, runtime):
        config = Configuration.model_validate({"info": {"name": "bare"}})
        profile, _, namespaces = _apply(config, runtime)

        rule = asyncio.run(namespaces.get("default").resolve(RequestInfo(domain="a.com")))

        assert rule is DEFAULT_RULE
        assert rule == Rule(type="FINAL", proxy="DIRECT")

    def test_groups_are_valid_rule_targets(self, runtime):
        config = Configuration.model_validate({
            "info": {"name": "grouped"},
            "server": {"PROXY1": "ss, 1.2.3.4, 8388"},
            "server_group": {"Auto": "select, PROXY1, DIRECT"},
            "rule": ["DOMAIN-SUFFIX,example.com,Auto"],
        })
        profile, _, namespaces = _apply(config, runtime)

        rule = asyncio.run(namespaces.get("default").resolve(RequestInfo(domain="www.example.com")))

        assert rule.proxy == "Auto"
        assert set(profile.groups) == {"Auto"}

    def test_named_namespace_scopes_runtime(self, runtime):
        config = Configuration.model_validate({"info": {"name": "office"}})
        _, _, namespaces = _apply(config, runtime, name="office")

        asyncio.run(namespaces.get("office").set_mode("direct"))

        assert runtime.snapshot() == {"office.mode": "direct"}


class TestApplyFailures:
    """任一阶段失败都不发布"""

    def test_unknown_proxy_in_rule(self, runtime):
        config = Configuration.model_validate({"info": {"name": "bad"}, "rule": ["DOMAIN,a.com,NOPE"]})
        profiles, namespaces = ProfileRegistry(), NamespaceRegistry()

        with pytest.raises(DownstreamApplyError) as exc_info:
            asyncio.run(ConfigApplier(profiles, namespaces).apply(config, runtime))

        assert exc_info.value.stage == "rule"
        assert profiles.names() == []
        assert namespaces.get("default") is None

    def test_failing_hook_names_its_stage(self, runtime):
        async def broken_filter(config, runtime):
            raise RuntimeError("filter engine unavailable")

        hooks = replace(builtin_collaborators(), filter=broken_filter)
        config = Configuration.model_validate({"info": {"name": "x"}})
        profiles, namespaces = ProfileRegistry(), NamespaceRegistry()

        with pytest.raises(DownstreamApplyError) as exc_info:
            asyncio.run(ConfigApplier(profiles, namespaces, hooks).apply(config, runtime))

        assert exc_info.value.stage == "filter"
        assert "filter engine unavailable" in str(exc_info.value)
        assert str(exc_info.value).startswith("[filter]")
        assert profiles.names() == []

    def test_invalid_group(self, runtime):
        config = Configuration.model_validate({"info": {"name": "x"}, "server_group": {"G": "select, MISSING"}})
        with pytest.raises(DownstreamApplyError) as exc_info:
            _apply(config, runtime)
        assert exc_info.value.stage == "group"

    def test_namespace_publish_failure_registers_no_profile(self, runtime):
        class BrokenNamespaces(NamespaceRegistry):
            async def add(self, name, profile, runtime, cancel_event=None):
                raise RuntimeError("namespace table locked")

        config = Configuration.model_validate({"info": {"name": "x"}})
        profiles = ProfileRegistry()

        with pytest.raises(DownstreamApplyError) as exc_info:
            asyncio.run(ConfigApplier(profiles, BrokenNamespaces()).apply(config, runtime))

        assert exc_info.value.stage == "publish"
        assert profiles.names() == []
