"""
配置应用器

把已合并的 Configuration 编译成可执行的 Profile 并发布：

    scoped runtime -> plugin -> dns -> server -> group -> 代理名称集合
        -> tcp 规则链 (+模式覆盖) -> udp 规则链 (+模式覆盖)
        -> filter -> stream -> 组装 Profile -> 发布

任一阶段失败抛出 DownstreamApplyError(stage=...)，不发布任何东西。
"""

import asyncio
from typing import Optional

from core.collaborators import Collaborators, builtin_collaborators
from core.conf.model import Configuration
from core.errors import DownstreamApplyError, RouteConfError
from core.namespace.registry import NamespaceRegistry, Profile, ProfileRegistry
from core.rule.mode import rule_mode_handle
from core.rule.types import PROXY_DIRECT, RULE_FINAL, DNSAnswer, RequestContext, RequestInfo, Rule
from core.runtime.scoped import ScopedRuntime
from logger import get_logger, log_context, log_execution_time

logger = get_logger("conf.applier")

DEFAULT_RULE = Rule(type=RULE_FINAL, proxy=PROXY_DIRECT)


def default_rule(ctx: RequestContext, info: RequestInfo) -> Rule:
    """兜底钩子：所有规则都未命中时直连"""
    return DEFAULT_RULE


async def no_dns_override(ctx: RequestContext, domain: str) -> Optional[DNSAnswer]:
    """DNS override 钩子：不覆盖"""
    return None


class ConfigApplier:
    """
    配置应用器

    Args:
        profiles: Profile 发布表
        namespaces: 命名空间发布表
        collaborators: 协作方钩子（默认使用内置实现）
    """

    def __init__(
        self,
        profiles: ProfileRegistry,
        namespaces: NamespaceRegistry,
        collaborators: Optional[Collaborators] = None,
    ):
        self.profiles = profiles
        self.namespaces = namespaces
        self.collaborators = collaborators or builtin_collaborators()

    async def apply(
        self,
        config: Configuration,
        runtime,
        name: str = "default",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Profile:
        """
        应用配置并发布

        Args:
            config: 已合并的配置（info.name 已填充）
            runtime: 根运行时存储
            name: 命名空间名称
            cancel_event: 本次加载的监听取消事件，随命名空间保存

        Returns:
            已发布的 Profile

        Raises:
            DownstreamApplyError: 任一阶段失败（消息带阶段前缀）
        """
        hooks = self.collaborators
        with log_context(namespace=name, profile=config.info.name), \
                log_execution_time(f"应用配置 {config.info.name}", logger):
            scoped = ScopedRuntime(name, runtime)

            await self._stage("plugin", hooks.plugin(config, ScopedRuntime("plugin", scoped)))

            dns_handle, dns_cache = await self._stage(
                "dns", hooks.dns(config, ScopedRuntime("dns", scoped), no_dns_override)
            )

            servers = await self._stage(
                "server", hooks.server(config, ScopedRuntime("server", scoped), dns_handle)
            )
            groups = await self._stage(
                "group", hooks.group(config, ScopedRuntime("group", scoped), servers, dns_handle)
            )

            proxy_names = set(servers) | set(groups)
            rule_runtime = ScopedRuntime("rule", scoped)

            tcp_chain = await self._stage(
                "rule",
                hooks.rule(config, rule_runtime, False, proxy_names, default_rule, dns_handle),
            )
            rule_handle = rule_mode_handle(config.info.name, tcp_chain)

            udp_chain = await self._stage(
                "udp_rule",
                hooks.rule(config, rule_runtime, True, proxy_names, default_rule, dns_handle),
            )
            udp_rule_handle = rule_mode_handle(config.info.name, udp_chain)

            filter_handle = await self._stage(
                "filter", hooks.filter(config, ScopedRuntime("filter", scoped))
            )
            stream_before, stream_after = await self._stage(
                "stream", hooks.stream(config, ScopedRuntime("stream", scoped))
            )

            profile = Profile(
                name=config.info.name,
                config=config,
                dns_handle=dns_handle,
                dns_cache=dns_cache,
                rule_handle=rule_handle,
                udp_rule_handle=udp_rule_handle,
                groups=groups,
                servers=servers,
                filter_handle=filter_handle,
                stream_before=stream_before,
                stream_after=stream_after,
            )

            # 发布放在最后，之前任何失败都不会留下半成品；命名空间发布失败时 Profile 也不登记
            await self._stage("publish", self.namespaces.add(name, profile, scoped, cancel_event))
            self.profiles.add(config.info.name, profile)

        return profile

    @staticmethod
    async def _stage(stage: str, awaitable):
        with log_context(stage=stage):
            try:
                return await awaitable
            except DownstreamApplyError as e:
                raise e.with_stage(stage) from e
            except RouteConfError as e:
                raise DownstreamApplyError(f"failed: {e}", stage=stage) from e
            except Exception as e:
                logger.error(f"❌ 配置应用失败: [{stage}] {e}", exc_info=True)
                raise DownstreamApplyError(f"failed: {e}", stage=stage) from e
