"""
Profile / Namespace 注册表

- Profile: 一份配置应用完成后的完整产物（规则链、DNS、服务器、代理组...）
- Namespace: 对外服务的命名空间，引用当前生效的 Profile 并携带流量模式
  流量模式持久化在运行时存储的 "mode" 键下，重启后恢复
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.conf.model import Configuration
from core.rule.types import DNSHandle, Mode, RequestContext, RequestInfo, Rule, RuleHandle
from logger import get_logger

logger = get_logger("namespace")

MODE_KEY = "mode"


@dataclass
class Profile:
    """配置应用产物（发布后只读）"""

    name: str
    config: Configuration
    dns_handle: DNSHandle
    dns_cache: Any
    rule_handle: RuleHandle
    udp_rule_handle: RuleHandle
    groups: Dict[str, Any] = field(default_factory=dict)
    servers: Dict[str, Any] = field(default_factory=dict)
    filter_handle: Any = None
    stream_before: Any = None
    stream_after: Any = None


class ProfileRegistry:
    """按配置名称索引的 Profile 表（同名覆盖）"""

    def __init__(self):
        self._profiles: Dict[str, Profile] = {}

    def add(self, name: str, profile: Profile) -> None:
        replaced = name in self._profiles
        self._profiles[name] = profile
        logger.info(f"{'🔄' if replaced else '✅'} Profile 已发布: {name}")

    def get(self, name: str) -> Optional[Profile]:
        return self._profiles.get(name)

    def names(self) -> List[str]:
        return list(self._profiles.keys())


class Namespace:
    """
    命名空间

    Attributes:
        name: 命名空间名称
        profile: 当前生效的 Profile
        runtime: 该命名空间的作用域运行时
        cancel_event: 当前 Profile 对应的监听取消事件
        mode: 流量模式（rule / direct / global）
    """

    def __init__(self, name: str, profile: Profile, runtime, cancel_event: Optional[asyncio.Event] = None):
        self.name = name
        self.profile = profile
        self.runtime = runtime
        self.cancel_event = cancel_event
        self.mode = Mode.RULE

    async def restore_mode(self) -> Mode:
        """从运行时存储恢复流量模式，无效值回退为 rule"""
        stored = await self.runtime.get(MODE_KEY, Mode.RULE.value)
        try:
            self.mode = Mode(stored)
        except ValueError:
            logger.warning(f"⚠️ 运行时中的流量模式无效，回退为 rule: {stored!r}")
            self.mode = Mode.RULE
        return self.mode

    async def set_mode(self, mode) -> None:
        """
        切换流量模式并持久化

        内存中的模式先生效；持久化失败时异常向上抛出。
        """
        mode = Mode(mode)
        self.mode = mode
        await self.runtime.set(MODE_KEY, mode.value)
        logger.info(f"🔀 命名空间 {self.name} 流量模式: {mode.value}")

    def request_context(self) -> RequestContext:
        return RequestContext(namespace=self)

    async def resolve(self, info: RequestInfo, datagram: bool = False) -> Rule:
        """用当前 Profile 的规则链（已包装模式覆盖）得出路由决策"""
        handle = self.profile.udp_rule_handle if datagram else self.profile.rule_handle
        return await handle.resolve(self.request_context(), info)


class NamespaceRegistry:
    """命名空间表，重复 add 同名命名空间时替换 Profile 并保留流量模式"""

    def __init__(self):
        self._namespaces: Dict[str, Namespace] = {}

    async def add(
        self,
        name: str,
        profile: Profile,
        runtime,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Namespace:
        namespace = self._namespaces.get(name)
        if namespace is None:
            namespace = Namespace(name, profile, runtime, cancel_event)
            await namespace.restore_mode()
            self._namespaces[name] = namespace
            logger.info(f"✅ 命名空间已创建: {name} (profile={profile.name}, mode={namespace.mode.value})")
        else:
            namespace.profile = profile
            namespace.runtime = runtime
            namespace.cancel_event = cancel_event
            logger.info(f"🔄 命名空间已切换 Profile: {name} -> {profile.name}")
        return namespace

    def get(self, name: str) -> Optional[Namespace]:
        return self._namespaces.get(name)

    def names(self) -> List[str]:
        return list(self._namespaces.keys())
