"""
规则层类型定义

- Rule: 路由决策（类别 + 目标代理 / 代理组）
- RequestInfo: 待决策连接的元数据
- RequestContext: 显式传递的请求级上下文（携带命名空间及其流量模式）
- RuleHandle: 责任链节点接口
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

if TYPE_CHECKING:
    from core.namespace.registry import Namespace


class Mode(str, Enum):
    """流量模式"""

    RULE = "rule"  # 按规则链决策
    DIRECT = "direct"  # 全部直连
    GLOBAL = "global"  # 全部走全局代理


# 规则类别
RULE_FINAL = "FINAL"
RULE_DIRECT = "DIRECT"
RULE_GLOBAL = "GLOBAL"

# 内置代理名称
PROXY_DIRECT = "DIRECT"
PROXY_REJECT = "REJECT"
PROXY_GLOBAL = "GLOBAL"


@dataclass(frozen=True)
class Rule:
    """
    路由决策

    Attributes:
        type: 规则类别（DOMAIN / FINAL / DIRECT / GLOBAL ...）
        proxy: 目标代理或代理组名称
        value: 规则匹配值（如域名），兜底规则为空
        profile: 产生该决策的配置名称
    """

    type: str
    proxy: str
    value: str = ""
    profile: str = ""


@dataclass(frozen=True)
class RequestInfo:
    """连接元数据"""

    domain: str = ""
    ip: str = ""
    port: int = 0
    network: str = "tcp"  # tcp / udp


@dataclass
class RequestContext:
    """
    请求级上下文

    规则链只通过该对象感知命名空间状态，不读取任何全局变量。
    """

    namespace: Optional["Namespace"] = None

    @property
    def mode(self) -> Mode:
        if self.namespace is None:
            return Mode.RULE
        return self.namespace.mode


# 兜底钩子：所有规则都未命中时返回默认规则
FallbackHook = Callable[[RequestContext, RequestInfo], Rule]


class RuleHandle(ABC):
    """责任链节点：返回路由决策"""

    @abstractmethod
    async def resolve(self, ctx: RequestContext, info: RequestInfo) -> Rule:
        """为请求给出路由决策"""

    def __call__(self, ctx: RequestContext, info: RequestInfo) -> Awaitable[Rule]:
        return self.resolve(ctx, info)


@dataclass
class DNSAnswer:
    """DNS 查询结果（由 DNS 协作方产出）"""

    domain: str
    ips: List[str] = field(default_factory=list)
    source: str = ""  # hosts / resolver / override


# DNS 句柄：(ctx, domain) -> DNSAnswer | None
DNSHandle = Callable[[RequestContext, str], Awaitable[Optional[DNSAnswer]]]
