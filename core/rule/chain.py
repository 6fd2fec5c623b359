"""
规则责任链

配置中的规则按顺序编译成 RuleLink 列表：
- 命中：返回该节点自己的 Rule
- 未命中：交给下一个节点
- 全部未命中：调用方提供的兜底钩子给出默认规则

按列表迭代而不是递归委托，规则数量不受调用栈深度限制。
"""

from typing import Iterable, List, Optional

from core.conf.model import Configuration, RuleConfig
from core.rule.matchers import Matcher, build_matcher
from core.rule.types import (
    PROXY_DIRECT,
    PROXY_REJECT,
    DNSHandle,
    FallbackHook,
    RequestContext,
    RequestInfo,
    Rule,
    RuleHandle,
)
from logger import get_logger

logger = get_logger("rule.chain")

BUILTIN_PROXIES = frozenset({PROXY_DIRECT, PROXY_REJECT})


class RuleLink:
    """链上单个节点：匹配谓词 + 命中时返回的决策"""

    def __init__(self, matcher: Matcher, rule: Rule):
        self.matcher = matcher
        self.rule = rule

    async def evaluate(self, ctx: RequestContext, info: RequestInfo) -> Optional[Rule]:
        """命中返回 Rule，未命中返回 None（交给下一个节点）"""
        if await self.matcher.matches(ctx, info):
            return self.rule
        return None

    def __repr__(self) -> str:
        return f"RuleLink({self.rule.type},{self.rule.value},{self.rule.proxy})"


class RuleChain(RuleHandle):
    """规则责任链（先命中者生效）"""

    def __init__(self, links: Iterable[RuleLink], fallback: FallbackHook):
        self.links: List[RuleLink] = list(links)
        self.fallback = fallback

    def __len__(self) -> int:
        return len(self.links)

    async def resolve(self, ctx: RequestContext, info: RequestInfo) -> Rule:
        for link in self.links:
            rule = await link.evaluate(ctx, info)
            if rule is not None:
                return rule
        return self.fallback(ctx, info)


def _applies_to(rule_config: RuleConfig, is_udp: bool) -> bool:
    network = rule_config.network
    if not network:
        return True
    return network == ("udp" if is_udp else "tcp")


async def apply_rule_config(
    config: Configuration,
    runtime,
    is_udp: bool,
    proxy_names: Iterable[str],
    fallback: FallbackHook,
    dns_handle: Optional[DNSHandle] = None,
) -> RuleChain:
    """
    把配置中的规则编译为责任链

    Args:
        config: 已合并的配置
        runtime: 规则阶段的作用域运行时
        is_udp: 是否为数据报（udp）链
        proxy_names: 可引用的代理 / 代理组名称
        fallback: 兜底钩子
        dns_handle: IP 类规则解析域名用的 DNS 句柄

    Returns:
        RuleChain

    Raises:
        ValueError: 未知规则类型、规则值不合法或引用了不存在的代理
    """
    known = set(proxy_names) | BUILTIN_PROXIES
    links: List[RuleLink] = []

    for index, rule_config in enumerate(config.rule):
        if not _applies_to(rule_config, is_udp):
            continue
        if rule_config.proxy not in known:
            raise ValueError(
                f"第 {index + 1} 条规则引用了不存在的代理: {rule_config.to_line()}"
            )
        try:
            matcher = build_matcher(
                rule_config.type, rule_config.value, rule_config.options, dns_handle
            )
        except ValueError as e:
            raise ValueError(f"第 {index + 1} 条规则不合法 ({rule_config.to_line()}): {e}") from e

        rule = Rule(
            type=rule_config.type,
            proxy=rule_config.proxy,
            value=rule_config.value,
            profile=config.info.name,
        )
        links.append(RuleLink(matcher, rule))

    logger.info(
        f"✅ {'UDP' if is_udp else 'TCP'} 规则链已构建: {len(links)} 条 "
        f"(runtime={getattr(runtime, 'name', '-')})"
    )
    return RuleChain(links, fallback)
