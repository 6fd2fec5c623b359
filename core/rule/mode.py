"""
流量模式覆盖

包装在规则链外层：
- direct 模式：直接返回 DIRECT 决策，跳过规则链
- global 模式：直接返回 GLOBAL 决策
- 其他：原样交给内层规则链

每次调用都返回新的不可变 Rule，不存在跨请求共享的可变对象。
"""

from dataclasses import replace

from core.rule.types import (
    PROXY_DIRECT,
    PROXY_GLOBAL,
    RULE_DIRECT,
    RULE_GLOBAL,
    Mode,
    RequestContext,
    RequestInfo,
    Rule,
    RuleHandle,
)


class ModeOverrideHandle(RuleHandle):
    """流量模式覆盖装饰器"""

    def __init__(self, template: Rule, next_handle: RuleHandle):
        self.template = template
        self.next_handle = next_handle

    async def resolve(self, ctx: RequestContext, info: RequestInfo) -> Rule:
        mode = ctx.mode
        if mode == Mode.DIRECT:
            return replace(self.template, type=RULE_DIRECT, proxy=PROXY_DIRECT)
        if mode == Mode.GLOBAL:
            return replace(self.template, type=RULE_GLOBAL, proxy=PROXY_GLOBAL)
        return await self.next_handle.resolve(ctx, info)


def rule_mode_handle(profile_name: str, next_handle: RuleHandle) -> ModeOverrideHandle:
    """用流量模式覆盖包装规则链，决策中带上配置名称"""
    template = Rule(type="", proxy="", profile=profile_name)
    return ModeOverrideHandle(template, next_handle)
