"""
规则模块

连接元数据 -> 路由决策：
1. RuleChain - 按配置顺序编译的责任链（先命中者生效）
2. ModeOverrideHandle - direct / global 模式覆盖，包装在规则链外层

使用方式：
    from core.rule import RequestContext, RequestInfo

    rule = await profile.rule_handle.resolve(
        RequestContext(namespace=ns), RequestInfo(domain="example.com", port=443)
    )
"""

from core.rule.chain import RuleChain, RuleLink, apply_rule_config
from core.rule.matchers import MATCHERS, Matcher, build_matcher
from core.rule.mode import ModeOverrideHandle, rule_mode_handle
from core.rule.types import (
    PROXY_DIRECT,
    PROXY_GLOBAL,
    PROXY_REJECT,
    RULE_DIRECT,
    RULE_FINAL,
    RULE_GLOBAL,
    DNSAnswer,
    DNSHandle,
    FallbackHook,
    Mode,
    RequestContext,
    RequestInfo,
    Rule,
    RuleHandle,
)

__all__ = [
    # 责任链
    "RuleChain",
    "RuleLink",
    "apply_rule_config",
    # 匹配谓词
    "MATCHERS",
    "Matcher",
    "build_matcher",
    # 模式覆盖
    "ModeOverrideHandle",
    "rule_mode_handle",
    # 类型定义
    "Mode",
    "Rule",
    "RuleHandle",
    "RequestInfo",
    "RequestContext",
    "FallbackHook",
    "DNSAnswer",
    "DNSHandle",
    "RULE_FINAL",
    "RULE_DIRECT",
    "RULE_GLOBAL",
    "PROXY_DIRECT",
    "PROXY_REJECT",
    "PROXY_GLOBAL",
]
