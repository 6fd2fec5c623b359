"""
规则匹配谓词

每种规则类别对应一个 Matcher，只负责判断请求是否命中，不产出决策。
"""

import ipaddress
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from core.rule.types import DNSHandle, RequestContext, RequestInfo
from logger import get_logger

logger = get_logger("rule.matchers")


def normalize_domain(domain: str) -> str:
    return domain.strip().rstrip(".").lower()


class Matcher(ABC):
    """规则匹配谓词基类"""

    def __init__(self, value: str, options: Dict[str, str], dns_handle: Optional[DNSHandle] = None):
        self.value = value
        self.options = options
        self.dns_handle = dns_handle

    @abstractmethod
    async def matches(self, ctx: RequestContext, info: RequestInfo) -> bool:
        """请求是否命中"""


class DomainMatcher(Matcher):
    """DOMAIN：域名完全匹配（不区分大小写）"""

    def __init__(self, value, options, dns_handle=None):
        super().__init__(normalize_domain(value), options, dns_handle)
        if not self.value:
            raise ValueError("DOMAIN 规则缺少域名")

    async def matches(self, ctx, info):
        return normalize_domain(info.domain) == self.value


class DomainSuffixMatcher(DomainMatcher):
    """DOMAIN-SUFFIX：域名本身或其子域名"""

    async def matches(self, ctx, info):
        domain = normalize_domain(info.domain)
        return domain == self.value or domain.endswith("." + self.value)


class DomainKeywordMatcher(DomainMatcher):
    """DOMAIN-KEYWORD：域名包含关键字"""

    async def matches(self, ctx, info):
        return self.value in normalize_domain(info.domain)


class IPCidrMatcher(Matcher):
    """
    IP-CIDR / IP-CIDR6：目标地址落在网段内

    请求只有域名时通过 DNS 句柄解析；带 no-resolve 选项时不解析。
    """

    def __init__(self, value, options, dns_handle=None):
        super().__init__(value, options, dns_handle)
        self.network = ipaddress.ip_network(value.strip(), strict=False)
        self.resolve = "no-resolve" not in options

    async def matches(self, ctx, info):
        for ip in await self._candidates(ctx, info):
            try:
                if ipaddress.ip_address(ip) in self.network:
                    return True
            except ValueError:
                continue
        return False

    async def _candidates(self, ctx: RequestContext, info: RequestInfo) -> List[str]:
        if info.ip:
            return [info.ip]
        if not (info.domain and self.resolve and self.dns_handle):
            return []
        answer = await self.dns_handle(ctx, info.domain)
        return answer.ips if answer else []


class DstPortMatcher(Matcher):
    """DST-PORT：目标端口"""

    def __init__(self, value, options, dns_handle=None):
        super().__init__(value, options, dns_handle)
        self.port = int(value)
        if not 0 < self.port < 65536:
            raise ValueError(f"端口超出范围: {value}")

    async def matches(self, ctx, info):
        return info.port == self.port


class FinalMatcher(Matcher):
    """FINAL：匹配一切"""

    async def matches(self, ctx, info):
        return True


MATCHERS: Dict[str, Type[Matcher]] = {
    "DOMAIN": DomainMatcher,
    "DOMAIN-SUFFIX": DomainSuffixMatcher,
    "DOMAIN-KEYWORD": DomainKeywordMatcher,
    "IP-CIDR": IPCidrMatcher,
    "IP-CIDR6": IPCidrMatcher,
    "DST-PORT": DstPortMatcher,
    "FINAL": FinalMatcher,
}


def build_matcher(
    rule_type: str,
    value: str,
    options: Dict[str, str],
    dns_handle: Optional[DNSHandle] = None,
) -> Matcher:
    """
    按规则类别构造匹配谓词

    Raises:
        ValueError: 未知规则类别或规则值不合法
    """
    matcher_class = MATCHERS.get(rule_type)
    if matcher_class is None:
        available = ", ".join(MATCHERS)
        raise ValueError(f"未知的规则类型: '{rule_type}'。可用的类型: {available}")
    return matcher_class(value, options, dns_handle)
