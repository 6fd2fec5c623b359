"""
内置 DNS 协作方

查询顺序：
1. override 钩子（由 ConfigApplier 提供，默认不覆盖）
2. 缓存
3. dns.hosts 静态表
4. 事件循环的系统解析器（getaddrinfo）

缓存只做插入，不做淘汰。
"""

import asyncio
import ipaddress
import socket
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from core.conf.model import Configuration
from core.rule.types import DNSAnswer, DNSHandle, RequestContext
from logger import get_logger

logger = get_logger("collaborators.dns")

# override 钩子：返回 None 表示不覆盖
DNSOverrideHook = Callable[[RequestContext, str], Awaitable[Optional[DNSAnswer]]]


@dataclass
class _CacheEntry:
    answer: DNSAnswer
    created_at: float = field(default_factory=time.monotonic)
    hit_count: int = 0


class DNSCache:
    """域名 -> DNSAnswer 缓存"""

    def __init__(self):
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()

    def get(self, domain: str) -> Optional[DNSAnswer]:
        entry = self._entries.get(domain.lower())
        if entry is None:
            return None
        entry.hit_count += 1
        return entry.answer

    def put(self, answer: DNSAnswer) -> None:
        self._entries[answer.domain.lower()] = _CacheEntry(answer=answer)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: str) -> bool:
        return domain.lower() in self._entries


def _parse_hosts(section: Dict) -> Dict[str, List[str]]:
    """
    解析 dns.hosts

    支持 ``{domain: ip}``、``{domain: [ip, ...]}`` 与 ``{domain: "ip, ip"}``，
    非法 IP 抛出 ValueError。
    """
    hosts = section.get("hosts") or {}
    if not isinstance(hosts, dict):
        raise ValueError(f"dns.hosts 必须是映射，实际为 {type(hosts).__name__}")

    table: Dict[str, List[str]] = {}
    for domain, value in hosts.items():
        if isinstance(value, str):
            ips = [v.strip() for v in value.split(",") if v.strip()]
        elif isinstance(value, list):
            ips = [str(v).strip() for v in value]
        else:
            raise ValueError(f"dns.hosts.{domain} 取值不合法: {value!r}")
        for ip in ips:
            ipaddress.ip_address(ip)
        table[str(domain).lower()] = ips
    return table


async def _system_resolve(domain: str) -> List[str]:
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(domain, None, type=socket.SOCK_STREAM)
    ips: List[str] = []
    for info in infos:
        ip = info[4][0]
        if ip not in ips:
            ips.append(ip)
    return ips


def build_dns_handle(
    hosts: Dict[str, List[str]],
    cache: DNSCache,
    override: Optional[DNSOverrideHook] = None,
    use_system: bool = True,
) -> DNSHandle:
    """组装 DNS 句柄"""

    async def handle(ctx: RequestContext, domain: str) -> Optional[DNSAnswer]:
        domain = domain.strip().lower().rstrip(".")
        if not domain:
            return None

        if override is not None:
            answer = await override(ctx, domain)
            if answer is not None:
                return answer

        cached = cache.get(domain)
        if cached is not None:
            return cached

        if domain in hosts:
            answer = DNSAnswer(domain=domain, ips=list(hosts[domain]), source="hosts")
            cache.put(answer)
            return answer

        if not use_system:
            return None

        try:
            ips = await _system_resolve(domain)
        except (OSError, UnicodeError) as e:
            logger.debug(f"DNS 解析失败: {domain}: {e}")
            return None

        answer = DNSAnswer(domain=domain, ips=ips, source="resolver")
        cache.put(answer)
        return answer

    return handle


async def apply_dns_config(
    config: Configuration,
    runtime,
    override: Optional[DNSOverrideHook] = None,
) -> Tuple[DNSHandle, DNSCache]:
    """
    dns 阶段钩子

    配置项：
        dns.hosts: 静态解析表
        dns.system: 是否回落到系统解析器（默认 true）
    """
    hosts = _parse_hosts(config.dns)
    use_system = str(config.dns.get("system", "true")).lower() not in ("false", "0", "no", "off")
    cache = DNSCache()
    handle = build_dns_handle(hosts, cache, override, use_system)
    logger.info(f"✅ DNS 已就绪: hosts={len(hosts)}, system={use_system} (runtime={getattr(runtime, 'name', '-')})")
    return handle, cache
