"""
协作方钩子集合

ConfigApplier 只通过这些异步钩子与外部子系统交互：

    plugin(config, runtime)
    dns(config, runtime, override) -> (dns_handle, dns_cache)
    server(config, runtime, dns_handle) -> servers
    group(config, runtime, servers, dns_handle) -> groups
    rule(config, runtime, is_udp, proxy_names, fallback, dns_handle) -> rule_handle
    filter(config, runtime) -> filter_handle
    stream(config, runtime) -> (before, after)
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass
class Collaborators:
    """外部协作方钩子（全部为协程函数）"""

    plugin: Callable[..., Awaitable[None]]
    dns: Callable[..., Awaitable[Any]]
    server: Callable[..., Awaitable[Any]]
    group: Callable[..., Awaitable[Any]]
    rule: Callable[..., Awaitable[Any]]
    filter: Callable[..., Awaitable[Any]]
    stream: Callable[..., Awaitable[Any]]
