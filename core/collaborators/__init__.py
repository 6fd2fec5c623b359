"""
协作方模块

ConfigApplier 通过 Collaborators 钩子集合调用外部子系统；
builtin_collaborators() 提供可运行的内置实现。
"""

from core.collaborators.dns import DNSCache, DNSOverrideHook, apply_dns_config, build_dns_handle
from core.collaborators.hooks import Collaborators
from core.collaborators.passthrough import (
    PassthroughHandle,
    apply_filter_config,
    apply_plugin_config,
    apply_stream_config,
)
from core.collaborators.proxies import (
    BUILTIN_SERVERS,
    Server,
    ServerGroup,
    apply_group_config,
    apply_server_config,
    parse_group,
    parse_server,
)
from core.rule.chain import apply_rule_config


def builtin_collaborators() -> Collaborators:
    """内置协作方实现"""
    return Collaborators(
        plugin=apply_plugin_config,
        dns=apply_dns_config,
        server=apply_server_config,
        group=apply_group_config,
        rule=apply_rule_config,
        filter=apply_filter_config,
        stream=apply_stream_config,
    )


__all__ = [
    "Collaborators",
    "builtin_collaborators",
    # DNS
    "DNSCache",
    "DNSOverrideHook",
    "apply_dns_config",
    "build_dns_handle",
    # server / group
    "BUILTIN_SERVERS",
    "Server",
    "ServerGroup",
    "apply_server_config",
    "apply_group_config",
    "parse_server",
    "parse_group",
    # plugin / filter / stream
    "PassthroughHandle",
    "apply_plugin_config",
    "apply_filter_config",
    "apply_stream_config",
]
