"""
内置 server / server_group 协作方

只负责把配置段解析成命名对象并校验引用关系；
代理协议与组内选路算法不在这里实现。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.conf.model import Configuration
from core.rule.types import PROXY_DIRECT, PROXY_REJECT, DNSHandle
from logger import get_logger

logger = get_logger("collaborators.proxies")


@dataclass(frozen=True)
class Server:
    """代理服务器定义"""

    name: str
    type: str
    address: str = ""
    port: int = 0
    options: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerGroup:
    """代理组定义"""

    name: str
    type: str
    members: List[str] = field(default_factory=list)


BUILTIN_SERVERS = {
    PROXY_DIRECT: Server(name=PROXY_DIRECT, type="direct"),
    PROXY_REJECT: Server(name=PROXY_REJECT, type="reject"),
}


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_server(name: str, value: Any) -> Server:
    """
    解析单个 server

    支持：
    - ``"ss, 1.2.3.4, 8388, password=xxx"``
    - ``{type: ss, address: 1.2.3.4, port: 8388, ...}``
    """
    if isinstance(value, str):
        parts = _split(value)
        if not parts:
            raise ValueError(f"server {name} 缺少类型")
        typ, rest = parts[0], parts[1:]
        address = rest[0] if rest and "=" not in rest[0] else ""
        port_text = rest[1] if len(rest) > 1 and "=" not in rest[1] else "0"
        options = {}
        for part in rest:
            if "=" in part:
                key, item = part.split("=", 1)
                options[key.strip()] = item.strip()
    elif isinstance(value, dict):
        typ = str(value.get("type", "")).strip()
        if not typ:
            raise ValueError(f"server {name} 缺少 type")
        address = str(value.get("address") or value.get("server") or "")
        port_text = str(value.get("port", 0))
        options = {
            str(k): str(v) for k, v in value.items()
            if k not in ("type", "address", "server", "port")
        }
    else:
        raise ValueError(f"server {name} 取值不合法: {value!r}")

    try:
        port = int(port_text)
    except ValueError as e:
        raise ValueError(f"server {name} 端口不合法: {port_text!r}") from e

    return Server(name=name, type=typ.lower(), address=address, port=port, options=options)


async def apply_server_config(
    config: Configuration,
    runtime,
    dns_handle: Optional[DNSHandle] = None,
) -> Dict[str, Server]:
    """server 阶段钩子：内置 DIRECT / REJECT + 配置中的 server"""
    servers: Dict[str, Server] = dict(BUILTIN_SERVERS)
    for name, value in config.server.items():
        if name in BUILTIN_SERVERS:
            raise ValueError(f"server 名称与内置代理冲突: {name}")
        servers[name] = parse_server(name, value)

    logger.info(f"✅ server 已就绪: {len(servers) - len(BUILTIN_SERVERS)} 个自定义")
    return servers


def parse_group(name: str, value: Any) -> ServerGroup:
    """
    解析单个 server_group

    支持 ``"select, Proxy1, DIRECT"`` 与 ``{type: select, servers: [...]}``
    """
    if isinstance(value, str):
        parts = _split(value)
        if not parts:
            raise ValueError(f"server_group {name} 缺少类型")
        typ, members = parts[0], parts[1:]
    elif isinstance(value, dict):
        typ = str(value.get("type", "")).strip()
        members = value.get("servers") or []
        if isinstance(members, str):
            members = _split(members)
        members = [str(m) for m in members]
    else:
        raise ValueError(f"server_group {name} 取值不合法: {value!r}")

    if not typ:
        raise ValueError(f"server_group {name} 缺少类型")
    return ServerGroup(name=name, type=typ.lower(), members=members)


async def apply_group_config(
    config: Configuration,
    runtime,
    servers: Dict[str, Server],
    dns_handle: Optional[DNSHandle] = None,
) -> Dict[str, ServerGroup]:
    """group 阶段钩子：成员可以是 server 或其他代理组，但不能指向自身"""
    groups = {name: parse_group(name, value) for name, value in config.server_group.items()}

    for group in groups.values():
        if group.name in servers:
            raise ValueError(f"server_group 名称与 server 冲突: {group.name}")
        if not group.members:
            raise ValueError(f"server_group {group.name} 没有成员")
        for member in group.members:
            if member == group.name:
                raise ValueError(f"server_group {group.name} 不能包含自身")
            if member not in servers and member not in groups:
                raise ValueError(f"server_group {group.name} 引用了不存在的成员: {member}")

    logger.info(f"✅ server_group 已就绪: {len(groups)} 个")
    return groups
