"""
内置 plugin / filter / stream 协作方

只做配置校验，返回不改写数据的直通句柄。
"""

from typing import Any, Dict, Tuple

from core.conf.model import Configuration
from logger import get_logger

logger = get_logger("collaborators.passthrough")


class PassthroughHandle:
    """原样返回数据的过滤 / 流处理句柄"""

    def __init__(self, stage: str, options: Dict[str, Any] = None):
        self.stage = stage
        self.options = dict(options or {})

    async def __call__(self, data: bytes) -> bytes:
        return data

    def __repr__(self) -> str:
        return f"PassthroughHandle({self.stage})"


def _enabled(value: Any) -> bool:
    if isinstance(value, dict):
        value = value.get("enabled", True)
    return str(value).lower() not in ("false", "0", "no", "off")


async def apply_plugin_config(config: Configuration, runtime) -> None:
    """plugin 阶段钩子"""
    enabled = []
    for name, value in config.plugin.items():
        if not isinstance(value, (dict, str, bool, int)):
            raise ValueError(f"plugin.{name} 取值不合法: {value!r}")
        if _enabled(value):
            enabled.append(name)

    if enabled:
        logger.info(f"🔌 已启用插件: {', '.join(enabled)}")


async def apply_filter_config(config: Configuration, runtime) -> PassthroughHandle:
    """filter 阶段钩子"""
    return PassthroughHandle("filter", config.filter)


async def apply_stream_config(config: Configuration, runtime) -> Tuple[PassthroughHandle, PassthroughHandle]:
    """stream 阶段钩子，返回 (before, after)"""
    before = config.stream.get("before") or {}
    after = config.stream.get("after") or {}
    if not isinstance(before, dict) or not isinstance(after, dict):
        raise ValueError("stream.before / stream.after 必须是映射")
    return PassthroughHandle("stream.before", before), PassthroughHandle("stream.after", after)
