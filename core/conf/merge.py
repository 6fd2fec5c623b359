"""
配置合并策略

- CONCAT（默认）：主配置字节 + 每个 include 前置一个换行后拼接，整体重新解码，
  由编码格式自身的组合规则决定结果（yaml 重复键后者覆盖，conf 列表段追加）
- OVERRIDE：逐段解码后深度合并，后出现的标量和列表替换前者
- APPEND：逐段解码后深度合并，列表拼接
"""

from enum import Enum
from typing import Any, Dict, Iterable


class MergeStrategy(str, Enum):
    CONCAT = "concat"
    OVERRIDE = "override"
    APPEND = "append"


FRAGMENT_SEPARATOR = b"\n"


def join_fragments(fragments: Iterable[bytes]) -> bytes:
    """按顺序用单个换行拼接各片段（首个片段前不加分隔符）"""
    return FRAGMENT_SEPARATOR.join(fragments)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any], append_lists: bool = False) -> Dict[str, Any]:
    """
    深度合并两个字典，override 覆盖 base

    Args:
        base: 基础配置
        override: 覆盖配置
        append_lists: 两侧同为列表时是否拼接（否则后者替换前者）

    Returns:
        合并后的配置（不修改入参）
    """
    result = base.copy()

    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value, append_lists)
        elif append_lists and isinstance(current, list) and isinstance(value, list):
            result[key] = current + value
        else:
            result[key] = value

    return result
