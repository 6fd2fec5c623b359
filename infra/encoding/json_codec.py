"""
JSON 编码器

注意：JSON 不支持多文档拼接，CONCAT 合并策略下包含 include 会解码失败，
多源场景请配合 OVERRIDE / APPEND 合并策略使用。
"""

import json
from typing import Any, Dict

from core.errors import BackendConstructionError, DecodeFailedError, EncodeFailedError
from infra.encoding.base import Codec


class JsonCodec(Codec):
    """
    JSON 编码器

    参数：
    - indent: 缩进空格数（默认 2，"0" 表示紧凑输出）
    """

    name = "json"

    def __init__(self, params: Dict[str, str] = None):
        params = params or {}
        raw = params.get("indent", "2")
        try:
            indent = int(raw)
        except (TypeError, ValueError):
            raise BackendConstructionError(f"json 编码器参数 indent 不合法: {raw!r}")
        self.indent = indent or None

    def unmarshal(self, data: bytes) -> Dict[str, Any]:
        try:
            value = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodeFailedError(f"JSON 不是合法的 UTF-8: {e}") from e
        except json.JSONDecodeError as e:
            raise DecodeFailedError(f"JSON 解析失败: {e}") from e

        if not isinstance(value, dict):
            raise DecodeFailedError(f"JSON 根节点必须是对象，实际为 {type(value).__name__}")
        return value

    def marshal(self, value: Dict[str, Any]) -> bytes:
        try:
            text = json.dumps(value, ensure_ascii=False, indent=self.indent)
        except (TypeError, ValueError) as e:
            raise EncodeFailedError(f"JSON 编码失败: {e}") from e
        return text.encode("utf-8")
