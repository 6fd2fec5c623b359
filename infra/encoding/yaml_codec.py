"""
YAML 编码器（PyYAML）

多个片段拼接后作为一个映射解码；同一层级重复出现的 key 以最后一次为准。
"""

from typing import Any, Dict

import yaml

from core.errors import DecodeFailedError, EncodeFailedError
from infra.encoding.base import Codec


class YamlCodec(Codec):
    """YAML 编码器（safe_load / safe_dump）"""

    name = "yaml"

    def __init__(self, params: Dict[str, str] = None):
        self.params = dict(params or {})

    def unmarshal(self, data: bytes) -> Dict[str, Any]:
        try:
            value = yaml.safe_load(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodeFailedError(f"YAML 不是合法的 UTF-8: {e}") from e
        except yaml.YAMLError as e:
            raise DecodeFailedError(f"YAML 格式错误: {e}") from e

        if value is None:
            return {}
        if not isinstance(value, dict):
            raise DecodeFailedError(
                f"YAML 根节点必须是映射，实际为 {type(value).__name__}"
            )
        return value

    def marshal(self, value: Dict[str, Any]) -> bytes:
        try:
            text = yaml.safe_dump(value, allow_unicode=True, sort_keys=False)
        except yaml.YAMLError as e:
            raise EncodeFailedError(f"无法编码为 YAML: {e}") from e
        return text.encode("utf-8")
