"""
编码层

原始字节 <-> 结构化配置的编解码器及其注册表
"""

from infra.encoding.base import Codec
from infra.encoding.conf_codec import ConfCodec
from infra.encoding.json_codec import JsonCodec
from infra.encoding.registry import EncodingRegistry, create_encoding_registry
from infra.encoding.yaml_codec import YamlCodec

__all__ = [
    "Codec",
    "ConfCodec",
    "JsonCodec",
    "YamlCodec",
    "EncodingRegistry",
    "create_encoding_registry",
]
