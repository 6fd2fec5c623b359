"""
编码器注册表
"""

from infra.encoding.base import Codec
from infra.encoding.conf_codec import ConfCodec
from infra.encoding.json_codec import JsonCodec
from infra.encoding.yaml_codec import YamlCodec
from infra.registry import BackendRegistry


class EncodingRegistry(BackendRegistry[Codec]):
    """编码器注册表：标识 -> 工厂(params) -> Codec"""

    kind = "encoding"


def create_encoding_registry(freeze: bool = True) -> EncodingRegistry:
    """
    创建内置编码器注册表

    内置编码器：yaml（别名 yml）、json、conf
    """
    registry = EncodingRegistry()
    registry.register("yaml", YamlCodec)
    registry.register("yml", YamlCodec)
    registry.register("json", JsonCodec)
    registry.register("conf", ConfCodec)
    if freeze:
        registry.freeze()
    return registry
