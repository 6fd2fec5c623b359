"""
编码器抽象基类
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class Codec(ABC):
    """
    编码器抽象基类

    负责原始字节 <-> 结构化配置（dict）的双向转换。
    多源合并时，拼接后的字节按编码器自身的组合语义解码
    （如 YAML 重复 key 后者覆盖、conf 列表段追加）。
    """

    name: str = ""

    @abstractmethod
    def unmarshal(self, data: bytes) -> Dict[str, Any]:
        """
        解码字节

        Raises:
            DecodeFailedError: 解码失败或根节点不是映射
        """

    @abstractmethod
    def marshal(self, value: Dict[str, Any]) -> bytes:
        """
        编码结构化数据

        Raises:
            EncodeFailedError: 编码失败
        """
