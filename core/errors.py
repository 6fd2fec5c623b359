"""
配置层错误定义

职责：
- 定义加载 / 应用 / 运行时存储各阶段的错误类型
- 错误携带阶段名（stage），逐层包装后向上传播
- 不做重试：重试由调用方（ProfileManager）负责

使用示例：
    try:
        data = await storage.load()
    except RouteConfError as e:
        raise e.with_stage("load_config.primary") from e
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """错误类型枚举"""

    UNKNOWN_BACKEND = "unknown_backend"
    BACKEND_CONSTRUCTION_FAILED = "backend_construction_failed"
    LOAD_FAILED = "load_failed"
    NOT_FOUND = "not_found"
    DECODE_FAILED = "decode_failed"
    NOTIFY_REGISTRATION_FAILED = "notify_registration_failed"
    DOWNSTREAM_APPLY_FAILED = "downstream_apply_failed"
    ENCODE_FAILED = "encode_failed"
    PERSIST_FAILED = "persist_failed"


class RouteConfError(Exception):
    """
    配置层错误基类

    Attributes:
        message: 原始错误信息（不含阶段前缀）
        stage: 出错阶段，逐层包装时由外向内拼接
    """

    kind: ErrorKind = ErrorKind.LOAD_FAILED

    def __init__(self, message: str, stage: Optional[str] = None):
        self.message = message
        self.stage = stage
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message

    def with_stage(self, stage: str) -> "RouteConfError":
        """
        生成同类型错误，并在阶段链前追加 stage

        调用方应使用 ``raise err.with_stage(...) from err`` 保留原始异常链。
        """
        chained = f"{stage} > {self.stage}" if self.stage else stage
        wrapped = self.__class__.__new__(self.__class__)
        RouteConfError.__init__(wrapped, self.message, chained)
        wrapped.__dict__.update(
            {k: v for k, v in self.__dict__.items() if k not in ("message", "stage")}
        )
        return wrapped


class UnknownBackendError(RouteConfError):
    """注册表中不存在该后端标识"""

    kind = ErrorKind.UNKNOWN_BACKEND


class BackendConstructionError(RouteConfError):
    """后端参数校验失败，无法构造实例"""

    kind = ErrorKind.BACKEND_CONSTRUCTION_FAILED


class LoadFailedError(RouteConfError):
    """从存储读取原始字节失败"""

    kind = ErrorKind.LOAD_FAILED


class StorageNotFoundError(LoadFailedError):
    """存储源不存在（运行时存储据此自愈初始化）"""

    kind = ErrorKind.NOT_FOUND


class DecodeFailedError(RouteConfError):
    """字节解码为结构化配置失败"""

    kind = ErrorKind.DECODE_FAILED


class NotifyRegistrationError(RouteConfError):
    """变更通知注册失败"""

    kind = ErrorKind.NOTIFY_REGISTRATION_FAILED


class DownstreamApplyError(RouteConfError):
    """下游协作方（plugin / dns / server / ...）应用配置失败"""

    kind = ErrorKind.DOWNSTREAM_APPLY_FAILED


class EncodeFailedError(RouteConfError):
    """结构化数据编码为字节失败"""

    kind = ErrorKind.ENCODE_FAILED


class PersistFailedError(RouteConfError):
    """写回存储失败"""

    kind = ErrorKind.PERSIST_FAILED
