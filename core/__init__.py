"""
routeconf Core Module

核心组件：
- conf: 分层配置加载 / 合并 / 应用 / 热重载
- rule: 规则责任链与流量模式覆盖
- runtime: 持久化运行时存储
- namespace: Profile / Namespace 发布表
- collaborators: 外部协作方钩子与内置实现
- errors: 配置层异常体系

子模块之间存在依赖，这里只导出异常类型，其余请从子模块直接导入。
"""

from core.errors import (
    BackendConstructionError,
    DecodeFailedError,
    DownstreamApplyError,
    EncodeFailedError,
    ErrorKind,
    LoadFailedError,
    NotifyRegistrationError,
    PersistFailedError,
    RouteConfError,
    StorageNotFoundError,
    UnknownBackendError,
)

__all__ = [
    "ErrorKind",
    "RouteConfError",
    "UnknownBackendError",
    "BackendConstructionError",
    "LoadFailedError",
    "StorageNotFoundError",
    "DecodeFailedError",
    "NotifyRegistrationError",
    "DownstreamApplyError",
    "EncodeFailedError",
    "PersistFailedError",
]
