"""
存储层抽象

提供配置字节的统一读写与变更通知接口
"""

from infra.storage.base import NotifyCallback, StorageBackend, dispatch_notify
from infra.storage.http import HttpStorage
from infra.storage.local import FileStorage
from infra.storage.memory import MemoryBuckets, MemoryStorage
from infra.storage.registry import StorageRegistry, create_storage_registry

__all__ = [
    # 接口
    "StorageBackend",
    "NotifyCallback",
    "dispatch_notify",
    # 后端
    "FileStorage",
    "HttpStorage",
    "MemoryStorage",
    "MemoryBuckets",
    # 注册表
    "StorageRegistry",
    "create_storage_registry",
]
