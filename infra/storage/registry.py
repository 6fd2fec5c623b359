"""
存储后端注册表
"""

from functools import partial

from infra.registry import BackendRegistry
from infra.storage.base import StorageBackend
from infra.storage.http import HttpStorage
from infra.storage.local import FileStorage
from infra.storage.memory import MemoryBuckets, MemoryStorage


class StorageRegistry(BackendRegistry[StorageBackend]):
    """存储后端注册表：标识 -> 工厂(params) -> StorageBackend"""

    kind = "storage"


def create_storage_registry(freeze: bool = True) -> StorageRegistry:
    """
    创建内置存储注册表

    内置后端：
    - file: 本地文件
    - http: HTTP 远端
    - memory: 内存（桶在本注册表内共享）

    Args:
        freeze: 是否在注册完成后冻结
    """
    registry = StorageRegistry()
    registry.register("file", FileStorage)
    registry.register("http", HttpStorage)
    registry.register("memory", partial(MemoryStorage, buckets=MemoryBuckets()))
    if freeze:
        registry.freeze()
    return registry
