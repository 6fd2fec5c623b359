"""
持久化运行时存储
------------------------------------------------------------
目标：
- 保存必须跨重启保留的可变运行时状态（如流量模式）
- 复用配置层的 存储后端 + 编码器 抽象
- 写穿（write-through）：每次 set 都重新编码整张表并写回存储

说明：
- 单把 asyncio.Lock 串行化所有 get / set，读写不区分
- 内容为空或只有空白时同样视为空表，不经过编码器
- 首次加载时源不存在：视为空表，并立即写入空内容（自愈初始化）
- set 写回失败时内存中的值已经生效，调用方需自行决定是否重试
"""

import asyncio
from typing import Any, Dict, Mapping, Optional

from core.errors import DecodeFailedError, RouteConfError, StorageNotFoundError
from infra.encoding.base import Codec
from infra.encoding.registry import EncodingRegistry, create_encoding_registry
from infra.storage.base import StorageBackend
from infra.storage.registry import StorageRegistry, create_storage_registry
from logger import get_logger

logger = get_logger("runtime.store")


class RuntimeStore:
    """
    持久化键值存储（并发安全，写穿）

    Usage:
        runtime = await load_runtime("file", "json", {"path": "runtime.json"})
        await runtime.set("mode", "global")
        mode = await runtime.get("mode")
    """

    name = ""

    def __init__(self, value: Dict[str, Any], storage: StorageBackend, codec: Codec):
        self._value = value
        self._storage = storage
        self._codec = codec
        self._lock = asyncio.Lock()

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    async def get(self, key: str, default: Any = None) -> Any:
        """读取键值；未设置时返回 default，不会抛出异常"""
        async with self._lock:
            return self._value.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        """
        写入键值并立即持久化整张表

        Raises:
            EncodeFailedError: 编码失败（内存中的值已更新）
            PersistFailedError: 写回失败（内存中的值已更新）
        """
        async with self._lock:
            self._value[key] = value
            data = self._codec.marshal(self._value)
            await self._storage.save(data)
        logger.debug(f"💾 运行时已持久化: {key}")

    def snapshot(self) -> Dict[str, Any]:
        """当前内容的浅拷贝（诊断用）"""
        return dict(self._value)


async def load_runtime(
    storage_type: str,
    encoding_type: str,
    params: Mapping[str, str],
    storages: Optional[StorageRegistry] = None,
    encodings: Optional[EncodingRegistry] = None,
) -> RuntimeStore:
    """
    加载运行时存储（单一来源，不处理 include）

    Args:
        storage_type: 存储后端标识
        encoding_type: 编码器标识
        params: 后端参数
        storages: 存储注册表（默认使用内置注册表）
        encodings: 编码器注册表（默认使用内置注册表）

    Returns:
        RuntimeStore

    Raises:
        UnknownBackendError / BackendConstructionError: 后端解析失败
        LoadFailedError: 读取失败（源不存在除外）
        PersistFailedError: 自愈写入空内容失败
        DecodeFailedError: 内容无法解码为映射
    """
    storages = storages or create_storage_registry()
    encodings = encodings or create_encoding_registry()

    try:
        storage = storages.get(storage_type, params)
        codec = encodings.get(encoding_type, params)
    except RouteConfError as e:
        raise e.with_stage("load_runtime.resolve") from e

    try:
        data = await storage.load()
    except StorageNotFoundError:
        logger.info(f"🆕 运行时存储不存在，初始化为空: {storage.name()}")
        data = b""
        try:
            await storage.save(data)
        except RouteConfError as e:
            raise e.with_stage("load_runtime.init") from e
    except RouteConfError as e:
        raise e.with_stage("load_runtime.load") from e

    value: Dict[str, Any] = {}
    if data.strip():
        try:
            value = codec.unmarshal(data)
        except RouteConfError as e:
            raise e.with_stage("load_runtime.decode") from e
        if not isinstance(value, dict):
            raise DecodeFailedError("运行时存储内容必须是映射", stage="load_runtime.decode")

    logger.info(f"✅ 运行时存储已加载: {storage.name()} ({len(value)} keys)")
    return RuntimeStore(value, storage, codec)
