"""
内存存储

进程内字节存储，常用于测试替身和临时运行时状态。
同一个 MemoryBuckets 下按 name 共享数据，重建实例后仍能读到之前写入的内容。
"""

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from core.errors import BackendConstructionError, StorageNotFoundError
from infra.storage.base import NotifyCallback, StorageBackend, dispatch_notify, optional_param
from logger import get_logger

logger = get_logger("storage.memory")


class MemoryBuckets:
    """内存桶集合：name -> bytes，以及各桶的变更监听者"""

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.listeners: Dict[str, List[Tuple[asyncio.Event, NotifyCallback]]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    def notify(self, name: str) -> None:
        """向仍然有效的监听者异步投递变更"""
        alive = [(ev, cb) for ev, cb in self.listeners[name] if not ev.is_set()]
        self.listeners[name] = alive
        for _, callback in alive:
            task = asyncio.create_task(dispatch_notify(callback, name), name=f"notify:{name}")
            # 投递完成前持有任务引用
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)


class MemoryStorage(StorageBackend):
    """
    内存存储

    参数：
    - name: 桶名称（必填）
    - data: 初始内容（仅在桶为空时写入）
    """

    def __init__(self, params: Dict[str, str], buckets: Optional[MemoryBuckets] = None):
        super().__init__()
        bucket = optional_param(params, "name")
        if not bucket:
            raise BackendConstructionError("memory 存储缺少参数 name")

        self.bucket = bucket
        self.buckets = buckets if buckets is not None else MemoryBuckets()

        initial = params.get("data")
        if initial is not None and bucket not in self.buckets.data:
            self.buckets.data[bucket] = str(initial).encode("utf-8")

    def name(self) -> str:
        return self.bucket

    async def load(self) -> bytes:
        try:
            return self.buckets.data[self.bucket]
        except KeyError:
            raise StorageNotFoundError(f"内存桶不存在: {self.bucket}") from None

    async def save(self, data: bytes) -> None:
        self.buckets.data[self.bucket] = bytes(data)
        self.buckets.notify(self.bucket)

    async def register_notify(self, cancel_event: asyncio.Event, callback: NotifyCallback) -> None:
        self.buckets.listeners[self.bucket].append((cancel_event, callback))
        logger.debug(f"👀 监听内存桶变更: {self.bucket}")
