"""
存储后端抽象基类
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.errors import BackendConstructionError
from logger import get_logger

logger = get_logger("storage")

# 变更通知回调：入参为变更的 key（文件路径 / URL / 名称），可以是普通函数或协程函数
NotifyCallback = Callable[[str], Union[None, Awaitable[None]]]

# 轮询探针：返回当前指纹，指纹变化即视为源发生变更
FingerprintFn = Callable[[], Awaitable[Any]]


class StorageBackend(ABC):
    """
    存储后端抽象基类

    定义配置字节的统一读写接口，具体实现可以是本地文件、HTTP 远端、内存等。

    约定：
    - load() 在源不存在时抛出 StorageNotFoundError（运行时存储据此自愈）
    - register_notify() 启动后台任务，cancel_event 被 set 之后停止回调
    """

    def __init__(self) -> None:
        self._watch_tasks: List[asyncio.Task] = []

    @abstractmethod
    async def load(self) -> bytes:
        """
        读取原始字节

        Raises:
            StorageNotFoundError: 源不存在
            LoadFailedError: 其他读取错误
        """

    @abstractmethod
    async def save(self, data: bytes) -> None:
        """
        写入原始字节

        Raises:
            PersistFailedError: 写入失败
        """

    @abstractmethod
    async def register_notify(self, cancel_event: asyncio.Event, callback: NotifyCallback) -> None:
        """
        注册变更通知

        Args:
            cancel_event: 取消信号，set 之后不再投递回调
            callback: 变更回调

        Raises:
            NotifyRegistrationError: 注册失败
        """

    @abstractmethod
    def name(self) -> str:
        """人类可读的源标识"""

    @property
    def base_dir(self) -> Optional[Path]:
        """本源所在目录；子配置中的相对文件路径以此为基准（无本地目录的后端为 None）"""
        return None

    # ==================== 监听辅助 ====================

    def _spawn_watch(self, coro: Awaitable[None], key: str) -> asyncio.Task:
        """启动监听任务并持有引用，任务结束后自动移除"""
        task = asyncio.create_task(coro, name=f"watch:{key}")
        self._watch_tasks.append(task)
        task.add_done_callback(self._forget_task)
        return task

    def _spawn_poller(
        self,
        cancel_event: asyncio.Event,
        callback: NotifyCallback,
        fingerprint: FingerprintFn,
        interval: float,
        key: str,
        initial: Any = None,
    ) -> asyncio.Task:
        """
        启动轮询监听任务

        每隔 interval 秒调用一次 fingerprint，指纹与上次不同则投递回调。
        用于没有推送通知的远端源（http）。
        """
        return self._spawn_watch(self._poll(cancel_event, callback, fingerprint, interval, key, initial), key)

    def _forget_task(self, task: asyncio.Task) -> None:
        if task in self._watch_tasks:
            self._watch_tasks.remove(task)

    async def _poll(
        self,
        cancel_event: asyncio.Event,
        callback: NotifyCallback,
        fingerprint: FingerprintFn,
        interval: float,
        key: str,
        last: Any,
    ) -> None:
        while not cancel_event.is_set():
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                current = await fingerprint()
            except Exception as e:
                logger.warning(f"⚠️ 变更探测失败 {key}: {e}")
                continue

            if current != last:
                last = current
                logger.info(f"🔄 检测到配置源变更: {key}")
                await dispatch_notify(callback, key)


async def dispatch_notify(callback: NotifyCallback, key: str) -> None:
    """
    投递变更回调

    回调异常只记录日志，不中断监听任务。
    """
    try:
        result = callback(key)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"❌ 变更回调执行失败 {key}: {e}", exc_info=True)


def parse_interval(params: Dict[str, str], key: str, default: float) -> float:
    """解析正数秒参数"""
    raw = params.get(key)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise BackendConstructionError(f"参数 {key} 不是合法数字: {raw!r}")
    if value <= 0:
        raise BackendConstructionError(f"参数 {key} 必须大于 0: {raw!r}")
    return value


def optional_param(params: Dict[str, str], key: str) -> Optional[str]:
    """读取可选字符串参数（空字符串视为未设置）"""
    value = params.get(key)
    return str(value) if value not in (None, "") else None
