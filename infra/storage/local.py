"""
本地文件存储

变更通知基于 watchdog：监听文件所在目录（原子替换会换掉 inode，只监听文件本身会丢事件），
observer 线程里的事件通过 loop.call_soon_threadsafe 投递回事件循环。
"""

import asyncio
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import aiofiles
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from core.errors import (
    BackendConstructionError,
    LoadFailedError,
    NotifyRegistrationError,
    PersistFailedError,
    StorageNotFoundError,
)
from infra.storage.base import NotifyCallback, StorageBackend, dispatch_notify, optional_param, parse_interval
from logger import get_logger

logger = get_logger("storage.local")


class _FileEventHandler(FileSystemEventHandler):
    """只转发目标文件的事件（observer 线程中运行）"""

    def __init__(self, target: str, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[str]"):
        super().__init__()
        self.target = target
        self.loop = loop
        self.queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        paths = {os.fsdecode(event.src_path), os.fsdecode(getattr(event, "dest_path", "") or "")}
        if self.target not in paths:
            return
        try:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event.event_type)
        except RuntimeError:
            # 事件循环已关闭，监听任务随之结束
            logger.debug(f"事件循环已关闭，丢弃文件事件: {self.target}")


class FileStorage(StorageBackend):
    """
    本地文件系统存储

    参数：
    - path: 文件路径（必填）
    - name: 显示名称（默认取文件名）
    - settle: 收到文件事件后等待写入稳定的时间（秒，默认 0.1），期间的事件合并为一次
    """

    def __init__(self, params: Dict[str, str]):
        super().__init__()
        path = optional_param(params, "path")
        if not path:
            raise BackendConstructionError("file 存储缺少参数 path")

        self.path = Path(path).expanduser()
        self.display_name = optional_param(params, "name") or self.path.name
        self.settle = parse_interval(params, "settle", 0.1)

    def name(self) -> str:
        return self.display_name

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    async def load(self) -> bytes:
        """读取文件内容"""
        try:
            async with aiofiles.open(self.path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"文件不存在: {self.path}") from e
        except OSError as e:
            raise LoadFailedError(f"读取文件失败 {self.path}: {e}") from e

    async def save(self, data: bytes) -> None:
        """原子写入：临时文件 + replace，避免写一半导致文件损坏"""
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await asyncio.to_thread(os.replace, tmp_path, self.path)
        except OSError as e:
            raise PersistFailedError(f"写入文件失败 {self.path}: {e}") from e

    async def register_notify(self, cancel_event: asyncio.Event, callback: NotifyCallback) -> None:
        """启动 watchdog observer 监听文件变更，cancel_event 被 set 后停止"""
        target = self.path.resolve()
        queue: asyncio.Queue[str] = asyncio.Queue()
        handler = _FileEventHandler(str(target), asyncio.get_running_loop(), queue)

        observer = Observer()
        try:
            initial = await self._fingerprint()
            observer.schedule(handler, str(target.parent), recursive=False)
            await asyncio.to_thread(observer.start)
        except OSError as e:
            raise NotifyRegistrationError(f"无法监听文件 {self.path}: {e}") from e

        self._spawn_watch(self._watch(cancel_event, callback, queue, observer, initial), str(self.path))
        logger.debug(f"👀 监听文件变更: {self.path}")

    async def _watch(
        self,
        cancel_event: asyncio.Event,
        callback: NotifyCallback,
        queue: "asyncio.Queue[str]",
        observer: Observer,
        last: Optional[Tuple[int, int]],
    ) -> None:
        key = str(self.path)
        stopped = asyncio.create_task(cancel_event.wait())
        try:
            while not cancel_event.is_set():
                event = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({event, stopped}, return_when=asyncio.FIRST_COMPLETED)
                if event not in done:
                    event.cancel()
                    break

                # 一次保存通常产生多条事件（截断 / 写入 / 关闭），等写入稳定后合并处理
                await asyncio.sleep(self.settle)
                while not queue.empty():
                    queue.get_nowait()
                if cancel_event.is_set():
                    break

                current = await self._fingerprint()
                if current != last:
                    last = current
                    logger.info(f"🔄 检测到配置源变更: {key}")
                    await dispatch_notify(callback, key)
        finally:
            stopped.cancel()
            observer.stop()
            await asyncio.to_thread(observer.join, 2.0)
            logger.debug(f"🛑 停止监听文件: {key}")

    async def _fingerprint(self) -> Optional[Tuple[int, int]]:
        """文件指纹；文件不存在时为 None（删除 / 重新创建同样视为变更）"""
        try:
            stat = await asyncio.to_thread(os.stat, self.path)
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size
