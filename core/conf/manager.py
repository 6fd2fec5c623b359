"""
Profile 管理器

职责：
1. 启动时加载并应用配置（注册变更通知）
2. 变更通知经防抖合并为一次 reload
3. reload 使用新的 cancel_event 加载并应用，成功后取消上一轮监听；
   失败则取消本轮监听，之前发布的 Profile 保持生效
4. 加载失败按指数退避重试（infra.resilience.retry）

使用方式：
    manager = ProfileManager(loader, applier, runtime, ConfigSource("file", "conf", {"path": "main.conf"}))
    await manager.start()
    ...
    await manager.stop()
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from core.conf.applier import ConfigApplier
from core.conf.loader import ConfigLoader
from core.conf.model import Configuration
from core.namespace.registry import Profile
from infra.resilience.retry import retry_async
from logger import get_logger

logger = get_logger("conf.manager")


@dataclass
class ConfigSource:
    """主配置来源"""

    storage_type: str
    encoding_type: str
    params: Dict[str, str] = field(default_factory=dict)


class ProfileManager:
    """
    Profile 生命周期管理（加载 / 热重载 / 停止）

    Args:
        loader: 配置加载器
        applier: 配置应用器
        runtime: 根运行时存储
        source: 主配置来源
        namespace: 发布到的命名空间名称
        debounce: 变更通知防抖时间（秒）
        reload_retries: 加载失败的最大重试次数
        retry_base_delay: 首次重试的等待时间（秒）
    """

    def __init__(
        self,
        loader: ConfigLoader,
        applier: ConfigApplier,
        runtime,
        source: ConfigSource,
        namespace: str = "default",
        debounce: float = 0.5,
        reload_retries: int = 2,
        retry_base_delay: float = 0.5,
    ):
        self.loader = loader
        self.applier = applier
        self.runtime = runtime
        self.source = source
        self.namespace = namespace
        self.debounce = debounce
        self.reload_retries = reload_retries
        self.retry_base_delay = retry_base_delay

        self.profile: Optional[Profile] = None
        self.reload_count = 0
        self._cancel_event: Optional[asyncio.Event] = None
        self._pending: Optional[asyncio.Task] = None
        self._reload_lock = asyncio.Lock()
        self._stopped = False

    async def start(self) -> Profile:
        """
        首次加载并应用配置

        Raises:
            RouteConfError: 加载或应用失败（不会发布任何东西）
        """
        self._stopped = False
        async with self._reload_lock:
            self.profile = await self._load_and_apply()
        logger.info(f"🚀 ProfileManager 已启动: {self.profile.name} -> {self.namespace}")
        return self.profile

    async def reload(self) -> Optional[Profile]:
        """
        重新加载配置

        Returns:
            新发布的 Profile；失败时返回 None，之前的 Profile 保持生效
        """
        async with self._reload_lock:
            if self._stopped:
                return None
            try:
                profile = await self._load_and_apply()
            except Exception as e:
                logger.error(f"❌ 配置重载失败，继续使用当前 Profile: {e}", exc_info=True)
                return None

            self.profile = profile
            self.reload_count += 1
            logger.info(f"🔄 配置已重载: {profile.name} (第 {self.reload_count} 次)")
            return profile

    async def stop(self) -> None:
        """取消所有监听与待执行的 reload"""
        self._stopped = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
        if self._cancel_event is not None:
            self._cancel_event.set()
            self._cancel_event = None
        logger.info("🛑 ProfileManager 已停止")

    def _on_change(self, key: str) -> None:
        """变更通知回调：在防抖窗口内合并为一次 reload"""
        if self._stopped:
            return
        logger.info(f"👀 检测到配置变更: {key}")
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._debounced_reload())

    async def _debounced_reload(self) -> None:
        await asyncio.sleep(self.debounce)
        await self.reload()

    async def _load_and_apply(self) -> Profile:
        config, cancel_event = await retry_async(
            self._load_once,
            max_retries=self.reload_retries,
            base_delay=self.retry_base_delay,
        )
        try:
            profile = await self.applier.apply(config, self.runtime, self.namespace, cancel_event)
        except BaseException:
            cancel_event.set()
            raise

        previous, self._cancel_event = self._cancel_event, cancel_event
        if previous is not None:
            previous.set()
        return profile

    async def _load_once(self) -> Tuple[Configuration, asyncio.Event]:
        # 每次尝试使用独立的 cancel_event，失败的尝试不会留下监听
        cancel_event = asyncio.Event()
        try:
            config = await self.loader.load(
                self.source.storage_type,
                self.source.encoding_type,
                self.source.params,
                on_change=self._on_change,
                cancel_event=cancel_event,
            )
        except BaseException:
            cancel_event.set()
            raise
        return config, cancel_event
