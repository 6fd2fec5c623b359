"""
分层配置加载器

加载流程：
1. 解析主配置的存储后端与编码器
2. 读取主配置字节并解码
3. 在主存储上注册变更通知（on_change 为 None 时跳过）
4. 按声明顺序逐个加载 include：解析其存储、读取、追加到合并缓冲区、注册通知
5. 按合并策略得到最终结构（默认整体重新解码拼接后的字节）
6. info.name 取主存储的 name()

file 类型 include 的相对路径以主配置所在目录为基准，而不是进程当前目录。

任一步失败即中止，不返回部分配置；已注册的通知不会回滚，
由调用方设置本次加载传入的 cancel_event 清理。
加载器本身不做重试。
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from core.conf.merge import MergeStrategy, deep_merge, join_fragments
from core.conf.model import Configuration
from core.errors import DecodeFailedError, NotifyRegistrationError, RouteConfError
from infra.encoding.base import Codec
from infra.encoding.registry import EncodingRegistry, create_encoding_registry
from infra.storage.base import NotifyCallback, StorageBackend
from infra.storage.registry import StorageRegistry, create_storage_registry
from logger import get_logger, log_execution_time

logger = get_logger("conf.loader")


def _build_configuration(value: Dict[str, Any]) -> Configuration:
    try:
        return Configuration.model_validate(value)
    except ValidationError as e:
        raise DecodeFailedError(f"配置结构不合法: {e}") from e


class ConfigLoader:
    """
    配置加载器

    存储 / 编码注册表通过构造参数显式传入，同一个加载器可被多次调用
    （例如每次热重载都重新 load 一次）。
    """

    def __init__(
        self,
        storages: Optional[StorageRegistry] = None,
        encodings: Optional[EncodingRegistry] = None,
        merge_strategy: MergeStrategy = MergeStrategy.CONCAT,
    ):
        self.storages = storages or create_storage_registry()
        self.encodings = encodings or create_encoding_registry()
        self.merge_strategy = MergeStrategy(merge_strategy)

    async def load(
        self,
        storage_type: str,
        encoding_type: str,
        params: Mapping[str, str],
        on_change: Optional[NotifyCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Configuration:
        """
        加载并合并配置

        Args:
            storage_type: 主配置存储后端标识
            encoding_type: 编码器标识（主配置与所有 include 共用）
            params: 主配置存储参数
            on_change: 任一来源变更时的回调，参数为变更来源的标识
            cancel_event: 设置后停止本次加载注册的所有监听

        Returns:
            Configuration（info.name 已填充）

        Raises:
            RouteConfError 的各子类，消息带失败阶段前缀
        """
        if on_change is not None and cancel_event is None:
            raise ValueError("注册变更通知时必须提供 cancel_event")

        with log_execution_time(f"加载配置 {storage_type}/{encoding_type}", logger):
            try:
                storage = self.storages.get(storage_type, params)
                codec = self.encodings.get(encoding_type, params)
            except RouteConfError as e:
                raise e.with_stage("load_config.resolve") from e

            primary = await self._load_bytes(storage, "load_config.load")
            primary_value = self._decode(codec, primary, "load_config.decode")
            config = self._build(primary_value, "load_config.decode")

            if on_change is not None:
                await self._register(storage, cancel_event, on_change, "load_config.notify")

            fragments: List[bytes] = [primary]
            merged_value = primary_value

            for index, ref in enumerate(config.include):
                stage = f"load_config.include[{index}]"
                try:
                    include_params = self._include_params(storage, ref.type, ref.params)
                    include_storage = self.storages.get(ref.type, include_params)
                except RouteConfError as e:
                    raise e.with_stage(stage) from e

                data = await self._load_bytes(include_storage, stage)
                fragments.append(data)

                if self.merge_strategy != MergeStrategy.CONCAT:
                    fragment_value = self._decode(codec, data, stage)
                    if fragment_value.pop("include", None):
                        logger.warning(
                            f"⚠️ include 只展开一层，忽略 {include_storage.name()} 中的嵌套 include"
                        )
                    merged_value = deep_merge(
                        merged_value,
                        fragment_value,
                        append_lists=self.merge_strategy == MergeStrategy.APPEND,
                    )

                if on_change is not None:
                    await self._register(include_storage, cancel_event, on_change, stage)

                logger.debug(f"📎 已合并 include[{index}]: {include_storage.name()}")

            if config.include:
                if self.merge_strategy == MergeStrategy.CONCAT:
                    merged_value = self._decode(codec, join_fragments(fragments), "load_config.merge")
                config = self._finish_merge(merged_value, config)

            config.info.name = storage.name()

        logger.info(
            f"✅ 配置已加载: {config.info.name} "
            f"(include={len(fragments) - 1}, rules={len(config.rule)}, strategy={self.merge_strategy.value})"
        )
        return config

    @staticmethod
    def _include_params(primary: StorageBackend, storage_type: str, params: Dict[str, str]) -> Dict[str, str]:
        """file include 的相对路径按主配置目录展开"""
        params = dict(params)
        base_dir = primary.base_dir
        path = params.get("path")
        if storage_type.lower() != "file" or base_dir is None or not path:
            return params
        if not Path(path).expanduser().is_absolute():
            params["path"] = str(base_dir / path)
        return params

    @staticmethod
    async def _load_bytes(storage: StorageBackend, stage: str) -> bytes:
        try:
            return await storage.load()
        except RouteConfError as e:
            raise e.with_stage(stage) from e

    @staticmethod
    def _decode(codec: Codec, data: bytes, stage: str) -> Dict[str, Any]:
        if not data.strip():
            return {}
        try:
            return codec.unmarshal(data)
        except RouteConfError as e:
            raise e.with_stage(stage) from e

    @staticmethod
    async def _register(
        storage: StorageBackend,
        cancel_event: asyncio.Event,
        on_change: NotifyCallback,
        stage: str,
    ) -> None:
        try:
            await storage.register_notify(cancel_event, on_change)
        except RouteConfError as e:
            raise e.with_stage(stage) from e
        except Exception as e:
            raise NotifyRegistrationError(
                f"注册变更通知失败 ({storage.name()}): {e}", stage=stage
            ) from e

    @staticmethod
    def _build(value: Dict[str, Any], stage: str) -> Configuration:
        try:
            return _build_configuration(value)
        except DecodeFailedError as e:
            raise e.with_stage(stage) from e

    def _finish_merge(self, merged_value: Dict[str, Any], primary: Configuration) -> Configuration:
        config = self._build(merged_value, "load_config.merge")

        if len(config.include) != len(primary.include):
            logger.warning(
                f"⚠️ include 只展开一层，忽略子配置中声明的 "
                f"{max(len(config.include) - len(primary.include), 0)} 个嵌套 include"
            )
        return config


async def load_config(
    storage_type: str,
    encoding_type: str,
    params: Mapping[str, str],
    on_change: Optional[NotifyCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    storages: Optional[StorageRegistry] = None,
    encodings: Optional[EncodingRegistry] = None,
    merge_strategy: MergeStrategy = MergeStrategy.CONCAT,
) -> Configuration:
    """便捷函数：一次性构造 ConfigLoader 并加载"""
    loader = ConfigLoader(storages, encodings, merge_strategy)
    return await loader.load(storage_type, encoding_type, params, on_change, cancel_event)
