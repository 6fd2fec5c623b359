"""
应用设置

加载顺序（后者覆盖前者）：
1. 内置默认值（数据目录下的 main.conf / runtime.json）
2. {data_dir}/settings.yaml
3. ROUTECONF_* 环境变量

使用示例：
    from config import load_settings

    settings = await load_settings()
    loader = ConfigLoader(merge_strategy=settings.merge_strategy)
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.conf.merge import MergeStrategy
from logger import get_logger
from utils.app_paths import get_default_config_path, get_runtime_path, get_settings_path

logger = get_logger("settings")

ENV_PREFIX = "ROUTECONF_"


class StorageSettings(BaseModel):
    """一个 存储后端 + 编码器 组合"""

    type: str = "file"
    encoding: str = "conf"
    params: Dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value


def _default_config_source() -> StorageSettings:
    return StorageSettings(type="file", encoding="conf", params={"path": str(get_default_config_path())})


def _default_runtime_source() -> StorageSettings:
    return StorageSettings(type="file", encoding="json", params={"path": str(get_runtime_path())})


class AppSettings(BaseModel):
    """应用设置"""

    config: StorageSettings = Field(default_factory=_default_config_source, description="主配置来源")
    runtime: StorageSettings = Field(default_factory=_default_runtime_source, description="运行时存储")
    namespace: str = "default"
    merge_strategy: MergeStrategy = MergeStrategy.CONCAT
    log_level: str = "INFO"
    reload_debounce: float = Field(0.5, ge=0)
    reload_retries: int = Field(2, ge=0)
    retry_base_delay: float = Field(0.5, ge=0)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


# 环境变量 -> 设置路径
_ENV_FIELDS = {
    "CONFIG_TYPE": ("config", "type"),
    "CONFIG_ENCODING": ("config", "encoding"),
    "CONFIG_PATH": ("config", "params", "path"),
    "CONFIG_URL": ("config", "params", "url"),
    "RUNTIME_TYPE": ("runtime", "type"),
    "RUNTIME_ENCODING": ("runtime", "encoding"),
    "RUNTIME_PATH": ("runtime", "params", "path"),
    "NAMESPACE": ("namespace",),
    "MERGE_STRATEGY": ("merge_strategy",),
    "LOG_LEVEL": ("log_level",),
    "RELOAD_DEBOUNCE": ("reload_debounce",),
    "RELOAD_RETRIES": ("reload_retries",),
    "RETRY_BASE_DELAY": ("retry_base_delay",),
}


def _apply_env_overrides(raw: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    for suffix, path in _ENV_FIELDS.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is None:
            continue
        node = raw
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    return raw


async def _load_yaml(path: Path) -> Dict[str, Any]:
    """加载 YAML 文件，不存在时返回空字典"""
    if not path.exists():
        return {}

    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"设置文件根节点必须是映射: {path}")
    return data


async def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AppSettings:
    """
    加载应用设置

    Args:
        path: 设置文件路径（默认 {data_dir}/settings.yaml）
        environ: 环境变量映射（默认 os.environ）

    Returns:
        AppSettings

    Raises:
        ValueError: 设置文件或环境变量取值不合法
    """
    settings_path = Path(path) if path else get_settings_path()
    try:
        raw = await _load_yaml(settings_path)
    except yaml.YAMLError as e:
        raise ValueError(f"设置文件不是合法的 YAML: {settings_path}: {e}") from e

    raw = _apply_env_overrides(raw, environ)

    # 只覆盖了 params 中部分键时，补齐默认来源的其他字段
    for key, factory in (("config", _default_config_source), ("runtime", _default_runtime_source)):
        section = raw.get(key)
        if isinstance(section, dict):
            raw[key] = {**factory().model_dump(), **section}

    try:
        settings = AppSettings.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"设置不合法: {e}") from e

    logger.debug(f"设置已加载: {settings_path} (config={settings.config.type}/{settings.config.encoding})")
    return settings
