"""
应用路径管理

数据目录存放可写内容：settings.yaml、默认运行时存储 runtime.json、默认主配置 main.conf、logs/

解析优先级：
1. set_data_dir()（命令行 --data-dir）
2. 环境变量 ROUTECONF_DATA_DIR
3. 平台用户数据目录
    - macOS: ~/Library/Application Support/routeconf/
    - Windows: %APPDATA%/routeconf/
    - Linux: $XDG_DATA_HOME/routeconf/ 或 ~/.local/share/routeconf/
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union

APP_NAME = "routeconf"
DATA_DIR_ENV = "ROUTECONF_DATA_DIR"

_data_dir: Optional[Path] = None


def set_data_dir(path: Union[str, Path]) -> Path:
    """显式指定数据目录（优先于环境变量）"""
    global _data_dir
    _data_dir = _ensure(Path(path).expanduser())
    return _data_dir


def get_data_dir() -> Path:
    """获取数据目录（首次调用时解析并创建）"""
    global _data_dir
    if _data_dir is None:
        configured = os.getenv(DATA_DIR_ENV)
        _data_dir = _ensure(Path(configured).expanduser() if configured else _platform_data_dir())
    return _data_dir


def get_logs_dir() -> Path:
    return _ensure(get_data_dir() / "logs")


def get_settings_path() -> Path:
    return get_data_dir() / "settings.yaml"


def get_default_config_path() -> Path:
    return get_data_dir() / "main.conf"


def get_runtime_path() -> Path:
    return get_data_dir() / "runtime.json"


def reset_cache() -> None:
    """清除已解析的数据目录（测试用）"""
    global _data_dir
    _data_dir = None


# ==================== 内部辅助函数 ====================


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _platform_data_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    if sys.platform == "win32":
        base = os.getenv("APPDATA")
        return (Path(base) if base else Path.home() / "AppData" / "Roaming") / APP_NAME
    base = os.getenv("XDG_DATA_HOME")
    return (Path(base) if base else Path.home() / ".local" / "share") / APP_NAME
