"""
日志管理模块

所有模块通过 get_logger("conf.loader") 获取 "routeconf.conf.loader" 记录器，
统一挂在 "routeconf" 根记录器下。

快速开始:
=========

```python
from logger import get_logger, log_context, log_execution_time

logger = get_logger("conf.applier")

with log_context(namespace="default", profile="main.conf"):
    with log_execution_time("应用配置", logger):
        profile = await applier.apply(config, runtime)
```

日志输出:
========
- 控制台（stderr）：彩色易读格式，命令行结果单独走 stdout
- 文件：JSON 行（{data_dir}/logs/routeconf.log / error.log），按大小轮转

环境变量:
========
- ROUTECONF_LOG_LEVEL: 初始日志级别（默认 INFO）
- ROUTECONF_LOG_FILE: 设为 0 / false 关闭文件日志
"""
import json
import logging
import os
import sys
import tempfile
import time
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Optional

ROOT_LOGGER = "routeconf"

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 3

# ============================================================
# 上下文（命名空间 / Profile / 阶段）
# ============================================================
_CONTEXT_FIELDS = ("namespace", "profile", "stage")
_context: Dict[str, ContextVar[str]] = {
    field: ContextVar(f"routeconf_{field}", default="") for field in _CONTEXT_FIELDS
}


@contextmanager
def log_context(**fields: str) -> Iterator[None]:
    """
    在 with 块内附加日志上下文，退出时恢复

    Usage:
        with log_context(namespace="office", stage="apply"):
            ...
    """
    tokens = [(_context[k], _context[k].set(v)) for k, v in fields.items() if v]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


@contextmanager
def log_execution_time(operation: str, logger: Optional[logging.Logger] = None):
    """
    记录操作耗时（失败时同样记录，级别为 WARNING）

    Usage:
        with log_execution_time("加载配置", logger):
            config = await loader.load(...)
    """
    logger = logger or logging.getLogger(ROOT_LOGGER)
    start = time.perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if ok:
            logger.info(f"⏱️ {operation} 完成 ({duration_ms}ms)", extra={"duration_ms": duration_ms})
        else:
            logger.warning(f"⏱️ {operation} 中断 ({duration_ms}ms)", extra={"duration_ms": duration_ms})


# ============================================================
# 过滤器 / 格式化器
# ============================================================

class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for field, var in _context.items():
            setattr(record, field, var.get() or "-")
        return True


class _ConsoleFormatter(logging.Formatter):
    """控制台格式化器（终端下按级别着色）"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, stream):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(namespace)s/%(profile)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_colors = hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{self.COLORS.get(record.levelname, '')}{record.levelname}{self.RESET}"
        return super().format(colored)


class _JsonFormatter(logging.Formatter):
    """
    JSON 行格式化器（文件输出）

    {"ts":"...","level":"WARNING","ns":"default","profile":"main.conf","stage":"-",
     "logger":"conf.manager","msg":"⚠️ 重新加载失败，保留旧配置"}
    """

    # LogRecord 自带属性，其余视为 extra 字段原样输出
    _STANDARD = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime", *_CONTEXT_FIELDS}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "ns": getattr(record, "namespace", "-"),
            "profile": getattr(record, "profile", "-"),
            "stage": getattr(record, "stage", "-"),
            "logger": record.name[len(ROOT_LOGGER) + 1:] or ROOT_LOGGER,
            "src": f"{record.filename}:{record.lineno}",
            "msg": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0]:
            exc_type, exc, tb = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "msg": str(exc),
                "trace": "".join(traceback.format_exception(exc_type, exc, tb)).strip(),
            }

        for key, value in record.__dict__.items():
            if key not in self._STANDARD:
                entry[key] = value

        return json.dumps(entry, ensure_ascii=False, default=str)


# ============================================================
# 初始化
# ============================================================

_initialized = False


def _file_logging_enabled() -> bool:
    return os.getenv("ROUTECONF_LOG_FILE", "1").strip().lower() not in ("0", "false", "no", "off")


def _resolve_log_dir() -> Path:
    from utils.app_paths import get_logs_dir

    try:
        return get_logs_dir()
    except OSError:
        # 数据目录不可写
        fallback = Path(tempfile.gettempdir()) / "routeconf" / "logs"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def _rotating_handler(path: Path, level: int, context_filter: logging.Filter) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_JsonFormatter())
    handler.addFilter(context_filter)
    return handler


def _attach_file_handlers(root: logging.Logger, log_dir: Path) -> None:
    for handler in [h for h in root.handlers if isinstance(h, RotatingFileHandler)]:
        root.removeHandler(handler)
        handler.close()

    context_filter = _ContextFilter()
    root.addHandler(_rotating_handler(log_dir / "routeconf.log", logging.NOTSET, context_filter))
    root.addHandler(_rotating_handler(log_dir / "error.log", logging.ERROR, context_filter))


def _setup() -> None:
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = os.getenv("ROUTECONF_LOG_LEVEL", "INFO").upper()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_ConsoleFormatter(sys.stderr))
    console.addFilter(_ContextFilter())
    root.addHandler(console)

    if _file_logging_enabled():
        _attach_file_handlers(root, _resolve_log_dir())


# ============================================================
# 公开接口
# ============================================================

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    获取日志记录器

    Args:
        name: 模块名（如 "conf.loader"），为空时返回根记录器

    Returns:
        routeconf.{name} 记录器
    """
    _setup()
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_log_dir(log_dir: Path) -> None:
    """数据目录在启动后才确定时（--data-dir），把文件日志切换到新目录"""
    _setup()
    if _file_logging_enabled():
        log_dir.mkdir(parents=True, exist_ok=True)
        _attach_file_handlers(logging.getLogger(ROOT_LOGGER), log_dir)


def set_level(level: str) -> None:
    """调整根记录器级别（各 handler 不单独设级，error.log 除外）"""
    logging.getLogger(ROOT_LOGGER).setLevel(level.upper())
