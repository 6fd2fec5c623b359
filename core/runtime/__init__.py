"""
运行时存储模块

- RuntimeStore / load_runtime: 持久化写穿键值存储
- ScopedRuntime: 按阶段前缀隔离的运行时视图
"""

from core.runtime.scoped import Runtime, ScopedRuntime
from core.runtime.store import RuntimeStore, load_runtime

__all__ = [
    "Runtime",
    "RuntimeStore",
    "ScopedRuntime",
    "load_runtime",
]
