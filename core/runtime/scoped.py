"""
作用域运行时视图

在同一个 RuntimeStore 内按点号前缀隔离各阶段的键：
    ScopedRuntime("default", store) -> "default.mode"
    ScopedRuntime("dns", ScopedRuntime("default", store)) -> "default.dns.xxx"
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Runtime(Protocol):
    """运行时键值接口（RuntimeStore 与 ScopedRuntime 共同实现）"""

    name: str

    async def get(self, key: str, default: Any = None) -> Any:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...


class ScopedRuntime:
    """带前缀的运行时视图"""

    def __init__(self, name: str, parent: Runtime):
        if not name or "." in name:
            raise ValueError(f"作用域名称不能为空且不能包含 '.': {name!r}")
        self.parent = parent
        self.scope = name
        self.name = f"{parent.name}.{name}" if getattr(parent, "name", "") else name

    def _key(self, key: str) -> str:
        return f"{self.scope}.{key}"

    async def get(self, key: str, default: Any = None) -> Any:
        return await self.parent.get(self._key(key), default)

    async def set(self, key: str, value: Any) -> None:
        await self.parent.set(self._key(key), value)

    def __repr__(self) -> str:
        return f"ScopedRuntime({self.name!r})"
