"""
后端统一注册中心

存储后端（storage）与编码器（encoding）共用的注册表基类：
按标识符登记工厂函数，按需用参数构造实例。

设计原则：
- 显式对象：注册表作为参数传入 loader / runtime，不依赖隐藏的全局状态
- 初始化后冻结：freeze() 之后只读，查找无需额外同步
- 错误分类：未注册 → UnknownBackendError；参数校验失败 → BackendConstructionError

使用方式：
```python
registry = StorageRegistry()
registry.register("file", FileStorage)
registry.freeze()

storage = registry.get("file", {"path": "main.conf"})
```
"""

from typing import Callable, Dict, Generic, List, Mapping, TypeVar

from core.errors import BackendConstructionError, UnknownBackendError
from logger import get_logger

logger = get_logger("infra.registry")

T = TypeVar("T")

BackendFactory = Callable[[Dict[str, str]], T]


class BackendRegistry(Generic[T]):
    """
    后端注册表

    Attributes:
        kind: 注册表类别（用于日志和错误信息，如 "storage" / "encoding"）
    """

    kind: str = "backend"

    def __init__(self) -> None:
        self._factories: Dict[str, BackendFactory] = {}
        self._frozen = False

    def register(self, name: str, factory: BackendFactory) -> None:
        """
        注册后端工厂

        Args:
            name: 后端标识（不区分大小写）
            factory: 工厂函数，入参为参数字典，返回后端实例

        Raises:
            RuntimeError: 注册表已冻结
        """
        if self._frozen:
            raise RuntimeError(f"{self.kind} 注册表已冻结，无法注册 '{name}'")

        key = name.lower()
        if key in self._factories:
            logger.warning(f"⚠️ {self.kind} 后端 '{name}' 已注册，将被覆盖")

        self._factories[key] = factory
        logger.debug(f"✅ 注册 {self.kind} 后端: {key}")

    def freeze(self) -> None:
        """冻结注册表（此后只读）"""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> List[str]:
        """已注册的后端标识列表"""
        return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._factories

    def get(self, name: str, params: Mapping[str, str] = None) -> T:
        """
        按标识构造后端实例

        Args:
            name: 后端标识
            params: 后端参数

        Returns:
            后端实例

        Raises:
            UnknownBackendError: 未注册的后端标识
            BackendConstructionError: 后端参数校验失败
        """
        factory = self._factories.get((name or "").lower())
        if factory is None:
            available = ", ".join(self.names()) or "-"
            raise UnknownBackendError(
                f"未知的 {self.kind} 后端: '{name}'。可用的后端: {available}"
            )

        try:
            return factory(dict(params or {}))
        except BackendConstructionError:
            raise
        except (ValueError, TypeError, KeyError) as e:
            raise BackendConstructionError(
                f"{self.kind} 后端 '{name}' 构造失败: {e}"
            ) from e
