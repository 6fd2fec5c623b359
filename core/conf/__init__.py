"""
配置模块

- model: Configuration / StorageRef / RuleConfig
- merge: 合并策略
- loader: 分层配置加载器

ConfigApplier / ProfileManager 依赖 namespace 与 collaborators，
请从 core.conf.applier / core.conf.manager 直接导入。
"""

from core.conf.loader import ConfigLoader, load_config
from core.conf.merge import MergeStrategy, deep_merge, join_fragments
from core.conf.model import Configuration, Info, RuleConfig, StorageRef

__all__ = [
    "ConfigLoader",
    "load_config",
    "MergeStrategy",
    "deep_merge",
    "join_fragments",
    "Configuration",
    "Info",
    "RuleConfig",
    "StorageRef",
]
