"""
命名空间模块

配置应用完成后的发布面：ProfileRegistry + NamespaceRegistry
"""

from core.namespace.registry import (
    MODE_KEY,
    Namespace,
    NamespaceRegistry,
    Profile,
    ProfileRegistry,
)

__all__ = [
    "MODE_KEY",
    "Namespace",
    "NamespaceRegistry",
    "Profile",
    "ProfileRegistry",
]
