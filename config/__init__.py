"""
应用设置模块
"""

from config.settings import AppSettings, StorageSettings, load_settings

__all__ = [
    "AppSettings",
    "StorageSettings",
    "load_settings",
]
