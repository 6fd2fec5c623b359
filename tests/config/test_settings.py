"""
应用设置单元测试
"""

import asyncio

import pytest

from config.settings import AppSettings, load_settings
from core.conf.merge import MergeStrategy


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path):
        settings = asyncio.run(load_settings(tmp_path / "absent.yaml", environ={}))
        assert settings.config.type == "file"
        assert settings.config.encoding == "conf"
        assert settings.config.params["path"].endswith("main.conf")
        assert settings.runtime.encoding == "json"
        assert settings.merge_strategy is MergeStrategy.CONCAT

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "config:\n"
            "  type: http\n"
            "  encoding: yaml\n"
            "  params:\n"
            "    url: https://example.com/main.yaml\n"
            "    poll_interval: 60\n"
            "namespace: office\n"
            "merge_strategy: append\n"
            "log_level: debug\n",
            encoding="utf-8",
        )
        settings = asyncio.run(load_settings(path, environ={}))
        assert settings.config.type == "http"
        assert settings.config.params == {"url": "https://example.com/main.yaml", "poll_interval": "60"}
        assert settings.namespace == "office"
        assert settings.merge_strategy is MergeStrategy.APPEND
        assert settings.log_level == "DEBUG"
        assert settings.runtime.type == "file"

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("namespace: office\nreload_retries: 1\n", encoding="utf-8")
        environ = {
            "ROUTECONF_NAMESPACE": "home",
            "ROUTECONF_RELOAD_RETRIES": "4",
            "ROUTECONF_CONFIG_PATH": "/etc/routeconf/main.conf",
            "ROUTECONF_RUNTIME_ENCODING": "yaml",
        }
        settings = asyncio.run(load_settings(path, environ=environ))
        assert settings.namespace == "home"
        assert settings.reload_retries == 4
        assert settings.config.params == {"path": "/etc/routeconf/main.conf"}
        assert settings.runtime.encoding == "yaml"

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ValueError):
            asyncio.run(load_settings(tmp_path / "absent.yaml", environ={"ROUTECONF_RELOAD_RETRIES": "-1"}))
        with pytest.raises(ValueError):
            asyncio.run(load_settings(tmp_path / "absent.yaml", environ={"ROUTECONF_MERGE_STRATEGY": "shuffle"}))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("config: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValueError):
            asyncio.run(load_settings(path, environ={}))

    def test_model_defaults(self):
        settings = AppSettings()
        assert settings.reload_debounce == 0.5
        assert settings.namespace == "default"
