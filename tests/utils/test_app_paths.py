"""
应用路径单元测试
"""

import pytest

from utils import app_paths


@pytest.fixture
def fresh_paths():
    app_paths.reset_cache()
    yield app_paths
    app_paths.reset_cache()


class TestAppPaths:
    def test_env_data_dir(self, fresh_paths, tmp_path, monkeypatch):
        monkeypatch.setenv("ROUTECONF_DATA_DIR", str(tmp_path / "data"))
        assert fresh_paths.get_data_dir() == tmp_path / "data"
        assert fresh_paths.get_runtime_path() == tmp_path / "data" / "runtime.json"
        assert fresh_paths.get_logs_dir().is_dir()

    def test_explicit_dir_wins(self, fresh_paths, tmp_path, monkeypatch):
        monkeypatch.setenv("ROUTECONF_DATA_DIR", str(tmp_path / "env"))
        fresh_paths.set_data_dir(tmp_path / "cli")
        assert fresh_paths.get_default_config_path() == tmp_path / "cli" / "main.conf"
        assert fresh_paths.get_settings_path() == tmp_path / "cli" / "settings.yaml"

    def test_xdg_fallback(self, fresh_paths, tmp_path, monkeypatch):
        monkeypatch.delenv("ROUTECONF_DATA_DIR", raising=False)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
        monkeypatch.setattr(app_paths.sys, "platform", "linux")
        assert fresh_paths.get_data_dir() == tmp_path / "xdg" / "routeconf"
