"""
公共测试夹具

日志与数据目录指向临时目录，避免写入用户数据目录。
"""

import os
import tempfile

os.environ.setdefault("ROUTECONF_DATA_DIR", tempfile.mkdtemp(prefix="routeconf-test-"))
os.environ.setdefault("ROUTECONF_LOG_FILE", "0")

import pytest  # noqa: E402

from infra.encoding.registry import create_encoding_registry  # noqa: E402
from infra.storage.registry import create_storage_registry  # noqa: E402


MAIN_CONF = """\
[General]
loglevel = info

[Server]
PROXY1 = ss, 1.2.3.4, 8388

[Rule]
DOMAIN,example.com,PROXY1

[Include]
memory, name=rules
"""

RULES_CONF = """\
[Rule]
FINAL,,DIRECT
"""


@pytest.fixture
def storages():
    return create_storage_registry()


@pytest.fixture
def encodings():
    return create_encoding_registry()


@pytest.fixture
def seed(storages):
    """向注册表共享的内存桶写入初始内容"""

    def _seed(name: str, text: str) -> None:
        storages.get("memory", {"name": name, "data": text})

    return _seed


@pytest.fixture
def seed_scenario(seed):
    """主配置 DOMAIN,example.com,PROXY1 + include FINAL,,DIRECT"""
    seed("main", MAIN_CONF)
    seed("rules", RULES_CONF)
    return {"name": "main"}
