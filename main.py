"""
routeconf - 命令行入口

    python main.py                              # 加载配置并监听变更（Ctrl+C 退出）
    python main.py --check                      # 只校验配置
    python main.py --resolve example.com        # 对单个请求给出路由决策
    python main.py --mode global                # 切换并持久化流量模式
"""

# ==================== 标准库 ====================
import argparse
import asyncio
import sys
from typing import List, Optional

# ==================== 本地模块 ====================
from config import AppSettings, load_settings
from core.conf.applier import ConfigApplier
from core.conf.loader import ConfigLoader
from core.conf.manager import ConfigSource, ProfileManager
from core.errors import RouteConfError
from core.namespace.registry import NamespaceRegistry, ProfileRegistry
from core.rule.types import Mode, RequestInfo
from core.runtime.store import load_runtime
from infra.encoding.registry import create_encoding_registry
from infra.storage.registry import create_storage_registry
from logger import get_logger, set_level, set_log_dir
from utils.app_paths import get_logs_dir, set_data_dir

logger = get_logger("main")

APP_NAME = "routeconf"


# ==================== 参数解析 ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Load, merge and apply routing configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --check
  python main.py --config ./main.conf --resolve example.com --port 443
  python main.py --mode direct
""",
    )
    parser.add_argument("--settings", type=str, help="Path to settings.yaml")
    parser.add_argument("--data-dir", type=str, help="Data directory (logs, runtime store)")
    parser.add_argument("--config", type=str, help="Primary config file (overrides settings)")
    parser.add_argument("--encoding", type=str, help="Config encoding (conf / yaml / json)")
    parser.add_argument("--check", action="store_true", help="Load and apply once, then exit")
    parser.add_argument("--resolve", type=str, metavar="DOMAIN", help="Resolve a routing decision")
    parser.add_argument("--port", type=int, default=0, help="Destination port for --resolve")
    parser.add_argument("--udp", action="store_true", help="Use the datagram rule chain for --resolve")
    parser.add_argument("--mode", choices=[m.value for m in Mode], help="Switch and persist traffic mode")
    return parser


def _config_source(settings: AppSettings, args: argparse.Namespace) -> ConfigSource:
    storage_type = settings.config.type
    params = dict(settings.config.params)
    if args.config:
        storage_type = "file"
        params = {"path": args.config}
    encoding = args.encoding or settings.config.encoding
    return ConfigSource(storage_type, encoding, params)


# ==================== 主流程 ====================

async def run(args: argparse.Namespace) -> int:
    if args.data_dir:
        set_data_dir(args.data_dir)
        set_log_dir(get_logs_dir())

    settings = await load_settings(args.settings)
    set_level(settings.log_level)

    storages = create_storage_registry()
    encodings = create_encoding_registry()

    runtime = await load_runtime(
        settings.runtime.type,
        settings.runtime.encoding,
        settings.runtime.params,
        storages=storages,
        encodings=encodings,
    )

    profiles = ProfileRegistry()
    namespaces = NamespaceRegistry()
    manager = ProfileManager(
        loader=ConfigLoader(storages, encodings, settings.merge_strategy),
        applier=ConfigApplier(profiles, namespaces),
        runtime=runtime,
        source=_config_source(settings, args),
        namespace=settings.namespace,
        debounce=settings.reload_debounce,
        reload_retries=settings.reload_retries,
        retry_base_delay=settings.retry_base_delay,
    )

    profile = await manager.start()
    namespace = namespaces.get(settings.namespace)

    try:
        if args.mode:
            await namespace.set_mode(args.mode)
            print(f"🔀 {namespace.name}: mode = {namespace.mode.value}")

        if args.resolve:
            info = RequestInfo(
                domain=args.resolve,
                port=args.port,
                network="udp" if args.udp else "tcp",
            )
            rule = await namespace.resolve(info, datagram=args.udp)
            print(f"🧭 {args.resolve} -> {rule.proxy} ({rule.type} {rule.value}) [profile={rule.profile}]")

        if args.check:
            print(
                f"✅ {profile.name}: {len(profile.config.rule)} rules, "
                f"{len(profile.servers)} servers, {len(profile.groups)} groups, "
                f"mode={namespace.mode.value}"
            )

        if args.check or args.resolve or args.mode:
            return 0

        print(f"👀 Watching {profile.name} (Ctrl+C to exit)")
        await asyncio.Event().wait()
        return 0
    finally:
        await manager.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("👋 已退出")
        return 0
    except (RouteConfError, ValueError) as e:
        logger.error(f"❌ {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
