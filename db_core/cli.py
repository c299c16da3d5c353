"""
db-core 命令行工具
==================

用于检查驱动目录、查询链和批处理文件，并管理保存的连接设置。

使用示例:
    db-core drivers drivers.json --vendor mysql
    db-core query resources queries create_table --vendor MySQL --version 8
    db-core batch resources schema --vendor SQLite
    db-core profile add local --vendor SQLite --param path=/data/app.db
    db-core execute local drivers.json count_users --root resources
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .core.config import SettingsStore
from .core.exceptions import DBCoreError
from .core.manager import DatabaseManager
from .drivers.catalog import DriverCatalog
from .drivers.vendor import Vendor
from .queries.batch import get_batch
from .queries.chain import QueryChain
from .utils.logging_utils import get_logger, setup_logging

logger = get_logger(__name__)

# 保存在设置中、但不属于连接设置的键
PROFILE_META_KEYS = ("vendor", "version")


class DBCoreCLI:
    """
    db-core 命令行接口

    Attributes:
        console (Console): rich 控制台
        store (Optional[SettingsStore]): 设置存储，首次使用时创建
    """

    def __init__(
        self, console: Optional[Console] = None, store: Optional[SettingsStore] = None
    ) -> None:
        self.console = console or Console()
        self.store = store

    def _ensure_store(self) -> SettingsStore:
        if self.store is None:
            self.store = SettingsStore()
        return self.store

    def _handle_error(self, message: str, error: Optional[DBCoreError] = None) -> None:
        logger.error(message)
        if error is not None:
            logger.debug(f"错误详情: {error.to_dict()}")
        self.console.print(f"❌ {message}", style="bold red", markup=False)
        sys.exit(1)

    def list_drivers(self, args: argparse.Namespace) -> None:
        """列出驱动目录中的驱动，指定厂商时按版本从高到低排列"""
        try:
            drivers = DriverCatalog.load(args.catalog)
        except DBCoreError as e:
            self._handle_error(f"加载驱动目录失败: {e.message}", e)
            return

        if args.vendor:
            drivers = DriverCatalog.match(drivers, args.vendor)
        else:
            drivers = sorted(drivers, key=lambda d: (d.vendor.name.lower(), d.vendor.version or 0))

        if not drivers:
            self.console.print("📭 没有匹配的驱动")
            return

        table = Table(title="📋 驱动列表", show_header=True, header_style="bold magenta")
        table.add_column("厂商", style="cyan")
        table.add_column("实现")
        table.add_column("类别")
        table.add_column("URL模板")
        table.add_column("查询资源")
        for driver in drivers:
            table.add_row(
                str(driver.vendor),
                driver.implementation,
                driver.kind.value,
                driver.url or "-",
                driver.queries or "-",
            )
        self.console.print(table)

    def resolve_query(self, args: argparse.Namespace) -> None:
        """输出查询标识解析后的SQL以及查询链"""
        vendor = self._vendor(args)
        try:
            chain = QueryChain.get_chain(args.base_name, vendor, args.root)
            statement = chain.resolve(args.identifier)
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return

        if args.show_chain:
            self.console.print(f"🔗 {' -> '.join(chain.sources)}", markup=False)
        self.console.print(statement, markup=False, highlight=False)

    def show_batch(self, args: argparse.Namespace) -> None:
        """输出批处理文件拆分后的语句"""
        vendor = self._vendor(args)
        try:
            statements = get_batch(args.base_name, vendor, args.root)
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return

        for statement in statements:
            self.console.print(f"{statement};", markup=False, highlight=False)

    def add_profile(self, args: argparse.Namespace) -> None:
        settings: Dict[str, Any] = {"vendor": args.vendor}
        if args.version is not None:
            settings["version"] = args.version
        settings.update(self._parse_params(args.param))

        try:
            self._ensure_store().add_profile(args.name, settings)
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return
        self.console.print(f"✅ 设置 '{args.name}' 添加成功", markup=False)

    def show_profile(self, args: argparse.Namespace) -> None:
        try:
            settings = self._ensure_store().get_profile(args.name)
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return

        masked = {
            key: "******" if key in ("password", "secret", "token", "passphrase") else value
            for key, value in settings.items()
        }
        self.console.print_json(json.dumps(masked, ensure_ascii=False))

    def list_profiles(self, args: argparse.Namespace) -> None:
        names = self._ensure_store().list_profiles()
        if not names:
            self.console.print("📭 没有保存的设置")
            return
        for name in names:
            self.console.print(f"• {name}", markup=False)

    def remove_profile(self, args: argparse.Namespace) -> None:
        try:
            self._ensure_store().remove_profile(args.name)
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return
        self.console.print(f"✅ 设置 '{args.name}' 已删除", markup=False)

    def execute(self, args: argparse.Namespace) -> None:
        """使用保存的设置连接数据库并执行查询资源中的语句"""
        try:
            settings = self._ensure_store().get_profile(args.profile)
            vendor_name = settings.get("vendor")
            if not vendor_name:
                self._handle_error(f"设置 '{args.profile}' 缺少 vendor")
                return
            connection_settings = {
                key: value for key, value in settings.items() if key not in PROFILE_META_KEYS
            }

            manager = DatabaseManager.from_catalog(
                args.catalog, vendor_name, queries_root=args.root, base_name=args.base_name
            )
            manager.connect(connection_settings)
            try:
                result = manager.execute(args.identifier, self._parse_params(args.param))
            finally:
                manager.disconnect()
        except DBCoreError as e:
            self._handle_error(e.message, e)
            return

        self._display_result(result)

    def _display_result(self, result: Any) -> None:
        if isinstance(result, int):
            self.console.print(f"✅ 影响行数: {result}")
            return
        if not result:
            self.console.print("📭 查询结果为空")
            return

        table = Table(show_header=True, header_style="bold magenta")
        columns = list(result[0].keys())
        for column in columns:
            table.add_column(str(column))
        for row in result:
            table.add_row(*["NULL" if row[c] is None else str(row[c]) for c in columns])
        self.console.print(table)

    @staticmethod
    def _vendor(args: argparse.Namespace) -> Vendor:
        return Vendor(args.vendor, args.version)

    @staticmethod
    def _parse_params(params: Optional[List[str]]) -> Dict[str, str]:
        """解析 key=value 形式的参数列表"""
        parsed: Dict[str, str] = {}
        for param in params or []:
            key, sep, value = param.partition("=")
            if not sep or not key.strip():
                raise argparse.ArgumentTypeError(f"参数格式应为 key=value: {param}")
            parsed[key.strip()] = value.strip()
        return parsed


def create_argument_parser(cli: Optional[DBCoreCLI] = None) -> argparse.ArgumentParser:
    """
    创建命令行参数解析器

    Args:
        cli: 处理命令的CLI实例，为None时新建

    Returns:
        argparse.ArgumentParser: 配置好的参数解析器
    """
    cli = cli or DBCoreCLI()
    parser = argparse.ArgumentParser(
        prog="db-core",
        description="db-core - 多厂商数据库驱动、查询资源与连接设置工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="在控制台输出调试日志")

    subparsers = parser.add_subparsers(title="可用命令", dest="command")

    drivers_parser = subparsers.add_parser("drivers", help="列出驱动目录中的驱动")
    drivers_parser.add_argument("catalog", help="驱动目录文件 (.json 或 .toml)")
    drivers_parser.add_argument("--vendor", help="只显示指定厂商")
    drivers_parser.set_defaults(func=cli.list_drivers)

    query_parser = subparsers.add_parser("query", help="解析查询标识")
    query_parser.add_argument("root", help="查询资源目录")
    query_parser.add_argument("base_name", help="查询资源基础名称")
    query_parser.add_argument("identifier", help="查询标识")
    _add_vendor_arguments(query_parser)
    query_parser.add_argument("--show-chain", action="store_true", help="同时显示查询链")
    query_parser.set_defaults(func=cli.resolve_query)

    batch_parser = subparsers.add_parser("batch", help="显示批处理文件中的语句")
    batch_parser.add_argument("root", help="批处理文件目录")
    batch_parser.add_argument("base_name", help="批处理文件基础名称")
    _add_vendor_arguments(batch_parser)
    batch_parser.set_defaults(func=cli.show_batch)

    profile_parser = subparsers.add_parser("profile", help="管理保存的连接设置")
    profile_sub = profile_parser.add_subparsers(title="设置命令", dest="profile_command")

    add_parser = profile_sub.add_parser("add", help="添加连接设置")
    add_parser.add_argument("name", help="设置名称")
    _add_vendor_arguments(add_parser)
    add_parser.add_argument("--param", nargs="+", help="连接设置 (key=value)")
    add_parser.set_defaults(func=cli.add_profile)

    show_parser = profile_sub.add_parser("show", help="显示连接设置")
    show_parser.add_argument("name", help="设置名称")
    show_parser.set_defaults(func=cli.show_profile)

    list_parser = profile_sub.add_parser("list", help="列出所有连接设置")
    list_parser.set_defaults(func=cli.list_profiles)

    remove_parser = profile_sub.add_parser("remove", help="删除连接设置")
    remove_parser.add_argument("name", help="设置名称")
    remove_parser.set_defaults(func=cli.remove_profile)

    execute_parser = subparsers.add_parser("execute", help="使用保存的设置执行查询")
    execute_parser.add_argument("profile", help="设置名称")
    execute_parser.add_argument("catalog", help="驱动目录文件")
    execute_parser.add_argument("identifier", help="查询标识")
    execute_parser.add_argument("--root", required=True, help="查询资源目录")
    execute_parser.add_argument("--base-name", help="查询资源基础名称，默认使用驱动描述中的 queries")
    execute_parser.add_argument("--param", nargs="+", help="绑定参数 (key=value)")
    execute_parser.set_defaults(func=cli.execute)

    return parser


def _add_vendor_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--vendor", required=True, help="厂商名称，例如 MySQL")
    parser.add_argument("--version", type=int, help="厂商主版本号")


def main(argv: Optional[List[str]] = None) -> None:
    """db-core 命令行入口"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(0)

    try:
        setup_logging(
            level="DEBUG" if args.verbose else "INFO",
            log_to_console=args.verbose,
            log_to_file=not args.verbose,
        )
    except OSError as e:
        print(f"❌ 日志系统初始化失败: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        args.func(args)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
