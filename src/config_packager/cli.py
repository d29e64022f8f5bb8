#!/usr/bin/env python3
"""config-packager command line.

Usage:
    config-packager [--settings FILE] [--bundle BUNDLE] COMMAND [ARGS]

Environment variables:
    CONFIG_PACKAGER_SETTINGS    Settings file (default: ./packager.yaml)
    CONFIG_PACKAGER_LOG_LEVEL   Console log level (default: WARNING)
    CONFIG_PACKAGER_LOG_FILE    Log file; the audit log is written beside it
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

from .config.settings import SettingsError, load_settings
from .config_engine import (
    GENERATION_METHODS,
    BundleNotFoundError,
    GenerationError,
    PackageManager,
    PackageNotFoundError,
    summarize_overrides,
)
from .config_store.store import StorageError
from .utils.audit_log import setup_audit_logging
from .utils.logging_config import get_log_file, setup_logging

logger = logging.getLogger(__name__)


def _lookup(data: dict[str, Any], key: str) -> Any:
    """Resolve a dotted settings key such as export.method."""
    value: Any = data
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            raise KeyError(key)
        value = value[part]
    return value


def _dump(value: Any) -> str:
    return yaml.safe_dump(value, default_flow_style=False, sort_keys=False).rstrip()


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# === Commands ===

def cmd_status(manager: PackageManager, args: argparse.Namespace) -> int:
    data = manager.settings.model_dump(mode="json")
    data["bundle"] = manager.bundle.machine_name

    if not args.keys:
        print(_dump(data))
        return 0

    for key in args.keys:
        try:
            value = _lookup(data, key)
        except KeyError:
            print(f"Unknown setting: {key}", file=sys.stderr)
            return 1
        if isinstance(value, (dict, list)):
            print(f"{key}:\n{_dump(value)}")
        else:
            print(f"{key}: {value}")
    return 0


def cmd_list_packages(manager: PackageManager, args: argparse.Namespace) -> int:
    collection = manager.get_config_collection()
    packages = manager.get_packages(collection, detect=True)

    if args.package:
        package = manager.get_package(args.package, packages)
        overridden = set(manager.detect_overrides(package))
        print(f"{package.name} ({package.machine_name}): "
              f"{manager.status_label(package.status)}")
        if package.description:
            print(f"  {package.description}")
        print(f"Dependencies: {', '.join(sorted(package.dependencies)) or '-'}")

        by_type: dict[str, list[str]] = {}
        for name in package.config:
            by_type.setdefault(collection[name].type, []).append(name)
        for config_type in sorted(by_type):
            print(f"{config_type}:")
            for name in by_type[config_type]:
                state = "Changed" if name in overridden else "Default"
                print(f"  {name:<40} {collection[name].label:<24} {state}")
        return 0

    if not packages:
        print("No packages found.")
        return 0

    print(f"{'Name':<24} {'Machine name':<32} Status")
    for package in packages.values():
        print(f"{package.name:<24} {package.machine_name:<32} "
              f"{manager.status_label(package.status)}")
    return 0


def cmd_export(manager: PackageManager, args: argparse.Namespace) -> int:
    report = manager.export(
        names=args.packages or None,
        method_id=args.method,
        include_profile=True if args.add_profile else None,
    )

    for name in report.skipped:
        print(f"Skipped {name}: excluded from export")
    for result in report.results:
        print(result.message)

    if not report.results:
        print("No packages to export.")
    elif report.location:
        print(f"Location: {report.location}")
    return 0 if report.success else 1


def cmd_diff(manager: PackageManager, args: argparse.Namespace) -> int:
    report = manager.diff(args.package, context_lines=args.lines, ctypes=args.ctypes)
    if not report:
        print("No differences.")
        return 0

    for machine_name, overrides in report.items():
        print(summarize_overrides(machine_name, overrides))
        print()
    return 0


def cmd_import(manager: PackageManager, args: argparse.Namespace) -> int:
    results = manager.import_packages(args.targets, force=args.force)
    for result in results:
        print(result.message)
    return 0 if all(r.success for r in results) else 1


def cmd_add(manager: PackageManager, args: argparse.Namespace) -> int:
    report = manager.add_to_package(args.package, args.patterns)
    for result in report.results:
        print(result.message)
    return 0 if report.success else 1


def cmd_components(manager: PackageManager, args: argparse.Namespace) -> int:
    exported: Optional[bool] = None
    if args.exported:
        exported = True
    elif args.not_exported:
        exported = False

    items = manager.components(args.patterns or None, exported=exported)
    if not items:
        print("No matching configuration.")
        return 0

    for item in items:
        print(f"{item.name:<48} {item.package or '-'}")
    return 0


COMMANDS = {
    "status": cmd_status,
    "list-packages": cmd_list_packages,
    "export": cmd_export,
    "diff": cmd_diff,
    "import": cmd_import,
    "add": cmd_add,
    "components": cmd_components,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="config-packager",
        description="Package, compare and export site configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Show packages and whether they drifted
    config-packager list-packages

    # Write every package of the editorial bundle to the export folder
    config-packager --bundle editorial export --method write

    # Restore the packaged value of one item
    config-packager import article:node.type.article
""",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="Settings file (default: $CONFIG_PACKAGER_SETTINGS or ./packager.yaml)",
    )

    # --bundle and -v are accepted before or after the command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--bundle",
        default=argparse.SUPPRESS,
        help="Bundle to operate on (default: the default bundle)",
    )
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable debug logging",
    )
    parser.add_argument("--bundle", default=None, help=argparse.SUPPRESS)
    parser.add_argument("-v", "--verbose", action="store_true", help=argparse.SUPPRESS)

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", parents=[common], help="Show settings")
    status.add_argument("keys", nargs="*", help="Dotted settings keys, e.g. export.method")

    listing = sub.add_parser("list-packages", parents=[common], help="List packages")
    listing.add_argument("package", nargs="?", help="List the items of one package")

    export = sub.add_parser("export", parents=[common], help="Export packages")
    export.add_argument("packages", nargs="*", help="Packages to export (default: all)")
    export.add_argument("--add-profile", action="store_true", help="Also export the profile")
    export.add_argument(
        "--method",
        choices=sorted(GENERATION_METHODS),
        help="Generation method (default: export.method setting)",
    )

    diff = sub.add_parser("diff", parents=[common], help="Show differences")
    diff.add_argument("package", nargs="?", help="Package to compare (default: all)")
    diff.add_argument("--lines", type=int, help="Unchanged lines shown around each change")
    diff.add_argument(
        "--ctypes",
        type=_split_list,
        help="Comma separated config types to compare, e.g. node,views",
    )

    imp = sub.add_parser("import", parents=[common], help="Import packaged configuration")
    imp.add_argument("targets", nargs="+", metavar="package[:item]")
    imp.add_argument("--force", action="store_true",
                     help="Import every item, not only changed ones")

    add = sub.add_parser("add", parents=[common], help="Add configuration to a package")
    add.add_argument("package")
    add.add_argument("patterns", nargs="+", help="Item name patterns, e.g. 'views.view.*'")

    components = sub.add_parser("components", parents=[common], help="List configuration")
    components.add_argument("patterns", nargs="*", help="Item name patterns")
    group = components.add_mutually_exclusive_group()
    group.add_argument("--exported", action="store_true", help="Only packaged items")
    group.add_argument("--not-exported", action="store_true", help="Only unpackaged items")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the config-packager CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else None)
    setup_audit_logging(str(get_log_file().parent))

    try:
        settings = load_settings(args.settings)
        manager = PackageManager(settings)
        manager.apply_bundle(args.bundle)
        return COMMANDS[args.command](manager, args)
    except (SettingsError, BundleNotFoundError, PackageNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (GenerationError, StorageError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
