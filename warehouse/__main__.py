"""CLI entry point for warehouse maintenance.

Usage:
    python -m warehouse rebuild-indexes --layer cleansed
    python -m warehouse load --layer cleansed --verify
    python -m warehouse reset --layer raw
    python -m warehouse cycle --layer cleansed
    python -m warehouse audit --limit 20

Exit codes:
    0  success
    1  failure (configuration, structural, load or integrity error)
    2  refused by the environment guard
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Any, List, Optional

from warehouse.lib.config import load_config
from warehouse.lib.connections import close_all_connections
from warehouse.lib.env import load_env_file
from warehouse.lib.errors import GuardRejectedError, MaintenanceError
from warehouse.lib.integrity import IntegrityIssue, has_errors
from warehouse.lib.logging import setup_logging
from warehouse.lib.maintenance import Maintenance

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BLOCKED = 2

DEFAULT_CONFIG = "warehouse.yaml"


def print_result(title: str, lines: List[str]) -> None:
    """Print an operation result in a readable format."""
    print()
    print("=" * 60)
    print(title)
    print("=" * 60)
    for line in lines:
        print(line)
    print("=" * 60)


def print_issues(issues: List[IntegrityIssue]) -> None:
    if not issues:
        print("Integrity: all checks passed")
        return
    print(f"Integrity: {len(issues)} issue(s)")
    for issue in issues:
        print(f"  {issue}")


def _rebuild_lines(result: Any) -> List[str]:
    lines = [f"Layer: {result.layer.value}", result.summary()]
    lines.extend(f"  - {item}" for item in result.dropped)
    lines.extend(f"  + {item}" for item in result.created)
    return lines


def _load_lines(result: Any) -> List[str]:
    lines = [f"Layer: {result.layer.value}", result.summary()]
    for table in result.tables:
        lines.append(
            f"  {table.table:<40} {table.table_class.value:<10} "
            f"{table.rows:>10} rows  {table.duration_seconds:.2f}s"
        )
    return lines


def cmd_rebuild_indexes(maint: Maintenance, args: argparse.Namespace) -> int:
    result = maint.rebuild_indexes(args.layer, dry_run=args.dry_run)
    print_result("Rebuild indexes", _rebuild_lines(result))
    return EXIT_OK


def cmd_load(maint: Maintenance, args: argparse.Namespace) -> int:
    result = maint.load_layer(args.layer, dry_run=args.dry_run)
    print_result("Load", _load_lines(result))
    if args.verify and not args.dry_run:
        issues = maint.verify_layer(args.layer)
        print_issues(issues)
        if has_errors(issues):
            return EXIT_FAILED
    return EXIT_OK


def cmd_reset(maint: Maintenance, args: argparse.Namespace) -> int:
    result = maint.reset_layer(args.layer, force=args.force, dry_run=args.dry_run)
    lines = [f"Layer: {result.layer.value}", result.summary()]
    lines.extend(f"  {table}" for table in result.tables)
    print_result("Reset", lines)
    return EXIT_OK


def cmd_cycle(maint: Maintenance, args: argparse.Namespace) -> int:
    result = maint.run_cycle(args.layer, dry_run=args.dry_run, verify=args.verify)
    print_result(
        "Maintenance cycle",
        _rebuild_lines(result.rebuild) + [""] + _load_lines(result.load),
    )
    if args.verify and not args.dry_run:
        print_issues(result.issues)
        if has_errors(result.issues):
            return EXIT_FAILED
    return EXIT_OK


def cmd_verify(maint: Maintenance, args: argparse.Namespace) -> int:
    issues = maint.verify_layer(args.layer)
    print_issues(issues)
    return EXIT_FAILED if has_errors(issues) else EXIT_OK


def cmd_audit(maint: Maintenance, args: argparse.Namespace) -> int:
    entries = maint.audit.recent(args.limit)
    if entries.empty:
        print("No audit entries.")
    else:
        print(entries.to_string(index=False))
    return EXIT_OK


def cmd_plan(maint: Maintenance, args: argparse.Namespace) -> int:
    dialect = maint.warehouse.dialect
    lines = ["-- index rebuild"]
    for statement in maint.indexes.plan(args.layer):
        lines.append(dialect.render(statement) or f"-- no-op: {statement.describe()}")
    lines.append("-- load")
    for _, statements in maint.loader.plan(args.layer):
        lines.extend(dialect.render(statement) for statement in statements)
    print_result(f"Plan for layer {args.layer}", lines)
    return EXIT_OK


COMMANDS = {
    "rebuild-indexes": cmd_rebuild_indexes,
    "load": cmd_load,
    "reset": cmd_reset,
    "cycle": cmd_cycle,
    "verify": cmd_verify,
    "audit": cmd_audit,
    "plan": cmd_plan,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m warehouse",
        description="Index rebuild, dimensional load and guarded reset for a layered warehouse",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Rebuild constraints and indexes of the cleansed layer
    python -m warehouse rebuild-indexes --layer cleansed

    # Reload dimensions then facts, then run integrity checks
    python -m warehouse load --layer cleansed --verify

    # Empty the raw layer before a fresh bulk copy
    python -m warehouse reset --layer raw

    # Show the SQL a cycle would run, without touching anything
    python -m warehouse plan --layer cleansed

    # Show the latest audit entries
    python -m warehouse audit --limit 50
        """,
    )
    parser.add_argument(
        "--config",
        "-c",
        default=os.environ.get("DW_CONFIG", DEFAULT_CONFIG),
        help=f"Path to the YAML policy file (default: $DW_CONFIG or {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--identity",
        help="Identity recorded in the audit log (default: $DW_IDENTITY or the OS login)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the statements that would run without executing them",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (every SQL statement)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to a file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    def layer_command(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--layer",
            "-L",
            default="cleansed",
            help="raw, cleansed or reporting (bronze/silver/gold accepted; default: cleansed)",
        )
        return sub

    layer_command("rebuild-indexes", "Drop all constraints/indexes and rebuild from policy")
    load = layer_command("load", "Reload dimensions then facts")
    load.add_argument("--verify", action="store_true", help="Run integrity checks afterwards")
    reset = layer_command("reset", "Empty every table of a layer")
    reset.add_argument(
        "--force",
        action="store_true",
        help="Allow resetting cleansed/reporting layers in production",
    )
    cycle = layer_command("cycle", "Rebuild indexes, then reload")
    cycle.add_argument("--verify", action="store_true", help="Run integrity checks afterwards")
    layer_command("verify", "Run integrity checks on a loaded layer")
    layer_command("plan", "Print the statements a cycle would run")

    audit = subparsers.add_parser("audit", help="Show recent audit log entries")
    audit.add_argument("--limit", type=int, default=20, help="Number of entries (default: 20)")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        verbose=args.verbose,
        json_format=args.json_logs,
        log_file=args.log_file,
    )
    load_env_file()

    maint: Optional[Maintenance] = None
    try:
        config = load_config(args.config)
        maint = Maintenance.from_config(
            config,
            identity=args.identity,
            force=getattr(args, "force", False),
        )
        exit_code = COMMANDS[args.command](maint, args)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)

    except GuardRejectedError as e:
        logger.error("Refused: %s", e.message)
        print(f"\nRefused: {e}")
        sys.exit(EXIT_BLOCKED)

    except MaintenanceError as e:
        logger.error("%s failed: %s", args.command, e.message, extra={"error": e.to_dict()})
        print(f"\nError: {e}")
        sys.exit(EXIT_FAILED)

    except Exception as e:
        logger.exception("%s failed: %s", args.command, e)
        print(f"\nError: {e}")
        sys.exit(EXIT_FAILED)

    finally:
        if maint is not None:
            maint.close()
        close_all_connections()

    if exit_code != EXIT_OK:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
