"""Command-line interface for jarbackup.

This module provides the CLI for jarbackup, supporting commands for:
- restore: Restore a snapshot or diff into a directory
- verify: Check that a version resolves completely through its chain
- versions: List versions of a jar
- latest: Show the latest snapshot of a jar
- diffs: List the diffs of a snapshot
- window: Find the latest diff of a snapshot within a date window
- jars: List jars under the backup root
- init: Create default config
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from jarbackup import __version__
from jarbackup.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    create_default_config,
    DEFAULT_CONFIG_PATH,
)
from jarbackup.errors import (
    InvalidVersionLayout,
    MalformedIndex,
    StorageIOError,
)
from jarbackup.logger import (
    LoggingError,
    get_error_guidance,
    map_exception_to_error_code,
    setup_logging,
)
from jarbackup.restore import RestoreEngine, restore_backup_to
from jarbackup.selector import (
    diff_versions,
    jar_versions,
    last_version,
    latest_diff_in_window,
    list_jars,
)
from jarbackup.verify import ChainVerifier
from jarbackup.version import parse_timestamp


EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_ENTRY_FAILURES = 2
EXIT_STORAGE_ERROR = 3
EXIT_INDEX_ERROR = 4
EXIT_GENERAL_ERROR = 5


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='jarbackup',
        description='Restore and inspect deduplicated snapshot/diff backups'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to config file (default: ~/.config/jarbackup/config.toml)',
        metavar='PATH'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    restore_parser = subparsers.add_parser(
        'restore',
        help='Restore a version into a directory'
    )
    restore_parser.add_argument(
        'index',
        type=Path,
        help='Version directory (<jar>/<ts> or <jar>/<ts>/diff/<ts>)'
    )
    restore_parser.add_argument(
        'destination',
        type=Path,
        help='Directory to restore into'
    )
    restore_parser.add_argument(
        '--no-overwrite',
        action='store_true',
        help='Leave files that already exist at the destination untouched'
    )
    restore_parser.add_argument(
        '--no-owner',
        action='store_true',
        help='Do not restore file owner and group'
    )
    restore_parser.add_argument(
        '--json',
        action='store_true',
        help='Output the restore report as JSON'
    )

    verify_parser = subparsers.add_parser(
        'verify',
        help='Verify that a version can be fully restored'
    )
    verify_parser.add_argument(
        'index',
        type=Path,
        help='Version directory to verify'
    )
    verify_parser.add_argument(
        '--pattern',
        help='Glob pattern to filter entry paths'
    )

    versions_parser = subparsers.add_parser(
        'versions',
        help='List versions of a jar'
    )
    versions_parser.add_argument(
        'jar',
        help='Jar directory or jar name under the backup root'
    )
    versions_parser.add_argument(
        '--json',
        action='store_true',
        help='Output as JSON'
    )

    latest_parser = subparsers.add_parser(
        'latest',
        help='Show the latest snapshot of a jar'
    )
    latest_parser.add_argument(
        'jar',
        help='Jar directory or jar name under the backup root'
    )

    diffs_parser = subparsers.add_parser(
        'diffs',
        help='List the diffs of a snapshot'
    )
    diffs_parser.add_argument(
        'jar',
        help='Jar directory or jar name under the backup root'
    )
    diffs_parser.add_argument(
        'snapshot',
        help='Snapshot timestamp (YYYYMMDDHHMM)'
    )

    window_parser = subparsers.add_parser(
        'window',
        help='Find the latest diff of a snapshot within a date window'
    )
    window_parser.add_argument(
        'jar',
        help='Jar directory or jar name under the backup root'
    )
    window_parser.add_argument(
        'snapshot',
        help='Snapshot timestamp (YYYYMMDDHHMM)'
    )
    window_parser.add_argument(
        'start',
        help='Window start (YYYYMMDDHHMM, inclusive)'
    )
    window_parser.add_argument(
        'end',
        help='Window end (YYYYMMDDHHMM, inclusive)'
    )

    jars_parser = subparsers.add_parser(
        'jars',
        help='List jars under the backup root'
    )
    jars_parser.add_argument(
        'root',
        nargs='?',
        type=Path,
        help='Backup root (default: backup_root from config)'
    )

    init_parser = subparsers.add_parser(
        'init',
        help='Create default config file'
    )
    init_parser.add_argument(
        '--force', '-f',
        action='store_true',
        help='Overwrite existing config file'
    )

    return parser


def load_config(config_path: Optional[Path], verbose: bool = False) -> Optional[Configuration]:
    """
    Load configuration from file.

    Returns None and prints error on failure.
    """
    try:
        config = parse_config(config_path)
        if verbose:
            print(f"Loaded config from: {config_path or DEFAULT_CONFIG_PATH}")
        return config
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return None
    except ValidationError as e:
        print(f"Validation error: {e}", file=sys.stderr)
        return None


def _optional_config(args: argparse.Namespace) -> tuple[bool, Optional[Configuration]]:
    """
    Load the config if one was given or exists at the default location.

    Returns:
        (ok, config) where ok is False if an explicit or existing config
        failed to load
    """
    if args.config is None and not DEFAULT_CONFIG_PATH.exists():
        return True, None
    config = load_config(args.config, args.verbose)
    return config is not None, config


def _resolve_jar(jar: str, config: Optional[Configuration]) -> Path:
    """Interpret a jar argument as a directory, or a name under the backup root."""
    path = Path(jar)
    if path.is_dir() or config is None:
        return path
    return config.backup_root / jar


def _report_error(e: Exception) -> None:
    code = map_exception_to_error_code(e)
    print(f"Error [{code.value}]: {e}", file=sys.stderr)
    print(f"  {get_error_guidance(code)}", file=sys.stderr)


def cmd_restore(args: argparse.Namespace) -> int:
    """Execute the 'restore' command."""
    ok, config = _optional_config(args)
    if not ok:
        return EXIT_CONFIG_ERROR

    if config is not None:
        try:
            setup_logging(config=config.logging)
        except LoggingError as e:
            print(f"Logging error: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR

    overwrite = config.restore.overwrite if config else True
    apply_ownership = config.restore.apply_ownership if config else True
    engine = RestoreEngine(
        overwrite=overwrite and not args.no_overwrite,
        apply_ownership=apply_ownership and not args.no_owner,
    )

    try:
        report = restore_backup_to(args.destination, args.index, engine=engine)
    except (InvalidVersionLayout, MalformedIndex) as e:
        _report_error(e)
        return EXIT_INDEX_ERROR
    except StorageIOError as e:
        _report_error(e)
        return EXIT_STORAGE_ERROR

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"Restored {report.version} to {report.destination}")
        print(f"  Entries processed: {report.entries_processed}")
        print(f"  Files restored: {report.files_restored}")
        print(f"  Directories: {report.directories_created}")
        if args.verbose:
            print(f"  Bytes written: {report.bytes_written}")
            print(f"  Duration: {report.duration_seconds:.2f}s")
        if report.failures:
            print(f"  Failures: {len(report.failures)}")
            for failure in report.failures:
                print(f"    {failure.path} [{failure.kind.value}]: {failure.message}")

    return EXIT_SUCCESS if report.success else EXIT_ENTRY_FAILURES


def cmd_verify(args: argparse.Namespace) -> int:
    """Execute the 'verify' command."""
    verifier = ChainVerifier()
    try:
        result = verifier.verify(args.index, pattern=args.pattern)
    except (InvalidVersionLayout, MalformedIndex) as e:
        _report_error(e)
        return EXIT_INDEX_ERROR
    except StorageIOError as e:
        _report_error(e)
        return EXIT_STORAGE_ERROR

    if result.success:
        print(f"Verification passed: {result.entries_checked} entries checked")
        return EXIT_SUCCESS

    print(f"Verification FAILED: {result.files_failed} of {result.entries_checked} entries", file=sys.stderr)
    for path in result.unresolved_entries:
        print(f"  Unresolved: {path}", file=sys.stderr)
    for path in result.missing_blobs:
        print(f"  Missing: {path}", file=sys.stderr)
    for path in result.corrupted_blobs:
        print(f"  Corrupted: {path}", file=sys.stderr)
    return EXIT_ENTRY_FAILURES


def cmd_versions(args: argparse.Namespace) -> int:
    """Execute the 'versions' command - list snapshots and diffs of a jar."""
    ok, config = _optional_config(args)
    if not ok:
        return EXIT_CONFIG_ERROR

    jar_root = _resolve_jar(args.jar, config)
    versions = jar_versions(jar_root)

    if args.json:
        output = []
        for version in versions:
            output.append({
                "timestamp": version.timestamp,
                "snapshot": version.snapshot_timestamp,
                "type": "diff" if version.is_diff else "snapshot",
                "path": str(version.directory(jar_root)),
            })
        print(json.dumps(output, indent=2))
        return EXIT_SUCCESS

    if not versions:
        print("No versions found.")
        return EXIT_SUCCESS

    print(f"{'Timestamp':<14} {'Type':<10} {'Date':<18}")
    print("-" * 44)
    for version in versions:
        kind = "diff" if version.is_diff else "snapshot"
        date_str = parse_timestamp(version.timestamp).strftime('%Y-%m-%d %H:%M')
        print(f"{version.timestamp:<14} {kind:<10} {date_str:<18}")
    print("-" * 44)
    print(f"Total: {len(versions)} version(s)")
    return EXIT_SUCCESS


def cmd_latest(args: argparse.Namespace) -> int:
    """Execute the 'latest' command."""
    ok, config = _optional_config(args)
    if not ok:
        return EXIT_CONFIG_ERROR

    latest = last_version(_resolve_jar(args.jar, config))
    if latest is None:
        print("No snapshots found.", file=sys.stderr)
        return EXIT_GENERAL_ERROR
    print(latest)
    return EXIT_SUCCESS


def cmd_diffs(args: argparse.Namespace) -> int:
    """Execute the 'diffs' command."""
    ok, config = _optional_config(args)
    if not ok:
        return EXIT_CONFIG_ERROR

    for diff in diff_versions(_resolve_jar(args.jar, config) / args.snapshot):
        print(diff)
    return EXIT_SUCCESS


def cmd_window(args: argparse.Namespace) -> int:
    """Execute the 'window' command."""
    ok, config = _optional_config(args)
    if not ok:
        return EXIT_CONFIG_ERROR

    try:
        diff = latest_diff_in_window(
            _resolve_jar(args.jar, config), args.snapshot, args.start, args.end
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    if diff is None:
        print("No diff in window.", file=sys.stderr)
        return EXIT_GENERAL_ERROR
    print(diff)
    return EXIT_SUCCESS


def cmd_jars(args: argparse.Namespace) -> int:
    """Execute the 'jars' command."""
    root = args.root
    if root is None:
        config = load_config(args.config, args.verbose)
        if config is None:
            return EXIT_CONFIG_ERROR
        root = config.backup_root

    for jar in list_jars(root):
        print(jar.name)
    return EXIT_SUCCESS


def cmd_init(args: argparse.Namespace) -> int:
    """Execute the 'init' command - create default config file."""
    config_path = args.config or DEFAULT_CONFIG_PATH

    if config_path.exists() and not args.force:
        print(f"Config file already exists: {config_path}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(create_default_config())
    print(f"Created config file: {config_path}")
    return EXIT_SUCCESS


COMMANDS = {
    'restore': cmd_restore,
    'verify': cmd_verify,
    'versions': cmd_versions,
    'latest': cmd_latest,
    'diffs': cmd_diffs,
    'window': cmd_window,
    'jars': cmd_jars,
    'init': cmd_init,
}


def main(argv: list = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    handler = COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    try:
        return handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_GENERAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
