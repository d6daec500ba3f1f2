"""
Command-line interface for q-config-backup.

Provides the create, list, verify, restore and configure commands.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from q_config_backup import __version__
from q_config_backup.backup import (
    BackupError,
    BackupManager,
    InvalidArgumentError,
    PrerequisiteMissingError,
)
from q_config_backup.backup.manager import DEFAULT_RESTORE_TARGET, format_size
from q_config_backup.backup.prerequisites import check_prerequisites
from q_config_backup.backup.rotation import find_orphan_sidecars
from q_config_backup.config.settings import (
    ConfigurationError,
    Settings,
    apply_overrides,
    get_config_path,
    load_config,
    save_config,
)
from q_config_backup.logs import attach_log_file, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PREREQUISITES = 3
EXIT_INTERRUPTED = 130

# Commands that write into the backup directory
WRITING_COMMANDS = {"create"}

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
        verbose: Verbosity level (0=normal, 1+=verbose).
    """
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output).
    """
    if force or not _quiet_mode:
        print(message)


def output_verbose(message: str, level: int = 1) -> None:
    """Print a message only if verbosity is high enough."""
    if _verbose_level >= level and not _quiet_mode:
        print(message)


def positive_int(value: str) -> int:
    """argparse type for a strictly positive integer."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value!r}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="q-config-backup",
        description="Versioned, checksum-verified backups of a configuration directory",
        epilog=(
            "Only one q-config-backup process should work on a backup directory "
            "at a time."
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"q-config-backup {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.config/q-config-backup.yaml)",
    )

    parser.add_argument(
        "-d", "--directory",
        metavar="DIR",
        dest="backup_dir",
        help="Backup directory",
    )

    parser.add_argument(
        "-m", "--max",
        metavar="N",
        type=positive_int,
        dest="max_backups",
        help="Maximum number of backups to keep",
    )

    parser.add_argument(
        "-s", "--source",
        metavar="DIR",
        dest="source_path",
        help="Directory to back up",
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        dest="log_file",
        help="Log file to append to",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # create command
    create_cmd = subparsers.add_parser(
        "create",
        help="Create a new backup",
        description="Archive the source directory, record its checksum and rotate old backups.",
    )
    create_cmd.set_defaults(func=cmd_create)

    # list command
    list_cmd = subparsers.add_parser(
        "list",
        help="List available backups",
        description="List backups in the backup directory, newest first.",
    )
    list_cmd.set_defaults(func=cmd_list)

    # verify command
    verify_cmd = subparsers.add_parser(
        "verify",
        help="Verify a backup against its checksum",
        description="Recompute a backup's SHA-256 digest and compare it with its checksum file.",
    )
    verify_cmd.add_argument(
        "backup_file",
        metavar="FILE",
        help="Backup archive (path or file name in the backup directory)",
    )
    verify_cmd.set_defaults(func=cmd_verify)

    # restore command
    restore_cmd = subparsers.add_parser(
        "restore",
        help="Restore from a backup",
        description=(
            "Verify a backup and extract it. Existing files at the same paths "
            "are overwritten."
        ),
    )
    restore_cmd.add_argument(
        "backup_file",
        metavar="FILE",
        help="Backup archive (path or file name in the backup directory)",
    )
    restore_cmd.add_argument(
        "--target",
        metavar="DIR",
        default=str(DEFAULT_RESTORE_TARGET),
        help="Directory to extract into (default: /)",
    )
    restore_cmd.add_argument(
        "--verify-only",
        action="store_true",
        dest="verify_only",
        help="Verify backup integrity without restoring",
    )
    restore_cmd.add_argument(
        "-f", "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    restore_cmd.set_defaults(func=cmd_restore)

    # configure command
    configure_cmd = subparsers.add_parser(
        "configure",
        help="Save the current options to the config file",
        description="Write the resolved settings (including any flags given) to the config file.",
    )
    configure_cmd.set_defaults(func=cmd_configure)

    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Load settings and apply command-line overrides."""
    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_config(config_path)
    return apply_overrides(
        settings,
        backup_dir=args.backup_dir,
        max_backups=args.max_backups,
        source_path=args.source_path,
        log_file=args.log_file,
    )


def cmd_create(args: argparse.Namespace, settings: Settings) -> int:
    """Create a new backup."""
    output_verbose(f"Source directory: {settings.source_path}")
    output_verbose(f"Backup directory: {settings.backup_dir}")
    output_verbose(f"Maximum backups: {settings.max_backups}")

    manager = BackupManager(settings)
    result = manager.create_backup()

    output()
    output(f"  File: {result.path}")
    output(f"  Size: {format_size(result.size_bytes)}")
    output(f"  Entries: {result.entry_count}")
    output(f"  SHA256: {result.digest}")
    for removed in result.rotated:
        output(f"  Removed old backup: {removed}")
    output()
    output("To restore from this backup, run:")
    output(f"  q-config-backup restore {result.path}")
    return EXIT_OK


def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """List backups, newest first."""
    manager = BackupManager(settings)
    backups = manager.list_backups()

    if not backups:
        output("No backups found.", force=True)
        return EXIT_OK

    for backup in backups:
        created = backup.created_at.strftime("%Y-%m-%d %H:%M:%S") if backup.created_at else "unknown"
        marker = "" if backup.has_sidecar else "  [no checksum]"
        output(f"{backup.path}  {created}  {backup.size_bytes:,} bytes{marker}", force=True)

    for orphan in find_orphan_sidecars(Path(settings.backup_dir)):
        output_verbose(f"Checksum file without archive: {orphan}")

    return EXIT_OK


def cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    """Verify a backup against its checksum file."""
    manager = BackupManager(settings)
    result = manager.verify_backup(args.backup_file)
    output(f"Checksum OK: {result.archive}")
    output_verbose(f"SHA256: {result.actual}")
    return EXIT_OK


def cmd_restore(args: argparse.Namespace, settings: Settings) -> int:
    """Restore from a backup archive."""
    manager = BackupManager(settings)
    target_dir = Path(args.target).expanduser()

    output("Verifying backup integrity...")
    verification = manager.verify_backup(args.backup_file)
    output(f"Backup verified: {verification.archive}")

    if args.verify_only:
        output("Verification complete (--verify-only specified)")
        return EXIT_OK

    if not args.force:
        output()
        output(f"WARNING: This will overwrite existing files under {target_dir}")
        try:
            response = input("Proceed with restore? [y/N]: ").strip().lower()
        except EOFError:
            response = ""
        if response not in ("y", "yes"):
            output("Restore cancelled.")
            return EXIT_OK

    result = manager.restore_backup(verification.archive, target_dir=target_dir)

    output()
    output("Restore completed successfully!")
    output(f"  Files restored: {result.files_restored}")
    output(f"  Target: {result.target_dir}")
    return EXIT_OK


def cmd_configure(args: argparse.Namespace, settings: Settings) -> int:
    """Save the resolved settings to the config file."""
    config_path = Path(args.config).expanduser() if args.config else get_config_path()
    save_config(settings, config_path)

    output(f"Configuration saved to: {config_path}")
    output(f"  backup_dir: {settings.backup_dir}")
    output(f"  max_backups: {settings.max_backups}")
    output(f"  source_path: {settings.source_path}")
    output(f"  log_file: {settings.log_file}")
    return EXIT_OK


def run(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run one command and return its exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        settings = resolve_settings(args)
        attach_log_file(settings.log_file)
        check_prerequisites(settings, writable=args.command in WRITING_COMMANDS)
        return args.func(args, settings)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        return EXIT_INTERRUPTED
    except ConfigurationError as e:
        logger.error("%s: %s", e.label, e)
        return EXIT_USAGE
    except PrerequisiteMissingError as e:
        logger.error("%s (%d): %s", e.label, len(e.problems), e)
        return EXIT_PREREQUISITES
    except InvalidArgumentError as e:
        logger.error("%s: %s", e.label, e)
        return EXIT_USAGE
    except BackupError as e:
        logger.error("%s: %s", e.label, e)
        return EXIT_FAILURE
    except Exception as e:
        if args.verbose > 0:
            raise
        logger.error("Error: %s", e)
        return EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for the q-config-backup CLI."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
