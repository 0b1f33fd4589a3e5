# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM command line.

    dvm backup VOLUME... | --all
    dvm restore ARCHIVE VOLUME [--yes]
    dvm transfer ARCHIVE USER@ADDRESS
    dvm remote-restore USER@ADDRESS REMOTE_ARCHIVE VOLUME [--yes]
    dvm list [--remote USER@ADDRESS]
    dvm verify ARCHIVE
    dvm cleanup
    dvm help

Exit codes: 0 success (or a declined confirmation), 1 failure, 2 usage
error, 130 interrupted.
"""

import argparse
import asyncio
import sys
from typing import Callable, Dict, List, Optional

import structlog
from ulid import ULID

from dvm import __version__
from dvm.archive.naming import find_archive, list_archives
from dvm.archive.retention import cleanup_old_archives
from dvm.archive.verify import verify_archive
from dvm.backup.manager import run_backup
from dvm.backup.restore import RestoreResult, RestoreStatus, restore_archive
from dvm.config import DVMConfig
from dvm.core import (
    EngineState,
    check_dependencies,
    ensure_directories,
    initialize_state,
    shutdown_state,
)
from dvm.env import create_config_from_env
from dvm.exceptions import DVMError, IntegrityError, OperationCancelled
from dvm.logging import configure_logging
from dvm.transfer.remote import RemoteEndpoint, list_remote_archives, transfer_archive
from dvm.transfer.remote_restore import remote_restore

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


class ConsoleOperator:
    """Operator answering confirmations from the terminal."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    async def confirm(self, prompt: str) -> bool:
        if self.assume_yes:
            return True
        loop = asyncio.get_running_loop()
        try:
            answer = await loop.run_in_executor(None, input, f"{prompt} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dvm",
        description="Back up, restore and transfer Docker volumes.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", dest="verbose", action="store_true", default=None,
        help="echo log lines to the console",
    )
    verbosity.add_argument(
        "-q", "--quiet", dest="verbose", action="store_false",
        help="log to the log file only",
    )

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    backup = commands.add_parser("backup", help="back up volumes")
    backup.add_argument("volumes", nargs="*", metavar="VOLUME")
    backup.add_argument("--all", action="store_true", help="back up every volume")

    restore = commands.add_parser("restore", help="restore a local archive into a volume")
    restore.add_argument("archive", metavar="ARCHIVE")
    restore.add_argument("volume", metavar="VOLUME")
    restore.add_argument("-y", "--yes", action="store_true", help="do not ask for confirmation")

    transfer = commands.add_parser("transfer", help="copy a local archive to a remote host")
    transfer.add_argument("archive", metavar="ARCHIVE")
    transfer.add_argument("target", metavar="USER@ADDRESS")

    remote = commands.add_parser(
        "remote-restore", help="fetch a remote archive and restore it locally"
    )
    remote.add_argument("target", metavar="USER@ADDRESS")
    remote.add_argument("archive", metavar="REMOTE_ARCHIVE")
    remote.add_argument("volume", metavar="VOLUME")
    remote.add_argument("-y", "--yes", action="store_true", help="do not ask for confirmation")

    listing = commands.add_parser("list", help="list archives")
    listing.add_argument("--remote", metavar="USER@ADDRESS", help="list a remote store instead")

    verify = commands.add_parser("verify", help="check an archive's integrity")
    verify.add_argument("archive", metavar="ARCHIVE")

    commands.add_parser("cleanup", help="delete archives past the retention period")
    commands.add_parser("help", help="show this help message")

    return parser


def _report_restore(result: RestoreResult) -> int:
    if result.status == RestoreStatus.CANCELLED:
        raise OperationCancelled("Restore cancelled.")
    if not result.succeeded:
        stage = f" during {result.stage.value}" if result.stage else ""
        print(f"Restore of {result.archive} into {result.volume} failed{stage}: {result.error}")
        if result.local_path is not None:
            print(f"The archive was kept at {result.local_path}")
        return EXIT_FAILURE
    print(f"Restored {result.archive} into volume {result.volume}.")
    return EXIT_OK


async def _cmd_backup(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    await check_dependencies(state, docker=True, tools=())
    if args.all:
        volumes = await state["runtime"].list_volumes()
        if not volumes:
            print("No Docker volumes found.")
            return EXIT_OK
    else:
        volumes = args.volumes

    report = await run_backup(config, state, volumes)
    for result in report.results:
        if result.succeeded:
            print(f"[ok]     {result.volume} -> {result.archive_path}")
        else:
            print(f"[failed] {result.volume} ({result.status.value}): {result.error}")
    if report.pruned_count:
        print(f"Pruned {report.pruned_count} archive(s) older than {config.retention_days} days.")

    if report.all_succeeded:
        print("Backup completed successfully.")
        return EXIT_OK
    print(f"Backup failed for {len(report.failed)} of {len(report.results)} volume(s).")
    return EXIT_FAILURE


async def _cmd_restore(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    await check_dependencies(state, docker=True, tools=())
    archive = find_archive(config.backup_dir, args.archive)
    result = await restore_archive(config, state, archive.path, args.volume)
    return _report_restore(result)


async def _cmd_transfer(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    endpoint = RemoteEndpoint.parse(args.target)
    await check_dependencies(state, docker=False)
    archive = find_archive(config.backup_dir, args.archive)
    result = await transfer_archive(config, state, archive.path, endpoint)
    if not result.succeeded:
        print(f"Transfer of {result.archive} to {endpoint} failed at {result.stage.value}: {result.error}")
        return EXIT_FAILURE
    print(f"Transferred {result.archive} to {endpoint}:{result.remote_path}")
    return EXIT_OK


async def _cmd_remote_restore(
    config: DVMConfig, state: EngineState, args: argparse.Namespace
) -> int:
    endpoint = RemoteEndpoint.parse(args.target)
    await check_dependencies(state, docker=True)
    result = await remote_restore(config, state, endpoint, args.archive, args.volume)
    return _report_restore(result)


async def _cmd_list(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    if args.remote:
        endpoint = RemoteEndpoint.parse(args.remote)
        await check_dependencies(state, docker=False, tools=("ssh",))
        names = await list_remote_archives(config, state, endpoint)
        for name in names:
            print(name)
        print(f"{len(names)} archive(s) on {endpoint}.")
        return EXIT_OK

    archives = sorted(list_archives(config.backup_dir), key=lambda a: (a.volume, a.timestamp))
    for archive in archives:
        size = "?" if archive.size_bytes is None else str(archive.size_bytes)
        print(
            f"{archive.name}  volume={archive.volume} host={archive.host_label} "
            f"created={archive.timestamp:%Y-%m-%d %H:%M:%S} size={size}"
        )
    print(f"{len(archives)} archive(s) in {config.backup_dir}.")
    return EXIT_OK


async def _cmd_verify(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    archive = find_archive(config.backup_dir, args.archive)
    result = await verify_archive(archive.path)
    if not result.valid:
        raise IntegrityError(
            f"Archive {archive.name} is corrupt: {result.error}",
            details={"archive": str(archive.path)},
        )
    print(f"Archive {archive.name} is valid ({result.member_count} entries).")
    return EXIT_OK


async def _cmd_cleanup(config: DVMConfig, state: EngineState, args: argparse.Namespace) -> int:
    pruned = await asyncio.to_thread(
        cleanup_old_archives, config.backup_dir, config.retention_days
    )
    print(f"Deleted {pruned} archive(s) older than {config.retention_days} days.")
    return EXIT_OK


COMMANDS: Dict[str, Callable] = {
    "backup": _cmd_backup,
    "restore": _cmd_restore,
    "transfer": _cmd_transfer,
    "remote-restore": _cmd_remote_restore,
    "list": _cmd_list,
    "verify": _cmd_verify,
    "cleanup": _cmd_cleanup,
}


async def run_command(
    config: DVMConfig,
    args: argparse.Namespace,
    state: EngineState | None = None,
) -> int:
    """
    Run one parsed command inside a fresh operation context.

    Args:
        config: DVM configuration
        args: Parsed command line
        state: Engine state; production collaborators are built if omitted

    Returns:
        Process exit code
    """
    owned = state is None
    if state is None:
        state = await initialize_state(config, ConsoleOperator(getattr(args, "yes", False)))

    try:
        with structlog.contextvars.bound_contextvars(
            operation_id=str(ULID()), command=args.command
        ):
            return await COMMANDS[args.command](config, state, args)
    finally:
        if owned:
            await shutdown_state(state)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return EXIT_OK
    if args.command is None:
        parser.print_usage(sys.stderr)
        return EXIT_USAGE
    if args.command == "backup" and not (args.all or args.volumes):
        parser.error("backup requires at least one VOLUME or --all")

    try:
        overrides = {} if args.verbose is None else {"verbose": args.verbose}
        config = create_config_from_env(**overrides)
        ensure_directories(config)
        configure_logging(config)
    except DVMError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        return asyncio.run(run_command(config, args))
    except KeyboardInterrupt:
        logger.warning("operation_interrupted", command=args.command)
        print("\nOperation cancelled by user.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except OperationCancelled as e:
        logger.info("operation_cancelled", command=args.command)
        print(e.message)
        return EXIT_OK
    except DVMError as e:
        logger.error("operation_failed", command=args.command, error=str(e))
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
