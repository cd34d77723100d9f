"""CLI entry point for backupz."""
from __future__ import annotations

import argparse
import dataclasses
import sys

from backupz import zfs
from backupz.config import ConfigError, load_config, sample_config
from backupz.context import RunContext
from backupz.executor import ExecutorError, LocalExecutor
from backupz.listing import KINDS, SNAPSHOTS, SOURCES, list_report
from backupz.lock import LockError, PidLock
from backupz.log import setup_logging
from backupz.retention import PolicyError, RotationError, run_snapshot
from backupz.sync import run_sync


class _Parser(argparse.ArgumentParser):
    """Usage errors print the message and the full help, then exit 1."""

    def error(self, message):
        sys.stderr.write(f"{self.prog}: {message}\n\n")
        self.print_help(sys.stderr)
        self.exit(1)


def _load(args, resolve_mountpoint: bool = False) -> RunContext:
    config = load_config(args.config)
    dry_run = getattr(args, "dry_run", False)
    # Dry runs exist to show the commands, so always echo them
    verbosity = max(args.verbose, 1) if dry_run else args.verbose
    logger = setup_logging(config.logfile, verbosity)
    executor = LocalExecutor(timeout=config.timeout)

    if resolve_mountpoint:
        try:
            mountpoint = zfs.get_mountpoint(config.dataset, executor)
        except ExecutorError as e:
            raise ConfigError(
                f"Error getting mountpoint for dataset: {e.stderr.strip()}"
            ) from e
        config = dataclasses.replace(config, dataset_mountpoint=mountpoint)

    return RunContext(
        config=config,
        executor=executor,
        logger=logger,
        verbosity=verbosity,
        dry_run=dry_run,
    )


def cmd_sync(args) -> int:
    ctx = _load(args, resolve_mountpoint=True)
    with PidLock(ctx.config.lockfile, ctx.logger):
        failures = run_sync(ctx, args.sources)
    if failures:
        # Without -v the details only reach the log file
        print(
            f"{failures} source(s) failed to sync, see {ctx.config.logfile}",
            file=sys.stderr,
        )
        return 1
    return 0


def cmd_snapshot(args) -> int:
    ctx = _load(args)
    with PidLock(ctx.config.lockfile, ctx.logger):
        run_snapshot(ctx, args.retention)
    return 0


def cmd_list(args) -> int:
    verbose = args.verbose > 0
    ctx = _load(args, resolve_mountpoint=verbose and args.kind == SOURCES)
    for line in list_report(ctx, args.kind, verbose=verbose):
        print(line)
    return 0


def cmd_sample_conf(args) -> int:
    print(sample_config(), end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="backupz",
        description="Pull remote data into a ZFS dataset and rotate its snapshots",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="verb")

    # Shared options
    def add_common(p, dry_run=True):
        p.add_argument("-c", "--config", required=True, metavar="FILE",
                       help="Path to the configuration file")
        p.add_argument("-v", "--verbose", action="count", default=0,
                       help="Be verbose (repeat for more verbosity)")
        if dry_run:
            p.add_argument("--dry-run", "-n", action="store_true",
                           help="Log what would change without changing it")

    p_sync = sub.add_parser("sync", help="Pull data from the configured sources")
    add_common(p_sync)
    p_sync.add_argument("sources", nargs="*", metavar="source",
                        help="Sync only these sources (default: all)")
    p_sync.set_defaults(func=cmd_sync)

    p_snapshot = sub.add_parser("snapshot", help="Create a snapshot of the backup")
    add_common(p_snapshot)
    p_snapshot.add_argument("retention", help="Name of the retention level to create")
    p_snapshot.set_defaults(func=cmd_snapshot)

    p_list = sub.add_parser("list", help="List snapshots, sources or retentions")
    add_common(p_list, dry_run=False)
    p_list.add_argument("kind", nargs="?", choices=KINDS, default=SNAPSHOTS,
                        help="What to list (default: snapshots)")
    p_list.set_defaults(func=cmd_list)

    p_sample = sub.add_parser("sample-conf", help="Show a sample configuration file")
    p_sample.set_defaults(func=cmd_sample_conf)

    p_help = sub.add_parser("help", help="Display this help")
    p_help.set_defaults(func=lambda args: parser.print_help() or 0)

    return parser


def run(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ConfigError as e:
        print(f"{e}\n", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1
    except (PolicyError, LockError, RotationError) as e:
        print(e, file=sys.stderr)
        return 1
    except ExecutorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main(argv=None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
