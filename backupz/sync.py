"""Sync dispatcher: run each source's data mover into the dataset mountpoint."""
from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING

from backupz.config import ConfigError
from backupz.executor import ExecutorError
from backupz.log import log_command_failure
from backupz.models import SourceConfig
from backupz.templating import expand_command

if TYPE_CHECKING:
    from backupz.context import RunContext
    from backupz.models import Config


class UnknownSourceError(ConfigError):
    pass


@dataclass
class _SyncJob:
    source: SourceConfig
    cmd: list[str]


def select_sources(config: "Config", selected: list[str]) -> list[SourceConfig]:
    """
    Return the configured sources named in selected, in config order.

    An empty selection means every source. Unknown names raise
    UnknownSourceError before anything runs.
    """
    for name in selected:
        if name not in config.sources:
            raise UnknownSourceError(f"Unknown source: {name}")
    wanted = set(selected)
    return [
        source for name, source in config.sources.items()
        if not wanted or name in wanted
    ]


def build_command(config: "Config", source: SourceConfig) -> list[str]:
    syncer = config.syncers.get(source.type)
    if syncer is None:
        raise ConfigError(f"Unknown syncer type: {source.name}: {source.type}")
    return expand_command(
        syncer.command,
        binary=syncer.binary,
        options=syncer.options + source.extra_options,
        source=source.source,
        destination_path=source.destination_path(config.dataset_mountpoint),
    )


def run_sync(ctx: "RunContext", selected: list[str]) -> int:
    """
    Sync the selected sources one after another.
    Returns the number of sources whose command failed.

    All commands are built before the first one runs, so configuration
    errors never leave a batch half done.
    """
    jobs = [
        _SyncJob(source=source, cmd=build_command(ctx.config, source))
        for source in select_sources(ctx.config, selected)
    ]

    failures = 0
    for job in jobs:
        source = job.source
        ctx.logger.info(f"Syncing {source.source} to {source.destination}")
        if ctx.dry_run:
            ctx.logger.info("  [dry-run] %s", shlex.join(job.cmd))
            continue
        ctx.logger.debug("  [run] %s", shlex.join(job.cmd))
        try:
            ctx.executor.run(job.cmd)
        except ExecutorError as e:
            log_command_failure(
                ctx.logger, f"Error syncing {source.source} to {source.destination}", e
            )
            failures += 1

    if failures:
        ctx.logger.warning(f"{failures} of {len(jobs)} source(s) failed to sync")
    return failures
