"""MockExecutor and shared fixtures for testing."""
from __future__ import annotations

import logging

from backupz.context import RunContext
from backupz.models import (
    Config,
    RetentionClass,
    SourceConfig,
    SyncerConfig,
)

DATASET = "backupzpool"
MOUNTPOINT = "/backupzpool"


class MockExecutor:
    """
    Executor that returns pre-scripted responses for commands.

    responses: dict mapping tuple(cmd) -> stdout string, or an Exception to raise.
    If the command isn't found, raises KeyError (to catch unexpected calls in tests).

    Pass is_verbose=True to print every command that goes through the executor.
    """

    def __init__(self, responses: dict | None = None, is_verbose: bool = False):
        self.responses: dict = responses or {}
        self.verbose = is_verbose
        self.calls: list[list[str]] = []  # record of all commands run

    def run(self, cmd: list[str]) -> str:
        self.calls.append(cmd)
        key = tuple(cmd)
        if self.verbose:
            import shlex
            print(f"  [mock.run] {shlex.join(cmd)}")
        if key not in self.responses:
            raise KeyError(f"MockExecutor: unexpected command: {cmd}")
        result = self.responses[key]
        if isinstance(result, Exception):
            raise result
        return result


def snapshot_list_cmd(dataset: str = DATASET) -> tuple:
    return ("zfs", "list", "-H", "-o", "name", "-t", "snapshot", "-r", dataset)


def snap_list_output(names: list[str], dataset: str = DATASET) -> str:
    return "".join(f"{dataset}@{n}\n" for n in names)


def make_config(
    retentions: dict | None = None,
    sources: dict | None = None,
    syncers: dict | None = None,
) -> Config:
    if syncers is None:
        syncers = {
            "rsync": SyncerConfig(
                binary="/usr/local/bin/rsync",
                command=["$binary", "@options", "$source", "$destination"],
                options=["-aSH", "--delete"],
            ),
        }
    if sources is None:
        sources = {
            "web": SourceConfig(
                name="web", type="rsync",
                source="root@web:/srv", destination="web",
            ),
            "mail": SourceConfig(
                name="mail", type="rsync",
                source="root@mail:/var/mail", destination="mail",
                extra_options=["--exclude=tmp"],
            ),
        }
    if retentions is None:
        retentions = {
            "daily": RetentionClass(name="daily", keep=7),
            "weekly": RetentionClass(name="weekly", keep=3),
            "hourly": RetentionClass(name="hourly", keep=7, strategy="timestamp"),
            "yearly": RetentionClass(name="yearly"),
        }
    return Config(
        dataset=DATASET,
        logfile="/dev/null",
        lockfile="/nonexistent/backupz.lock",
        syncers=syncers,
        sources=sources,
        retentions=retentions,
        dataset_mountpoint=MOUNTPOINT,
    )


def make_ctx(executor, config: Config | None = None, dry_run: bool = False) -> RunContext:
    """RunContext on a propagating logger, so caplog sees its records."""
    logger = logging.getLogger("tests.backupz")
    logger.setLevel(logging.DEBUG)
    return RunContext(
        config=config or make_config(),
        executor=executor,
        logger=logger,
        dry_run=dry_run,
    )
