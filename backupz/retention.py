"""Retention rotation: snapshot a retention class and evict its oldest members.

Two strategies exist and each retention class picks one in its config:

generation  Numbered slots ``<class>.0`` (newest) to ``<class>.<keep-1>``.
            The oldest slot is destroyed, the rest are renamed one slot up,
            and a fresh ``<class>.0`` is created.
timestamp   ``<class>:YYYY-MM-DDTHH:MM:SS`` snapshots. When the class already
            holds ``keep`` snapshots the oldest one is destroyed, then a new
            one is created. At most one snapshot is evicted per run.

Any failing zfs command aborts the rotation with RotationError: a half-done
rename sequence would leave gaps or collisions in the slot numbering.
"""
from __future__ import annotations

import re
import shlex
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Protocol

from backupz import zfs
from backupz.executor import ExecutorError
from backupz.log import log_command_failure
from backupz.models import GENERATION, TIMESTAMP, RetentionClass, Snapshot

if TYPE_CHECKING:
    from backupz.context import RunContext

TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
_TIME_RE = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"
# Slot numbers are written canonically, so "daily.01" is not slot 1
_SLOT_RE = r"(0|[1-9][0-9]*)"


class PolicyError(Exception):
    """Raised for an unknown retention class."""


class RotationError(Exception):
    """Raised when a zfs command fails part-way through a rotation."""


class RetentionStrategy(Protocol):
    name: str

    def owns(self, class_name: str, snapshot_name: str) -> bool:
        """True if snapshot_name belongs to class_name under this strategy."""
        raise NotImplementedError

    def rotate(self, ctx: "RunContext", retention: RetentionClass) -> None:
        raise NotImplementedError


def retention_class_of(snapshot_name: str) -> str | None:
    """Return the retention class prefix of a snapshot name, if it has one.

    daily:2024-01-01T00:00:00 -> daily, weekly.3 -> weekly, manual -> None
    """
    if ":" in snapshot_name:
        return snapshot_name.partition(":")[0]
    prefix, dot, slot = snapshot_name.rpartition(".")
    if dot and re.fullmatch(_SLOT_RE, slot):
        return prefix
    return None


def _class_snapshots(
    ctx: "RunContext",
    strategy: RetentionStrategy,
    retention: RetentionClass,
) -> list[Snapshot]:
    try:
        snaps = zfs.list_snapshots(ctx.dataset, ctx.executor)
    except ExecutorError as e:
        message = f"Error listing snapshots of {ctx.dataset}"
        log_command_failure(ctx.logger, message, e)
        raise RotationError(message) from e
    return [s for s in snaps if strategy.owns(retention.name, s.name)]


def _apply(ctx: "RunContext", failure: str, operation: Callable[..., list[str]], *args) -> None:
    """Run one mutating zfs operation, turning failure into RotationError."""
    try:
        cmd = operation(*args, ctx.executor, dry_run=ctx.dry_run)
    except ExecutorError as e:
        log_command_failure(ctx.logger, failure, e)
        raise RotationError(failure) from e
    if ctx.dry_run:
        ctx.logger.info("  [dry-run] %s", shlex.join(cmd))
    else:
        ctx.logger.debug("  [run] %s", shlex.join(cmd))


class GenerationRotation:
    name = GENERATION

    def owns(self, class_name: str, snapshot_name: str) -> bool:
        return self.slot_of(class_name, snapshot_name) is not None

    @staticmethod
    def slot_of(class_name: str, snapshot_name: str) -> int | None:
        m = re.fullmatch(re.escape(class_name) + r"\." + _SLOT_RE, snapshot_name)
        return int(m.group(1)) if m else None

    def rotate(self, ctx: "RunContext", retention: RetentionClass) -> None:
        name = retention.name
        existing = {
            self.slot_of(name, s.name): s
            for s in _class_snapshots(ctx, self, retention)
        }

        if retention.bounded:
            max_slot = retention.keep - 1
        else:
            # Unbounded: shift everything up, nothing falls off the end
            max_slot = max(existing, default=-1) + 1

        if max_slot in existing:
            ctx.logger.info(f"Snapshot {name}.{max_slot} already exists, destroying")
            _apply(
                ctx, f"Error destroying snapshot: {name}.{max_slot}",
                zfs.destroy_snapshot, existing[max_slot],
            )

        # Descending, so slot i+1 is free before slot i moves into it
        for i in reversed(range(max_slot)):
            if i not in existing:
                continue
            ctx.logger.info(f"Renaming snapshot {name}.{i} to {name}.{i + 1}")
            _apply(
                ctx, f"Error renaming snapshot: {name}.{i} to {name}.{i + 1}",
                zfs.rename_snapshot, existing[i], f"{name}.{i + 1}",
            )

        ctx.logger.info(f"Creating snapshot: {name}.0")
        _apply(
            ctx, f"Error creating snapshot: {name}.0",
            zfs.create_snapshot, Snapshot(dataset=ctx.dataset, name=f"{name}.0"),
        )


class TimestampPrune:
    name = TIMESTAMP

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def owns(self, class_name: str, snapshot_name: str) -> bool:
        return re.fullmatch(re.escape(class_name) + ":" + _TIME_RE, snapshot_name) is not None

    def rotate(self, ctx: "RunContext", retention: RetentionClass) -> None:
        name = retention.name
        # ISO-8601 names sort chronologically
        existing = sorted(_class_snapshots(ctx, self, retention), key=lambda s: s.name)

        if retention.bounded:
            if len(existing) > retention.keep:
                ctx.logger.warning(
                    f"Retention {name} holds {len(existing)} snapshots, more than "
                    f"keep={retention.keep}; only the oldest is pruned this run"
                )
            if len(existing) == retention.keep:
                oldest = existing[0]
                ctx.logger.info(f"Destroying oldest snapshot: {oldest.name}")
                _apply(
                    ctx, f"Error destroying snapshot: {oldest.name}",
                    zfs.destroy_snapshot, oldest,
                )

        new_name = f"{name}:{self.clock().strftime(TIME_FORMAT)}"
        ctx.logger.info(f"Creating snapshot: {new_name}")
        _apply(
            ctx, f"Error creating snapshot: {new_name}",
            zfs.create_snapshot, Snapshot(dataset=ctx.dataset, name=new_name),
        )


def strategy_for(
    retention: RetentionClass,
    clock: Callable[[], datetime] = datetime.now,
) -> RetentionStrategy:
    if retention.strategy == TIMESTAMP:
        return TimestampPrune(clock)
    return GenerationRotation()


def run_snapshot(
    ctx: "RunContext",
    class_name: str,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """Rotate one retention class. Raise PolicyError if it is not configured."""
    retention = ctx.config.retentions.get(class_name)
    if retention is None:
        raise PolicyError(f"Unknown retention level: {class_name}")
    strategy_for(retention, clock).rotate(ctx, retention)
