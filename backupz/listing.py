"""Read-only reports: sources, retentions and snapshot usage."""
from __future__ import annotations

from typing import TYPE_CHECKING

from backupz import zfs
from backupz.models import UsageRow
from backupz.retention import retention_class_of

if TYPE_CHECKING:
    from backupz.context import RunContext
    from backupz.models import Config

SIZE_WIDTH = 14
UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB")

SNAPSHOTS = "snapshots"
SOURCES = "sources"
RETENTIONS = "retentions"
KINDS = (SNAPSHOTS, SOURCES, RETENTIONS)


def format_size(num_bytes: int) -> str:
    """
    Human-readable binary size, left-justified to SIZE_WIDTH.

    format_size(512)  -> '512 B         '
    format_size(1536) -> '1.50 KiB      '
    """
    if num_bytes < 1024:
        return f"{num_bytes} B".ljust(SIZE_WIDTH)
    value = float(num_bytes)
    for unit in UNITS:
        value /= 1024
        if value < 1024 or unit == UNITS[-1]:
            break
    return f"{value:.2f} {unit}".ljust(SIZE_WIDTH)


def list_sources(config: "Config", verbose: bool = False) -> list[str]:
    lines = []
    for name, source in config.sources.items():
        if verbose:
            dest = source.destination_path(config.dataset_mountpoint) \
                if config.dataset_mountpoint else source.destination
            lines.append(f"{name:<20} {source.source} -> {dest} ({source.type})")
        else:
            lines.append(name)
    return lines


def list_retentions(config: "Config", verbose: bool = False) -> list[str]:
    lines = []
    for name, retention in config.retentions.items():
        if verbose:
            keep = f"keep {retention.keep}" if retention.bounded else "forever"
            lines.append(f"{name:<20} {keep:<10} {retention.strategy}")
        else:
            lines.append(name)
    return lines


def partition_snapshots(
    config: "Config",
    rows: list[UsageRow],
) -> tuple[list[UsageRow], list[UsageRow]]:
    """Split snapshot rows into (managed, unmanaged), newest first."""
    managed, unmanaged = [], []
    for row in rows:
        if not row.is_snapshot:
            continue
        if retention_class_of(row.snapshot.name) in config.retentions:
            managed.append(row)
        else:
            unmanaged.append(row)
    managed.sort(key=lambda r: r.creation, reverse=True)
    unmanaged.sort(key=lambda r: r.creation, reverse=True)
    return managed, unmanaged


def _snapshot_lines(title: str, rows: list[UsageRow]) -> list[str]:
    lines = ["", f"{title}:"]
    if not rows:
        lines.append("  (none)")
        return lines
    width = max(len(r.snapshot.name) for r in rows)
    lines.append(f"  {'NAME':<{width}}  {'USED':<{SIZE_WIDTH}} {'REFER':<{SIZE_WIDTH}}")
    for row in rows:
        lines.append(
            f"  {row.snapshot.name:<{width}}  {format_size(row.used)} {format_size(row.refer)}"
        )
    return lines


def list_snapshots(ctx: "RunContext") -> list[str]:
    dataset = ctx.dataset
    rows = zfs.list_usage(dataset, ctx.executor)
    pool = next((r for r in rows if r.name == dataset), None)

    lines = []
    if pool is not None:
        avail = format_size(pool.avail) if pool.avail is not None else "-"
        lines.append(f"{dataset}: used {format_size(pool.used)} avail {avail}".rstrip())
    managed, unmanaged = partition_snapshots(ctx.config, rows)
    lines += _snapshot_lines("Managed snapshots", managed)
    lines += _snapshot_lines("Unmanaged snapshots", unmanaged)
    return lines


def list_report(ctx: "RunContext", kind: str = SNAPSHOTS, verbose: bool = False) -> list[str]:
    if kind == SOURCES:
        return list_sources(ctx.config, verbose)
    if kind == RETENTIONS:
        return list_retentions(ctx.config, verbose)
    if kind == SNAPSHOTS:
        return list_snapshots(ctx)
    raise ValueError(f"Unknown list kind: {kind}")
