"""ZFS operations using an Executor for dependency injection."""
from __future__ import annotations

from typing import TYPE_CHECKING

from backupz.executor import ExecutorError
from backupz.models import Snapshot, UsageRow

if TYPE_CHECKING:
    from backupz.executor import Executor

USAGE_FIELDS = "name,used,avail,refer,creation"


def get_mountpoint(dataset: str, executor: "Executor") -> str:
    """Return the mountpoint of a dataset. Raise ExecutorError on failure."""
    output = executor.run(["zfs", "get", "-H", "-o", "value", "mountpoint", dataset])
    return output.strip()


def list_snapshots(dataset: str, executor: "Executor") -> list[Snapshot]:
    """Return snapshots for a dataset, in zfs listing order."""
    output = executor.run([
        "zfs", "list", "-H", "-o", "name", "-t", "snapshot", "-r", dataset,
    ])
    results = []
    for line in output.splitlines():
        name = line.strip()
        if not name:
            continue
        # Only include snapshots directly on this dataset (not children)
        if "@" in name and name.split("@")[0] == dataset:
            results.append(Snapshot.parse(name))
    return results


def _int_or_none(value: str) -> int | None:
    return None if value in ("-", "") else int(value)


def parse_usage(output: str, dataset: str) -> list[UsageRow]:
    """Parse tab-separated `zfs list -H -p` rows for dataset and its snapshots.

    Rows for child filesystems or unrelated datasets are dropped.
    """
    rows = []
    for line in output.splitlines():
        if not line.strip():
            continue
        fields = line.split("\t")
        if len(fields) != 5:
            raise ValueError(f"Unexpected zfs list row: {line!r}")
        name, used, avail, refer, creation = fields
        if name != dataset and not name.startswith(dataset + "@"):
            continue
        rows.append(UsageRow(
            name=name,
            used=int(used),
            avail=_int_or_none(avail),
            refer=int(refer),
            creation=int(creation),
        ))
    return rows


def list_usage(dataset: str, executor: "Executor") -> list[UsageRow]:
    """Return the dataset's own usage row plus one row per snapshot, in one call."""
    output = executor.run([
        "zfs", "list", "-H", "-p", "-o", USAGE_FIELDS,
        "-t", "filesystem,snapshot", "-d", "1", dataset,
    ])
    return parse_usage(output, dataset)


def create_snapshot(
    snapshot: Snapshot,
    executor: "Executor",
    dry_run: bool = False,
) -> list[str]:
    """Create a snapshot. Returns the command (run unless dry_run)."""
    cmd = ["zfs", "snapshot", snapshot.full_name]
    if not dry_run:
        executor.run(cmd)
    return cmd


def rename_snapshot(
    snapshot: Snapshot,
    new_name: str,
    executor: "Executor",
    dry_run: bool = False,
) -> list[str]:
    """Rename a snapshot within its dataset."""
    target = Snapshot(dataset=snapshot.dataset, name=new_name)
    cmd = ["zfs", "rename", snapshot.full_name, target.full_name]
    if not dry_run:
        executor.run(cmd)
    return cmd


def destroy_snapshot(
    snapshot: Snapshot,
    executor: "Executor",
    dry_run: bool = False,
) -> list[str]:
    """Destroy a single snapshot."""
    cmd = ["zfs", "destroy", snapshot.full_name]
    if not dry_run:
        executor.run(cmd)
    return cmd
