"""Data models for backupz."""
from __future__ import annotations

from dataclasses import dataclass, field

GENERATION = "generation"
TIMESTAMP = "timestamp"
STRATEGY_NAMES = (GENERATION, TIMESTAMP)


@dataclass(frozen=True, order=True)
class Snapshot:
    """A ZFS snapshot: pool/dataset@name."""
    dataset: str
    name: str  # just the snapshot name after '@'

    @property
    def full_name(self) -> str:
        return f"{self.dataset}@{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "Snapshot":
        dataset, _, name = full_name.partition("@")
        if not name:
            raise ValueError(f"Not a snapshot: {full_name!r}")
        return cls(dataset=dataset, name=name)


@dataclass(frozen=True)
class UsageRow:
    """One row of `zfs list -H -p -o name,used,avail,refer,creation`."""
    name: str
    used: int
    avail: int | None  # '-' for snapshots
    refer: int
    creation: int

    @property
    def is_snapshot(self) -> bool:
        return "@" in self.name

    @property
    def snapshot(self) -> Snapshot:
        return Snapshot.parse(self.name)


@dataclass
class SyncerConfig:
    """An external data mover: binary, base options and command template."""
    binary: str
    command: list[str]
    options: list[str] = field(default_factory=list)


@dataclass
class SourceConfig:
    name: str
    type: str
    source: str
    destination: str  # relative to the dataset mountpoint
    extra_options: list[str] = field(default_factory=list)

    def destination_path(self, mountpoint: str) -> str:
        """Return the absolute directory a source is synced into.

        Example: /backupzpool + web -> /backupzpool/web
        """
        return f"{mountpoint}/{self.destination}"


@dataclass
class RetentionClass:
    """A named retention policy. keep=None means keep forever."""
    name: str
    keep: int | None = None
    strategy: str = GENERATION

    @property
    def bounded(self) -> bool:
        return self.keep is not None


@dataclass(frozen=True)
class Config:
    dataset: str
    logfile: str
    lockfile: str
    syncers: dict[str, SyncerConfig] = field(default_factory=dict)
    sources: dict[str, SourceConfig] = field(default_factory=dict)
    retentions: dict[str, RetentionClass] = field(default_factory=dict)
    timeout: float | None = None
    dataset_mountpoint: str = ""  # resolved from zfs before a sync
