"""Load and validate YAML (or JSON) configuration files."""
from __future__ import annotations

import os
import tempfile

import yaml

from backupz.models import (
    GENERATION,
    STRATEGY_NAMES,
    Config,
    RetentionClass,
    SourceConfig,
    SyncerConfig,
)


class ConfigError(Exception):
    pass


SAMPLE_CONFIG = {
    "dataset": "backupzpool",
    "logfile": "./backupz.log",
    "syncers": {
        "rsync": {
            "command": ["$binary", "@options", "$source", "$destination"],
            "binary": "/usr/local/bin/rsync",
            "options": [
                "-aSH", "-essh", "--delete", "--delete-excluded",
                "--numeric-ids",
                "--timeout=300",
            ],
        },
    },
    "sources": {
        "source1": {
            "type": "rsync",
            "source": "root@machine:/path/to/source",
            "destination": "destination-dir",
        },
        "source2": {
            "type": "rsync",
            "source": "root@machine:/path/to/other_source",
            "destination": "other_destination-dir",
            "extra_options": ["--exclude=somefile"],
        },
    },
    "retentions": {
        "hourly": {"keep": 24, "strategy": "timestamp"},
        "daily": {"keep": 7},
        "weekly": {"keep": 5},
        "monthly": {"keep": 12},
        "yearly": {},
    },
}


def sample_config() -> str:
    """Return the sample configuration as YAML text."""
    return yaml.safe_dump(SAMPLE_CONFIG, sort_keys=False, default_flow_style=False)


def default_lockfile(dataset: str) -> str:
    """Derive a lock file path for a dataset.

    Example: backupzpool/data -> /tmp/backupz-backupzpool_data.lock
    """
    return os.path.join(tempfile.gettempdir(), f"backupz-{dataset.replace('/', '_')}.lock")


def _string_list(value, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{what} must be a list of strings")
    return list(value)


def _mapping(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    for name in value:
        # YAML reads unquoted 90 or yes as int/bool keys
        if not isinstance(name, str) or not name:
            raise ConfigError(f"{key}: name {name!r} must be a non-empty string (quote it)")
    return value


def _required_str(raw: dict, key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where}.{key} is required")
    return value


def _load_syncers(raw: dict) -> dict[str, SyncerConfig]:
    from backupz.templating import validate_template

    syncers = {}
    for name, s in _mapping(raw, "syncers").items():
        if not isinstance(s, dict):
            raise ConfigError(f"Syncer {name!r} must be a mapping")
        command = _string_list(s.get("command"), f"syncers.{name}.command")
        if not command:
            raise ConfigError(f"syncers.{name}.command is required")
        validate_template(command)
        syncers[name] = SyncerConfig(
            binary=_required_str(s, "binary", f"syncers.{name}"),
            command=command,
            options=_string_list(s.get("options"), f"syncers.{name}.options"),
        )
    return syncers


def _load_sources(raw: dict, syncers: dict[str, SyncerConfig]) -> dict[str, SourceConfig]:
    sources = {}
    for name, s in _mapping(raw, "sources").items():
        if not isinstance(s, dict):
            raise ConfigError(f"Source {name!r} must be a mapping")
        source = SourceConfig(
            name=name,
            type=_required_str(s, "type", f"sources.{name}"),
            source=_required_str(s, "source", f"sources.{name}"),
            destination=_required_str(s, "destination", f"sources.{name}"),
            extra_options=_string_list(
                s.get("extra_options"), f"sources.{name}.extra_options"
            ),
        )
        if source.type not in syncers:
            raise ConfigError(f"Unknown syncer type: {name}: {source.type}")
        sources[name] = source
    return sources


def _load_retentions(raw: dict) -> dict[str, RetentionClass]:
    retentions = {}
    for name, r in _mapping(raw, "retentions").items():
        r = r or {}
        if not isinstance(r, dict):
            raise ConfigError(f"Retention {name!r} must be a mapping")
        keep = r.get("keep")
        # bool is an int subclass; 'keep: yes' is not a count
        if keep is not None and (isinstance(keep, bool) or not isinstance(keep, int) or keep < 1):
            raise ConfigError(
                f"Retention {name!r}: 'keep' must be a positive integer, got {keep!r}"
            )
        strategy = r.get("strategy", GENERATION)
        if strategy not in STRATEGY_NAMES:
            raise ConfigError(
                f"Retention {name!r}: unknown strategy {strategy!r} "
                f"(expected one of {', '.join(STRATEGY_NAMES)})"
            )
        if any(c in name for c in "@:/ "):
            raise ConfigError(f"Invalid retention name: {name!r}")
        retentions[name] = RetentionClass(name=name, keep=keep, strategy=strategy)
    return retentions


def load_config(path: str) -> Config:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Configuration file not found: {path}: {e.strerror}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error loading configuration file: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a mapping: {path}")

    dataset = _required_str(raw, "dataset", "config")
    if not raw.get("logfile"):
        raise ConfigError("No logfile specified in configuration")

    timeout = raw.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"'timeout' must be a positive number, got {timeout!r}")
        timeout = float(timeout)

    syncers = _load_syncers(raw)

    return Config(
        dataset=dataset,
        logfile=str(raw["logfile"]),
        lockfile=str(raw.get("lockfile") or default_lockfile(dataset)),
        syncers=syncers,
        sources=_load_sources(raw, syncers),
        retentions=_load_retentions(raw),
        timeout=timeout,
    )
