"""Tests for backupz.config module."""
from __future__ import annotations

import json
import textwrap

import pytest
import yaml

from backupz.config import ConfigError, SAMPLE_CONFIG, default_lockfile, load_config, sample_config
from backupz.templating import TemplateError


def _write_config(tmp_path, yaml_text: str, name: str = "backupz.yaml") -> str:
    p = tmp_path / name
    p.write_text(textwrap.dedent(yaml_text))
    return str(p)


def _minimal_yaml(**overrides) -> str:
    """Return a valid minimal config, with optional section overrides."""
    sections = {
        "dataset": "dataset: tank/backup",
        "logfile": "logfile: /var/log/backupz.log",
        "syncers": (
            "syncers:\n"
            "  rsync:\n"
            "    binary: /usr/bin/rsync\n"
            "    command: [$binary, '@options', $source, $destination]\n"
            "    options: [-a]"
        ),
        "sources": (
            "sources:\n"
            "  web:\n"
            "    type: rsync\n"
            "    source: root@web:/srv\n"
            "    destination: web"
        ),
        "retentions": "retentions:\n  daily: {keep: 7}\n  yearly: {}",
    }
    sections.update(overrides)
    return "\n".join(v for v in sections.values() if v)


class TestLoadConfigValid:
    def test_minimal(self, tmp_path):
        config = load_config(_write_config(tmp_path, _minimal_yaml()))
        assert config.dataset == "tank/backup"
        assert config.syncers["rsync"].command == ["$binary", "@options", "$source", "$destination"]
        assert config.sources["web"].extra_options == []
        assert config.retentions["daily"].keep == 7
        assert config.retentions["daily"].strategy == "generation"
        assert config.retentions["yearly"].keep is None
        assert config.timeout is None
        assert config.lockfile == default_lockfile("tank/backup")
        assert config.lockfile.endswith("backupz-tank_backup.lock")

    def test_json_is_accepted(self, tmp_path):
        path = _write_config(tmp_path, json.dumps(SAMPLE_CONFIG), name="backupz.json")
        config = load_config(path)
        assert set(config.sources) == {"source1", "source2"}
        assert config.sources["source2"].extra_options == ["--exclude=somefile"]

    def test_timestamp_strategy_and_overrides(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(
            retentions="retentions:\n  hourly: {keep: 24, strategy: timestamp}",
        ) + "\nlockfile: /run/backupz.pid\ntimeout: 3600")
        config = load_config(path)
        assert config.retentions["hourly"].strategy == "timestamp"
        assert config.lockfile == "/run/backupz.pid"
        assert config.timeout == 3600.0

    def test_sample_config_round_trips(self, tmp_path):
        config = load_config(_write_config(tmp_path, sample_config()))
        assert config.dataset == "backupzpool"
        assert config.retentions["yearly"].keep is None
        assert yaml.safe_load(sample_config()) == SAMPLE_CONFIG


class TestLoadConfigInvalid:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unparseable(self, tmp_path):
        with pytest.raises(ConfigError, match="Error loading"):
            load_config(_write_config(tmp_path, "dataset: [unclosed"))

    def test_missing_logfile(self, tmp_path):
        with pytest.raises(ConfigError, match="No logfile"):
            load_config(_write_config(tmp_path, _minimal_yaml(logfile="")))

    def test_missing_dataset(self, tmp_path):
        with pytest.raises(ConfigError, match="dataset"):
            load_config(_write_config(tmp_path, _minimal_yaml(dataset="")))

    def test_unknown_syncer_type(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(sources=(
            "sources:\n  web:\n    type: unison\n    source: a\n    destination: b"
        )))
        with pytest.raises(ConfigError, match="Unknown syncer type: web: unison"):
            load_config(path)

    @pytest.mark.parametrize("section", [
        "retentions:\n  90: {keep: 3}",
        "retentions:\n  yes: {keep: 3}",
        "sources:\n  42:\n    type: rsync\n    source: a\n    destination: b",
        "syncers:\n  7:\n    binary: rsync\n    command: [$binary]",
    ])
    def test_non_string_names(self, tmp_path, section):
        key = section.partition(":")[0]
        path = _write_config(tmp_path, _minimal_yaml(**{key: section}))
        with pytest.raises(ConfigError, match=f"{key}: name .* must be a non-empty string"):
            load_config(path)

    def test_quoted_numeric_retention_name(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(retentions="retentions:\n  '90': {keep: 3}"))
        assert load_config(path).retentions["90"].keep == 3

    def test_bad_template_token(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(syncers=(
            "syncers:\n  rsync:\n    binary: rsync\n    command: [$binary, $dest]"
        )))
        with pytest.raises(TemplateError, match=r"\$dest"):
            load_config(path)

    @pytest.mark.parametrize("keep", ["0", "-1", "'7'", "true", "2.5"])
    def test_bad_keep(self, tmp_path, keep):
        path = _write_config(tmp_path, _minimal_yaml(
            retentions=f"retentions:\n  daily: {{keep: {keep}}}",
        ))
        with pytest.raises(ConfigError, match="positive integer"):
            load_config(path)

    def test_unknown_strategy(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(
            retentions="retentions:\n  daily: {keep: 7, strategy: fifo}",
        ))
        with pytest.raises(ConfigError, match="unknown strategy"):
            load_config(path)

    def test_retention_name_with_separator(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(
            retentions="retentions:\n  'daily:utc': {keep: 7}",
        ))
        with pytest.raises(ConfigError, match="Invalid retention name"):
            load_config(path)

    def test_options_must_be_strings(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml(syncers=(
            "syncers:\n  rsync:\n    binary: rsync\n    command: [$binary]\n    options: -a"
        )))
        with pytest.raises(ConfigError, match="list of strings"):
            load_config(path)

    def test_bad_timeout(self, tmp_path):
        path = _write_config(tmp_path, _minimal_yaml() + "\ntimeout: 0")
        with pytest.raises(ConfigError, match="timeout"):
            load_config(path)
