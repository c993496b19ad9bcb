"""Tests for config discovery and parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from remotesync.config import find_config, load_config, load_config_file
from remotesync.errors import ConfigError
from remotesync.models import SyncConfig


class TestDefaults:
    def test_no_file_gives_defaults(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config == SyncConfig()
        assert config.mod_list is None
        assert config.mod_dir == "synced_mods"
        assert config.local_mod_list == "mod_list.json"
        assert config.key_ring_path == "pub_key.asc"
        assert config.timeout == 15000
        assert config.timeout_seconds == 15.0
        assert config.prefer_local_cache is False
        assert config.key_servers == []


class TestFormats:
    """Each supported format, in both key styles."""

    def test_toml(self, tmp_path: Path):
        (tmp_path / "remote_sync.toml").write_text(
            'mod_list = "https://example.org/mods.json"\n'
            'key_servers = ["hkp://keys.example.org"]\n'
            "timeout = 5000\n",
            encoding="utf-8",
        )
        config = load_config(tmp_path)
        assert config.mod_list == "https://example.org/mods.json"
        assert config.key_servers == ["hkp://keys.example.org"]
        assert config.timeout_seconds == 5.0

    def test_json_camel_case(self, tmp_path: Path):
        (tmp_path / "remote_sync.json").write_text(
            '{"modList": "https://example.org/mods.json", "modDir": "mods",'
            ' "localModList": "cache.json", "keyRingPath": "keys.asc",'
            ' "keyIds": ["0123456789ABCDEF"], "preferLocalCache": true}',
            encoding="utf-8",
        )
        config = load_config(tmp_path)
        assert config.mod_dir == "mods"
        assert config.local_mod_list == "cache.json"
        assert config.key_ring_path == "keys.asc"
        assert config.key_ids == ["0123456789ABCDEF"]
        assert config.prefer_local_cache is True

    @pytest.mark.parametrize("suffix", [".yaml", ".yml"])
    def test_yaml(self, tmp_path: Path, suffix: str):
        (tmp_path / f"remote_sync{suffix}").write_text(
            "mod_list: https://example.org/mods.json\nmax_workers: 2\n", encoding="utf-8",
        )
        config = load_config(tmp_path)
        assert config.max_workers == 2

    def test_empty_yaml_is_defaults(self, tmp_path: Path):
        path = tmp_path / "remote_sync.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config_file(path) == SyncConfig()


class TestDiscovery:
    def test_toml_wins_over_json(self, tmp_path: Path):
        (tmp_path / "remote_sync.json").write_text("{}", encoding="utf-8")
        (tmp_path / "remote_sync.toml").write_text("", encoding="utf-8")
        assert find_config(tmp_path).name == "remote_sync.toml"

    def test_json_wins_over_yaml(self, tmp_path: Path):
        (tmp_path / "remote_sync.yml").write_text("", encoding="utf-8")
        (tmp_path / "remote_sync.json").write_text("{}", encoding="utf-8")
        assert find_config(tmp_path).name == "remote_sync.json"

    def test_directories_are_not_configs(self, tmp_path: Path):
        (tmp_path / "remote_sync.toml").mkdir()
        assert find_config(tmp_path) is None


class TestErrors:
    def test_syntax_error(self, tmp_path: Path):
        (tmp_path / "remote_sync.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(ConfigError, match="parse"):
            load_config(tmp_path)

    def test_not_a_mapping(self, tmp_path: Path):
        (tmp_path / "remote_sync.yaml").write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="table/object"):
            load_config(tmp_path)

    def test_invalid_value(self, tmp_path: Path):
        (tmp_path / "remote_sync.toml").write_text("timeout = -1\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="validation"):
            load_config(tmp_path)

    def test_unreadable(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="read"):
            load_config_file(tmp_path / "missing.toml")
