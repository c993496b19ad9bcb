"""Tests for the host-facing RemoteSyncLocator and HostEnvironment."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from remotesync.host import GAME_DIR, PROGRESS_MESSAGE, HostEnvironment, create_directories
from remotesync.locator import RemoteSyncLocator
from remotesync.models import SyncConfig
from remotesync.pgp import parse_key_rings

from pgp_factory import TestKey, key_ring
from sync_helpers import publish, write_mod_list


def write_config(game_dir: Path, **values) -> None:
    (game_dir / "remote_sync.json").write_text(json.dumps(values), encoding="utf-8")


class TestHostEnvironment:
    def test_properties(self, tmp_path: Path):
        host = HostEnvironment({GAME_DIR: tmp_path, "other": 1})
        assert host.game_dir == tmp_path
        assert host.get_property("other") == 1
        assert host.get_property("missing", "fallback") == "fallback"

    def test_game_dir_defaults_to_cwd(self):
        assert HostEnvironment().game_dir == Path(".")

    def test_progress_without_sink(self):
        HostEnvironment().progress("nobody listens")

    def test_progress_sink_errors_are_swallowed(self):
        sink = MagicMock(side_effect=RuntimeError("closed"))
        HostEnvironment({PROGRESS_MESSAGE: sink}).progress("hello")
        sink.assert_called_once_with("hello")

    def test_directory_uses_factory(self, tmp_path: Path):
        factory = MagicMock(side_effect=lambda path: path)
        host = HostEnvironment({GAME_DIR: tmp_path}, directory_factory=factory)
        assert host.directory("mods") == tmp_path / "mods"
        factory.assert_called_once_with(tmp_path / "mods")

    def test_create_directories(self, tmp_path: Path):
        target = tmp_path / "a" / "b"
        assert create_directories(target) == target
        assert target.is_dir()


class TestRemoteSyncLocator:
    """Construction starts the sync; close() tears it down."""

    def test_sync_from_config_file(self, game_dir: Path, remote_dir: Path, signer: TestKey):
        entries = [publish(remote_dir, "mod.jar", b"mod", signer)]
        write_config(game_dir, modList=write_mod_list(remote_dir, entries), modDir="mods")
        messages: list[str] = []
        host = HostEnvironment({GAME_DIR: game_dir, PROGRESS_MESSAGE: messages.append})

        with RemoteSyncLocator(host) as locator:
            assert locator.name() == "Remote Synced"
            assert locator.scan_candidates() == [game_dir / "mods" / "mod.jar"]
            assert not locator.outcome().incomplete
            assert locator.is_valid(game_dir / "mods" / "mod.jar")
        assert "RemoteSync: fetching mod list" in messages

    def test_explicit_config(self, game_dir: Path, remote_dir: Path, signer: TestKey):
        entries = [publish(remote_dir, "mod.jar", b"mod", signer)]
        config = SyncConfig(mod_list=write_mod_list(remote_dir, entries))
        with RemoteSyncLocator(HostEnvironment({GAME_DIR: game_dir}), config=config) as locator:
            assert locator.scan_candidates() == [game_dir / "synced_mods" / "mod.jar"]

    def test_no_config_means_incomplete(self, game_dir: Path):
        with RemoteSyncLocator(HostEnvironment({GAME_DIR: game_dir})) as locator:
            assert locator.scan_candidates() == []
            assert locator.outcome().manifest_failed

    def test_missing_key_ring(self, tmp_path: Path):
        with pytest.raises(OSError):
            RemoteSyncLocator(HostEnvironment({GAME_DIR: tmp_path}), config=SyncConfig())

    def test_close_rewrites_key_ring_with_retrieved_keys(
        self, game_dir: Path, signer: TestKey, stranger: TestKey,
    ):
        client = MagicMock()
        client.retrieve.return_value = parse_key_rings(key_ring(stranger))
        config = SyncConfig(key_servers=["hkp://keys.example.org"], key_ids=[stranger.key_id_hex])

        locator = RemoteSyncLocator(HostEnvironment({GAME_DIR: game_dir}), config=config, key_client=client)
        assert stranger.key_id in locator.trust_store
        locator.close()

        saved = parse_key_rings((game_dir / "pub_key.asc").read_bytes())
        assert {ring.key_id for ring in saved} == {signer.key_id, stranger.key_id}
