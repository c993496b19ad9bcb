"""Shared test fixtures for remotesync."""

from __future__ import annotations

from pathlib import Path

import pytest

from pgp_factory import TestKey, key_ring


@pytest.fixture(scope="session")
def signer() -> TestKey:
    """RSA key that signs the published mods."""
    return TestKey.rsa()


@pytest.fixture(scope="session")
def stranger() -> TestKey:
    """RSA key that nobody trusts."""
    return TestKey.rsa()


@pytest.fixture
def game_dir(tmp_path: Path, signer: TestKey) -> Path:
    """Game directory with a key ring holding only the signer's key."""
    home = tmp_path / "game"
    home.mkdir()
    (home / "pub_key.asc").write_bytes(key_ring(signer))
    return home


@pytest.fixture
def remote_dir(tmp_path: Path) -> Path:
    """Directory standing in for the remote host, served via file:// URLs."""
    remote = tmp_path / "remote"
    remote.mkdir()
    return remote

