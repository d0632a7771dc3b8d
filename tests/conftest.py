"""
Pytest configuration and fixtures.
"""

import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from local_btrfs.api.services.snapshot_service import SnapshotEngine
from local_btrfs.api.services.volume_service import VolumeManager
from local_btrfs.cli.lib.state import VolumeStateStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing."""
    with patch("subprocess.run") as mock:
        yield mock


def _fake_btrfs_run(cmd, **kwargs):
    """Emulate `btrfs subvolume ...` with plain directories."""
    verb, args = cmd[2], list(cmd[3:])
    if verb == "create":
        os.mkdir(args[0])
    elif verb == "snapshot":
        if args[0] == "-r":
            args = args[1:]
        shutil.copytree(args[0], args[1], symlinks=True)
    elif verb == "delete":
        shutil.rmtree(args[0])
    else:
        return MagicMock(returncode=1, stdout=f"ERROR: unknown verb {verb}")
    return MagicMock(returncode=0, stdout="")


@pytest.fixture
def fake_btrfs():
    """Patch subprocess.run with a directory-backed btrfs stand-in.

    The emulation stays available as ``fake_btrfs.side_effect``.
    """
    with patch("local_btrfs.cli.lib.btrfs.subprocess.run", side_effect=_fake_btrfs_run) as mock:
        yield mock


@pytest.fixture
def data_dir(temp_dir):
    path = temp_dir / "data"
    path.mkdir()
    return path


@pytest.fixture
def state_path(temp_dir):
    return temp_dir / "state" / "local-btrfs.json"


@pytest.fixture
def store(state_path):
    store = VolumeStateStore(state_path)
    store.load()
    return store


@pytest.fixture
def manager(store, fake_btrfs):
    return VolumeManager(store)


@pytest.fixture
def snapshots(store, fake_btrfs):
    return SnapshotEngine(store)
