"""
Unit tests for config loader.
"""

import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("LOCAL_BTRFS_STATE_DIR", raising=False)
    monkeypatch.delenv("LOCAL_BTRFS_CONTROL_SOCKET", raising=False)


@pytest.mark.unit
def test_load_config_missing_file(monkeypatch, temp_dir):
    monkeypatch.setenv("LOCAL_BTRFS_CONFIG_PATH", str(temp_dir / "missing.conf"))
    from local_btrfs.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.state_path == Path("/var/lib/docker/plugin-data/local-btrfs.json")
    assert cfg.plugin_socket == "/run/docker/plugins/local-btrfs.sock"
    assert cfg.control_socket == "/var/run/local-btrfs.sock"
    assert cfg.btrfs_bin == "btrfs"
    assert cfg.logging_level == logging.INFO


@pytest.mark.unit
def test_load_config_reads_values(monkeypatch, temp_dir):
    config_path = temp_dir / "local-btrfs.conf"
    config_path.write_text(
        "\n".join(
            [
                "[daemon]",
                "state_dir = /srv/state",
                "state_file = volumes.json",
                "plugin_socket = /tmp/plugin.sock",
                "control_socket = /tmp/control.sock",
                "btrfs_bin = /usr/local/bin/btrfs",
                "log_level = DEBUG",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("LOCAL_BTRFS_CONFIG_PATH", str(config_path))
    from local_btrfs.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.state_path == Path("/srv/state/volumes.json")
    assert cfg.plugin_socket == "/tmp/plugin.sock"
    assert cfg.control_socket == "/tmp/control.sock"
    assert cfg.btrfs_bin == "/usr/local/bin/btrfs"
    assert cfg.log_level == "debug"
    assert cfg.logging_level == logging.DEBUG


@pytest.mark.unit
def test_load_config_env_overrides(monkeypatch, temp_dir):
    config_path = temp_dir / "local-btrfs.conf"
    config_path.write_text("[daemon]\nstate_dir = /srv/state\ncontrol_socket = /tmp/control.sock\n", encoding="utf-8")
    monkeypatch.setenv("LOCAL_BTRFS_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("LOCAL_BTRFS_STATE_DIR", str(temp_dir / "state"))
    monkeypatch.setenv("LOCAL_BTRFS_CONTROL_SOCKET", str(temp_dir / "ctl.sock"))
    from local_btrfs.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.state_dir == temp_dir / "state"
    assert cfg.control_socket == str(temp_dir / "ctl.sock")


@pytest.mark.unit
def test_load_config_malformed_values_fall_back(monkeypatch, temp_dir):
    config_path = temp_dir / "local-btrfs.conf"
    config_path.write_text("[daemon]\nlog_level = chatty\nstate_file = ../escape.json\nbtrfs_bin =\n", encoding="utf-8")
    monkeypatch.setenv("LOCAL_BTRFS_CONFIG_PATH", str(config_path))
    from local_btrfs.cli.lib.config import load_config

    cfg = load_config()
    assert cfg.log_level == "info"
    assert cfg.state_file == "local-btrfs.json"
    assert cfg.btrfs_bin == "btrfs"
