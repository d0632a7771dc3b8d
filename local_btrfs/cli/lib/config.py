"""
Configuration loader for local-btrfs.

Keeps host-specific paths (state directory, socket locations, btrfs binary)
out of the code.
"""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("/etc/local-btrfs/local-btrfs.conf")

DEFAULT_STATE_DIR = "/var/lib/docker/plugin-data"
DEFAULT_STATE_FILE = "local-btrfs.json"
DEFAULT_PLUGIN_SOCKET = "/run/docker/plugins/local-btrfs.sock"
DEFAULT_CONTROL_SOCKET = "/var/run/local-btrfs.sock"

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


@dataclass(frozen=True)
class LocalBtrfsConfig:
    state_dir: Path = Path(DEFAULT_STATE_DIR)
    state_file: str = DEFAULT_STATE_FILE
    plugin_socket: str = DEFAULT_PLUGIN_SOCKET
    control_socket: str = DEFAULT_CONTROL_SOCKET
    btrfs_bin: str = "btrfs"
    log_level: str = "info"

    @property
    def state_path(self) -> Path:
        return self.state_dir / self.state_file

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)


def _config_path() -> Path:
    env = os.environ.get("LOCAL_BTRFS_CONFIG_PATH")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def _read_ini(path: Path) -> configparser.ConfigParser:
    parser = configparser.ConfigParser()
    if path.exists():
        parser.read(path, encoding="utf-8")
    return parser


def load_config() -> LocalBtrfsConfig:
    """
    Load config from `LOCAL_BTRFS_CONFIG_PATH` or `/etc/local-btrfs/local-btrfs.conf`.

    `LOCAL_BTRFS_STATE_DIR` and `LOCAL_BTRFS_CONTROL_SOCKET` override the file.
    Missing files are not an error; defaults are returned.
    """
    parser = _read_ini(_config_path())
    section = parser["daemon"] if parser.has_section("daemon") else {}

    def _get(key: str, default: str) -> str:
        if isinstance(section, dict):
            value = str(section.get(key, default)).strip()
        else:
            value = str(section.get(key, fallback=default)).strip()
        return value or default

    log_level = _get("log_level", "info").lower()
    if log_level not in _LOG_LEVELS:
        log_level = "info"

    state_dir = os.environ.get("LOCAL_BTRFS_STATE_DIR") or _get("state_dir", DEFAULT_STATE_DIR)
    control_socket = os.environ.get("LOCAL_BTRFS_CONTROL_SOCKET") or _get("control_socket", DEFAULT_CONTROL_SOCKET)

    state_file = _get("state_file", DEFAULT_STATE_FILE)
    if os.sep in state_file:
        state_file = DEFAULT_STATE_FILE

    return LocalBtrfsConfig(
        state_dir=Path(state_dir),
        state_file=state_file,
        plugin_socket=_get("plugin_socket", DEFAULT_PLUGIN_SOCKET),
        control_socket=control_socket,
        btrfs_bin=_get("btrfs_bin", "btrfs"),
        log_level=log_level,
    )
