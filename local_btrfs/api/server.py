"""
Daemon entrypoint serving the plugin and control APIs on Unix sockets.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import socket
from typing import Iterator, List, Tuple

import uvicorn
from fastapi import FastAPI

from local_btrfs.api.control import create_control_app
from local_btrfs.api.plugin import create_plugin_app
from local_btrfs.api.services.snapshot_service import SnapshotEngine
from local_btrfs.api.services.volume_service import VolumeManager
from local_btrfs.cli.lib.config import LocalBtrfsConfig
from local_btrfs.cli.lib.state import STATE_DIR_MODE, VolumeStateStore

logger = logging.getLogger(__name__)

SOCKET_MODE = 0o700


class DaemonServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the daemon."""

    def install_signal_handlers(self) -> None:
        return

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def bind_unix_socket(path: str, mode: int = SOCKET_MODE) -> socket.socket:
    """
    Bind a Unix stream socket, replacing a stale socket file.

    Raises:
        OSError: If the socket cannot be bound
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    if os.path.lexists(path):
        os.unlink(path)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chmod(path, mode)
    except OSError:
        sock.close()
        raise
    return sock


def build_apps(cfg: LocalBtrfsConfig) -> Tuple[FastAPI, FastAPI]:
    """
    Load the state store and wire the services into both applications.
    """
    cfg.state_dir.mkdir(mode=STATE_DIR_MODE, parents=True, exist_ok=True)
    store = VolumeStateStore(cfg.state_path)
    count = store.load()
    logger.info("Found %d volumes on startup", count)

    manager = VolumeManager(store, btrfs_bin=cfg.btrfs_bin)
    snapshots = SnapshotEngine(store, btrfs_bin=cfg.btrfs_bin)
    return create_plugin_app(manager), create_control_app(manager, snapshots)


async def _serve(servers: List[Tuple[DaemonServer, socket.socket]]) -> None:
    def _stop() -> None:
        logger.info("Shutting down")
        for server, _ in servers:
            server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _stop)

    tasks = [asyncio.ensure_future(server.serve(sockets=[sock])) for server, sock in servers]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    _stop()
    if pending:
        await asyncio.wait(pending)
    for task in done:
        task.result()


def run_daemon(cfg: LocalBtrfsConfig) -> None:
    """
    Serve the plugin API and the control API until SIGINT/SIGTERM.

    Raises:
        OSError: If a socket cannot be bound
    """
    plugin_app, control_app = build_apps(cfg)

    plugin_sock = bind_unix_socket(cfg.plugin_socket)
    try:
        control_sock = bind_unix_socket(cfg.control_socket)
    except OSError:
        plugin_sock.close()
        raise

    servers = [
        (DaemonServer(uvicorn.Config(plugin_app, log_level=cfg.log_level, lifespan="off")), plugin_sock),
        (DaemonServer(uvicorn.Config(control_app, log_level=cfg.log_level, lifespan="off")), control_sock),
    ]
    logger.info("Serving plugin API on %s and control API on %s", cfg.plugin_socket, cfg.control_socket)

    try:
        asyncio.run(_serve(servers))
    finally:
        for path in (cfg.plugin_socket, cfg.control_socket):
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)
