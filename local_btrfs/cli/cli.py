#!/usr/bin/env python3
"""
Main CLI entry point using Typer.
"""

import logging
import os
import sys

import typer

from local_btrfs.api import client as control_client
from local_btrfs.cli.commands import snap
from local_btrfs.cli.lib.config import load_config

app = typer.Typer(
    name="local-btrfs",
    help="Btrfs-backed local volume plugin and snapshot tool",
    add_completion=False,
)

app.add_typer(snap.app, name="snap", help="Snapshot management commands")


@app.command()
def daemon():
    """
    Run the volume plugin daemon.

    Serves the volume plugin API and the control API until interrupted.
    """
    # Imported here so client commands do not pull in the server stack
    from local_btrfs.api.server import run_daemon

    cfg = load_config()
    logging.basicConfig(
        level=cfg.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run_daemon(cfg)
    except OSError as e:
        typer.echo(f"Error starting daemon: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def add(
    volume: str = typer.Argument(..., help="Volume name"),
    path: str = typer.Argument(..., help="Host directory holding the volume data"),
):
    """
    Create a volume rooted at PATH.
    """
    try:
        with control_client.get_client() as client:
            client.create_volume(volume, os.path.abspath(path))
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def rm(
    volume: str = typer.Argument(..., help="Volume name"),
    purge: bool = typer.Option(False, "--purge", "-p", help="Also delete the volume data and snapshots"),
):
    """
    Remove a volume.

    Without --purge the data stays on disk.
    """
    try:
        with control_client.get_client() as client:
            client.remove_volume(volume, purge)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def path():
    """
    Print the path of a volume (not implemented).
    """
    typer.echo("Error: path is not implemented", err=True)
    raise typer.Exit(1)


def main() -> int:
    """Main entry point."""
    try:
        app()
        return 0
    except KeyboardInterrupt:
        typer.echo("\nOperation cancelled by user", err=True)
        return 130
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
