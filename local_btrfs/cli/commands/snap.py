"""
Snapshot management commands.
"""

import typer

from local_btrfs.api import client as control_client

app = typer.Typer(help="Snapshot management commands")


@app.command()
def add(
    volume: str = typer.Argument(..., help="Volume name"),
    name: str = typer.Argument(..., help="Snapshot name"),
):
    """
    Take a read-only snapshot of a volume.
    """
    try:
        with control_client.get_client() as client:
            client.create_snapshot(volume, name)
    except Exception as e:
        typer.echo(f"Error creating snapshot: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def ls(
    volume: str = typer.Argument(..., help="Volume name"),
):
    """
    List snapshots of a volume, one per line.
    """
    try:
        with control_client.get_client() as client:
            names = client.list_snapshots(volume)
        for name in names:
            typer.echo(name)
    except Exception as e:
        typer.echo(f"Error listing snapshots: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def rm(
    volume: str = typer.Argument(..., help="Volume name"),
    name: str = typer.Argument(..., help="Snapshot name"),
):
    """
    Delete a snapshot.
    """
    try:
        with control_client.get_client() as client:
            client.remove_snapshot(volume, name)
    except Exception as e:
        typer.echo(f"Error removing snapshot: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def restore(
    volume: str = typer.Argument(..., help="Volume name"),
    name: str = typer.Argument(..., help="Snapshot name"),
):
    """
    Replace the volume's current data with a snapshot.

    The current data is deleted first; take a snapshot beforehand to keep it.
    """
    try:
        with control_client.get_client() as client:
            client.restore_snapshot(volume, name)
    except Exception as e:
        typer.echo(f"Error restoring snapshot: {e}", err=True)
        raise typer.Exit(1)
