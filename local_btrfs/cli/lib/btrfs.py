"""
Btrfs subvolume management functions.

All filesystem-affecting calls go through run_btrfs so they share one
logging and error-wrapping policy.
"""

import logging
import os
import stat
import subprocess

from local_btrfs.exceptions import ToolFailure

logger = logging.getLogger(__name__)

VERBS = ("create", "snapshot", "delete")

# Inode number of every subvolume root directory
SUBVOLUME_ROOT_INODE = 256


def run_btrfs(verb: str, *args: str, btrfs_bin: str = "btrfs") -> str:
    """
    Run ``btrfs subvolume <verb> <args...>``.

    Args:
        verb: Subvolume verb (create, snapshot, delete)
        *args: Verb arguments
        btrfs_bin: btrfs executable

    Returns:
        Combined stdout/stderr output

    Raises:
        ToolFailure: If the command exits non-zero or cannot be started
    """
    if verb not in VERBS:
        raise ValueError(f"Unsupported btrfs subvolume verb: {verb}")

    cmd = [btrfs_bin, "subvolume", verb, *args]
    logger.debug("Running %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False
        )
    except OSError as e:
        logger.error("Could not execute %s: %s", btrfs_bin, e)
        raise ToolFailure(verb, args, str(e)) from e

    output = result.stdout or ""
    if result.returncode != 0:
        logger.error("Btrfs call %s failed with exit %s:\n%s", " ".join(cmd[1:]), result.returncode, output)
        raise ToolFailure(verb, args, output, result.returncode)

    return output


def create_subvolume(path: str, *, btrfs_bin: str = "btrfs") -> None:
    """
    Create an empty subvolume.

    Args:
        path: Subvolume path

    Raises:
        ToolFailure: If creation fails
    """
    run_btrfs("create", path, btrfs_bin=btrfs_bin)


def snapshot_subvolume(source: str, dest: str, readonly: bool = False, *, btrfs_bin: str = "btrfs") -> None:
    """
    Snapshot a subvolume.

    Args:
        source: Source subvolume path
        dest: Snapshot path (must not exist)
        readonly: Create a read-only snapshot

    Raises:
        ToolFailure: If the snapshot fails
    """
    if readonly:
        run_btrfs("snapshot", "-r", source, dest, btrfs_bin=btrfs_bin)
    else:
        run_btrfs("snapshot", source, dest, btrfs_bin=btrfs_bin)


def delete_subvolume(path: str, *, btrfs_bin: str = "btrfs") -> None:
    """
    Delete a subvolume.

    Args:
        path: Subvolume path

    Raises:
        ToolFailure: If deletion fails
    """
    run_btrfs("delete", path, btrfs_bin=btrfs_bin)


def is_subvolume(path: str) -> bool:
    """Return True if path is the root directory of a btrfs subvolume."""
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return False
    return stat.S_ISDIR(st.st_mode) and st.st_ino == SUBVOLUME_ROOT_INODE
