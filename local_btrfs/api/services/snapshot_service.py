"""
Snapshot service layer.

Snapshots live at ``<root>/snaps/<name>`` and are not recorded anywhere
else; the directory listing is the only index.
"""

import logging
import os
from typing import List

from local_btrfs.api.services.volume_service import current_path, snaps_path
from local_btrfs.cli.lib.btrfs import delete_subvolume, snapshot_subvolume
from local_btrfs.cli.lib.state import VolumeStateStore
from local_btrfs.cli.lib.validators import validate_name
from local_btrfs.exceptions import AlreadyExists, NotFound, RestoreIncomplete, ToolFailure

logger = logging.getLogger(__name__)


class SnapshotEngine:
    """
    Create, list, remove and restore snapshots of tracked volumes.

    Operations on the same volume are serialized through the store's
    per-volume lock; the volume map itself is only read.
    """

    def __init__(self, store: VolumeStateStore, btrfs_bin: str = "btrfs"):
        self.store = store
        self.btrfs_bin = btrfs_bin

    def _root(self, volume: str) -> str:
        root = self.store.get(volume)
        if root is None:
            raise NotFound(f"volume {volume} does not exist")
        return root

    def _snapshot_path(self, volume: str, name: str) -> str:
        validate_name(name, "Snapshot name")
        return os.path.join(snaps_path(self._root(volume)), name)

    def _existing_snapshot_path(self, volume: str, name: str) -> str:
        snap = self._snapshot_path(volume, name)
        if not os.path.lexists(snap):
            raise NotFound(f"snapshot {name!r} does not exist for volume {volume!r} ({snap})")
        return snap

    def create(self, volume: str, name: str) -> str:
        """
        Take a read-only snapshot of a volume's current subvolume.

        Returns:
            Path of the new snapshot

        Raises:
            NotFound: Volume is not tracked
            AlreadyExists: Snapshot name is taken
            ToolFailure: btrfs snapshot failed
        """
        self._root(volume)
        with self.store.volume_lock(volume):
            snap = self._snapshot_path(volume, name)
            if os.path.lexists(snap):
                raise AlreadyExists(f"snapshot {name!r} already exists for volume {volume!r} ({snap})")

            source = current_path(self._root(volume))
            logger.info("Creating snapshot of volume %s as %s: %s -> %s", volume, name, source, snap)
            snapshot_subvolume(source, snap, readonly=True, btrfs_bin=self.btrfs_bin)
            return snap

    def list(self, volume: str) -> List[str]:
        """
        Return snapshot names of a volume in lexical order.

        Raises:
            NotFound: Volume is not tracked
        """
        snaps = snaps_path(self._root(volume))
        try:
            names = os.listdir(snaps)
        except FileNotFoundError:
            return []
        return sorted(names)

    def remove(self, volume: str, name: str) -> None:
        """
        Delete a snapshot subvolume.

        Raises:
            NotFound: Volume or snapshot does not exist
            ToolFailure: btrfs delete failed
        """
        self._root(volume)
        with self.store.volume_lock(volume):
            snap = self._existing_snapshot_path(volume, name)
            logger.info("Removing snapshot %s of volume %s in %s", name, volume, snap)
            delete_subvolume(snap, btrfs_bin=self.btrfs_bin)

    def restore(self, volume: str, name: str) -> None:
        """
        Replace a volume's current subvolume with a writable copy of a snapshot.

        The current subvolume is deleted first and then recreated from the
        snapshot. The snapshot itself is kept.

        Raises:
            NotFound: Volume or snapshot does not exist
            ToolFailure: Deleting current failed; the volume is untouched
            RestoreIncomplete: current was deleted but could not be recreated
        """
        self._root(volume)
        with self.store.volume_lock(volume):
            snap = self._existing_snapshot_path(volume, name)
            current = current_path(self._root(volume))
            logger.info("Restoring snapshot %s in volume %s", name, volume)

            if os.path.lexists(current):
                logger.info("Removing current subvolume %s", current)
                delete_subvolume(current, btrfs_bin=self.btrfs_bin)

            logger.info("Creating read-write snapshot %s -> %s", snap, current)
            try:
                snapshot_subvolume(snap, current, btrfs_bin=self.btrfs_bin)
            except ToolFailure as e:
                error = RestoreIncomplete(volume, name, e)
                logger.critical("%s", error.message)
                raise error from e
