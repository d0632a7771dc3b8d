"""
Volume service layer.

A volume is a name mapped to a mountpoint root holding ``current`` (the live
subvolume handed to containers) and ``snaps/`` (one subvolume per snapshot).
"""

import logging
import os
import shutil
from dataclasses import dataclass
from typing import Dict, List, Optional

from local_btrfs.cli.lib.btrfs import create_subvolume, delete_subvolume, is_subvolume
from local_btrfs.cli.lib.state import VolumeStateStore
from local_btrfs.cli.lib.validators import validate_mountpoint, validate_name
from local_btrfs.exceptions import (
    AlreadyExists,
    HostIOError,
    InvalidArgument,
    NotFound,
    PersistenceWarning,
    ToolFailure,
)

logger = logging.getLogger(__name__)

CURRENT_DIR = "current"
SNAPS_DIR = "snaps"
DIR_MODE = 0o700
SCOPE = "local"


def current_path(root: str) -> str:
    return os.path.join(root, CURRENT_DIR)


def snaps_path(root: str) -> str:
    return os.path.join(root, SNAPS_DIR)


@dataclass(frozen=True)
class Volume:
    name: str
    root: str

    @property
    def mountpoint(self) -> str:
        return current_path(self.root)


class VolumeManager:
    """Create, remove and resolve volumes tracked in a VolumeStateStore."""

    def __init__(self, store: VolumeStateStore, btrfs_bin: str = "btrfs"):
        self.store = store
        self.btrfs_bin = btrfs_bin

    def create(self, name: str, options: Optional[Dict[str, str]] = None) -> Optional[PersistenceWarning]:
        """
        Create a volume.

        Ensures ``root`` and ``root/snaps`` exist, creates ``root/current`` as
        a subvolume unless it is already there, then registers the volume.

        Args:
            name: Volume name
            options: Driver options; ``mountpoint`` is required

        Returns:
            PersistenceWarning if the state file could not be written

        Raises:
            InvalidArgument: Missing mountpoint option or invalid name
            AlreadyExists: Volume name already tracked
            HostIOError: The volume root could not be created
            ToolFailure: Subvolume creation failed
        """
        mountpoint = (options or {}).get("mountpoint", "")
        if not mountpoint:
            logger.info("Create %s: no mountpoint option provided", name)
            raise InvalidArgument("The `mountpoint` option is required")
        validate_name(name, "Volume name")
        validate_mountpoint(mountpoint)

        with self.store.volume_lock(name):
            if self.store.get(name) is not None:
                raise AlreadyExists(f"The volume {name} already exists")

            self.provision(mountpoint)

            def _register(volumes: Dict[str, str]) -> None:
                if volumes.get(name):
                    raise AlreadyExists(f"The volume {name} already exists")
                volumes[name] = mountpoint

            warning = self.store.mutate(_register)

        logger.info("Created volume %s with mountpoint %s", name, mountpoint)
        return warning

    def provision(self, root: str) -> None:
        """
        Ensure the on-disk layout of a volume root exists.

        Safe to repeat: directories are created with exist_ok and ``current``
        is only created when missing.

        Raises:
            HostIOError: root or root/snaps could not be created
            ToolFailure: Subvolume creation failed
        """
        logger.info("Ensuring directory %s exists on host", root)
        for path in (root, snaps_path(root)):
            try:
                os.makedirs(path, mode=DIR_MODE, exist_ok=True)
            except OSError as e:
                logger.error("Could not create directory %s: %s", path, e)
                raise HostIOError(f"Could not create directory {path}: {e}", path) from e

        current = current_path(root)
        if not os.path.lexists(current):
            create_subvolume(current, btrfs_bin=self.btrfs_bin)

    def remove(self, name: str, purge: bool = False) -> Optional[PersistenceWarning]:
        """
        Stop tracking a volume.

        Untracked names are not an error. Without purge the data under the
        mountpoint root is left on disk.

        Args:
            name: Volume name
            purge: Also delete the root, its current subvolume and all snapshots

        Returns:
            PersistenceWarning if the state file could not be written

        Raises:
            ToolFailure: A subvolume could not be deleted during purge
            HostIOError: The root directory could not be removed during purge
        """
        if self.store.get(name) is None:
            logger.info("Remove %s: volume is not tracked", name)
            return None

        with self.store.volume_lock(name):
            root = self.store.get(name)
            if purge and root:
                self._purge(name, root)

            def _unregister(volumes: Dict[str, str]) -> None:
                volumes.pop(name, None)

            warning = self.store.mutate(_unregister)

        logger.info("Removed %s%s", name, " (purged)" if purge else "")
        return warning

    def _purge(self, name: str, root: str) -> None:
        if not os.path.isdir(root):
            logger.info("Purge %s: %s is already gone", name, root)
            return

        snaps = snaps_path(root)
        if os.path.isdir(snaps):
            for entry in sorted(os.listdir(snaps)):
                path = os.path.join(snaps, entry)
                try:
                    delete_subvolume(path, btrfs_bin=self.btrfs_bin)
                except ToolFailure:
                    if is_subvolume(path):
                        raise
                    # plain files and directories go with the root below
                    logger.warning("Purge %s: %s is not a subvolume", name, path)

        current = current_path(root)
        if os.path.lexists(current):
            delete_subvolume(current, btrfs_bin=self.btrfs_bin)

        try:
            shutil.rmtree(root)
        except OSError as e:
            logger.error("Could not remove %s: %s", root, e)
            raise HostIOError(f"Could not remove directory {root}: {e}", root) from e
        logger.info("Purged data of volume %s at %s", name, root)

    def get(self, name: str) -> Volume:
        """
        Raises:
            NotFound: Volume is not tracked
        """
        root = self.store.get(name)
        if root is None:
            raise NotFound(f"No volume found with the name {name}")
        return Volume(name=name, root=root)

    def list(self) -> List[Volume]:
        volumes = [Volume(name=name, root=root) for name, root in self.store.list().items()]
        logger.debug("Found %d volumes", len(volumes))
        return sorted(volumes, key=lambda v: v.name)

    def path(self, name: str) -> str:
        """Return the live subvolume path of a volume."""
        return self.get(name).mountpoint

    def mount(self, name: str) -> str:
        # current is a plain directory on the host; nothing to mount
        mountpoint = self.path(name)
        logger.info("Mounted %s", name)
        return mountpoint

    def unmount(self, name: str) -> str:
        mountpoint = self.path(name)
        logger.info("Unmounted %s", name)
        return mountpoint

    def capabilities(self) -> Dict[str, str]:
        return {"scope": SCOPE}
