"""
local-btrfs - Btrfs-backed local volume plugin.

This package provides a daemon serving a container volume plugin API and a
control API, plus a CLI for managing volumes and their snapshots.
"""

__version__ = "0.1.0"
__all__ = ["api", "cli"]
