#!/usr/bin/env python3
"""
Entry point for local-btrfs CLI tool.
"""

import sys

from local_btrfs.cli.cli import main

if __name__ == "__main__":
    sys.exit(main())
