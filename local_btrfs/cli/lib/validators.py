"""
Input validation functions.
"""

import os
import re

from local_btrfs.exceptions import InvalidArgument

_TRUE_STRINGS = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_STRINGS = ("0", "f", "F", "FALSE", "false", "False")


def validate_name(name: str, kind: str = "Name") -> None:
    """
    Validate a volume or snapshot name.

    Names end up as path components, so separators and leading dots are rejected.

    Args:
        name: Name to validate
        kind: Label used in error messages

    Raises:
        InvalidArgument: If name is invalid
    """
    if not name:
        raise InvalidArgument(f"{kind} cannot be empty")

    if len(name) > 255:
        raise InvalidArgument(f"{kind} must be at most 255 characters")

    # Allow alphanumeric, dots, underscores, hyphens
    if not re.match(r'^[a-zA-Z0-9][a-zA-Z0-9._-]*$', name):
        raise InvalidArgument(
            f"{kind} must start with alphanumeric and contain only alphanumeric, dots, underscores, or hyphens"
        )


def validate_mountpoint(path: str) -> None:
    """
    Validate a volume mountpoint root.

    Raises:
        InvalidArgument: If the path is not absolute
    """
    if not os.path.isabs(path):
        raise InvalidArgument(f"Mountpoint {path!r} must be an absolute path")


def parse_bool(value: str) -> bool:
    """
    Parse a boolean transported as a string.

    Args:
        value: One of 1, t, T, TRUE, true, True, 0, f, F, FALSE, false, False

    Returns:
        Parsed boolean

    Raises:
        InvalidArgument: If the value is not a recognised boolean string
    """
    if isinstance(value, bool):
        return value
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise InvalidArgument(f"Invalid boolean value: {value!r}")
