"""Error taxonomy for the local-btrfs volume daemon."""

from typing import List, Optional, Sequence


class LocalBtrfsError(Exception):
    """Base exception for volume and snapshot errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidArgument(LocalBtrfsError, ValueError):
    """A required option is missing or an argument is malformed."""

    pass


class AlreadyExists(LocalBtrfsError):
    """Volume or snapshot name is already taken."""

    pass


class NotFound(LocalBtrfsError):
    """Volume or snapshot does not exist."""

    pass


class ToolFailure(LocalBtrfsError):
    """The btrfs tool exited with a non-zero status."""

    def __init__(self, verb: str, args: Sequence[str], output: str, returncode: Optional[int] = None):
        self.verb = verb
        self.args_list: List[str] = list(args)
        self.output = output
        self.returncode = returncode
        command = " ".join(["subvolume", verb, *self.args_list])
        status = "" if returncode is None else f" (exit {returncode})"
        super().__init__(f"Btrfs call {command} failed{status}:\n{output}")


class RestoreIncomplete(ToolFailure):
    """A restore removed the live subvolume but could not recreate it.

    The volume has no ``current`` subvolume until a restore succeeds.
    """

    def __init__(self, volume: str, snapshot: str, cause: ToolFailure):
        self.volume = volume
        self.snapshot = snapshot
        self.cause = cause
        super().__init__(cause.verb, cause.args_list, cause.output, cause.returncode)
        self.message = (
            f"Restore of snapshot {snapshot!r} left volume {volume!r} without a current subvolume: {cause.message}"
        )
        self.args = (self.message,)


class HostIOError(LocalBtrfsError):
    """A directory under a volume root could not be created or removed."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class PersistenceWarning(LocalBtrfsError):
    """The state file could not be written after an in-memory change.

    Returned by the store rather than raised: the in-memory map stays
    authoritative for the running process.
    """

    pass


class ControlConnectionError(LocalBtrfsError):
    """Failed to connect to the daemon's control socket."""

    pass


class ControlError(LocalBtrfsError):
    """The daemon answered a control call with an error."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
