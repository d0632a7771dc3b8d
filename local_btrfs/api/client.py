"""Control channel client used by the local-btrfs CLI."""

from typing import Any, Dict, List, Optional

import httpx

from local_btrfs.cli.lib.config import DEFAULT_CONTROL_SOCKET, load_config
from local_btrfs.exceptions import ControlConnectionError, ControlError


class ControlClient:
    """Client for the daemon's control API over a Unix domain socket.

    All arguments travel as strings; booleans are sent as "true"/"false".
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_CONTROL_SOCKET,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the control client.

        Args:
            socket_path: Path of the daemon's control socket
            timeout: Request timeout in seconds; None waits for the operation to finish
            client: Preconfigured httpx client (used by tests)
        """
        self.socket_path = socket_path
        if client is None:
            client = httpx.Client(
                transport=httpx.HTTPTransport(uds=socket_path),
                base_url="http://local-btrfs",
                timeout=timeout,
            )
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ControlClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def call(self, method: str, *args: str) -> str:
        """Invoke a control method.

        Args:
            method: Method name (e.g. CreateVolume)
            *args: Positional string arguments

        Returns:
            The method's string result

        Raises:
            ControlConnectionError: The daemon could not be reached
            ControlError: The daemon reported an error
        """
        try:
            response = self._client.post("/rpc", json={"method": method, "args": list(args)})
        except httpx.TransportError as e:
            raise ControlConnectionError(f"Could not reach daemon at {self.socket_path}: {e}") from e

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            error = payload.get("error") or {}
            message = error.get("message") or payload.get("detail") or response.text or "Unknown error"
            raise ControlError(str(message), code=error.get("code"), status_code=response.status_code)

        return (payload.get("data") or {}).get("result", "")

    def create_volume(self, volume: str, path: str) -> None:
        self.call("CreateVolume", volume, path)

    def remove_volume(self, volume: str, purge: bool = False) -> None:
        self.call("RemoveVolume", volume, "true" if purge else "false")

    def create_snapshot(self, volume: str, name: str) -> None:
        self.call("CreateSnap", volume, name)

    def list_snapshots(self, volume: str) -> List[str]:
        return self.call("ListSnapshots", volume).splitlines()

    def remove_snapshot(self, volume: str, name: str) -> None:
        self.call("RemoveSnap", volume, name)

    def restore_snapshot(self, volume: str, name: str) -> None:
        self.call("RestoreSnap", volume, name)


def get_client() -> ControlClient:
    """Return a control client for the configured daemon socket."""
    return ControlClient(load_config().control_socket)
