"""
Integration tests for the control API.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from local_btrfs.api.control import create_control_app


@pytest.fixture
def client(manager, snapshots):
    """Create test client."""
    return TestClient(create_control_app(manager, snapshots))


def rpc(client, method, *args):
    return client.post("/rpc", json={"method": method, "args": list(args)})


@pytest.fixture
def volume_root(client, data_dir):
    root = data_dir / "v1"
    assert rpc(client, "CreateVolume", "v1", str(root)).status_code == 200
    return root


class TestVolumeCalls:
    """Tests for CreateVolume and RemoveVolume."""

    @pytest.mark.integration
    def test_create_volume(self, client, manager, data_dir):
        response = rpc(client, "CreateVolume", "v1", str(data_dir / "v1"))

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["data"] == {"result": ""}
        assert manager.get("v1").root == str(data_dir / "v1")

    @pytest.mark.integration
    def test_create_duplicate(self, client, volume_root):
        response = rpc(client, "CreateVolume", "v1", str(volume_root))

        assert response.status_code == 409
        data = response.json()
        assert data["status"] == "error"
        assert data["error"]["code"] == "ALREADY_EXISTS"

    @pytest.mark.integration
    def test_create_volume_under_regular_file(self, client, data_dir):
        (data_dir / "file").write_text("", encoding="utf-8")
        root = data_dir / "file" / "v1"

        response = rpc(client, "CreateVolume", "v1", str(root))

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "HOST_IO_FAILURE"
        assert "Not a directory" in error["message"]
        assert error["details"] == {"path": str(root)}

    @pytest.mark.integration
    def test_remove_volume_soft(self, client, manager, volume_root):
        response = rpc(client, "RemoveVolume", "v1", "false")

        assert response.status_code == 200
        assert manager.list() == []
        assert (volume_root / "current").is_dir()

    @pytest.mark.integration
    def test_remove_volume_purge(self, client, manager, volume_root):
        rpc(client, "CreateSnap", "v1", "s1")

        response = rpc(client, "RpcApi.RemoveVolume", "v1", "true")

        assert response.status_code == 200
        assert manager.list() == []
        assert not volume_root.exists()

    @pytest.mark.integration
    def test_remove_volume_malformed_boolean(self, client, manager, volume_root):
        response = rpc(client, "RemoveVolume", "v1", "maybe")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"
        assert manager.get("v1")


class TestSnapshotCalls:
    """Tests for snapshot control calls."""

    @pytest.mark.integration
    def test_list_snapshots_empty(self, client, volume_root):
        response = rpc(client, "ListSnapshots", "v1")

        assert response.status_code == 200
        assert response.json()["data"]["result"] == ""

    @pytest.mark.integration
    def test_list_snapshots(self, client, volume_root):
        rpc(client, "CreateSnap", "v1", "snap1")
        rpc(client, "CreateSnap", "v1", "snap2")

        response = rpc(client, "ListSnapshots", "v1")

        assert response.json()["data"]["result"] == "snap1\nsnap2\n"

    @pytest.mark.integration
    def test_create_snapshot_unknown_volume(self, client):
        response = rpc(client, "CreateSnap", "missing", "s1")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.integration
    def test_remove_snapshot(self, client, volume_root):
        rpc(client, "CreateSnap", "v1", "s1")

        response = rpc(client, "RemoveSnap", "v1", "s1")

        assert response.status_code == 200
        assert not (volume_root / "snaps" / "s1").exists()

    @pytest.mark.integration
    def test_restore_snapshot(self, client, volume_root):
        some_file = volume_root / "current" / "someFile"
        some_file.write_text("Some content", encoding="utf-8")
        rpc(client, "CreateSnap", "v1", "snap")
        some_file.unlink()

        response = rpc(client, "RestoreSnap", "v1", "snap")

        assert response.status_code == 200
        assert some_file.read_text(encoding="utf-8") == "Some content"

    @pytest.mark.integration
    def test_tool_failure(self, client, volume_root, fake_btrfs):
        fake_btrfs.side_effect = None
        fake_btrfs.return_value = MagicMock(returncode=1, stdout="ERROR: read-only filesystem")

        response = rpc(client, "CreateSnap", "v1", "s1")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "TOOL_FAILURE"
        assert error["details"]["verb"] == "snapshot"
        assert error["details"]["output"] == "ERROR: read-only filesystem"

    @pytest.mark.integration
    def test_restore_incomplete(self, client, volume_root, fake_btrfs):
        rpc(client, "CreateSnap", "v1", "snap")
        fake_run = fake_btrfs.side_effect

        def _fail_snapshot(cmd, **kwargs):
            if cmd[2] == "snapshot":
                return MagicMock(returncode=1, stdout="ERROR: no space left")
            return fake_run(cmd, **kwargs)

        fake_btrfs.side_effect = _fail_snapshot

        response = rpc(client, "RestoreSnap", "v1", "snap")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "VOLUME_UNUSABLE"
        assert error["details"]["volume"] == "v1"
        assert error["details"]["snapshot"] == "snap"


class TestDecoding:
    """Tests for malformed control calls."""

    @pytest.mark.integration
    def test_unknown_method(self, client):
        response = rpc(client, "Shutdown")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"

    @pytest.mark.integration
    def test_wrong_arity(self, client):
        response = rpc(client, "CreateVolume", "v1")

        assert response.status_code == 400
        assert "expects 2 arguments" in response.json()["error"]["message"]

    @pytest.mark.integration
    def test_non_string_arguments(self, client):
        response = client.post("/rpc", json={"method": "ListSnapshots", "args": [1]})

        assert response.status_code == 400
        data = response.json()
        assert data["status"] == "error"
        assert data["request_id"]
        assert data["error"]["code"] == "INVALID_ARGUMENT"
        assert data["error"]["message"].startswith("Invalid request: args.0:")

    @pytest.mark.integration
    def test_malformed_json_body(self, client):
        response = client.post("/rpc", content="{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"
