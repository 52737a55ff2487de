"""Integration tests for sync routes.

These tests verify the behavior of the sync API endpoints:
- GET /sync/status - Overview
- POST /sync/trigger - Manual sync
- POST /sync/pause - Toggle pause
- POST /sync/items/{item_id} - Set one item's status
- POST /sync/items/{item_id}/retry - Retry an errored item
"""


class TestSyncRoutes:
    """Tests for the sync endpoints (driven by a manual scheduler)."""

    def test_status_overview(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.get("/sync/status")

        assert response.status_code == 200
        data = response.json()
        assert data["paused"] is False
        assert data["unsynced"] == 0
        assert data["counts"] == {"synced": 10}

    def test_trigger_with_nothing_to_sync(self, client_with_workspace):
        client, workspace = client_with_workspace
        before = workspace.tree

        response = client.post("/sync/trigger")

        assert response.json()["message"] == "Nothing to sync"
        assert response.json()["item_ids"] == []
        assert workspace.tree is before

    def test_trigger_then_settle(self, client_with_workspace, manual_scheduler):
        """Test that triggered items sync and settle when time advances."""
        client, workspace = client_with_workspace
        folder_id = client.post("/tree/folders", json={"name": "new", "path": []}).json()["id"]

        response = client.post("/sync/trigger")

        assert response.json()["item_ids"] == [folder_id]
        assert client.get("/sync/status").json()["in_flight"] == 1
        assert workspace.tree.get(folder_id).sync_status == "syncing"

        manual_scheduler.run_all()

        assert workspace.tree.get(folder_id).sync_status == "synced"

    def test_pause_blocks_trigger(self, client_with_workspace):
        client, _ = client_with_workspace
        client.post("/tree/folders", json={"name": "new", "path": []})

        response = client.post("/sync/pause")
        assert response.json() == {"paused": True, "message": "Sync paused"}

        response = client.post("/sync/trigger")
        assert response.json()["paused"] is True

        response = client.post("/sync/pause")
        assert response.json()["paused"] is False

    def test_update_item_status(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.post("/sync/items/readme", json={"sync_status": "error"})

        assert response.status_code == 200
        assert response.json()["sync_status"] == "error"

    def test_update_unknown_item_returns_404(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.post("/sync/items/ghost", json={"sync_status": "synced"})

        assert response.status_code == 404

    def test_update_with_unknown_status_returns_422(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.post("/sync/items/readme", json={"sync_status": "done"})

        assert response.status_code == 422

    def test_retry(self, client_with_workspace):
        client, _ = client_with_workspace
        client.post("/sync/items/readme", json={"sync_status": "error"})

        response = client.post("/sync/items/readme/retry")

        data = response.json()
        assert data["retried"] is True
        assert data["item"]["sync_status"] == "pending"

    def test_retry_item_not_in_error(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.post("/sync/items/readme/retry")

        assert response.json()["retried"] is False
