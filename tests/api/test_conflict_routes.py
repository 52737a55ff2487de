"""Integration tests for conflict routes.

These tests verify the behavior of the conflict API endpoints:
- GET /conflicts - Dialog state
- POST /conflicts/resolve - Answer the current (or every) conflict
- POST /conflicts/close - Dismiss the dialog, skipping the rest
"""

import pytest


@pytest.fixture
def client_with_conflicts(client_with_workspace):
    """Client whose workspace waits on two conflicts (copy of fileX and report into /docs)."""
    client, workspace = client_with_workspace
    response = client.post(
        "/tree/copy", json={"item_ids": ["fileX", "report"], "target_path": ["docs"]}
    )
    assert response.json()["status"] == "pending_conflicts"
    return client, workspace


class TestConflictState:
    """Tests for GET /conflicts."""

    def test_idle(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.get("/conflicts")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert data["remaining"] == 0
        assert data["current_conflict"] is None

    def test_presenting(self, client_with_conflicts):
        client, _ = client_with_conflicts

        data = client.get("/conflicts").json()

        assert data["state"] == "presenting"
        assert data["current_index"] == 0
        assert data["remaining"] == 2
        assert data["current_conflict"]["source_item"]["id"] == "fileX"
        assert data["current_conflict"]["operation"] == "copy"


class TestResolveConflicts:
    """Tests for POST /conflicts/resolve and POST /conflicts/close."""

    def test_resolve_one_at_a_time(self, client_with_conflicts):
        """Test that the transfer completes only after the last answer."""
        client, workspace = client_with_conflicts

        response = client.post("/conflicts/resolve", json={"resolution": "skip"})

        assert response.json()["status"] == "pending_conflicts"
        assert "1 conflict(s) remaining" in response.json()["message"]
        assert client.get("/conflicts").json()["current_index"] == 1

        response = client.post("/conflicts/resolve", json={"resolution": "rename"})

        data = response.json()
        assert data["status"] == "completed"
        assert data["result"]["skipped_ids"] == ["fileX"]
        assert workspace.tree.child_named("docs", "report (copy).pdf") is not None

    def test_apply_to_all(self, client_with_conflicts):
        client, workspace = client_with_conflicts

        response = client.post(
            "/conflicts/resolve", json={"resolution": "rename", "apply_to_all": True}
        )

        assert response.json()["status"] == "completed"
        assert len(workspace.tree.child_ids("docs")) == 4

    def test_close_skips_remaining(self, client_with_conflicts):
        client, workspace = client_with_conflicts
        before = workspace.tree

        response = client.post("/conflicts/close")

        data = response.json()
        assert data["status"] == "completed"
        assert data["result"]["skipped_ids"] == ["fileX", "report"]
        assert workspace.tree is before
        assert client.get("/conflicts").json()["state"] == "idle"

    def test_resolve_while_idle_is_ignored(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.post("/conflicts/resolve", json={"resolution": "replace"})

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_unknown_resolution_returns_422(self, client_with_conflicts):
        client, _ = client_with_conflicts

        response = client.post("/conflicts/resolve", json={"resolution": "merge"})

        assert response.status_code == 422

    def test_second_transfer_while_pending_returns_409(self, client_with_conflicts):
        """Test that only one conflict request may be open at a time."""
        client, _ = client_with_conflicts

        response = client.post(
            "/tree/copy", json={"item_ids": ["readme"], "target_path": []}
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "Conflicts Pending"
        assert data["pending_count"] == 2

    def test_replace_via_move(self, client_with_workspace):
        client, workspace = client_with_workspace
        workspace.create_file("fileX.txt", ["archive"], size=1)

        response = client.post(
            "/tree/move", json={"item_ids": ["fileX"], "target_path": ["archive"]}
        )
        assert response.json()["status"] == "pending_conflicts"

        response = client.post("/conflicts/resolve", json={"resolution": "replace"})

        data = response.json()
        assert data["status"] == "completed"
        assert len(data["result"]["replaced_ids"]) == 1
        assert workspace.tree.child_named("archive", "fileX.txt").id == "fileX"
