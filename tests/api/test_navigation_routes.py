"""Integration tests for navigation routes.

These tests verify the behavior of the navigation API endpoints:
- GET /navigation - Current folder, directory info and items
- POST /navigation - Open a folder
- POST /navigation/up, /navigation/root - Move the cursor
- GET/PUT /navigation/view-mode - View mode preference
"""

from api.dependencies import get_preferences
from main import app


def saved_path():
    """Path persisted through the overridden preferences store."""
    return app.dependency_overrides[get_preferences]().load_current_path()


class TestNavigationRoutes:
    """Tests for the navigation cursor endpoints."""

    def test_root_state(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.get("/navigation")

        assert response.status_code == 200
        data = response.json()
        assert data["current_path"] == []
        assert data["directory"]["id"] == "root-directory"
        assert data["directory"]["name"] == "Workspace"
        assert data["directory"]["size"] == 2205
        assert len(data["items"]) == 5

    def test_navigate(self, client_with_workspace):
        client, workspace = client_with_workspace

        response = client.post("/navigation", json={"path": ["folderB", "child"]})

        data = response.json()
        assert data["current_path"] == ["folderB", "child"]
        assert data["directory"]["id"] == "child"
        assert data["directory"]["item_count"] == 1
        assert [item["id"] for item in data["items"]] == ["nested"]
        assert workspace.current_path == ["folderB", "child"]
        assert saved_path() == ["folderB", "child"]

    def test_navigate_to_missing_folder_returns_404(self, client_with_workspace):
        client, workspace = client_with_workspace

        response = client.post("/navigation", json={"path": ["docs", "nope"]})

        assert response.status_code == 404
        assert workspace.current_path == []

    def test_up_and_root(self, client_with_workspace):
        client, _ = client_with_workspace
        client.post("/navigation", json={"path": ["folderB", "child"]})

        response = client.post("/navigation/up")
        assert response.json()["current_path"] == ["folderB"]

        response = client.post("/navigation/root")
        assert response.json()["current_path"] == []
        assert saved_path() == []

    def test_cursor_recovers_after_delete(self, client_with_workspace):
        client, _ = client_with_workspace
        client.post("/navigation", json={"path": ["folderB", "child"]})
        client.post("/tree/delete", json={"item_ids": ["folderB"]})

        response = client.get("/navigation")

        assert response.json()["current_path"] == []


class TestViewModeRoutes:
    """Tests for the view mode preference."""

    def test_default_is_grid(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.get("/navigation/view-mode")

        assert response.json() == {"view_mode": "grid"}

    def test_set_view_mode(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.put("/navigation/view-mode", json={"view_mode": "list"})

        assert response.json() == {"view_mode": "list"}
        assert client.get("/navigation/view-mode").json() == {"view_mode": "list"}

    def test_invalid_view_mode_returns_422(self, client_with_workspace):
        client, _ = client_with_workspace

        response = client.put("/navigation/view-mode", json={"view_mode": "tiles"})

        assert response.status_code == 422
