"""Navigation and view endpoints.

The navigation cursor lives in the Workspace; the view mode and the last
visited path are persisted through the preferences store.
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import PreferencesDep, WorkspaceDep
from engine.item import Item
from engine.preferences import ViewMode
from engine.workspace import DirectoryInfo, Workspace

router = APIRouter(
    prefix="/navigation",
    tags=["navigation"],
)


class NavigationResponse(BaseModel):
    """Response model for the navigation cursor.

    Attributes:
        current_path: Path of the current folder.
        directory: Summary of the current folder.
        items: Children of the current folder.
    """

    current_path: list[str]
    directory: DirectoryInfo
    items: list[Item]


class NavigateRequest(BaseModel):
    path: list[str] = Field(default_factory=list, description="Folder to open")


class ViewModeModel(BaseModel):
    view_mode: ViewMode


def _navigation_response(workspace: Workspace) -> NavigationResponse:
    return NavigationResponse(
        current_path=workspace.current_path,
        directory=workspace.get_current_directory_info(),
        items=workspace.get_current_items(),
    )


@router.get("", response_model=NavigationResponse)
async def get_navigation(workspace: WorkspaceDep):
    """Get the current folder and its contents."""
    return _navigation_response(workspace)


@router.post("", response_model=NavigationResponse)
async def navigate(
    request: NavigateRequest, workspace: WorkspaceDep, preferences: PreferencesDep
):
    """Open a folder. Returns 404 if the path does not resolve."""
    workspace.navigate_to(request.path)
    preferences.save_current_path(workspace.current_path)
    return _navigation_response(workspace)


@router.post("/up", response_model=NavigationResponse)
async def navigate_up(workspace: WorkspaceDep, preferences: PreferencesDep):
    """Open the parent folder (stays at the root)."""
    workspace.navigate_up()
    preferences.save_current_path(workspace.current_path)
    return _navigation_response(workspace)


@router.post("/root", response_model=NavigationResponse)
async def navigate_to_root(workspace: WorkspaceDep, preferences: PreferencesDep):
    workspace.navigate_to_root()
    preferences.save_current_path(workspace.current_path)
    return _navigation_response(workspace)


@router.get("/view-mode", response_model=ViewModeModel)
async def get_view_mode(preferences: PreferencesDep):
    return ViewModeModel(view_mode=preferences.load_view_mode())


@router.put("/view-mode", response_model=ViewModeModel)
async def set_view_mode(request: ViewModeModel, preferences: PreferencesDep):
    """Persist the grid/list view choice."""
    preferences.save_view_mode(request.view_mode)
    return ViewModeModel(view_mode=request.view_mode)
