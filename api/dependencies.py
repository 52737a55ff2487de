"""Dependency injection providers for the FastAPI application.

This module defines dependencies that can be injected into route handlers,
providing access to shared resources like the Workspace.
"""

import logging
from typing import Annotated

from fastapi import Depends

from engine.config import WorkspaceConfig
from engine.favorites import FavoritesStore
from engine.preferences import PreferencesStore
from engine.storage import InMemoryStorage, JsonFileStorage, KeyValueStorage
from engine.workspace import Workspace

logger = logging.getLogger(__name__)


# Global state
# One workspace session per process, created when the app starts
_workspace: Workspace | None = None
_preferences: PreferencesStore | None = None
_favorites: FavoritesStore | None = None


def get_workspace() -> Workspace:
    """Get the shared Workspace instance.

    Returns:
        The shared Workspace instance.

    Raises:
        RuntimeError: If the workspace hasn't been initialized yet.

    Example:
        @router.get("/some-endpoint")
        async def my_handler(workspace: WorkspaceDep):
            return {"path": workspace.current_path}
    """
    if _workspace is None:
        raise RuntimeError("Workspace not initialized. Call initialize_workspace() first.")
    return _workspace


def get_preferences() -> PreferencesStore:
    if _preferences is None:
        raise RuntimeError("Preferences not initialized. Call initialize_workspace() first.")
    return _preferences


def get_favorites() -> FavoritesStore:
    if _favorites is None:
        raise RuntimeError("Favorites not initialized. Call initialize_workspace() first.")
    return _favorites


def _create_storage(config: WorkspaceConfig) -> KeyValueStorage:
    if config.storage_path:
        logger.info(f"Persisting preferences to {config.storage_path}")
        return JsonFileStorage(config.storage_path)
    return InMemoryStorage()


def initialize_workspace(config: WorkspaceConfig | None = None) -> Workspace:
    """Initialize the shared Workspace, preferences and favorites.

    This should be called once when the FastAPI app starts up. The navigation
    path saved by the previous session is restored as far as it still exists.

    Args:
        config: Engine settings (default: read from the environment).

    Returns:
        The newly created Workspace instance.
    """
    global _workspace, _preferences, _favorites

    config = config or WorkspaceConfig.from_env()
    storage = _create_storage(config)
    _preferences = PreferencesStore(storage)
    _favorites = FavoritesStore(storage)
    _workspace = Workspace(config=config)
    _workspace.restore_path(_preferences.load_current_path())
    return _workspace


def shutdown_workspace() -> None:
    """Shut down the Workspace gracefully.

    Cancels pending sync timers and drops the shared instances.
    """
    global _workspace, _preferences, _favorites

    if _workspace is not None:
        if _preferences is not None:
            _preferences.save_current_path(_workspace.current_path)
        _workspace.shutdown()

    _workspace = None
    _preferences = None
    _favorites = None


# Type aliases for dependency injection
WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]
PreferencesDep = Annotated[PreferencesStore, Depends(get_preferences)]
FavoritesDep = Annotated[FavoritesStore, Depends(get_favorites)]
