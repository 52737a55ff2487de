"""View mode and navigation persistence."""

import logging
from enum import Enum

from engine.storage import KeyValueStorage

logger = logging.getLogger(__name__)

VIEW_MODE_KEY = "workspace-view-mode"
CURRENT_PATH_KEY = "workspace-current-path"


class ViewMode(str, Enum):
    GRID = "grid"
    LIST = "list"


class PreferencesStore:
    """Loads and saves the view mode and the last navigation path.

    Missing or malformed values fall back to ``grid`` and the root path.

    Args:
        storage: Backend holding the values.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def load_view_mode(self) -> ViewMode:
        value = self.storage.get(VIEW_MODE_KEY)
        if value is None:
            return ViewMode.GRID
        try:
            return ViewMode(value)
        except ValueError:
            logger.warning(f"Ignoring stored view mode {value!r}")
            return ViewMode.GRID

    def save_view_mode(self, mode: ViewMode) -> None:
        self.storage.set(VIEW_MODE_KEY, ViewMode(mode).value)

    def load_current_path(self) -> list[str]:
        value = self.storage.get(CURRENT_PATH_KEY)
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
            logger.warning(f"Ignoring stored navigation path {value!r}")
            return []
        return value

    def save_current_path(self, path: list[str]) -> None:
        self.storage.set(CURRENT_PATH_KEY, list(path))
