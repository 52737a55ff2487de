"""Favorite folder bookmarks."""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from engine.item import ItemKind
from engine.storage import KeyValueStorage

logger = logging.getLogger(__name__)

FAVORITES_KEY = "workspace-favorites"


class FavoriteItem(BaseModel):
    """A bookmarked folder.

    Args:
        id: Id of the bookmarked folder.
        name: Folder name when it was bookmarked.
        path: Full path of the folder, including its own name.
    """

    id: str = Field(description="Bookmarked folder id")
    name: str = Field(description="Folder name")
    path: list[str] = Field(description="Full path of the folder")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class FavoritesStore:
    """Bookmark list persisted under a fixed storage key.

    Only folders can be bookmarked. Adding an id that is already present is
    ignored. Unreadable stored data reads as an empty list.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def load(self) -> list[FavoriteItem]:
        raw = self.storage.get(FAVORITES_KEY)
        if raw is None:
            return []
        try:
            return [FavoriteItem.model_validate(entry) for entry in raw]
        except (TypeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable favorites: {e}")
            return []

    def save(self, favorites: list[FavoriteItem]) -> None:
        self.storage.set(FAVORITES_KEY, [favorite.to_dict() for favorite in favorites])

    def add(self, item_id: str, name: str, kind: ItemKind, path: list[str]) -> bool:
        """Bookmark a folder.

        Returns:
            True if the folder was added, False if ignored.
        """
        if kind != ItemKind.FOLDER:
            logger.warning(f"Only folders can be favorites, ignoring '{name}'")
            return False
        favorites = self.load()
        if any(favorite.id == item_id for favorite in favorites):
            logger.debug(f"'{name}' is already a favorite")
            return False
        favorites.append(FavoriteItem(id=item_id, name=name, path=list(path)))
        self.save(favorites)
        logger.info(f"Added '{name}' to favorites")
        return True

    def remove(self, item_id: str) -> bool:
        """Remove a bookmark. Returns False when the id was not bookmarked."""
        favorites = self.load()
        remaining = [favorite for favorite in favorites if favorite.id != item_id]
        if len(remaining) == len(favorites):
            return False
        self.save(remaining)
        logger.info(f"Removed '{item_id}' from favorites")
        return True

    def is_favorite(self, item_id: str) -> bool:
        return any(favorite.id == item_id for favorite in self.load())
