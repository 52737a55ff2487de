"""Favorite folder endpoints."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.dependencies import FavoritesDep, WorkspaceDep
from engine.favorites import FavoriteItem

router = APIRouter(
    prefix="/favorites",
    tags=["favorites"],
)


class AddFavoriteRequest(BaseModel):
    item_id: str


class FavoriteChangeResponse(BaseModel):
    changed: bool
    favorites: list[FavoriteItem]


@router.get("", response_model=list[FavoriteItem])
async def list_favorites(favorites: FavoritesDep):
    return favorites.load()


@router.post("", response_model=FavoriteChangeResponse)
async def add_favorite(
    request: AddFavoriteRequest, workspace: WorkspaceDep, favorites: FavoritesDep
):
    """Bookmark a folder.

    Files and folders that are already bookmarked are ignored
    (``changed`` is false).
    """
    tree = workspace.get_snapshot()
    record = tree.require(request.item_id)
    changed = favorites.add(record.id, record.name, record.kind, tree.full_path(record.id))
    return FavoriteChangeResponse(changed=changed, favorites=favorites.load())


@router.delete("/{item_id}", response_model=FavoriteChangeResponse)
async def remove_favorite(item_id: str, favorites: FavoritesDep):
    """Remove a bookmark. Returns 404 if the id was not bookmarked."""
    if not favorites.remove(item_id):
        raise HTTPException(status_code=404, detail=f"'{item_id}' is not a favorite")
    return FavoriteChangeResponse(changed=True, favorites=favorites.load())
