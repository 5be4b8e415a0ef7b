from typing import Optional

from fastapi import APIRouter, Depends
from pymongo.database import Database

import favorites
from database import get_db, serialize_doc
from schemas import CamelModel
from security import get_current_user

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


class FavoriteIn(CamelModel):
    product_id: Optional[str] = None


@router.get("")
def get_favorites(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return [serialize_doc(p) for p in favorites.list_favorites(db, current_user["_id"])]


@router.post("")
def add_to_favorites(payload: FavoriteIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    favs = favorites.add_favorite(db, current_user["_id"], payload.product_id)
    return {"message": "Product added to favorites", "favorites": favs}


@router.delete("/{product_id}")
def remove_from_favorites(product_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    favs = favorites.remove_favorite(db, current_user["_id"], product_id)
    return {"message": "Product removed from favorites", "favorites": favs}


@router.get("/check/{product_id}")
def check_favorite(product_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"isFavorite": favorites.is_favorite(db, current_user["_id"], product_id)}
