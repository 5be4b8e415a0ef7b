from typing import List

import structlog
from bson import ObjectId
from pymongo.database import Database

from database import to_object_id, utcnow
from errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def _load_user(db: Database, user_id) -> dict:
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise NotFoundError("User not found")
    return user


def list_favorites(db: Database, user_id) -> List[dict]:
    """Favorite products of the user, skipping deactivated or deleted ones."""
    user = _load_user(db, user_id)
    ids = [ObjectId(pid) for pid in user.get("favorites", []) if ObjectId.is_valid(pid)]
    if not ids:
        return []
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}
    return [products[i] for i in ids if i in products and products[i].get("is_active", True) is not False]


def add_favorite(db: Database, user_id, product_id: str) -> List[str]:
    if not product_id:
        raise ValidationError("Product ID is required")
    if not db["product"].find_one({"_id": to_object_id(product_id, "product id")}):
        raise NotFoundError("Product not found")
    user = _load_user(db, user_id)
    if product_id in user.get("favorites", []):
        raise ConflictError("Product already in favorites")

    # favorites never holds duplicates
    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"favorites": product_id}, "$set": {"updated_at": utcnow()}})
    logger.info("favorite_added", user_id=str(user["_id"]), product_id=product_id)
    return user.get("favorites", []) + [product_id]


def remove_favorite(db: Database, user_id, product_id: str) -> List[str]:
    if not product_id:
        raise ValidationError("Product ID is required")
    user = _load_user(db, user_id)
    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"favorites": product_id}, "$set": {"updated_at": utcnow()}})
    return [f for f in user.get("favorites", []) if f != product_id]


def is_favorite(db: Database, user_id, product_id: str) -> bool:
    user = _load_user(db, user_id)
    return product_id in user.get("favorites", [])
