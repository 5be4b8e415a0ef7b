import structlog
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import CamelModel
from security import public_user, require_role

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class BanInput(CamelModel):
    is_banned: bool = True


def _set_user_fields(db: Database, user_id: str, fields: dict) -> dict:
    fields["updated_at"] = utcnow()
    user = db["user"].find_one_and_update(
        {"_id": to_object_id(user_id, "user id")},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/users")
def list_users(current_user: dict = Depends(require_role("admin")), db: Database = Depends(get_db)):
    return [public_user(u) for u in db["user"].find().sort("created_at", -1)]


@router.put("/users/{user_id}/approve")
def approve_user(user_id: str, current_user: dict = Depends(require_role("admin")), db: Database = Depends(get_db)):
    user = _set_user_fields(db, user_id, {"is_approved": True})
    logger.info("user_approved", user_id=user_id)
    return {"user": public_user(user), "message": "User approved"}


@router.put("/users/{user_id}/ban")
def ban_user(user_id: str, payload: BanInput, current_user: dict = Depends(require_role("admin")), db: Database = Depends(get_db)):
    if user_id == str(current_user["_id"]):
        raise ValidationError("You cannot ban yourself")
    user = _set_user_fields(db, user_id, {"is_banned": payload.is_banned})
    logger.info("user_ban_changed", user_id=user_id, is_banned=payload.is_banned)
    return {"user": public_user(user), "message": "User banned" if payload.is_banned else "User unbanned"}
