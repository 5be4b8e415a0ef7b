"""User directory operations shared by the auth routes and guest checkout."""

from typing import Optional

import structlog
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, utcnow
from errors import ConflictError, PermissionDenied, ValidationError
from schemas import User as UserSchema
from security import hash_password, verify_password

logger = structlog.get_logger(__name__)

SELF_REGISTER_ROLES = ("customer", "seller")
PROFILE_FIELDS = ("name", "address", "city", "country", "phone")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def register_user(db: Database, name: str, email: str, password: str, role: str = "customer") -> dict:
    email = normalize_email(email)
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError("Invalid role")
    if len(password or "") < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")
    if db["user"].find_one({"email": email}):
        raise ConflictError("User already exists")

    user = UserSchema(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        # sellers wait for an admin
        is_approved=role != "seller",
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    logger.info("user_registered", user_id=user_id, role=role)
    return db["user"].find_one({"email": email})


def authenticate(db: Database, email: str, password: str) -> dict:
    user = db["user"].find_one({"email": normalize_email(email)})
    if not user or not verify_password(password, user.get("password_hash")):
        raise ValidationError("Invalid credentials")
    if user.get("is_banned"):
        raise PermissionDenied("Account is banned")
    return user


def find_or_create_guest_user(db: Database, full_name: str, email: str, phone: str) -> dict:
    """Return the account for ``email``, creating a passwordless customer if needed.

    An existing account keeps its name and phone; they are only filled in
    when empty. Role, password and approval are never touched.
    """
    email = normalize_email(email)
    user = db["user"].find_one({"email": email})
    if user is None:
        guest = UserSchema(name=full_name.strip(), email=email, phone=phone.strip(), role="customer", is_approved=True)
        try:
            create_document(db, "user", guest)
            logger.info("guest_user_created", email=email)
        except DuplicateKeyError:
            # created concurrently by another checkout
            pass
        return db["user"].find_one({"email": email})

    updates = {}
    if not user.get("name"):
        updates["name"] = full_name.strip()
    if not user.get("phone"):
        updates["phone"] = phone.strip()
    if updates:
        updates["updated_at"] = utcnow()
        db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
        user.update(updates)
    return user


def start_guest_session(db: Database, full_name: str, email: str, phone: str) -> dict:
    """Guest sessions are only handed out for passwordless customer accounts."""
    user = find_or_create_guest_user(db, full_name, email, phone)
    if user.get("password_hash") or user.get("role") != "customer":
        logger.info("guest_session_refused", user_id=str(user["_id"]))
        raise ValidationError("An account with this email already exists, please log in")
    if user.get("is_banned"):
        raise PermissionDenied("Account is banned")
    return user


def update_profile(db: Database, user: dict, changes: dict) -> dict:
    updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS and v is not None}
    if not updates:
        raise ValidationError("No fields to update")
    updates["updated_at"] = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
    return db["user"].find_one({"_id": user["_id"]})
