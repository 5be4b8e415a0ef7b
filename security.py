from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import get_db, serialize_doc
from errors import AuthenticationError, PermissionDenied
from logging_config import add_context

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    # Guest accounts have no password to compare against
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def token_for(user: dict) -> str:
    return create_access_token({"sub": str(user["_id"]), "role": user.get("role", "customer")})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def public_user(user: dict) -> dict:
    """Serialize a user document without its password hash."""
    user = dict(user)
    user.pop("password_hash", None)
    return serialize_doc(user)


# Dependency to get current user

def get_current_user(authorization: Optional[str] = Header(default=None), db: Database = Depends(get_db)) -> dict:
    """Resolve the bearer token to the stored user document.

    The returned dict is the raw document (``_id`` intact) so services can use
    it directly in queries.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Not authenticated")
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        raise AuthenticationError("Invalid token")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise AuthenticationError("User not found")
    if user.get("is_banned"):
        raise PermissionDenied("Account is banned")
    add_context(user_id=user_id, role=user.get("role"))
    return user


def require_role(*roles: str):
    def checker(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") not in roles:
            raise PermissionDenied("Insufficient permissions")
        return current_user

    return checker
