"""OTP based password reset.

A reset request never reveals whether the email belongs to an account. Codes
are six digits, live for ``config.OTP_EXPIRATION_MINUTES`` and can be verified
once; a verified code may then be spent on exactly one password change.
"""

import secrets
from datetime import timedelta

import structlog
from pymongo import ReturnDocument
from pymongo.database import Database

import config
import emailer
from accounts import normalize_email
from database import create_document, utcnow
from errors import ServiceError, ValidationError
from schemas import OTP
from security import hash_password

logger = structlog.get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a reset code has been sent."
INVALID_OTP_MESSAGE = "Invalid or expired OTP"


def generate_otp(length: int = config.OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def request_reset(db: Database, email: str) -> dict:
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")

    user = db["user"].find_one({"email": email})
    if not user:
        logger.info("password_reset_unknown_email")
        return {"message": RESET_REQUESTED_MESSAGE}

    # earlier codes, verified or not, stop working
    db["otp"].update_many({"email": email}, {"$set": {"is_used": True, "is_verified": False, "updated_at": utcnow()}})
    code = generate_otp()
    record = OTP(email=email, otp=code, expires_at=utcnow() + timedelta(minutes=config.OTP_EXPIRATION_MINUTES))
    create_document(db, "otp", record)
    try:
        emailer.send_otp_email(email, code, user.get("name") or "User")
    except ServiceError:
        # the response must not differ from the unknown-email case
        logger.exception("password_reset_email_failed", user_id=str(user["_id"]))
        return {"message": RESET_REQUESTED_MESSAGE}
    logger.info("password_reset_requested", user_id=str(user["_id"]))
    return {"message": RESET_REQUESTED_MESSAGE}


def verify(db: Database, email: str, code: str) -> dict:
    email = normalize_email(email)
    now = utcnow()
    record = db["otp"].find_one_and_update(
        {"email": email, "otp": (code or "").strip(), "is_used": False, "expires_at": {"$gt": now}},
        {"$set": {"is_used": True, "is_verified": True, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if not record:
        raise ValidationError(INVALID_OTP_MESSAGE)
    return {"message": "OTP verified successfully", "verified": True}


def reset_password(db: Database, email: str, code: str, new_password: str) -> dict:
    email = normalize_email(email)
    if len(new_password or "") < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")

    now = utcnow()
    record = db["otp"].find_one(
        {
            "email": email,
            "otp": (code or "").strip(),
            "expires_at": {"$gt": now},
            "$or": [{"is_used": False}, {"is_verified": True}],
        }
    )
    if not record:
        raise ValidationError(INVALID_OTP_MESSAGE)

    user = db["user"].find_one_and_update({"email": email}, {"$set": {"password_hash": hash_password(new_password), "updated_at": now}})
    if user is None:
        raise ValidationError(INVALID_OTP_MESSAGE)
    db["otp"].delete_many({"email": email})
    logger.info("password_reset_completed", user_id=str(user["_id"]))
    return {"message": "Password reset successfully"}
