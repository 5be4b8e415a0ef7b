from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import EmailStr
from pymongo.database import Database

import password_reset
from accounts import authenticate, register_user, start_guest_session, update_profile
from database import get_db
from errors import ValidationError
from schemas import CamelModel
from security import get_current_user, public_user, token_for

router = APIRouter(prefix="/api/auth", tags=["auth"])


# Auth models
class RegisterInput(CamelModel):
    name: str
    email: EmailStr
    password: str
    role: str = "customer"


class LoginInput(CamelModel):
    email: EmailStr
    password: str


class GuestInfo(CamelModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class GuestInput(CamelModel):
    guest_info: Optional[GuestInfo] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class ForgotPasswordInput(CamelModel):
    email: Optional[str] = None


class VerifyOtpInput(CamelModel):
    email: Optional[str] = None
    otp: Optional[str] = None


class ResetPasswordInput(CamelModel):
    email: Optional[str] = None
    otp: Optional[str] = None
    new_password: Optional[str] = None


def _session(user: dict) -> dict:
    return {"user": public_user(user), "token": token_for(user)}


@router.post("/register", status_code=201)
def register(payload: RegisterInput, db: Database = Depends(get_db)):
    user = register_user(db, payload.name, payload.email, payload.password, payload.role)
    return _session(user)


@router.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db)):
    return _session(authenticate(db, payload.email, payload.password))


@router.post("/guest", status_code=201)
def create_guest_account(payload: GuestInput, db: Database = Depends(get_db)):
    info = payload.guest_info
    if not info or not info.full_name or not info.email or not info.phone:
        raise ValidationError("Guest information is required")
    return _session(start_guest_session(db, info.full_name, info.email, info.phone))


@router.get("/profile")
def get_profile(current_user: dict = Depends(get_current_user)):
    return {"user": public_user(current_user)}


@router.put("/profile")
def put_profile(payload: ProfileUpdate, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    user = update_profile(db, current_user, payload.model_dump(exclude_unset=True))
    return {"user": public_user(user), "message": "Profile updated successfully"}


# Password reset
@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordInput, db: Database = Depends(get_db)):
    if not payload.email:
        raise ValidationError("Email is required")
    return password_reset.request_reset(db, payload.email)


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpInput, db: Database = Depends(get_db)):
    if not payload.email or not payload.otp:
        raise ValidationError("Email and OTP are required")
    return password_reset.verify(db, payload.email, payload.otp)


@router.post("/reset-password")
def reset_password(payload: ResetPasswordInput, db: Database = Depends(get_db)):
    if not payload.email or not payload.otp or not payload.new_password:
        raise ValidationError("Email, OTP, and new password are required")
    return password_reset.reset_password(db, payload.email, payload.otp, payload.new_password)
