"""
services/auth_service.py
------------------------
Registration, login, token refresh, email verification, password reset
and one-time-password login.
"""

import secrets
from datetime import timedelta
from typing import Optional

from fastapi import BackgroundTasks
from pymongo.errors import PyMongoError

from finance_tracker import config, emails
from finance_tracker.database import create_document, get_db, parse_object_id, update_document, utcnow
from finance_tracker.errors import ApiError, bad_request, conflict, not_found, too_many_requests, unauthorized
from finance_tracker.logger import get_logger
from finance_tracker.payloads import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    VerifyOtpRequest,
)
from finance_tracker.schemas import ExpiringToken, Profile, Settings, User
from finance_tracker.security import (
    create_access_token,
    create_purpose_token,
    decode_token,
    ensure_active,
    get_password_hash,
    get_user_by_email,
    get_user_by_id,
    verify_password,
)
from finance_tracker.services import category_service

logger = get_logger(__name__)

COLLECTION = "user"
FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def _first_name(user: dict) -> str:
    return (user.get("profile") or {}).get("first_name", "")


def _seed_categories(user_id: str) -> None:
    try:
        category_service.create_default_categories(user_id)
    except (ApiError, PyMongoError) as e:
        logger.error(f"Default categories for user {user_id} failed: {e}")


def _issue_session(user: dict) -> tuple[dict, str]:
    token = create_access_token(user)
    user = update_document(COLLECTION, {"_id": user["_id"]}, {"last_login_at": utcnow()})
    return user, token


# ----------------------
# Registration & login
# ----------------------

def register(payload: RegisterRequest, background: BackgroundTasks) -> dict:
    if get_db()[COLLECTION].find_one({"email": payload.email}):
        raise conflict("USER_ALREADY_EXISTS", "An account with this email already exists")

    user = User(
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        profile=Profile(**payload.profile.model_dump()),
        settings=Settings(**payload.settings.model_dump()) if payload.settings else Settings(),
    )
    user_id = create_document(COLLECTION, user)
    doc = get_user_by_id(user_id)

    token = create_purpose_token(doc, "email_verification", timedelta(hours=config.EMAIL_VERIFICATION_HOURS))
    expires = utcnow() + timedelta(hours=config.EMAIL_VERIFICATION_HOURS)
    doc = update_document(COLLECTION, {"_id": doc["_id"]},
                          {"auth.email_verification": ExpiringToken(token=token, expires=expires).model_dump()})

    background.add_task(emails.send_in_background, emails.verification_email(doc["email"], _first_name(doc), token))
    background.add_task(_seed_categories, user_id)
    logger.info(f"User {user_id} registered, awaiting email verification")
    return doc


def login(payload: LoginRequest) -> tuple[dict, str]:
    user = get_user_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.get("password_hash", "")):
        raise unauthorized("INVALID_CREDENTIALS", "Invalid email or password")
    ensure_active(user)
    user, token = _issue_session(user)
    logger.info(f"User {user['_id']} logged in")
    return user, token


def refresh(token: str) -> tuple[dict, str]:
    payload = decode_token(token, leeway=timedelta(minutes=config.JWT_REFRESH_GRACE_MINUTES))
    user = get_user_by_id(payload["sub"])
    if user is None:
        raise unauthorized("USER_NOT_FOUND", "User not found")
    ensure_active(user)
    return user, create_access_token(user)


# ----------------------
# Email verification & password reset
# ----------------------

def _stored_token_user(token: str, purpose: str, field: str, invalid_code: str) -> dict:
    try:
        payload = decode_token(token, purpose=purpose)
    except ApiError as e:
        if e.code == "TOKEN_EXPIRED":
            raise bad_request("TOKEN_EXPIRED", "Token has expired")
        raise bad_request(invalid_code, "Invalid or expired token")

    user = get_db()[COLLECTION].find_one({"_id": parse_object_id(payload["sub"])})
    stored = ((user or {}).get("auth") or {}).get(field) or {}
    if user is None or stored.get("token") != token:
        raise bad_request(invalid_code, "Invalid or expired token")
    if stored.get("expires") is None or stored["expires"] < utcnow():
        raise bad_request("TOKEN_EXPIRED", "Token has expired")
    return user


def verify_email(payload: VerifyEmailRequest, background: BackgroundTasks) -> dict:
    user = _stored_token_user(payload.token, "email_verification", "email_verification",
                              "INVALID_VERIFICATION_TOKEN")
    changes = {"email_verified": True, "auth.email_verification": ExpiringToken().model_dump()}
    if user.get("status") == "pending_verification":
        changes["status"] = "active"
    user = update_document(COLLECTION, {"_id": user["_id"]}, changes)
    background.add_task(emails.send_in_background, emails.welcome_email(user["email"], _first_name(user)))
    logger.info(f"User {user['_id']} verified their email")
    return user


def forgot_password(payload: ForgotPasswordRequest) -> str:
    """Start a password reset; the reply never reveals whether the email exists."""
    user = get_user_by_email(payload.email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return FORGOT_PASSWORD_MESSAGE

    token = create_purpose_token(user, "password_reset", timedelta(hours=config.PASSWORD_RESET_HOURS))
    expires = utcnow() + timedelta(hours=config.PASSWORD_RESET_HOURS)
    update_document(COLLECTION, {"_id": user["_id"]},
                    {"auth.password_reset": ExpiringToken(token=token, expires=expires).model_dump()})
    emails.send_in_background(emails.password_reset_email(user["email"], _first_name(user), token))
    return FORGOT_PASSWORD_MESSAGE


def reset_password(payload: ResetPasswordRequest) -> None:
    user = _stored_token_user(payload.token, "password_reset", "password_reset", "INVALID_RESET_TOKEN")
    update_document(COLLECTION, {"_id": user["_id"]}, {
        "password_hash": get_password_hash(payload.password),
        "auth.password_reset": ExpiringToken().model_dump(),
    })
    logger.info(f"Password reset for user {user['_id']}")


# ----------------------
# One-time password login
# ----------------------

def _clear_otp(user: dict) -> None:
    update_document(COLLECTION, {"_id": user["_id"]},
                    {"auth.otp": {"code": None, "expires": None, "attempts": 0}})


def request_otp(email: str) -> None:
    user = get_user_by_email(email)
    if user is None:
        raise not_found("USER_NOT_FOUND", "No account found with this email")
    code = f"{secrets.randbelow(900000) + 100000}"
    expires = utcnow() + timedelta(minutes=config.OTP_EXPIRE_MINUTES)
    update_document(COLLECTION, {"_id": user["_id"]},
                    {"auth.otp": {"code": code, "expires": expires, "attempts": 0}})
    try:
        emails.send_email(emails.otp_email(user["email"], _first_name(user), code))
    except emails.EmailDeliveryError as e:
        logger.error(str(e))
        raise ApiError(503, "EMAIL_DELIVERY_FAILED", "Could not send the OTP email, please try again")
    logger.info(f"OTP issued for user {user['_id']}")


def verify_otp(payload: VerifyOtpRequest) -> tuple[dict, str]:
    user = get_user_by_email(payload.email)
    if user is None:
        raise not_found("USER_NOT_FOUND", "No account found with this email")
    otp: dict = ((user.get("auth") or {}).get("otp")) or {}
    code: Optional[str] = otp.get("code")

    if not code:
        raise bad_request("NO_OTP_REQUEST", "No OTP has been requested for this account")
    if otp.get("expires") is None or otp["expires"] < utcnow():
        _clear_otp(user)
        raise bad_request("OTP_EXPIRED", "OTP has expired, please request a new one")
    if otp.get("attempts", 0) >= config.OTP_MAX_ATTEMPTS:
        _clear_otp(user)
        raise too_many_requests("MAX_OTP_ATTEMPTS", "Too many failed attempts, please request a new OTP")
    if not secrets.compare_digest(code, payload.code):
        get_db()[COLLECTION].update_one({"_id": user["_id"]}, {"$inc": {"auth.otp.attempts": 1}})
        raise bad_request("INVALID_OTP", "Invalid OTP")

    ensure_active(user)
    _clear_otp(user)
    user, token = _issue_session(user)
    logger.info(f"User {user['_id']} logged in with OTP")
    return user, token
