"""
security.py
-----------
Password hashing, JWT issuance/verification and the current-user dependency.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext

from finance_tracker import config
from finance_tracker.database import get_db
from finance_tracker.errors import forbidden, unauthorized

# ----------------------
# Passwords
# ----------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
bearer_scheme = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# ----------------------
# Tokens
# ----------------------

def _encode(claims: dict, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({
        "iat": now,
        "exp": now + lifetime,
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
    })
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_access_token(user: dict, expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=config.JWT_EXPIRE_MINUTES)
    return _encode({"sub": str(user["_id"]), "email": user["email"], "type": "access"}, lifetime)


def create_purpose_token(user: dict, purpose: str, lifetime: timedelta) -> str:
    """Single-purpose token such as ``email_verification`` or ``password_reset``."""
    return _encode({"sub": str(user["_id"]), "email": user["email"], "type": purpose}, lifetime)


def decode_token(token: str, purpose: str = "access", leeway: timedelta = timedelta(0)) -> dict:
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            audience=config.JWT_AUDIENCE,
            issuer=config.JWT_ISSUER,
            leeway=leeway,
        )
    except ExpiredSignatureError:
        raise unauthorized("TOKEN_EXPIRED", "Token has expired")
    except InvalidTokenError:
        raise unauthorized("TOKEN_VERIFICATION_ERROR", "Invalid token")
    if payload.get("type", "access") != purpose or not payload.get("sub"):
        raise unauthorized("TOKEN_VERIFICATION_ERROR", "Invalid token")
    return payload


# ----------------------
# Users
# ----------------------

def get_user_by_email(email: str) -> Optional[dict]:
    """Find a user by email, ignoring soft-deleted accounts."""
    return get_db()["user"].find_one({"email": email.lower(), "status": {"$ne": "deleted"}})


def get_user_by_id(user_id: str) -> Optional[dict]:
    try:
        return get_db()["user"].find_one({"_id": ObjectId(user_id)})
    except (InvalidId, TypeError):
        return None


def ensure_active(user: dict) -> None:
    """Raise the status-specific error for users that may not sign in."""
    status_value = user.get("status")
    if status_value == "active":
        return
    if status_value == "suspended":
        raise forbidden("ACCOUNT_STATUS_ERROR", "Account is suspended")
    if status_value == "deleted":
        raise unauthorized("ACCOUNT_STATUS_ERROR", "Account has been deleted")
    raise unauthorized("ACCOUNT_STATUS_ERROR", "Please verify your email address before signing in")


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials], request: Request) -> str:
    if credentials is None:
        if request.headers.get("authorization"):
            raise unauthorized("INVALID_AUTH_HEADER", "Authorization header must be 'Bearer <token>'")
        raise unauthorized("MISSING_AUTH_HEADER", "Authorization header is required")
    return credentials.credentials


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    token = bearer_token(credentials, request)
    payload = decode_token(token)
    user = get_user_by_id(payload["sub"])
    if user is None:
        raise unauthorized("USER_NOT_FOUND", "User not found")
    ensure_active(user)
    request.state.user_id = str(user["_id"])
    return user


def require_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Raw bearer token, used by the refresh endpoint."""
    return bearer_token(credentials, request)
