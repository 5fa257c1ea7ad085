"""
services/user_service.py
------------------------
Profile, settings, password and account lifecycle for the signed-in user.
"""

from finance_tracker.database import update_document, utcnow
from finance_tracker.errors import bad_request
from finance_tracker.logger import get_logger
from finance_tracker.payloads import ChangePasswordRequest, ProfileUpdate, SettingsUpdate
from finance_tracker.security import get_password_hash, verify_password

logger = get_logger(__name__)

COLLECTION = "user"


def _nested_changes(prefix: str, changes: dict) -> dict:
    return {f"{prefix}.{key}": value for key, value in changes.items()}


def update_profile(user: dict, payload: ProfileUpdate) -> dict:
    changes = _nested_changes("profile", payload.model_dump(exclude_unset=True))
    updated = update_document(COLLECTION, {"_id": user["_id"]}, changes)
    logger.info(f"Profile updated for user {user['_id']}")
    return updated


def update_settings(user: dict, payload: SettingsUpdate) -> dict:
    changes = _nested_changes("settings", payload.model_dump(exclude_unset=True, exclude_none=True))
    updated = update_document(COLLECTION, {"_id": user["_id"]}, changes)
    logger.info(f"Settings updated for user {user['_id']}")
    return updated


def change_password(user: dict, payload: ChangePasswordRequest) -> None:
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise bad_request("INVALID_CURRENT_PASSWORD", "Current password is incorrect")
    update_document(COLLECTION, {"_id": user["_id"]}, {"password_hash": get_password_hash(payload.new_password)})
    logger.info(f"Password changed for user {user['_id']}")


def soft_delete(user: dict) -> None:
    """Mark the account deleted; the email stays reserved."""
    update_document(COLLECTION, {"_id": user["_id"]}, {"status": "deleted", "deleted_at": utcnow()})
    logger.info(f"User {user['_id']} soft-deleted")
