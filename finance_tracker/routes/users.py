from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from finance_tracker.payloads import (
    ChangePasswordRequest,
    Envelope,
    ProfileUpdate,
    SettingsUpdate,
    UserData,
    UserOut,
)
from finance_tracker.security import get_current_user
from finance_tracker.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


def _user_envelope(user: dict, message: Optional[str] = None) -> Envelope[UserData]:
    return Envelope(data=UserData(user=UserOut.from_doc(user)), message=message)


@router.get("/me", response_model=Envelope[UserData])
def me(current_user: dict = Depends(get_current_user)):
    return _user_envelope(current_user)


@router.patch("/me/profile", response_model=Envelope[UserData])
def update_profile(payload: ProfileUpdate, current_user: dict = Depends(get_current_user)):
    return _user_envelope(user_service.update_profile(current_user, payload), "Profile updated")


@router.patch("/me/settings", response_model=Envelope[UserData])
def update_settings(payload: SettingsUpdate, current_user: dict = Depends(get_current_user)):
    return _user_envelope(user_service.update_settings(current_user, payload), "Settings updated")


@router.post("/me/change-password", response_model=Envelope)
def change_password(payload: ChangePasswordRequest, current_user: dict = Depends(get_current_user)):
    user_service.change_password(current_user, payload)
    return Envelope(message="Password changed successfully")


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(current_user: dict = Depends(get_current_user)):
    user_service.soft_delete(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
