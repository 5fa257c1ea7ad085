from fastapi import APIRouter, BackgroundTasks, Depends, status

from finance_tracker.payloads import (
    AuthResult,
    Envelope,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    RequestOtpRequest,
    ResetPasswordRequest,
    UserData,
    UserOut,
    VerifyEmailRequest,
    VerifyOtpRequest,
)
from finance_tracker.security import require_token
from finance_tracker.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _session(user: dict, token: str) -> AuthResult:
    return AuthResult(user=UserOut.from_doc(user), token=token)


# ----------------------
# Auth Endpoints
# ----------------------
@router.post("/register", response_model=Envelope[UserData], status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, background: BackgroundTasks):
    user = auth_service.register(payload, background)
    return Envelope(
        data=UserData(user=UserOut.from_doc(user)),
        message="Registration successful. Please check your email to verify your account.",
    )


@router.post("/login", response_model=Envelope[AuthResult])
def login(payload: LoginRequest):
    user, token = auth_service.login(payload)
    return Envelope(data=_session(user, token), message="Login successful")


@router.post("/refresh", response_model=Envelope[AuthResult])
def refresh(token: str = Depends(require_token)):
    user, new_token = auth_service.refresh(token)
    return Envelope(data=_session(user, new_token), message="Token refreshed")


@router.post("/verify-email", response_model=Envelope[UserData])
def verify_email(payload: VerifyEmailRequest, background: BackgroundTasks):
    user = auth_service.verify_email(payload, background)
    return Envelope(data=UserData(user=UserOut.from_doc(user)), message="Email verified successfully")


@router.post("/forgot-password", response_model=Envelope)
def forgot_password(payload: ForgotPasswordRequest):
    return Envelope(message=auth_service.forgot_password(payload))


@router.post("/reset-password", response_model=Envelope)
def reset_password(payload: ResetPasswordRequest):
    auth_service.reset_password(payload)
    return Envelope(message="Password has been reset successfully")


@router.post("/request-otp", response_model=Envelope)
def request_otp(payload: RequestOtpRequest):
    auth_service.request_otp(payload.email)
    return Envelope(message="OTP sent to your email")


@router.post("/verify-otp", response_model=Envelope[AuthResult])
def verify_otp(payload: VerifyOtpRequest):
    user, token = auth_service.verify_otp(payload)
    return Envelope(data=_session(user, token), message="Login successful")
