"""
config.py
---------
Central configuration module. Loads environment variables from the
.env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── Runtime ───────────────────────────────────────────────
APP_ENV: str = os.getenv("APP_ENV", "development")
IS_PRODUCTION: bool = APP_ENV == "production"
APP_NAME: str = os.getenv("APP_NAME", "Personal Finance Tracker")
API_VERSION: str = "1.0.0"
SERVICE_NAME: str = "personal-finance-tracker-api"
PORT: int = int(os.getenv("PORT", "4000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
MAX_BODY_BYTES: int = int(os.getenv("MAX_BODY_BYTES", str(1024 * 1024)))

# ── MongoDB ───────────────────────────────────────────────
MONGO_URI: str = os.getenv("MONGO_URI", "" if IS_PRODUCTION else "mongodb://localhost:27017")
DATABASE_NAME: str = os.getenv("DATABASE_NAME", "finance_tracker")

# ── Security ──────────────────────────────────────────────
JWT_SECRET: str = os.getenv("JWT_SECRET", "" if IS_PRODUCTION else "test-secret")
JWT_ALGORITHM: str = "HS256"
JWT_ISSUER: str = "personal-finance-tracker"
JWT_AUDIENCE: str = "pft-users"
JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", "30"))
# expired access tokens may still be exchanged at /auth/refresh within this window
JWT_REFRESH_GRACE_MINUTES: int = int(os.getenv("JWT_REFRESH_GRACE_MINUTES", "1440"))
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

EMAIL_VERIFICATION_HOURS: int = 24
PASSWORD_RESET_HOURS: int = 1
OTP_EXPIRE_MINUTES: int = 10
OTP_MAX_ATTEMPTS: int = 5
DAILY_TRANSACTION_LIMIT: int = 100

# ── CORS ──────────────────────────────────────────────────
_raw_origins = os.getenv("CORS_ORIGIN", "http://localhost:3000,http://localhost:5173")
CORS_ORIGINS: list[str] = [o.strip() for o in _raw_origins.split(",") if o.strip()]

# ── Email ─────────────────────────────────────────────────
SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "2525"))
SMTP_USER: str = os.getenv("SMTP_USER", "")
SMTP_PASS: str = os.getenv("SMTP_PASS", "")
EMAIL_FROM: str = os.getenv("EMAIL_FROM", f"{APP_NAME} <noreply@financetracker.local>")
EMAIL_REPLY_TO: str = os.getenv("EMAIL_REPLY_TO", "support@financetracker.local")
EMAIL_MAX_RETRIES: int = int(os.getenv("EMAIL_MAX_RETRIES", "3"))
EMAIL_RETRY_DELAY_SECONDS: float = float(os.getenv("EMAIL_RETRY_DELAY_SECONDS", "1.0"))
CLIENT_BASE_URL: str = os.getenv("CLIENT_BASE_URL", "http://localhost:3000").rstrip("/")


def validate_environment() -> None:
    """Fail fast on settings the server cannot run without."""
    missing = []
    if not MONGO_URI:
        missing.append("MONGO_URI")
    if not JWT_SECRET:
        missing.append("JWT_SECRET")
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    if IS_PRODUCTION and len(JWT_SECRET) < 32:
        raise RuntimeError("JWT_SECRET must be at least 32 characters long in production")
