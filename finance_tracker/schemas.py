"""
Database Schemas for the Finance Tracker

Each Pydantic model represents a collection in MongoDB.
The collection name is the lowercase of the class name.

Examples:
- User -> "user"
- Category -> "category"
- Transaction -> "transaction"
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from finance_tracker.constants import Theme, TransactionType, UserStatus


class Profile(BaseModel):
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    mobile_number: Optional[str] = None


class Settings(BaseModel):
    mobile_dial_code: str = "+91"
    currency: str = "INR"
    theme: Theme = "system"


class ExpiringToken(BaseModel):
    token: Optional[str] = None
    expires: Optional[datetime] = None


class OtpState(BaseModel):
    code: Optional[str] = None
    expires: Optional[datetime] = None
    attempts: int = 0


class AuthState(BaseModel):
    email_verification: ExpiringToken = Field(default_factory=ExpiringToken)
    password_reset: ExpiringToken = Field(default_factory=ExpiringToken)
    otp: OtpState = Field(default_factory=OtpState)


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user" (lowercase of class name)
    """
    email: EmailStr = Field(..., description="Email address (unique, lowercase)")
    password_hash: str = Field(..., description="BCrypt hashed password")
    profile: Profile
    settings: Settings = Field(default_factory=Settings)
    status: UserStatus = Field("pending_verification", description="Account lifecycle state")
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    auth: AuthState = Field(default_factory=AuthState)


class Category(BaseModel):
    """
    Categories schema
    Collection name: "category"
    """
    user_id: str = Field(..., description="Owner of the category")
    name: str
    type: TransactionType = Field(..., description="Fixed at creation")
    parent_id: Optional[str] = Field(None, description="Parent category for hierarchies")
    color: str = "#CCCCCC"
    icon: str = "tag"
    is_default: bool = False
    monthly_budget: float = 0
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None


class Transaction(BaseModel):
    """
    Transactions schema
    Collection name: "transaction"

    year, month and year_month are derived from transaction_date so
    monthly reports can group without date arithmetic.
    """
    user_id: str
    category_id: str
    amount: float = Field(..., description="Positive amount with two-place precision")
    type: TransactionType
    description: str
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    transaction_date: datetime
    year: int
    month: int
    year_month: str
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    @classmethod
    def period_fields(cls, when: datetime) -> dict:
        return {"year": when.year, "month": when.month, "year_month": f"{when.year:04d}-{when.month:02d}"}
