"""
payloads.py
-----------
Request validation models and response shapes for the REST API.

JSON uses camelCase while Python code and the database use snake_case;
every model here carries camelCase aliases and accepts either form.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Annotated, ClassVar, FrozenSet, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from finance_tracker import constants
from finance_tracker.constants import Theme, TransactionType
from finance_tracker.database import to_naive_utc

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
ICON_RE = re.compile(r"^[a-z-]+$")
TAG_RE = re.compile(r"^[a-zA-Z-]+$")
NAME_RE = re.compile(r"^[A-Za-z]+$")
MOBILE_RE = re.compile(r"^\d{10}$")
OTP_RE = re.compile(r"^\d{6}$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")


# ----------------------
# Field validators
# ----------------------

def _object_id(value: str) -> str:
    if not OBJECT_ID_RE.match(value):
        raise ValueError("Must be a valid ObjectId")
    return value


def _password(value: str) -> str:
    if not 8 <= len(value) <= 128:
        raise ValueError("Password must be between 8 and 128 characters")
    if not PASSWORD_RE.match(value):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, "
            "one number and one special character (@$!%*?&)"
        )
    return value


def _email(value: str) -> str:
    value = value.lower()
    if not 5 <= len(value) <= 254:
        raise ValueError("Email must be between 5 and 254 characters")
    return value


def _person_name(value: str) -> str:
    value = value.strip()
    if not 1 <= len(value) <= 50:
        raise ValueError("Name must be between 1 and 50 characters")
    if not NAME_RE.match(value):
        raise ValueError("Name can only contain letters")
    return value


def _hex_color(value: str) -> str:
    if not HEX_COLOR_RE.match(value):
        raise ValueError("Color must be a valid hex color (e.g. #FF5733)")
    return value


def _icon(value: str) -> str:
    if len(value) > 30 or not ICON_RE.match(value):
        raise ValueError("Icon must be lowercase letters and hyphens, at most 30 characters")
    return value


def _two_decimals(value: float) -> bool:
    return abs(round(value * 100) - value * 100) < 1e-6


def _currency_amount(value: float) -> float:
    if value < constants.MIN_AMOUNT:
        raise ValueError("Amount must be at least 0.01")
    if value > constants.MAX_AMOUNT:
        raise ValueError("Amount cannot exceed 999,999,999.99")
    if not _two_decimals(value):
        raise ValueError("Amount can have at most 2 decimal places")
    return round(value, 2)


def _budget(value: float) -> float:
    if value < 0 or value > constants.MAX_AMOUNT:
        raise ValueError("Monthly budget must be between 0 and 999,999,999.99")
    if not _two_decimals(value):
        raise ValueError("Monthly budget can have at most 2 decimal places")
    return round(value, 2)


def _tags(value: List[str]) -> List[str]:
    if len(value) > constants.MAX_TAGS:
        raise ValueError("A transaction can have at most 3 tags")
    cleaned = []
    for tag in value:
        tag = tag.strip()
        if not 1 <= len(tag) <= 20 or not TAG_RE.match(tag):
            raise ValueError("Tags must be 1-20 letters or hyphens")
        cleaned.append(tag.lower())
    return cleaned


def _transaction_date(value: datetime) -> datetime:
    value = to_naive_utc(value)
    if value < datetime(1900, 1, 1):
        raise ValueError("Transaction date cannot be before 1900")
    latest = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=365)
    if value > latest:
        raise ValueError("Transaction date cannot be more than one year in the future")
    return value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


ObjectIdStr = Annotated[str, AfterValidator(_object_id)]
Password = Annotated[str, AfterValidator(_password)]
Email = Annotated[EmailStr, AfterValidator(_email)]
PersonName = Annotated[str, AfterValidator(_person_name)]
HexColor = Annotated[str, AfterValidator(_hex_color)]
Icon = Annotated[str, AfterValidator(_icon)]
Budget = Annotated[float, AfterValidator(_budget)]
Tags = Annotated[List[str], AfterValidator(_tags)]
TransactionDate = Annotated[datetime, AfterValidator(_transaction_date)]
QueryDate = Annotated[datetime, AfterValidator(to_naive_utc)]
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
CategoryName = Annotated[str, Field(min_length=1, max_length=50)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class StrictModel(ApiModel):
    model_config = ConfigDict(extra="forbid")


class PartialModel(StrictModel):
    """Partial update that must carry at least one field."""

    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        nulls = [
            name for name in sorted(self.model_fields_set)
            if getattr(self, name) is None and name not in self.nullable_fields
        ]
        if nulls:
            raise ValueError(f"{', '.join(to_camel(name) for name in nulls)} cannot be null")
        return self


# ----------------------
# Auth payloads
# ----------------------

class ProfileIn(ApiModel):
    first_name: PersonName
    last_name: PersonName
    avatar_url: Optional[str] = Field(None, max_length=2048)
    mobile_number: Optional[str] = None

    @field_validator("mobile_number")
    @classmethod
    def _mobile(cls, v):
        if v is not None and not MOBILE_RE.match(v):
            raise ValueError("Mobile number must be 10 digits")
        return v


class SettingsIn(ApiModel):
    mobile_dial_code: str = "+91"
    currency: str = "INR"
    theme: Theme = "system"

    @field_validator("mobile_dial_code")
    @classmethod
    def _dial_code(cls, v):
        if v not in constants.SUPPORTED_DIAL_CODES:
            raise ValueError("Unsupported dial code")
        return v

    @field_validator("currency")
    @classmethod
    def _currency(cls, v):
        v = v.upper()
        if v not in constants.SUPPORTED_CURRENCIES:
            raise ValueError("Unsupported currency")
        return v


class RegisterRequest(ApiModel):
    email: Email
    password: Password
    profile: ProfileIn
    settings: Optional[SettingsIn] = None


class LoginRequest(ApiModel):
    email: Email
    password: str = Field(min_length=1, max_length=128)


class VerifyEmailRequest(ApiModel):
    token: str = Field(min_length=1)


class ForgotPasswordRequest(ApiModel):
    email: Email


class ResetPasswordRequest(ApiModel):
    token: str = Field(min_length=1)
    password: Password


class RequestOtpRequest(ApiModel):
    email: Email


class VerifyOtpRequest(ApiModel):
    email: Email
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v):
        if not OTP_RE.match(v):
            raise ValueError("OTP must be 6 digits")
        return v


# ----------------------
# User payloads
# ----------------------

class ProfileUpdate(PartialModel):
    nullable_fields = frozenset({"avatar_url", "mobile_number"})

    first_name: Optional[PersonName] = None
    last_name: Optional[PersonName] = None
    avatar_url: Optional[str] = Field(None, max_length=2048)
    mobile_number: Optional[str] = None

    @field_validator("mobile_number")
    @classmethod
    def _mobile(cls, v):
        if v is not None and not MOBILE_RE.match(v):
            raise ValueError("Mobile number must be 10 digits")
        return v


class SettingsUpdate(PartialModel):
    mobile_dial_code: Optional[str] = None
    currency: Optional[str] = None
    theme: Optional[Theme] = None

    @field_validator("mobile_dial_code")
    @classmethod
    def _dial_code(cls, v):
        if v is not None and v not in constants.SUPPORTED_DIAL_CODES:
            raise ValueError("Unsupported dial code")
        return v

    @field_validator("currency")
    @classmethod
    def _currency(cls, v):
        if v is None:
            return v
        v = v.upper()
        if v not in constants.SUPPORTED_CURRENCIES:
            raise ValueError("Unsupported currency")
        return v


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: Password


# ----------------------
# Category payloads
# ----------------------

class CategoryCreate(ApiModel):
    name: CategoryName
    type: TransactionType
    parent_id: Optional[ObjectIdStr] = None
    color: HexColor = "#CCCCCC"
    icon: Icon = "tag"
    is_default: bool = False
    monthly_budget: Budget = 0


class CategoryUpdate(PartialModel):
    """Type and parent are fixed at creation and rejected here."""
    name: Optional[CategoryName] = None
    color: Optional[HexColor] = None
    icon: Optional[Icon] = None
    is_default: Optional[bool] = None
    monthly_budget: Optional[Budget] = None


class CategoryListQuery(ApiModel):
    type: Optional[TransactionType] = None
    include_deleted: bool = False


class CategoryHierarchyQuery(ApiModel):
    type: Optional[TransactionType] = None


# ----------------------
# Transaction payloads
# ----------------------

def _check_amount(amount: Optional[float], info: ValidationInfo) -> Optional[float]:
    if amount is None:
        return amount
    if info.data.get("type") == "income" and amount < 0:
        raise ValueError("Income amount must be non-negative")
    return _currency_amount(amount)


class TransactionCreate(ApiModel):
    category_id: ObjectIdStr
    type: Optional[TransactionType] = None
    amount: float
    description: str = Field(min_length=1, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    transaction_date: Optional[TransactionDate] = None
    tags: Tags = Field(default_factory=list)

    _amount = field_validator("amount")(_check_amount)


class TransactionUpdate(PartialModel):
    nullable_fields = frozenset({"notes"})

    category_id: Optional[ObjectIdStr] = None
    type: Optional[TransactionType] = None
    amount: Optional[float] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    transaction_date: Optional[TransactionDate] = None
    tags: Optional[Tags] = None

    _amount = field_validator("amount")(_check_amount)


class TransactionCloneOverrides(StrictModel):
    category_id: Optional[ObjectIdStr] = None
    amount: Optional[float] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    transaction_date: Optional[TransactionDate] = None
    tags: Optional[Tags] = None

    @field_validator("amount")
    @classmethod
    def _amount(cls, v):
        return None if v is None else _currency_amount(v)


class TransactionListQuery(ApiModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: Literal["transactionDate", "amount", "createdAt", "description"] = "transactionDate"
    sort_order: Literal["asc", "desc"] = "desc"
    category_id: Optional[ObjectIdStr] = None
    type: Optional[TransactionType] = None
    min_amount: Optional[float] = Field(None, ge=0)
    max_amount: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    start_date: Optional[QueryDate] = None
    end_date: Optional[QueryDate] = None

    @field_validator("max_amount")
    @classmethod
    def _amount_range(cls, v, info: ValidationInfo):
        low = info.data.get("min_amount")
        if v is not None and low is not None and low > v:
            raise ValueError("maxAmount must be greater than or equal to minAmount")
        return v

    @field_validator("tags")
    @classmethod
    def _split_tags(cls, v):
        if v is None:
            return v
        return [t.strip().lower() for item in v for t in item.split(",") if t.strip()]

    @field_validator("end_date")
    @classmethod
    def _date_range(cls, v, info: ValidationInfo):
        start = info.data.get("start_date")
        if v is not None and start is not None and start > v:
            raise ValueError("endDate must be on or after startDate")
        return v


class TransactionSummaryQuery(ApiModel):
    year: Optional[int] = Field(None, ge=1900, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    start_date: Optional[QueryDate] = None
    end_date: Optional[QueryDate] = None

    @model_validator(mode="after")
    def _year_with_month(self):
        if (self.year is None) != (self.month is None):
            raise ValueError("year and month must be provided together")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("endDate must be on or after startDate")
        return self


class TransactionBreakdownQuery(ApiModel):
    start_date: Optional[QueryDate] = None
    end_date: Optional[QueryDate] = None
    type: Optional[TransactionType] = None

    @field_validator("end_date")
    @classmethod
    def _date_range(cls, v, info: ValidationInfo):
        start = info.data.get("start_date")
        if v is not None and start is not None and start > v:
            raise ValueError("endDate must be on or after startDate")
        return v


# ----------------------
# Responses
# ----------------------

class ProfileOut(ApiModel):
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    mobile_number: Optional[str] = None


class SettingsOut(ApiModel):
    mobile_dial_code: str = "+91"
    currency: str = "INR"
    theme: str = "system"


class UserOut(ApiModel):
    id: str
    email: str
    status: str
    email_verified: bool = False
    full_name: str
    initials: str
    profile: ProfileOut
    settings: SettingsOut
    last_login_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "UserOut":
        profile = doc.get("profile") or {}
        first, last = profile.get("first_name", ""), profile.get("last_name", "")
        return cls(
            id=str(doc["_id"]),
            email=doc["email"],
            status=doc.get("status", "pending_verification"),
            email_verified=doc.get("email_verified", False),
            full_name=f"{first} {last}".strip(),
            initials=f"{first[:1]}{last[:1]}".upper(),
            profile=ProfileOut(**profile),
            settings=SettingsOut(**(doc.get("settings") or {})),
            last_login_at=doc.get("last_login_at"),
            created_at=doc.get("created_at"),
        )


class CategoryOut(ApiModel):
    id: str
    user_id: str
    name: str
    type: TransactionType
    parent_id: Optional[str] = None
    color: str
    icon: str
    is_default: bool
    monthly_budget: float
    is_deleted: bool = False
    deleted_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "CategoryOut":
        fields = {k: v for k, v in doc.items() if k != "_id"}
        return cls(id=str(doc["_id"]), **fields)


class CategoryNode(CategoryOut):
    children: List["CategoryNode"] = Field(default_factory=list)


class CategoryRef(ApiModel):
    id: str
    name: str
    color: str
    icon: str
    type: TransactionType


class TransactionOut(ApiModel):
    id: str
    user_id: str
    category_id: str
    category: Optional[CategoryRef] = None
    amount: float
    type: TransactionType
    description: str
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    transaction_date: UtcDatetime
    year: int
    month: int
    year_month: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    @classmethod
    def from_doc(cls, doc: dict, category: Optional[dict] = None) -> "TransactionOut":
        fields = {k: v for k, v in doc.items() if k in cls.model_fields and k not in ("id", "category")}
        ref = None
        if category is not None:
            ref = CategoryRef(id=str(category["_id"]), name=category["name"], color=category["color"],
                              icon=category["icon"], type=category["type"])
        return cls(id=str(doc["_id"]), category=ref, **fields)


class Pagination(ApiModel):
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ListSummary(ApiModel):
    total_income: float = 0
    total_expenses: float = 0
    income_count: int = 0
    expense_count: int = 0
    net_amount: float = 0


class TransactionList(ApiModel):
    transactions: List[TransactionOut]
    total: int
    summary: ListSummary
    pagination: Pagination


class PeriodTotals(ApiModel):
    total: float = 0
    count: int = 0
    avg_amount: float = 0


class Summary(ApiModel):
    year: Optional[int] = None
    month: Optional[int] = None
    year_month: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    income: PeriodTotals = Field(default_factory=PeriodTotals)
    expenses: PeriodTotals = Field(default_factory=PeriodTotals)
    net_amount: float = 0


class BreakdownItem(ApiModel):
    category_id: str
    category_name: str
    category_color: str
    category_icon: str
    type: TransactionType
    total: float
    count: int
    avg_amount: float
    percentage: float = 0


# ----------------------
# Envelopes
# ----------------------

T = TypeVar("T")


class UserData(ApiModel):
    user: UserOut


class AuthResult(ApiModel):
    user: UserOut
    token: str


class Envelope(ApiModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
