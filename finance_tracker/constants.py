"""
constants.py
------------
Static reference data: supported currencies, dial codes and the
categories seeded for every new account.
"""

from typing import Literal

SUPPORTED_CURRENCIES: tuple[str, ...] = (
    "INR", "USD", "EUR", "GBP", "JPY", "AUD", "CAD", "CHF", "CNY", "SEK",
    "NZD", "SGD", "HKD", "NOK", "KRW", "MXN", "BRL", "ZAR", "AED", "SAR",
    "RUB", "TRY", "PLN", "THB", "IDR", "MYR", "PHP", "DKK", "CZK", "ILS",
)

SUPPORTED_DIAL_CODES: tuple[str, ...] = (
    "+1", "+7", "+20", "+27", "+33", "+34", "+39", "+44", "+46", "+47",
    "+48", "+49", "+52", "+55", "+60", "+61", "+62", "+63", "+64", "+65",
    "+66", "+81", "+82", "+86", "+90", "+91", "+92", "+880", "+966", "+971",
)

Theme = Literal["light", "dark", "system"]

TransactionType = Literal["income", "expense"]

UserStatus = Literal["pending_verification", "active", "suspended", "deleted"]

MAX_CATEGORY_DEPTH = 3
MAX_TAGS = 3
MAX_AMOUNT = 999_999_999.99
MIN_AMOUNT = 0.01

DEFAULT_CATEGORIES: dict[str, list[dict]] = {
    "income": [
        {"name": "Salary", "color": "#4CAF50", "icon": "briefcase", "is_default": True},
        {"name": "Freelance", "color": "#2196F3", "icon": "laptop"},
        {"name": "Investment", "color": "#FF9800", "icon": "trending-up"},
        {"name": "Other Income", "color": "#9C27B0", "icon": "plus-circle"},
    ],
    "expense": [
        {"name": "Food & Dining", "color": "#F44336", "icon": "utensils", "is_default": True},
        {"name": "Transportation", "color": "#3F51B5", "icon": "car"},
        {"name": "Shopping", "color": "#E91E63", "icon": "shopping-bag"},
        {"name": "Entertainment", "color": "#9C27B0", "icon": "film"},
        {"name": "Bills & Utilities", "color": "#607D8B", "icon": "file-text"},
        {"name": "Healthcare", "color": "#4CAF50", "icon": "heart"},
        {"name": "Education", "color": "#FF9800", "icon": "book"},
        {"name": "Other Expenses", "color": "#795548", "icon": "more-horizontal"},
    ],
}
