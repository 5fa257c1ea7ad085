"""
client/api.py
-------------
Typed wrapper over the REST API. Response envelopes are unwrapped here,
once, so callers always receive parsed models.
"""

from datetime import datetime
from typing import Any, List, Optional

import requests
from pydantic.alias_generators import to_camel

from finance_tracker.client.http import HttpClient
from finance_tracker.client.session import SessionContext
from finance_tracker.logger import get_logger
from finance_tracker.payloads import (
    AuthResult,
    BreakdownItem,
    CategoryNode,
    CategoryOut,
    Summary,
    TransactionList,
    TransactionOut,
    UserOut,
)

logger = get_logger(__name__)


def unwrap(response: requests.Response) -> Any:
    """Return ``data`` from an envelope, or the body itself when there is none."""
    if response.status_code == 204 or not response.content:
        return None
    body = response.json()
    if isinstance(body, dict) and body.get("data") is not None:
        return body["data"]
    return body


def _params(**values) -> dict:
    params = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, bool):
            value = str(value).lower()
        params[key] = value
    return params


def _body(**values) -> dict:
    return {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in values.items() if v is not None}


class FinanceTrackerClient:
    def __init__(self, base_url: str, session: Optional[SessionContext] = None,
                 http: Optional[requests.Session] = None, timeout: float = 10.0):
        self.session = session or SessionContext()
        self.http = HttpClient(base_url, self.session, http=http, timeout=timeout)

    def _start_session(self, data: dict) -> AuthResult:
        result = AuthResult.model_validate(data)
        self.session.set_token(result.token)
        self.session.user = result.user
        return result

    # ----------------------
    # Auth
    # ----------------------

    def register(self, email: str, password: str, first_name: str, last_name: str, **profile) -> UserOut:
        body = {"email": email, "password": password,
                "profile": {"firstName": first_name, "lastName": last_name, **profile}}
        data = unwrap(self.http.post("/auth/register", json=body, refresh=False))
        return UserOut.model_validate(data["user"])

    def login(self, email: str, password: str) -> AuthResult:
        data = unwrap(self.http.post("/auth/login", json={"email": email, "password": password}, refresh=False))
        result = self._start_session(data)
        logger.info(f"Signed in as {result.user.email}")
        return result

    def verify_email(self, token: str) -> UserOut:
        data = unwrap(self.http.post("/auth/verify-email", json={"token": token}, refresh=False))
        return UserOut.model_validate(data["user"])

    def forgot_password(self, email: str) -> str:
        return unwrap(self.http.post("/auth/forgot-password", json={"email": email}, refresh=False))["message"]

    def reset_password(self, token: str, password: str) -> str:
        body = {"token": token, "password": password}
        return unwrap(self.http.post("/auth/reset-password", json=body, refresh=False))["message"]

    def request_otp(self, email: str) -> str:
        return unwrap(self.http.post("/auth/request-otp", json={"email": email}, refresh=False))["message"]

    def verify_otp(self, email: str, code: str) -> AuthResult:
        data = unwrap(self.http.post("/auth/verify-otp", json={"email": email, "code": code}, refresh=False))
        return self._start_session(data)

    def logout(self) -> None:
        self.session.sign_out()

    # ----------------------
    # Users
    # ----------------------

    def me(self) -> UserOut:
        user = UserOut.model_validate(unwrap(self.http.get("/users/me"))["user"])
        self.session.user = user
        return user

    def update_profile(self, **changes) -> UserOut:
        return UserOut.model_validate(unwrap(self.http.patch("/users/me/profile", json=changes))["user"])

    def update_settings(self, **changes) -> UserOut:
        return UserOut.model_validate(unwrap(self.http.patch("/users/me/settings", json=changes))["user"])

    def change_password(self, current_password: str, new_password: str) -> str:
        body = {"currentPassword": current_password, "newPassword": new_password}
        return unwrap(self.http.post("/users/me/change-password", json=body))["message"]

    def delete_account(self) -> None:
        self.http.delete("/users/me")
        self.session.sign_out()

    # ----------------------
    # Categories
    # ----------------------

    def list_categories(self, type: Optional[str] = None, include_deleted: bool = False) -> List[CategoryOut]:
        params = _params(type=type, includeDeleted=include_deleted or None)
        return [CategoryOut.model_validate(c) for c in unwrap(self.http.get("/categories", params=params))]

    def category_hierarchy(self, type: Optional[str] = None) -> List[CategoryNode]:
        data = unwrap(self.http.get("/categories/hierarchy", params=_params(type=type)))
        return [CategoryNode.model_validate(c) for c in data]

    def get_category(self, category_id: str) -> CategoryOut:
        return CategoryOut.model_validate(unwrap(self.http.get(f"/categories/{category_id}")))

    def create_category(self, name: str, type: str, **fields) -> CategoryOut:
        body = {"name": name, "type": type, **fields}
        return CategoryOut.model_validate(unwrap(self.http.post("/categories", json=body)))

    def update_category(self, category_id: str, **changes) -> CategoryOut:
        return CategoryOut.model_validate(unwrap(self.http.patch(f"/categories/{category_id}", json=changes)))

    def set_default_category(self, category_id: str) -> CategoryOut:
        return CategoryOut.model_validate(unwrap(self.http.patch(f"/categories/{category_id}/set-default")))

    def delete_category(self, category_id: str) -> None:
        self.http.delete(f"/categories/{category_id}")

    # ----------------------
    # Transactions
    # ----------------------

    def list_transactions(self, page: int = 1, limit: int = 20, **filters) -> TransactionList:
        params = _params(page=page, limit=limit, **{to_camel(k): v for k, v in filters.items()})
        return TransactionList.model_validate(unwrap(self.http.get("/transactions", params=params)))

    def get_transaction(self, transaction_id: str) -> TransactionOut:
        return TransactionOut.model_validate(unwrap(self.http.get(f"/transactions/{transaction_id}")))

    def create_transaction(self, category_id: str, amount: float, description: str,
                           transaction_date: Optional[datetime] = None, **fields) -> TransactionOut:
        body = _body(categoryId=category_id, amount=amount, description=description,
                     transactionDate=transaction_date, **fields)
        return TransactionOut.model_validate(unwrap(self.http.post("/transactions", json=body)))

    def update_transaction(self, transaction_id: str, **changes) -> TransactionOut:
        body = _body(**changes)
        return TransactionOut.model_validate(unwrap(self.http.patch(f"/transactions/{transaction_id}", json=body)))

    def delete_transaction(self, transaction_id: str) -> str:
        return unwrap(self.http.delete(f"/transactions/{transaction_id}"))["message"]

    def clone_transaction(self, transaction_id: str, **overrides) -> TransactionOut:
        body = _body(**overrides)
        data = unwrap(self.http.post(f"/transactions/{transaction_id}/clone", json=body or None))
        return TransactionOut.model_validate(data)

    def summary(self, year: Optional[int] = None, month: Optional[int] = None,
                start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Summary:
        params = _params(year=year, month=month, startDate=start_date, endDate=end_date)
        return Summary.model_validate(unwrap(self.http.get("/transactions/summary", params=params)))

    def category_breakdown(self, type: Optional[str] = None, start_date: Optional[datetime] = None,
                           end_date: Optional[datetime] = None) -> List[BreakdownItem]:
        params = _params(type=type, startDate=start_date, endDate=end_date)
        data = unwrap(self.http.get("/transactions/category-breakdown", params=params))
        return [BreakdownItem.model_validate(item) for item in data]
