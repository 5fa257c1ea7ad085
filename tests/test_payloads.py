from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from finance_tracker.payloads import (
    CategoryCreate,
    CategoryUpdate,
    RegisterRequest,
    TransactionCreate,
    TransactionListQuery,
    TransactionSummaryQuery,
    TransactionUpdate,
    UserOut,
    VerifyOtpRequest,
)

CATEGORY_ID = "65f1c0ffee0000000000abcd"


def _fields(exc: ValidationError):
    return [".".join(str(p) for p in e["loc"]) for e in exc.errors()]


def test_register_request_normalizes_input():
    request = RegisterRequest.model_validate({
        "email": "Jane@Example.COM",
        "password": "Secret@123",
        "profile": {"firstName": " Jane ", "lastName": "Doe"},
        "settings": {"currency": "usd"},
    })
    assert request.email == "jane@example.com"
    assert request.profile.first_name == "Jane"
    assert request.settings.currency == "USD"


def test_blank_password_is_rejected():
    with pytest.raises(ValidationError) as exc:
        RegisterRequest.model_validate({
            "email": "jane@example.com",
            "password": " ",
            "profile": {"firstName": "Jane", "lastName": "Doe"},
        })
    assert "password" in _fields(exc.value)


@pytest.mark.parametrize("code", ["12345", "1234567", "12a456"])
def test_otp_code_must_be_six_digits(code):
    with pytest.raises(ValidationError):
        VerifyOtpRequest(email="jane@example.com", code=code)


def test_category_defaults():
    category = CategoryCreate(name="Pets", type="expense")
    assert category.color == "#CCCCCC"
    assert category.icon == "tag"
    assert category.monthly_budget == 0
    assert category.parent_id is None


def test_category_update_rejects_unknown_and_empty():
    with pytest.raises(ValidationError):
        CategoryUpdate.model_validate({})
    with pytest.raises(ValidationError):
        CategoryUpdate.model_validate({"type": "income"})
    assert CategoryUpdate.model_validate({"monthlyBudget": 12.5}).monthly_budget == 12.5


def test_transaction_amount_rules():
    assert TransactionCreate(category_id=CATEGORY_ID, amount=10.1, description="x").amount == 10.1
    with pytest.raises(ValidationError) as exc:
        TransactionCreate(category_id=CATEGORY_ID, type="income", amount=-5, description="x")
    assert exc.value.errors()[0]["loc"] == ("amount",)
    assert "non-negative" in exc.value.errors()[0]["msg"]
    with pytest.raises(ValidationError):
        TransactionCreate(category_id=CATEGORY_ID, amount=0.001, description="x")


def test_transaction_date_is_stored_as_naive_utc():
    created = TransactionCreate(
        category_id=CATEGORY_ID,
        amount=1,
        description="x",
        transaction_date="2024-03-05T12:00:00+02:00",
    )
    assert created.transaction_date == datetime(2024, 3, 5, 10, 0)
    assert created.transaction_date.tzinfo is None


def test_tags_are_lowercased_and_limited():
    created = TransactionCreate(category_id=CATEGORY_ID, amount=1, description="x", tags=["Food", "take-out"])
    assert created.tags == ["food", "take-out"]
    with pytest.raises(ValidationError):
        TransactionCreate(category_id=CATEGORY_ID, amount=1, description="x", tags=["a", "b", "c", "d"])


def test_transaction_update_requires_a_field():
    with pytest.raises(ValidationError):
        TransactionUpdate.model_validate({})
    with pytest.raises(ValidationError):
        TransactionUpdate.model_validate({"userId": CATEGORY_ID})
    assert TransactionUpdate.model_validate({"notes": "n"}).model_fields_set == {"notes"}


def test_partial_updates_reject_null_outside_nullable_fields():
    with pytest.raises(ValidationError) as exc:
        TransactionUpdate.model_validate({"description": None, "amount": None})
    assert "amount, description cannot be null" in exc.value.errors()[0]["msg"]
    assert TransactionUpdate.model_validate({"notes": None}).notes is None
    with pytest.raises(ValidationError):
        CategoryUpdate.model_validate({"color": None})



def test_list_query_parses_tags_and_ranges():
    query = TransactionListQuery.model_validate({"tags": ["Food, travel", "gift"], "sortBy": "amount"})
    assert query.tags == ["food", "travel", "gift"]
    assert query.sort_by == "amount"
    assert query.page == 1 and query.limit == 20

    with pytest.raises(ValidationError) as exc:
        TransactionListQuery.model_validate({"minAmount": 10, "maxAmount": 5})
    assert _fields(exc.value) == ["maxAmount"]


def test_summary_query_needs_year_and_month_together():
    assert TransactionSummaryQuery.model_validate({"year": 2024, "month": 3}).month == 3
    with pytest.raises(ValidationError):
        TransactionSummaryQuery.model_validate({"month": 3})


def test_user_out_from_document():
    user = UserOut.from_doc({
        "_id": CATEGORY_ID,
        "email": "jane@example.com",
        "status": "active",
        "profile": {"first_name": "jane", "last_name": "doe"},
        "created_at": datetime(2024, 1, 1),
    })
    assert user.initials == "JD"
    assert user.full_name == "jane doe"
    assert user.created_at.tzinfo == timezone.utc
    dumped = user.model_dump(by_alias=True, mode="json")
    assert dumped["createdAt"] == "2024-01-01T00:00:00Z"
    assert dumped["settings"]["currency"] == "INR"
