"""
services/transaction_service.py
-------------------------------
Transactions: CRUD scoped to the owner, filtered listing with
pagination, monthly/range summaries and per-category breakdowns.
"""

import math
from datetime import datetime, timedelta
from typing import List, Optional

from bson import ObjectId
from pydantic import ValidationError

from finance_tracker import config
from finance_tracker.database import create_document, get_db, parse_object_id, update_document, utcnow
from finance_tracker.errors import ApiError, bad_request, not_found, too_many_requests, validation_details
from finance_tracker.logger import get_logger
from finance_tracker.payloads import (
    BreakdownItem,
    ListSummary,
    Pagination,
    PeriodTotals,
    Summary,
    TransactionBreakdownQuery,
    TransactionCloneOverrides,
    TransactionCreate,
    TransactionList,
    TransactionListQuery,
    TransactionOut,
    TransactionSummaryQuery,
    TransactionUpdate,
)
from finance_tracker.schemas import Transaction
from finance_tracker.services.category_service import get_owned_category

logger = get_logger(__name__)

COLLECTION = "transaction"

SORT_FIELDS = {
    "transactionDate": "transaction_date",
    "amount": "amount",
    "createdAt": "created_at",
    "description": "description",
}


def _collection():
    return get_db()[COLLECTION]


def _category_map(user_id: str, category_ids) -> dict:
    ids = [ObjectId(c) for c in set(category_ids) if ObjectId.is_valid(c)]
    if not ids:
        return {}
    docs = get_db()["category"].find({"_id": {"$in": ids}, "user_id": user_id})
    return {str(d["_id"]): d for d in docs}


def to_out(doc: dict, category: Optional[dict] = None) -> TransactionOut:
    if category is None:
        category = _category_map(doc["user_id"], [doc["category_id"]]).get(doc["category_id"])
    return TransactionOut.from_doc(doc, category)


def get_owned_transaction(user_id: str, transaction_id: str) -> dict:
    doc = _collection().find_one({
        "_id": parse_object_id(transaction_id, "transactionId"),
        "user_id": user_id,
        "is_deleted": False,
    })
    if doc is None:
        raise not_found("TRANSACTION_NOT_FOUND", "Transaction not found")
    return doc


def _resolve_category(user_id: str, category_id: str, requested_type: Optional[str]) -> dict:
    try:
        category = get_owned_category(user_id, category_id)
    except ApiError as e:
        if e.status_code == 404:
            raise not_found("CATEGORY_NOT_FOUND", "Category not found or has been deleted")
        raise
    if requested_type and requested_type != category["type"]:
        raise bad_request(
            "TYPE_MISMATCH",
            f"Transaction type '{requested_type}' does not match category type '{category['type']}'",
        )
    return category


def _check_daily_limit(user_id: str, when: datetime, exclude_id=None) -> None:
    start = datetime(when.year, when.month, when.day)
    query = {
        "user_id": user_id,
        "is_deleted": False,
        "transaction_date": {"$gte": start, "$lt": start + timedelta(days=1)},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if _collection().count_documents(query) >= config.DAILY_TRANSACTION_LIMIT:
        raise too_many_requests(
            "DAILY_LIMIT_EXCEEDED",
            f"Daily limit of {config.DAILY_TRANSACTION_LIMIT} transactions reached for {start.date()}",
        )


# ----------------------
# CRUD
# ----------------------

def create_transaction(user_id: str, payload: TransactionCreate) -> TransactionOut:
    category = _resolve_category(user_id, payload.category_id, payload.type)
    when = payload.transaction_date or utcnow()
    _check_daily_limit(user_id, when)

    transaction = Transaction(
        user_id=user_id,
        category_id=payload.category_id,
        amount=round(payload.amount, 2),
        type=category["type"],
        description=payload.description,
        notes=payload.notes,
        tags=payload.tags,
        transaction_date=when,
        **Transaction.period_fields(when),
    )
    inserted_id = create_document(COLLECTION, transaction)
    logger.info(f"Transaction {inserted_id} ({transaction.type} {transaction.amount}) created for user {user_id}")
    doc = _collection().find_one({"_id": ObjectId(inserted_id)})
    return to_out(doc, category)


def get_transaction(user_id: str, transaction_id: str) -> TransactionOut:
    return to_out(get_owned_transaction(user_id, transaction_id))


def update_transaction(user_id: str, transaction_id: str, payload: TransactionUpdate) -> TransactionOut:
    doc = get_owned_transaction(user_id, transaction_id)
    changes = payload.model_dump(exclude_unset=True)

    category_id = changes.get("category_id", doc["category_id"])
    requested_type = changes.pop("type", None)
    if "category_id" in changes or requested_type:
        category = _resolve_category(user_id, category_id, requested_type)
        changes["type"] = category["type"]
    else:
        category = None

    if "amount" in changes:
        changes["amount"] = round(changes["amount"], 2)

    if "transaction_date" in changes:
        when = changes["transaction_date"]
        if when.date() != doc["transaction_date"].date():
            _check_daily_limit(user_id, when, exclude_id=doc["_id"])
        changes.update(Transaction.period_fields(when))

    updated = update_document(COLLECTION, {"_id": doc["_id"]}, changes)
    logger.info(f"Transaction {transaction_id} updated: {sorted(changes)}")
    return to_out(updated, category)


def delete_transaction(user_id: str, transaction_id: str) -> None:
    doc = get_owned_transaction(user_id, transaction_id)
    update_document(COLLECTION, {"_id": doc["_id"]}, {"is_deleted": True, "deleted_at": utcnow()})
    logger.info(f"Transaction {transaction_id} soft-deleted")


def clone_transaction(user_id: str, transaction_id: str, overrides: TransactionCloneOverrides) -> TransactionOut:
    """Copy a transaction dated now, with any overrides applied."""
    source = get_owned_transaction(user_id, transaction_id)
    fields = {
        "category_id": source["category_id"],
        "amount": source["amount"],
        "description": source["description"],
        "notes": source.get("notes"),
        "tags": source.get("tags", []),
        "transaction_date": utcnow(),
    }
    fields.update(overrides.model_dump(exclude_unset=True))
    if "category_id" not in overrides.model_fields_set:
        fields["type"] = source["type"]
    try:
        payload = TransactionCreate(**fields)
    except ValidationError as e:
        raise bad_request("VALIDATION_ERROR", "Validation failed", validation_details(e.errors()))
    return create_transaction(user_id, payload)


# ----------------------
# Listing
# ----------------------

def _date_filter(start: Optional[datetime], end: Optional[datetime]) -> dict:
    window = {}
    if start is not None:
        window["$gte"] = start
    if end is not None:
        window["$lte"] = end
    return window


def list_transactions(user_id: str, query: TransactionListQuery) -> TransactionList:
    match: dict = {"user_id": user_id, "is_deleted": False}
    if query.category_id:
        match["category_id"] = query.category_id
    if query.type:
        match["type"] = query.type
    amount = {}
    if query.min_amount is not None:
        amount["$gte"] = query.min_amount
    if query.max_amount is not None:
        amount["$lte"] = query.max_amount
    if amount:
        match["amount"] = amount
    if query.tags:
        match["tags"] = {"$in": query.tags}
    window = _date_filter(query.start_date, query.end_date)
    if window:
        match["transaction_date"] = window

    total = _collection().count_documents(match)
    direction = -1 if query.sort_order == "desc" else 1
    cursor = (
        _collection()
        .find(match)
        .sort([(SORT_FIELDS[query.sort_by], direction), ("_id", direction)])
        .skip((query.page - 1) * query.limit)
        .limit(query.limit)
    )
    docs = list(cursor)
    categories = _category_map(user_id, [d["category_id"] for d in docs])

    summary = ListSummary()
    for row in _collection().aggregate([
        {"$match": match},
        {"$group": {"_id": "$type", "total": {"$sum": "$amount"}, "count": {"$sum": 1}}},
    ]):
        if row["_id"] == "income":
            summary.total_income = round(row["total"], 2)
            summary.income_count = row["count"]
        elif row["_id"] == "expense":
            summary.total_expenses = round(row["total"], 2)
            summary.expense_count = row["count"]
    summary.net_amount = round(summary.total_income - summary.total_expenses, 2)

    return TransactionList(
        transactions=[TransactionOut.from_doc(d, categories.get(d["category_id"])) for d in docs],
        total=total,
        summary=summary,
        pagination=Pagination(
            page=query.page,
            limit=query.limit,
            total_pages=math.ceil(total / query.limit) if total else 0,
            has_next=query.page * query.limit < total,
            has_prev=query.page > 1,
        ),
    )


# ----------------------
# Reporting
# ----------------------

def _period_totals(match: dict) -> dict:
    totals = {"income": PeriodTotals(), "expense": PeriodTotals()}
    pipeline = [
        {"$match": match},
        {"$group": {
            "_id": "$type",
            "total": {"$sum": "$amount"},
            "count": {"$sum": 1},
            "avg": {"$avg": "$amount"},
        }},
    ]
    for row in _collection().aggregate(pipeline):
        if row["_id"] in totals:
            totals[row["_id"]] = PeriodTotals(
                total=round(row["total"], 2),
                count=row["count"],
                avg_amount=round(row["avg"] or 0, 2),
            )
    return totals


def get_summary(user_id: str, query: TransactionSummaryQuery) -> Summary:
    """
    Income/expense totals for a month or a date range.

    Args:
        user_id: Owner of the transactions.
        query: ``year`` + ``month`` select a calendar month; otherwise
            ``startDate``/``endDate`` select a range. With neither, the
            current UTC month is summarised.

    Returns:
        Summary with income, expenses and netAmount.
    """
    match: dict = {"user_id": user_id, "is_deleted": False}
    if query.year is None and (query.start_date or query.end_date):
        match["transaction_date"] = _date_filter(query.start_date, query.end_date)
        totals = _period_totals(match)
        summary = Summary(start_date=query.start_date, end_date=query.end_date)
    else:
        if query.year is not None:
            year, month = query.year, query.month
        else:
            now = utcnow()
            year, month = now.year, now.month
        year_month = f"{year:04d}-{month:02d}"
        match["year_month"] = year_month
        totals = _period_totals(match)
        summary = Summary(year=year, month=month, year_month=year_month)

    summary.income = totals["income"]
    summary.expenses = totals["expense"]
    summary.net_amount = round(summary.income.total - summary.expenses.total, 2)
    return summary


def get_category_breakdown(user_id: str, query: TransactionBreakdownQuery) -> List[BreakdownItem]:
    match: dict = {"user_id": user_id, "is_deleted": False}
    if query.type:
        match["type"] = query.type
    window = _date_filter(query.start_date, query.end_date)
    if window:
        match["transaction_date"] = window

    rows = list(_collection().aggregate([
        {"$match": match},
        {"$group": {
            "_id": {"category_id": "$category_id", "type": "$type"},
            "total": {"$sum": "$amount"},
            "count": {"$sum": 1},
            "avg": {"$avg": "$amount"},
        }},
    ]))
    categories = _category_map(user_id, [r["_id"]["category_id"] for r in rows])

    type_totals: dict = {}
    for row in rows:
        type_totals[row["_id"]["type"]] = type_totals.get(row["_id"]["type"], 0) + row["total"]

    items = []
    for row in rows:
        category = categories.get(row["_id"]["category_id"])
        if category is None:
            continue
        type_total = type_totals.get(row["_id"]["type"]) or 0
        items.append(BreakdownItem(
            category_id=row["_id"]["category_id"],
            category_name=category["name"],
            category_color=category["color"],
            category_icon=category["icon"],
            type=row["_id"]["type"],
            total=round(row["total"], 2),
            count=row["count"],
            avg_amount=round(row["avg"] or 0, 2),
            percentage=round(row["total"] / type_total * 100, 2) if type_total else 0,
        ))
    items.sort(key=lambda item: item.total, reverse=True)
    return items
