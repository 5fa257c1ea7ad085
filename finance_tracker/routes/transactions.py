from typing import Annotated, List

from fastapi import APIRouter, Body, Depends, Query, status

from finance_tracker.payloads import (
    BreakdownItem,
    Envelope,
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
from finance_tracker.security import get_current_user
from finance_tracker.services import transaction_service

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _uid(user: dict) -> str:
    return str(user["_id"])


# ----------------------
# Reporting
# ----------------------
@router.get("/summary", response_model=Envelope[Summary])
def summary(
    query: Annotated[TransactionSummaryQuery, Query()],
    current_user: dict = Depends(get_current_user),
):
    return Envelope(data=transaction_service.get_summary(_uid(current_user), query))


@router.get("/category-breakdown", response_model=Envelope[List[BreakdownItem]])
def category_breakdown(
    query: Annotated[TransactionBreakdownQuery, Query()],
    current_user: dict = Depends(get_current_user),
):
    return Envelope(data=transaction_service.get_category_breakdown(_uid(current_user), query))


# ----------------------
# Transaction Endpoints
# ----------------------
@router.post("", response_model=Envelope[TransactionOut], status_code=status.HTTP_201_CREATED)
def create_transaction(payload: TransactionCreate, current_user: dict = Depends(get_current_user)):
    out = transaction_service.create_transaction(_uid(current_user), payload)
    return Envelope(data=out, message="Transaction created")


@router.get("", response_model=Envelope[TransactionList])
def list_transactions(
    query: Annotated[TransactionListQuery, Query()],
    current_user: dict = Depends(get_current_user),
):
    return Envelope(data=transaction_service.list_transactions(_uid(current_user), query))


@router.get("/{transaction_id}", response_model=Envelope[TransactionOut])
def get_transaction(transaction_id: str, current_user: dict = Depends(get_current_user)):
    return Envelope(data=transaction_service.get_transaction(_uid(current_user), transaction_id))


@router.patch("/{transaction_id}", response_model=Envelope[TransactionOut])
def update_transaction(transaction_id: str, payload: TransactionUpdate,
                       current_user: dict = Depends(get_current_user)):
    out = transaction_service.update_transaction(_uid(current_user), transaction_id, payload)
    return Envelope(data=out, message="Transaction updated")


@router.delete("/{transaction_id}", response_model=Envelope)
def delete_transaction(transaction_id: str, current_user: dict = Depends(get_current_user)):
    transaction_service.delete_transaction(_uid(current_user), transaction_id)
    return Envelope(message="Transaction deleted")


@router.post("/{transaction_id}/clone", response_model=Envelope[TransactionOut],
             status_code=status.HTTP_201_CREATED)
def clone_transaction(
    transaction_id: str,
    overrides: Annotated[TransactionCloneOverrides, Body()] = None,
    current_user: dict = Depends(get_current_user),
):
    overrides = overrides or TransactionCloneOverrides()
    out = transaction_service.clone_transaction(_uid(current_user), transaction_id, overrides)
    return Envelope(data=out, message="Transaction cloned")
