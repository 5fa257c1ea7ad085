from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Response, status

from finance_tracker.payloads import (
    CategoryCreate,
    CategoryHierarchyQuery,
    CategoryListQuery,
    CategoryNode,
    CategoryOut,
    CategoryUpdate,
    Envelope,
)
from finance_tracker.security import get_current_user
from finance_tracker.services import category_service

router = APIRouter(prefix="/categories", tags=["categories"])


def _uid(user: dict) -> str:
    return str(user["_id"])


@router.post("", response_model=Envelope[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, current_user: dict = Depends(get_current_user)):
    doc = category_service.create_category(_uid(current_user), payload)
    return Envelope(data=CategoryOut.from_doc(doc), message="Category created")


@router.get("", response_model=Envelope[List[CategoryOut]])
def list_categories(
    query: Annotated[CategoryListQuery, Query()],
    current_user: dict = Depends(get_current_user),
):
    docs = category_service.list_categories(_uid(current_user), query.type, query.include_deleted)
    return Envelope(data=[CategoryOut.from_doc(d) for d in docs])


@router.get("/hierarchy", response_model=Envelope[List[CategoryNode]])
def category_hierarchy(
    query: Annotated[CategoryHierarchyQuery, Query()],
    current_user: dict = Depends(get_current_user),
):
    return Envelope(data=category_service.get_hierarchy(_uid(current_user), query.type))


@router.get("/{category_id}", response_model=Envelope[CategoryOut])
def get_category(category_id: str, current_user: dict = Depends(get_current_user)):
    doc = category_service.get_owned_category(_uid(current_user), category_id)
    return Envelope(data=CategoryOut.from_doc(doc))


@router.patch("/{category_id}", response_model=Envelope[CategoryOut])
def update_category(category_id: str, payload: CategoryUpdate, current_user: dict = Depends(get_current_user)):
    doc = category_service.update_category(_uid(current_user), category_id, payload)
    return Envelope(data=CategoryOut.from_doc(doc), message="Category updated")


@router.patch("/{category_id}/set-default", response_model=Envelope[CategoryOut])
def set_default_category(category_id: str, current_user: dict = Depends(get_current_user)):
    doc = category_service.set_default_category(_uid(current_user), category_id)
    return Envelope(data=CategoryOut.from_doc(doc), message="Default category updated")


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: str, current_user: dict = Depends(get_current_user)):
    category_service.delete_category(_uid(current_user), category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
