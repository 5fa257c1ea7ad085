"""
services/category_service.py
----------------------------
Business logic for user categories: hierarchy rules, unique names,
a single default per type and recursive soft delete.
"""

import re
from typing import List, Optional

from finance_tracker import constants
from finance_tracker.database import create_document, get_db, parse_object_id, update_document, utcnow
from finance_tracker.errors import bad_request, conflict, not_found
from finance_tracker.logger import get_logger
from finance_tracker.payloads import CategoryCreate, CategoryNode, CategoryOut, CategoryUpdate
from finance_tracker.schemas import Category

logger = get_logger(__name__)

COLLECTION = "category"


def _collection():
    return get_db()[COLLECTION]


def get_owned_category(user_id: str, category_id: str, include_deleted: bool = False) -> dict:
    """
    Fetch a category owned by the user.

    Another user's category is reported exactly like a missing one.
    """
    query = {"_id": parse_object_id(category_id, "categoryId"), "user_id": user_id}
    if not include_deleted:
        query["is_deleted"] = False
    doc = _collection().find_one(query)
    if doc is None:
        raise not_found("CATEGORY_NOT_FOUND", "Category not found")
    return doc


def _depth_of(doc: dict) -> int:
    depth = 1
    current = doc
    while current.get("parent_id"):
        current = _collection().find_one({"_id": parse_object_id(current["parent_id"])})
        if current is None:
            break
        depth += 1
    return depth


def _ensure_unique_name(user_id: str, type_: str, name: str, exclude_id=None) -> None:
    query = {
        "user_id": user_id,
        "type": type_,
        "is_deleted": False,
        "name": {"$regex": f"^{re.escape(name)}$", "$options": "i"},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if _collection().find_one(query):
        raise conflict("DUPLICATE_CATEGORY", f"A {type_} category named '{name}' already exists")


def _clear_default(user_id: str, type_: str, exclude_id=None) -> None:
    query = {"user_id": user_id, "type": type_, "is_default": True}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    _collection().update_many(query, {"$set": {"is_default": False, "updated_at": utcnow()}})


def create_category(user_id: str, payload: CategoryCreate) -> dict:
    if payload.parent_id:
        parent = _collection().find_one({
            "_id": parse_object_id(payload.parent_id, "parentId"),
            "user_id": user_id,
            "is_deleted": False,
        })
        if parent is None:
            raise bad_request("INVALID_PARENT_CATEGORY", "Parent category not found")
        if parent["type"] != payload.type:
            raise bad_request("INVALID_PARENT_CATEGORY", "Parent category must have the same type")
        if _depth_of(parent) + 1 > constants.MAX_CATEGORY_DEPTH:
            raise bad_request(
                "MAX_DEPTH_EXCEEDED",
                f"Categories can be nested at most {constants.MAX_CATEGORY_DEPTH} levels deep",
            )

    _ensure_unique_name(user_id, payload.type, payload.name)
    if payload.is_default:
        _clear_default(user_id, payload.type)

    category = Category(
        user_id=user_id,
        name=payload.name,
        type=payload.type,
        parent_id=payload.parent_id,
        color=payload.color,
        icon=payload.icon,
        is_default=payload.is_default,
        monthly_budget=payload.monthly_budget,
    )
    inserted_id = create_document(COLLECTION, category)
    logger.info(f"Category {inserted_id} '{payload.name}' created for user {user_id}")
    return _collection().find_one({"_id": parse_object_id(inserted_id)})


def create_default_categories(user_id: str) -> int:
    """Seed the standard income and expense categories for a new account."""
    created = 0
    for type_, entries in constants.DEFAULT_CATEGORIES.items():
        for entry in entries:
            create_document(COLLECTION, Category(user_id=user_id, type=type_, **entry))
            created += 1
    logger.info(f"Created {created} default categories for user {user_id}")
    return created


def list_categories(user_id: str, type_: Optional[str] = None, include_deleted: bool = False) -> List[dict]:
    query: dict = {"user_id": user_id}
    if type_:
        query["type"] = type_
    if not include_deleted:
        query["is_deleted"] = False
    return list(_collection().find(query).sort("name", 1))


def get_hierarchy(user_id: str, type_: Optional[str] = None) -> List[CategoryNode]:
    """
    Build the category tree.

    Children are nested under their parent and sorted by name. A category
    whose parent is missing or deleted is promoted to a root.
    """
    docs = list_categories(user_id, type_)
    nodes = {str(d["_id"]): CategoryNode(**CategoryOut.from_doc(d).model_dump()) for d in docs}
    roots: List[CategoryNode] = []
    for doc in docs:
        node = nodes[str(doc["_id"])]
        parent = nodes.get(doc.get("parent_id") or "")
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)
    return roots


def update_category(user_id: str, category_id: str, payload: CategoryUpdate) -> dict:
    doc = get_owned_category(user_id, category_id)
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"] != doc["name"]:
        _ensure_unique_name(user_id, doc["type"], changes["name"], exclude_id=doc["_id"])
    if changes.get("is_default"):
        _clear_default(user_id, doc["type"], exclude_id=doc["_id"])

    updated = update_document(COLLECTION, {"_id": doc["_id"]}, changes)
    logger.info(f"Category {category_id} updated: {sorted(changes)}")
    return updated


def set_default_category(user_id: str, category_id: str) -> dict:
    doc = get_owned_category(user_id, category_id)
    _clear_default(user_id, doc["type"], exclude_id=doc["_id"])
    return update_document(COLLECTION, {"_id": doc["_id"]}, {"is_default": True})


def delete_category(user_id: str, category_id: str) -> int:
    """Soft-delete a category and all of its descendants."""
    doc = get_owned_category(user_id, category_id)
    now = utcnow()
    pending = [doc["_id"]]
    deleted = 0
    while pending:
        current = pending.pop()
        _collection().update_one(
            {"_id": current},
            {"$set": {"is_deleted": True, "deleted_at": now, "is_default": False, "updated_at": now}},
        )
        deleted += 1
        children = _collection().find({"user_id": user_id, "parent_id": str(current), "is_deleted": False})
        pending.extend(child["_id"] for child in children)
    logger.info(f"Soft-deleted {deleted} categories starting at {category_id}")
    return deleted
