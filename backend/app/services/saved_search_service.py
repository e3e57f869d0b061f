# Overview: Per-user saved advanced-search filter sets.

from __future__ import annotations

from typing import Any, Optional

from ..extensions import db
from ..models import SavedSearch, VALID_DOCUMENT_TYPES
from ..validation import ForbiddenError, NotFoundError, ValidationError


def _normalize_document_type(value: Any) -> str:
    document_type = str(value or "").strip().upper()
    if document_type not in VALID_DOCUMENT_TYPES:
        raise ValidationError(f"Invalid document type. Must be one of: {', '.join(VALID_DOCUMENT_TYPES)}")
    return document_type


def _normalize_params(value: Any) -> dict:
    if not isinstance(value, dict):
        raise ValidationError("search_params must be a JSON object")
    return value


def _normalize_name(value: Any) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 128:
        raise ValidationError("name exceeds max length 128")
    return name


def _owned(saved_search_id: int, user) -> SavedSearch:
    """Saved searches are private: even admins only see their own."""
    saved = db.session.get(SavedSearch, saved_search_id)
    if saved is None:
        raise NotFoundError("Saved search not found")
    if saved.user_id != user.id:
        raise ForbiddenError("Not authorized to access this saved search")
    return saved


def create_saved_search(*, user, payload: dict) -> SavedSearch:
    payload = payload or {}
    if not payload.get("name") or not payload.get("document_type") or payload.get("search_params") is None:
        raise ValidationError("Search name, document type, and search parameters (search_params) are required")

    saved = SavedSearch(
        user_id=user.id,
        name=_normalize_name(payload.get("name")),
        document_type=_normalize_document_type(payload.get("document_type")),
        search_params=_normalize_params(payload.get("search_params")),
    )
    db.session.add(saved)
    db.session.commit()
    return saved


def list_saved_searches(*, user, document_type: Optional[str] = None) -> list[SavedSearch]:
    query = db.session.query(SavedSearch).filter(SavedSearch.user_id == user.id)
    if document_type:
        query = query.filter(SavedSearch.document_type == _normalize_document_type(document_type))
    return query.order_by(SavedSearch.name.asc(), SavedSearch.id.asc()).all()


def get_saved_search(*, saved_search_id: int, user) -> SavedSearch:
    return _owned(saved_search_id, user)


def update_saved_search(*, saved_search_id: int, user, payload: dict) -> SavedSearch:
    payload = payload or {}
    fields = {"name", "document_type", "search_params"}
    if not any(payload.get(f) is not None for f in fields):
        raise ValidationError("No fields provided for update (name, document_type, search_params)")

    saved = _owned(saved_search_id, user)
    if payload.get("name") is not None:
        saved.name = _normalize_name(payload["name"])
    if payload.get("document_type") is not None:
        saved.document_type = _normalize_document_type(payload["document_type"])
    if payload.get("search_params") is not None:
        saved.search_params = _normalize_params(payload["search_params"])
    db.session.commit()
    return saved


def delete_saved_search(*, saved_search_id: int, user) -> None:
    saved = _owned(saved_search_id, user)
    db.session.delete(saved)
    db.session.commit()
