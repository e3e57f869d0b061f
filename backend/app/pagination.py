from __future__ import annotations

from flask import current_app


def normalize_page(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp page >= 1 and 1 <= limit <= MAX_PAGE_SIZE (default DEFAULT_PAGE_SIZE)."""
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = max(page or 1, 1)
    limit = min(max(limit or default_size, 1), max_size)
    return page, limit


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def page_response(items: list, *, page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if total > 0 else 1
    return {
        "items": items,
        "count": len(items),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
