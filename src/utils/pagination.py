from typing import Any, List, Tuple

from sqlalchemy.orm import Query

from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def normalize(page: int, size: int) -> Tuple[int, int]:
    """Clamp a zero-based page index and a page size to sane bounds."""
    page = max(page or 0, 0)
    size = size or DEFAULT_PAGE_SIZE
    size = min(max(size, 1), MAX_PAGE_SIZE)
    return page, size


def paginate(query: Query, page: int, size: int) -> Tuple[List[Any], int]:
    """Run ``query`` for one page.

    Returns:
        Tuple of (rows on the page, total row count).
    """
    total = query.order_by(None).count()
    items = query.offset(page * size).limit(size).all()
    return items, total
