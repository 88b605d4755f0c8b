"""
Recipes API - Pagination Helper
=================================

Page arithmetic for offset-based listings.

    total_pages = ceil(total_items / limit)
    valid pages = 1 .. total_pages

An empty collection has zero pages, so every page request against it fails.
"""

import math
from dataclasses import dataclass

from recipes_api.exceptions import PageNotFoundError


@dataclass(frozen=True)
class PageInfo:
    total_items: int
    total_pages: int
    current_page: int


def page_offset(page: int, limit: int) -> int:
    """Rows to skip before `page` when pages hold `limit` rows."""
    return (page - 1) * limit


def paginate_results(total_items: int, page: int, limit: int) -> PageInfo:
    """
    Validate a requested page against the collection size.

    Args:
        total_items: Number of items in the collection (>= 0)
        page: Requested page, 1-indexed
        limit: Page size (>= 1)

    Returns:
        PageInfo with total_items, total_pages and current_page.

    Raises:
        PageNotFoundError: page < 1 or page > total_pages (always when total_items == 0)
        ValueError: limit < 1
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    total_pages = math.ceil(total_items / limit)

    if page < 1 or page > total_pages:
        raise PageNotFoundError(page=page, total_pages=total_pages)

    return PageInfo(
        total_items=total_items,
        total_pages=total_pages,
        current_page=page,
    )
