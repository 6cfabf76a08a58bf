"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Pagination metadata
- Query parameter coercion
- User identifiers shared with upstream services

Usage:
    from core.helpers import calculate_pagination, parse_positive_int

    page = parse_positive_int(request.query_params.get("page"), default=1)
"""

from __future__ import annotations

import math


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate pagination metadata.

    Args:
        total: Total number of items
        page: Current page number (1-indexed)
        per_page: Items per page

    Returns:
        Dict with pagination metadata

    Example:
        pagination = calculate_pagination(total=100, page=3, per_page=20)
        # {
        #     "total": 100,
        #     "page": 3,
        #     "per_page": 20,
        #     "total_pages": 5,
        #     "has_next": True,
        #     "has_previous": True,
        #     "next_page": 4,
        #     "previous_page": 2,
        #     "start_index": 41,
        #     "end_index": 60
        # }

    Note:
        A page past the end is reported as requested (with no next page),
        so callers can tell an empty tail apart from the last full page.
    """
    total_pages = math.ceil(total / per_page) if per_page > 0 else 0
    page = max(1, page)

    has_next = page < total_pages
    has_previous = page > 1

    start_index = (page - 1) * per_page + 1 if total > 0 else 0
    end_index = min(page * per_page, total)
    if start_index > total:
        start_index = end_index = 0

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "has_next": has_next,
        "has_previous": has_previous,
        "next_page": page + 1 if has_next else None,
        "previous_page": page - 1 if has_previous else None,
        "start_index": start_index,
        "end_index": end_index,
    }


def parse_positive_int(
    value: str | int | None, default: int, maximum: int | None = None
) -> int:
    """
    Coerce a query parameter into a positive integer.

    Invalid or non-positive values fall back to ``default``; values above
    ``maximum`` are clamped.

    Example:
        parse_positive_int("3", default=1)  # 3
        parse_positive_int("abc", default=1)  # 1
        parse_positive_int("500", default=20, maximum=100)  # 100
    """
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def user_identifier(user) -> str:
    """
    Return the identifier other services use to address ``user``.

    Recipients, device owners and event payloads all refer to users by
    username (employee codes, parent accounts), never by database id.
    """
    return user.get_username()
