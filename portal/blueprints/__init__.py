"""
Pay-TV Back-Office Portal
Shared request helpers for the API blueprints.
"""

from flask import request


def page_args(default_limit=10, max_limit=100):
    """Read page/limit query params (1-based page) for page-style listings."""
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def page_body(items, total, page, limit):
    """Response body for a page-style listing."""
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit,
    }
