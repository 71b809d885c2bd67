"""
Helpers for the ``{status, message, data}`` response envelope.
"""
import math
from typing import Any, List, Optional


def success(message: str, data: Any = None, **extra) -> dict:
    """Build a successful envelope. Extra keyword arguments are merged at top level."""
    body = {"status": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def paginated(items: List[Any], total: int, page: int, per_page: int) -> dict:
    """Page payload placed under ``data`` of list endpoints."""
    return {
        "data": items,
        "total": total,
        "page": page,
        "per_page": per_page,
        "last_page": max(1, math.ceil(total / per_page)) if per_page else 1,
    }


def error(message: str, errors: Optional[dict] = None) -> dict:
    body = {"status": False, "message": message}
    if errors:
        body["errors"] = errors
    return body
