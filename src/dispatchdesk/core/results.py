"""Helpers for the ``{"error": ...}`` result dicts returned by tool functions.

Tool functions return plain dicts so they can be called from routes,
scripts and tests alike. A failed call returns an error dict carrying an
HTTP-style ``status_code`` that the route layer turns into a response.
"""

import math

from pydantic import ValidationError

from dispatchdesk.core.config import get_org_config


def error_result(message: str, status_code: int = 400, **context) -> dict:
    """Build an error result dict with optional extra context keys."""
    result = {"error": message, "status_code": status_code}
    result.update({k: v for k, v in context.items() if v is not None})
    return result


def not_found(what: str, **context) -> dict:
    """Shorthand for a 404 error result."""
    return error_result(f"{what} not found", 404, **context)


def is_error(result: dict) -> bool:
    """True if ``result`` is an error dict."""
    return "error" in result


def page_params(page: int | str | None, limit: int | str | None) -> tuple[int, int] | dict:
    """Normalize page/limit query values.

    Returns:
        ``(page, limit)`` or an error dict for non-numeric or out-of-range values
    """
    cfg = get_org_config()
    try:
        page_num = int(page) if page not in (None, "") else 1
        page_size = int(limit) if limit not in (None, "") else cfg.default_page_size
    except (TypeError, ValueError):
        return error_result("page and limit must be integers")
    if page_num < 1 or page_size < 1:
        return error_result("page and limit must be positive")
    return page_num, min(page_size, cfg.max_page_size)


def pagination(page: int, limit: int, total: int) -> dict:
    """Pagination block for list responses."""
    return {"current": page, "pages": math.ceil(total / limit) if total else 0, "total": total}


def validation_error(exc: ValidationError) -> dict:
    """400 error result listing each Pydantic validation message."""
    errors = [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" if err["loc"] else err["msg"]
        for err in exc.errors()
    ]
    return error_result("Validation error", 400, errors=errors)
