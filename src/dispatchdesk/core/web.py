"""Shared helpers for the Starlette route handlers."""

import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from dispatchdesk.core.results import error_result, is_error

logger = logging.getLogger(__name__)


def json_result(result: dict, status_code: int = 200) -> JSONResponse:
    """Turn a tool result into a response.

    Error dicts use their own ``status_code`` (default 400), which is not
    repeated in the body.
    """
    if is_error(result):
        body = {k: v for k, v in result.items() if k != "status_code"}
        return JSONResponse(body, status_code=result.get("status_code", 400))
    return JSONResponse(result, status_code=status_code)


async def read_json(request: Request) -> dict | JSONResponse:
    """Parse a JSON object body, or return a 400 response."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return json_result(error_result("Request body must be valid JSON"))
    if not isinstance(body, dict):
        return json_result(error_result("Request body must be a JSON object"))
    return body


def query_args(request: Request, *names: str) -> dict[str, str]:
    """Pick the named query parameters that are present and non-empty."""
    return {name: value for name in names if (value := request.query_params.get(name))}
