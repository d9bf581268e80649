"""RFC 7807 problem+json rendering for every error response.

Route modules raise `HTTPException(detail=<problem dict>)` built by
`fieldsync.logic.problem_factory`; these handlers add the request path as
`instance` and render the body with the problem media type. Plain string
details (framework 404/405) are wrapped in a minimal problem object.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def _render(request: Request, problem: Dict[str, Any], status_code: int, headers: Dict[str, str] | None = None) -> JSONResponse:
    body = {"type": "about:blank", **problem, "instance": request.url.path}
    return JSONResponse(body, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        problem = dict(exc.detail)
    else:
        problem = {"title": str(exc.detail or "Error"), "status": status_code}
    headers = {str(k): str(v) for k, v in (getattr(exc, "headers", None) or {}).items()}
    return _render(request, problem, status_code, headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))}
        for e in exc.errors()
    ]
    logger.info("request_invalid path=%s errors=%s", request.url.path, len(errors))
    problem = {"title": "Invalid Request", "status": 422, "detail": "Request validation failed", "errors": errors}
    return _render(request, problem, 422)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return _render(request, {"title": "Internal Server Error", "status": 500}, 500)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
