"""
Centralized API error handling helpers.

Keeps unreachable or misconfigured search targets distinguishable from
internal failures in API responses.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import HTTPException, status

from elserbench.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiError:
    status_code: int
    code: str
    message: str
    hint: str | None = None
    debug: str | None = None


def _maybe_debug(exc: BaseException) -> str | None:
    if settings.APP_DEBUG:
        return str(exc)
    return None


def classify_search_error(exc: BaseException) -> ApiError | None:
    """Classify httpx failures talking to a search target into user-actionable errors."""
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        if code in (401, 403):
            return ApiError(
                status_code=status.HTTP_502_BAD_GATEWAY,
                code="SEARCH_AUTH_FAILED",
                message="The search target rejected the configured API key.",
                hint="Check EIS_API_KEY / ML_NODE_API_KEY.",
                debug=_maybe_debug(exc),
            )
        return ApiError(
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="SEARCH_REQUEST_FAILED",
            message=f"The search target returned HTTP {code}.",
            debug=_maybe_debug(exc),
        )

    if isinstance(exc, (httpx.TransportError, httpx.InvalidURL)):
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="SEARCH_UNREACHABLE",
            message="Failed to connect to the search target.",
            hint="Check EIS_URL / ML_NODE_URL and network access, then retry.",
            debug=_maybe_debug(exc),
        )

    return None


def http_exception(operation: str, exc: BaseException) -> HTTPException:
    """
    Convert an exception into a consistent HTTPException payload.
    """
    logger.error(
        "API error during '%s': %s\n%s",
        operation,
        exc,
        traceback.format_exc(),
    )

    classified = classify_search_error(exc)
    if classified is not None:
        detail: dict[str, Any] = {
            "code": classified.code,
            "message": classified.message,
            "operation": operation,
        }
        if classified.hint:
            detail["hint"] = classified.hint
        if classified.debug:
            detail["debug"] = classified.debug
        return HTTPException(status_code=classified.status_code, detail=detail)

    base_detail: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": f"{operation} failed.",
        "operation": operation,
    }
    dbg = _maybe_debug(exc)
    if dbg:
        base_detail["debug"] = dbg
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=base_detail,
    )


def not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "NOT_FOUND", "message": f"{kind} not found: {identifier}"},
    )
