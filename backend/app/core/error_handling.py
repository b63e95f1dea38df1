"""Error bodies and contextual error logging for the prep API.

Every error response has the same shape::

    {"error_code": "PREP_HTTP_409", "message": "...", "node": "prep", "details": {...}}

``node`` names the pipeline area (campaigns, prep, ai, export, api) derived from the path.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from backend.app.core.errors import PrepError

logger = logging.getLogger(__name__)

# Checked in order; first fragment found in the path wins.
_NODE_BY_PATH_FRAGMENT: tuple[tuple[str, str], ...] = (
    ("/ai/", "ai"),
    ("/export", "export"),
    ("/prep/", "prep"),
    ("/campaigns", "campaigns"),
    ("/memories", "campaigns"),
)


def log_error_with_context(
    error: Exception,
    node_name: str,
    campaign_id: str | None = None,
    session_id: str | None = None,
    agent_name: str | None = None,
    extra_context: dict[str, Any] | None = None,
) -> None:
    """Log ``error`` with its traceback, tagged with whichever ids are known."""
    ids = {
        "campaign_id": campaign_id,
        "session_id": session_id,
        "agent_name": agent_name,
    }
    known = {k: v for k, v in ids.items() if v}
    summary = ", ".join(f"{k}={v}" for k, v in known.items()) or "no context"
    logger.error(
        "[%s] %s: %s (%s)",
        node_name,
        type(error).__name__,
        error,
        summary,
        exc_info=error,
        extra={**(extra_context or {}), **known, "node_name": node_name},
    )


def create_error_response(
    error_code: str,
    message: str,
    node: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    response: dict[str, Any] = {"error_code": error_code, "message": message}
    if node:
        response["node"] = node
    if details:
        response["details"] = details
    return response


def node_for_path(path: str) -> str:
    for fragment, node in _NODE_BY_PATH_FRAGMENT:
        if fragment in path:
            return node
    return "api"


class PrepHTTPException(HTTPException):
    """HTTPException that keeps the domain error code and details for the error body."""

    def __init__(self, error: PrepError) -> None:
        super().__init__(status_code=error.status_code, detail=error.message)
        self.domain_error_code = error.error_code
        self.domain_details = dict(error.details)


def http_error(error: PrepError) -> PrepHTTPException:
    """Map a domain error onto the HTTPException the routers raise (status from the error class)."""
    if error.status_code >= 500:
        logger.warning("%s: %s %s", error.error_code, error.message, error.details or "")
    return PrepHTTPException(error)
