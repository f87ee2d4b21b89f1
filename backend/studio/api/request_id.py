"""Request ID helper for endpoints and error handlers."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from studio.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    """Return the id bound by the middleware, else the inbound header, else ``default``."""
    if request is not None:
        rid = getattr(request.state, REQUEST_ID_ATTR, None) or request.headers.get("X-Request-Id")
        if rid:
            return rid
    return obs_logging.current_request_id() or default
