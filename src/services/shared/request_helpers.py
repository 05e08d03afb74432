"""
Helpers for reading client metadata off incoming requests.
"""

from typing import Optional

from fastapi import Request
from ulid import ULID


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """
    Resolve the client address, honouring reverse-proxy headers first.

    Returns None when no request is available.
    """
    if request is None:
        return None

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    return request.client.host if request.client else None


def generate_request_id() -> str:
    return f"req_{ULID()}"


def get_request_id(request: Optional[Request]) -> str:
    """Return the id assigned by the request-context middleware, or a fresh one."""
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return generate_request_id()
