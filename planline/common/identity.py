"""Request context and its FastAPI dependency."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException


@dataclass
class RequestContext:
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    user_id: Optional[str] = None
    timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.request_id:
            raise ValueError("request_id is required")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


class RequestContextBuilder:
    """Builder for RequestContext from HTTP headers."""

    @classmethod
    def from_headers(cls, headers: Dict[str, Any]) -> RequestContext:
        normalized = {key.lower(): value for key, value in headers.items()}
        raw_timeout = normalized.get("x-read-timeout")
        timeout: Optional[float] = None
        if raw_timeout not in (None, ""):
            try:
                timeout = float(raw_timeout)
            except (TypeError, ValueError):
                raise ValueError(f"X-Read-Timeout must be a number of seconds, got: {raw_timeout}")
        return RequestContext(
            request_id=normalized.get("x-request-id") or uuid.uuid4().hex,
            user_id=normalized.get("x-user-id") or None,
            timeout_seconds=timeout,
        )


async def get_request_context(
    header_request_id: Optional[str] = Header(default=None, alias="X-Request-Id"),
    header_user: Optional[str] = Header(default=None, alias="X-User-Id"),
    header_timeout: Optional[str] = Header(default=None, alias="X-Read-Timeout"),
) -> RequestContext:
    headers: Dict[str, str] = {}
    if header_request_id:
        headers["X-Request-Id"] = header_request_id
    if header_user:
        headers["X-User-Id"] = header_user
    if header_timeout:
        headers["X-Read-Timeout"] = header_timeout
    try:
        return RequestContextBuilder.from_headers(headers)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
