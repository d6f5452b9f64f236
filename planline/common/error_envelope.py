"""Error envelope shared by every planline endpoint.

Body shape:
{
  "error": {
    "code": "gantt.cycle",
    "message": "Dependency 3 -> 1 would create a cycle: 3 -> 1 -> 2 -> 3",
    "http_status": 409,
    "resource_kind": "task",
    "details": {"kind": "cycle", "ids": [3, 1, 2, 3], "path": [3, 1, 2, 3]}
  }
}
"""
from __future__ import annotations

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str
    message: str
    http_status: int
    resource_kind: Optional[str] = None  # project | task | dependency
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Envelope only; the exception handlers in planline.server use this directly."""
    return ErrorEnvelope(
        error=ErrorDetail(
            code=code,
            message=message,
            http_status=status_code,
            resource_kind=resource_kind,
            details=details or {},
        )
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Raise an HTTPException whose detail is a full envelope.

    Args:
        code: Dotted machine-readable code, e.g. "gantt.not_found"
        message: Human-readable message
        status_code: HTTP status, mirrored into the body as http_status
        resource_kind: Kind of the offending record
        details: Extra context such as offending ids or a cycle path
    """
    envelope = build_error_envelope(code, message, status_code, resource_kind, details)
    raise HTTPException(status_code=status_code, detail=envelope.model_dump())
