"""Error kinds raised by the Gantt engine.

Every error names the offending identifier(s) so callers never have to parse
messages. The HTTP adapter maps `kind` onto a status code.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    CONFLICT = "conflict"
    CYCLE = "cycle"
    INFEASIBLE = "infeasible"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.CYCLE: 409,
    ErrorKind.INFEASIBLE: 409,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.INTERNAL: 500,
}


class GanttError(Exception):
    """Base Gantt engine error."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        ids: Iterable[Any] = (),
        resource_kind: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.ids = tuple(ids)
        self.resource_kind = resource_kind

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_details(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "ids": list(self.ids)}


class NotFoundError(GanttError):
    """Referenced project, task or dependency does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidError(GanttError):
    """Validation failure: names, dates, progress range, self-loops, cross-project links."""

    kind = ErrorKind.INVALID


class ConflictError(GanttError):
    """Uniqueness violation: duplicate project name or duplicate edge."""

    kind = ErrorKind.CONFLICT


class CycleError(GanttError):
    """A dependency edge or parent link would close a loop.

    `path` lists task ids around the loop, first and last element equal.
    """

    kind = ErrorKind.CYCLE

    def __init__(
        self,
        message: str,
        path: Sequence[int],
        resource_kind: Optional[str] = "task",
    ) -> None:
        self.path: List[int] = list(path)
        super().__init__(message, ids=self.path, resource_kind=resource_kind)

    def to_details(self) -> Dict[str, Any]:
        details = super().to_details()
        details["path"] = list(self.path)
        return details


class InfeasibleError(GanttError):
    """A schedule cannot be laid out, e.g. it runs past the last representable date."""

    kind = ErrorKind.INFEASIBLE


class ReadTimeoutError(GanttError):
    """A read exceeded its deadline; partial results were discarded."""

    kind = ErrorKind.TIMEOUT


class InternalError(GanttError):
    """Repository failure or broken invariant."""

    kind = ErrorKind.INTERNAL


def format_path(path: Sequence[int]) -> str:
    return " -> ".join(str(p) for p in path)
