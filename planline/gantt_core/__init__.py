"""Gantt core - task graph, scheduling, critical path and progress roll-up."""

from planline.gantt_core.errors import (
    ConflictError,
    CycleError,
    ErrorKind,
    GanttError,
    InfeasibleError,
    InternalError,
    InvalidError,
    NotFoundError,
    ReadTimeoutError,
)
from planline.gantt_core.models import (
    Dependency,
    DependencyType,
    Project,
    ProjectStatus,
    ProjectUpdate,
    Task,
    TaskStatus,
    TaskUpdate,
)
from planline.gantt_core.service import (
    GanttService,
    get_gantt_service,
    set_gantt_service,
)
from planline.gantt_core.snapshot import GanttSnapshot

__all__ = [
    "ConflictError",
    "CycleError",
    "ErrorKind",
    "GanttError",
    "InfeasibleError",
    "InternalError",
    "InvalidError",
    "NotFoundError",
    "ReadTimeoutError",
    "Dependency",
    "DependencyType",
    "Project",
    "ProjectStatus",
    "ProjectUpdate",
    "Task",
    "TaskStatus",
    "TaskUpdate",
    "GanttService",
    "get_gantt_service",
    "set_gantt_service",
    "GanttSnapshot",
]
