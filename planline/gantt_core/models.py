"""
Gantt Core Models.

Defines the records the scheduling engine stores and exchanges:
- Project / Task / Dependency: persisted entities
- ProjectUpdate / TaskUpdate: partial-update payloads
- TaskSchedule / ScheduleResult: derived CPM intervals
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

NAME_MAX_LENGTH = 200
# About a century either way; keeps lagged dates well inside the date range.
MAX_LAG_DAYS = 36_500


def _now() -> datetime:
    return datetime.now(timezone.utc)


def span_days(start: date, end: date) -> int:
    """Inclusive number of days between two dates."""
    return (end - start).days + 1


class ProjectStatus(str, Enum):
    """Lifecycle state of a project."""
    PLANNING = "PLANNING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"


class TaskStatus(str, Enum):
    """Status of a task."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class DependencyType(str, Enum):
    """Precedence variant between a predecessor P and a successor S."""
    FS = "FS"  # S starts the day after P finishes
    SS = "SS"  # S starts once P has started
    FF = "FF"  # S finishes once P has finished
    SF = "SF"  # S finishes once P has started

    @property
    def description(self) -> str:
        return {
            DependencyType.FS: "finish-to-start",
            DependencyType.SS: "start-to-start",
            DependencyType.FF: "finish-to-finish",
            DependencyType.SF: "start-to-finish",
        }[self]


def _clean_name(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("name must not be blank")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"name must be at most {NAME_MAX_LENGTH} characters")
    return value


class Project(BaseModel):
    """A project owning a forest of tasks."""
    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: ProjectStatus = ProjectStatus.PLANNING
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self

    @property
    def total_days(self) -> int:
        return span_days(self.start_date, self.end_date)


class Task(BaseModel):
    """
    A unit of work inside a project.

    start_date/end_date are the user-planned interval; the earliest/latest
    intervals computed by the scheduler never overwrite them.
    """
    id: Optional[int] = None
    project_id: int
    parent_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    duration: Optional[int] = None
    progress: float = 0.0
    status: TaskStatus = TaskStatus.NOT_STARTED
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("progress")
    @classmethod
    def validate_progress(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0 or value > 100:
            raise ValueError("progress must be between 0 and 100")
        return round(float(value), 2)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.duration is None:
            self.duration = span_days(self.start_date, self.end_date)
        elif self.duration < 1:
            raise ValueError("duration must be at least one day")
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("task cannot be its own parent")
        return self


class Dependency(BaseModel):
    """A typed precedence edge between two tasks of the same project."""
    id: Optional[int] = None
    project_id: int
    predecessor_id: int
    successor_id: int
    type: DependencyType = DependencyType.FS
    lag: int = 0
    created_at: datetime = Field(default_factory=_now)

    @field_validator("lag")
    @classmethod
    def validate_lag(cls, value: int) -> int:
        if abs(value) > MAX_LAG_DAYS:
            raise ValueError(f"lag must be within {MAX_LAG_DAYS} days either way")
        return value


class ProjectUpdate(BaseModel):
    """Partial project update; unset fields are left untouched."""
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[ProjectStatus] = None


class TaskUpdate(BaseModel):
    """
    Partial task update.

    parent_id is applied only when explicitly present, so `{"parent_id": None}`
    detaches a task while omitting the key leaves the parent alone.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration: Optional[int] = None
    parent_id: Optional[int] = None
    project_id: Optional[int] = None

    @property
    def parent_changed(self) -> bool:
        return "parent_id" in self.model_fields_set


class TaskSchedule(BaseModel):
    """CPM result for one task. Dates are calendar days, slack in days."""
    task_id: int
    duration: int
    planned_start: date
    planned_end: date
    earliest_start: date
    earliest_finish: date
    latest_start: date
    latest_finish: date
    slack: int
    is_summary: bool = False

    @property
    def is_critical(self) -> bool:
        return self.slack == 0


class ScheduleResult(BaseModel):
    """Output of a full forward/backward pass over one project."""
    project_id: int
    order: List[int] = Field(default_factory=list)  # topological order
    tasks: Dict[int, TaskSchedule] = Field(default_factory=dict)
    schedule_start: Optional[date] = None
    schedule_finish: Optional[date] = None
    anchor: Optional[date] = None
    over_budget: bool = False
    negative_slack_task_ids: List[int] = Field(default_factory=list)

    @property
    def feasible(self) -> bool:
        return not self.negative_slack_task_ids
