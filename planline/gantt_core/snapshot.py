"""
Snapshot Assembler - the read-only Gantt view of one project.

Runs Scheduler -> Critical Path Extractor -> Progress Aggregator over a
project graph and copies the results into frozen value objects. Nothing in
a snapshot refers back to engine state.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from planline.gantt_core import critical_path, progress
from planline.gantt_core.deadline import Deadline, ensure_deadline
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.models import (
    DependencyType,
    ProjectStatus,
    ScheduleResult,
    TaskStatus,
    span_days,
)
from planline.gantt_core.scheduler import ScheduleAnchor, compute_schedule

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ProjectHeader(_Frozen):
    id: int
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: ProjectStatus
    progress: float
    overdue: bool
    created_at: datetime
    updated_at: datetime


class SnapshotTask(_Frozen):
    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    level: int = 0
    is_leaf: bool = True
    planned_start: date
    planned_end: date
    duration: int
    earliest_start: date
    earliest_finish: date
    latest_start: date
    latest_finish: date
    slack: int
    critical: bool
    progress: float
    status: TaskStatus
    overdue: bool
    predecessor_ids: Tuple[int, ...] = ()
    successor_ids: Tuple[int, ...] = ()


class SnapshotDependency(_Frozen):
    id: int
    predecessor_id: int
    successor_id: int
    predecessor_name: str
    successor_name: str
    type: DependencyType
    lag: int


class Timeline(_Frozen):
    start: date
    end: date
    total_days: int
    working_days: int
    current_date: date
    schedule_start: Optional[date] = None
    schedule_finish: Optional[date] = None

    def offset_days(self, day: date) -> int:
        """Day offset of a date from the timeline start (0 = first day)."""
        return (day - self.start).days


class ProjectStatistics(_Frozen):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    not_started_tasks: int = 0
    overdue_tasks: int = 0
    completion_rate: float = 0.0


class ScheduleWarning(_Frozen):
    kind: str  # "infeasible" | "over_budget" | "chains_truncated"
    message: str
    task_ids: Tuple[int, ...] = ()


class GanttSnapshot(_Frozen):
    project: ProjectHeader
    tasks: Tuple[SnapshotTask, ...] = ()
    dependencies: Tuple[SnapshotDependency, ...] = ()
    critical_path: Tuple[int, ...] = ()
    critical_chains: Tuple[Tuple[int, ...], ...] = ()
    critical_chains_truncated: bool = False
    longest_critical_chain: Tuple[int, ...] = ()
    timeline: Timeline
    statistics: ProjectStatistics = Field(default_factory=ProjectStatistics)
    warnings: Tuple[ScheduleWarning, ...] = ()
    over_budget: bool = False

    def task(self, task_id: int) -> SnapshotTask:
        for row in self.tasks:
            if row.id == task_id:
                return row
        raise KeyError(task_id)

    def offset_days(self, day: date) -> int:
        return self.timeline.offset_days(day)


def compute_statistics(
    graph: ProjectGraph,
    derived: dict,
    today: date,
) -> ProjectStatistics:
    total = len(graph.tasks)
    counts = {status: 0 for status in TaskStatus}
    overdue = 0
    for tid, task in graph.tasks.items():
        status = derived[tid].status
        counts[status] += 1
        if progress.is_overdue(task.end_date, status, today):
            overdue += 1
    completed = counts[TaskStatus.COMPLETED]
    return ProjectStatistics(
        total_tasks=total,
        completed_tasks=completed,
        in_progress_tasks=counts[TaskStatus.IN_PROGRESS],
        not_started_tasks=counts[TaskStatus.NOT_STARTED],
        overdue_tasks=overdue,
        completion_rate=round(completed * 100.0 / total, 2) if total else 0.0,
    )


def _warnings(schedule: ScheduleResult, path: critical_path.CriticalPath) -> Tuple[ScheduleWarning, ...]:
    out = []
    if schedule.negative_slack_task_ids:
        out.append(
            ScheduleWarning(
                kind="infeasible",
                message="Schedule is over-constrained; tasks have negative slack",
                task_ids=tuple(schedule.negative_slack_task_ids),
            )
        )
    if schedule.over_budget:
        out.append(
            ScheduleWarning(
                kind="over_budget",
                message=f"Schedule finishes {schedule.schedule_finish}, after the project end date",
            )
        )
    if path.truncated:
        out.append(
            ScheduleWarning(
                kind="chains_truncated",
                message=f"Only the first {len(path.chains)} critical chains are listed",
            )
        )
    return tuple(out)


def assemble(
    graph: ProjectGraph,
    today: date,
    anchor: ScheduleAnchor = ScheduleAnchor.FINISH,
    deadline: Optional[Deadline] = None,
    schedule: Optional[ScheduleResult] = None,
    max_chains: int = critical_path.DEFAULT_MAX_CHAINS,
) -> GanttSnapshot:
    """Build the snapshot of a project as of `today`."""
    deadline = ensure_deadline(deadline)
    project = graph.project
    if schedule is None:
        schedule = compute_schedule(graph, anchor=anchor, deadline=deadline)
    path = critical_path.extract(graph, schedule, deadline, max_chains=max_chains)
    derived = progress.derive(graph)
    deadline.check("progress roll-up")

    critical = set(path.task_ids)
    rows = []
    for tid in graph.hierarchy_order():
        deadline.check("snapshot assembly")
        task = graph.tasks[tid]
        sched = schedule.tasks[tid]
        d = derived[tid]
        rows.append(
            SnapshotTask(
                id=tid,
                name=task.name,
                description=task.description,
                parent_id=task.parent_id,
                level=graph.depth(tid),
                is_leaf=graph.is_leaf(tid),
                planned_start=task.start_date,
                planned_end=task.end_date,
                duration=task.duration,
                earliest_start=sched.earliest_start,
                earliest_finish=sched.earliest_finish,
                latest_start=sched.latest_start,
                latest_finish=sched.latest_finish,
                slack=sched.slack,
                critical=tid in critical or (sched.is_summary and sched.slack == 0),
                progress=d.progress,
                status=d.status,
                overdue=progress.is_overdue(task.end_date, d.status, today),
                predecessor_ids=tuple(graph.predecessors(tid)),
                successor_ids=tuple(graph.successors(tid)),
            )
        )

    edges = []
    for edge_id in graph.edge_ids():
        edge = graph.edges[edge_id]
        edges.append(
            SnapshotDependency(
                id=edge_id,
                predecessor_id=edge.predecessor_id,
                successor_id=edge.successor_id,
                predecessor_name=graph.tasks[edge.predecessor_id].name,
                successor_name=graph.tasks[edge.successor_id].name,
                type=edge.type,
                lag=edge.lag,
            )
        )

    overall = progress.project_progress(graph, derived)
    status = progress.project_status(overall, project.status)
    header = ProjectHeader(
        id=project.id,
        name=project.name,
        description=project.description,
        start_date=project.start_date,
        end_date=project.end_date,
        status=status,
        progress=overall,
        overdue=progress.is_overdue(project.end_date, status, today),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )
    timeline = Timeline(
        start=project.start_date,
        end=project.end_date,
        total_days=span_days(project.start_date, project.end_date),
        working_days=span_days(project.start_date, project.end_date),
        current_date=today,
        schedule_start=schedule.schedule_start,
        schedule_finish=schedule.schedule_finish,
    )
    snapshot = GanttSnapshot(
        project=header,
        tasks=tuple(rows),
        dependencies=tuple(edges),
        critical_path=tuple(path.task_ids),
        critical_chains=tuple(tuple(c) for c in path.chains),
        critical_chains_truncated=path.truncated,
        longest_critical_chain=tuple(path.longest),
        timeline=timeline,
        statistics=compute_statistics(graph, derived, today),
        warnings=_warnings(schedule, path),
        over_budget=schedule.over_budget,
    )
    logger.debug("Assembled snapshot for project %s (%d tasks)", project.id, len(rows))
    return snapshot
