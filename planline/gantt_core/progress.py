"""
Progress Aggregator - status transitions and duration-weighted roll-up.

Stored status is a hint. Everything exposed to callers goes through
derive() so that progress and status always agree.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from planline.gantt_core.errors import InvalidError
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.models import ProjectStatus, Task, TaskStatus


class Derived(NamedTuple):
    progress: float
    status: TaskStatus


def weighted_mean(pairs: Iterable[Tuple[float, int]]) -> float:
    """Mean of (value, weight) pairs rounded to two decimals; 0 when empty."""
    total = 0.0
    weight = 0
    for value, w in pairs:
        total += value * w
        weight += w
    if weight == 0:
        return 0.0
    return round(total / weight, 2)


def normalize_status(progress: float, status: TaskStatus) -> TaskStatus:
    """Closest status consistent with a progress value."""
    if progress >= 100:
        return TaskStatus.COMPLETED
    if progress > 0:
        if status in (TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD):
            return status
        return TaskStatus.IN_PROGRESS
    if status == TaskStatus.COMPLETED:
        return TaskStatus.NOT_STARTED
    return status


def status_after_progress(progress: float, current: TaskStatus) -> TaskStatus:
    """Leaf auto-transition applied when progress is set explicitly."""
    if progress >= 100:
        return TaskStatus.COMPLETED
    if progress <= 0:
        if current in (TaskStatus.ON_HOLD, TaskStatus.CANCELLED):
            return current
        return TaskStatus.NOT_STARTED
    if current in (TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD):
        return current
    return TaskStatus.IN_PROGRESS


def progress_after_status(task: Task, status: TaskStatus) -> float:
    """Progress a leaf ends up with when its status is set explicitly.

    Raises InvalidError for combinations that would break the invariant.
    """
    status = TaskStatus(status)
    if status == TaskStatus.COMPLETED:
        return 100.0
    if status == TaskStatus.NOT_STARTED:
        return 0.0
    if task.progress >= 100:
        raise InvalidError(
            f"Task {task.id} is 100% complete and cannot be set to {status.value}",
            ids=[task.id],
            resource_kind="task",
        )
    if status == TaskStatus.CANCELLED and task.progress > 0:
        raise InvalidError(
            f"Task {task.id} has progress {task.progress} and cannot be cancelled",
            ids=[task.id],
            resource_kind="task",
        )
    return task.progress


def parent_status(children: List[Derived], progress: float, prior: TaskStatus) -> TaskStatus:
    statuses = [c.status for c in children]
    if all(s == TaskStatus.COMPLETED for s in statuses):
        return TaskStatus.COMPLETED
    if all(s == TaskStatus.CANCELLED for s in statuses):
        return TaskStatus.CANCELLED
    if any(s == TaskStatus.IN_PROGRESS for s in statuses) or any(0 < c.progress < 100 for c in children):
        return TaskStatus.IN_PROGRESS
    if all(s == TaskStatus.NOT_STARTED for s in statuses):
        return TaskStatus.NOT_STARTED
    base = TaskStatus.NOT_STARTED if TaskStatus(prior).is_terminal else TaskStatus(prior)
    return normalize_status(progress, base)


def derive(graph: ProjectGraph) -> Dict[int, Derived]:
    """Derived progress and status of every task, children before parents."""
    out: Dict[int, Derived] = {}
    for tid in graph.bottom_up_order():
        task = graph.tasks[tid]
        children = graph.children_of(tid)
        if not children:
            out[tid] = Derived(task.progress, normalize_status(task.progress, task.status))
            continue
        rows = [out[c] for c in children]
        progress = weighted_mean((out[c].progress, graph.tasks[c].duration) for c in children)
        out[tid] = Derived(progress, parent_status(rows, progress, task.status))
    return out


def project_progress(graph: ProjectGraph, derived: Optional[Dict[int, Derived]] = None) -> float:
    derived = derived if derived is not None else derive(graph)
    return weighted_mean((derived[r].progress, graph.tasks[r].duration) for r in graph.roots())


def project_status(progress: float, current: ProjectStatus) -> ProjectStatus:
    current = ProjectStatus(current)
    if progress >= 100 and current != ProjectStatus.COMPLETED:
        return ProjectStatus.COMPLETED
    if 0 < progress < 100 and current == ProjectStatus.PLANNING:
        return ProjectStatus.IN_PROGRESS
    return current


def is_overdue(end_date: date, status, today: date) -> bool:
    """Past its end date and not completed. Accepts task or project status."""
    return today > end_date and getattr(status, "value", status) != "COMPLETED"


def stale_tasks(graph: ProjectGraph, derived: Dict[int, Derived]) -> List[Task]:
    """Tasks whose stored progress/status differs from the derived values."""
    changed: List[Task] = []
    for tid in graph.task_ids():
        task = graph.tasks[tid]
        d = derived[tid]
        if task.progress != d.progress or task.status != d.status:
            changed.append(task.model_copy(update={"progress": d.progress, "status": d.status}))
    return changed
