"""
Scheduler - forward/backward critical-path passes over one project.

Implements:
- Topological ordering (Kahn, ready set ordered by task id)
- One bound function per dependency type used by both passes
- Slack, infeasibility and over-budget reporting
- Summary (parent) task envelopes rolled up from their children
"""

from __future__ import annotations

import heapq
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from planline.gantt_core import cycles
from planline.gantt_core.deadline import Deadline, ensure_deadline
from planline.gantt_core.errors import CycleError, InfeasibleError, format_path
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.models import DependencyType, ScheduleResult, TaskSchedule

logger = logging.getLogger(__name__)


class ScheduleAnchor(str, Enum):
    """Where the backward pass starts."""
    FINISH = "finish"  # latest computed earliest finish
    DEADLINE = "deadline"  # project end, or later when the schedule overruns it


class Window(NamedTuple):
    start: date
    finish: date
    duration: int


# (predecessor anchor, successor anchor, gap): S.<anchor> >= P.<anchor> + lag + gap
_LINKS = {
    DependencyType.FS: ("finish", "start", 1),
    DependencyType.SS: ("start", "start", 0),
    DependencyType.FF: ("finish", "finish", 0),
    DependencyType.SF: ("start", "finish", 0),
}


def _days(n: int) -> timedelta:
    return timedelta(days=n)


def constraint_bound(
    dep_type: DependencyType,
    lag: int,
    pred: Window,
    succ: Window,
    forward: bool = True,
) -> date:
    """
    Bound imposed by one edge.

    forward=True: the lowest start the successor may take, given the
    predecessor's earliest window (succ contributes only its duration).
    forward=False: the highest finish the predecessor may take, given the
    successor's latest window (pred contributes only its duration).
    """
    pred_anchor, succ_anchor, gap = _LINKS[DependencyType(dep_type)]
    if forward:
        edge = getattr(pred, pred_anchor) + _days(lag + gap)
        if succ_anchor == "finish":
            return edge - _days(succ.duration - 1)
        return edge
    edge = getattr(succ, succ_anchor) - _days(lag + gap)
    if pred_anchor == "start":
        return edge + _days(pred.duration - 1)
    return edge


def topological_order(graph: ProjectGraph, deadline: Optional[Deadline] = None) -> List[int]:
    """Kahn's algorithm; among ready tasks the smallest id goes first.

    Raises CycleError when the edge set is not a DAG.
    """
    deadline = ensure_deadline(deadline)
    in_degree: Dict[int, int] = {tid: 0 for tid in graph.task_ids()}
    for edge_id in graph.edge_ids():
        edge = graph.edges[edge_id]
        in_degree[edge.successor_id] += 1

    ready = [tid for tid, deg in in_degree.items() if deg == 0]
    heapq.heapify(ready)
    order: List[int] = []
    while ready:
        deadline.check("topological sort")
        node = heapq.heappop(ready)
        order.append(node)
        for succ in graph.successors(node):
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                heapq.heappush(ready, succ)

    if len(order) != len(in_degree):
        loop = cycles.find_any_cycle(graph) or sorted(set(in_degree) - set(order))
        logger.warning("Project %s dependency graph contains a cycle: %s", graph.project_id, loop)
        raise CycleError(f"Dependency graph contains a cycle: {format_path(loop)}", path=loop)
    return order


def compute_schedule(
    graph: ProjectGraph,
    anchor: ScheduleAnchor = ScheduleAnchor.FINISH,
    deadline: Optional[Deadline] = None,
) -> ScheduleResult:
    """Run both passes and return a schedule for every task of the project."""
    deadline = ensure_deadline(deadline)
    project = graph.project
    result = ScheduleResult(project_id=graph.project_id)
    if not graph.tasks:
        return result

    order = topological_order(graph, deadline)
    durations = {tid: graph.tasks[tid].duration for tid in order}
    try:
        early, late, schedule_start, schedule_finish, anchor_date = _passes(
            graph, order, durations, anchor, deadline
        )
    except OverflowError as exc:
        logger.warning("Project %s schedule leaves the supported date range: %s", graph.project_id, exc)
        raise InfeasibleError(
            f"Schedule of project {graph.project_id} runs outside the supported date range",
            ids=[graph.project_id],
            resource_kind="project",
        ) from exc

    for tid in order:
        task = graph.tasks[tid]
        result.tasks[tid] = TaskSchedule(
            task_id=tid,
            duration=durations[tid],
            planned_start=task.start_date,
            planned_end=task.end_date,
            earliest_start=early[tid].start,
            earliest_finish=early[tid].finish,
            latest_start=late[tid].start,
            latest_finish=late[tid].finish,
            slack=(late[tid].start - early[tid].start).days,
        )

    _roll_up_summaries(graph, result, deadline)

    result.order = order
    result.schedule_start = schedule_start
    result.schedule_finish = schedule_finish
    result.anchor = anchor_date
    result.over_budget = schedule_finish > project.end_date
    result.negative_slack_task_ids = sorted(tid for tid, s in result.tasks.items() if s.slack < 0)

    if result.over_budget:
        logger.warning(
            "Project %s schedule finishes %s, after project end %s",
            graph.project_id, schedule_finish, project.end_date,
        )
    if result.negative_slack_task_ids:
        logger.warning(
            "Project %s schedule infeasible, negative slack on %s",
            graph.project_id, result.negative_slack_task_ids,
        )
    logger.debug("Scheduled project %s: %d tasks, finish %s", graph.project_id, len(order), schedule_finish)
    return result


def _passes(
    graph: ProjectGraph,
    order: List[int],
    durations: Dict[int, int],
    anchor: ScheduleAnchor,
    deadline: Deadline,
) -> Tuple[Dict[int, Window], Dict[int, Window], date, date, date]:
    """Forward then backward pass. Date arithmetic may raise OverflowError."""
    project = graph.project

    # Forward pass
    early: Dict[int, Window] = {}
    for tid in order:
        deadline.check("forward pass")
        task = graph.tasks[tid]
        start = max(task.start_date, project.start_date)
        own = Window(start, start, durations[tid])
        for edge in graph.incoming(tid):
            bound = constraint_bound(edge.type, edge.lag, early[edge.predecessor_id], own)
            if bound > start:
                start = bound
        early[tid] = Window(start, start + _days(durations[tid] - 1), durations[tid])

    # Summary tasks take their children's envelope later, so only leaves bound the schedule.
    leaves = [tid for tid in order if graph.is_leaf(tid)]
    schedule_start = min(early[tid].start for tid in leaves)
    schedule_finish = max(early[tid].finish for tid in leaves)
    if ScheduleAnchor(anchor) == ScheduleAnchor.DEADLINE:
        anchor_date = max(project.end_date, schedule_finish)
    else:
        anchor_date = schedule_finish

    # Backward pass
    late: Dict[int, Window] = {}
    for tid in reversed(order):
        deadline.check("backward pass")
        finish = anchor_date
        own = Window(finish, finish, durations[tid])
        for edge in graph.outgoing(tid):
            bound = constraint_bound(edge.type, edge.lag, own, late[edge.successor_id], forward=False)
            if bound < finish:
                finish = bound
        late[tid] = Window(finish - _days(durations[tid] - 1), finish, durations[tid])

    return early, late, schedule_start, schedule_finish, anchor_date


def _roll_up_summaries(graph: ProjectGraph, result: ScheduleResult, deadline: Deadline) -> None:
    """Give each parent the envelope of its children, deepest parents first."""
    for tid in graph.bottom_up_order():
        children = graph.children_of(tid)
        if not children:
            continue
        deadline.check("summary roll-up")
        rows = [result.tasks[c] for c in children]
        current = result.tasks[tid]
        result.tasks[tid] = current.model_copy(
            update={
                "earliest_start": min(r.earliest_start for r in rows),
                "earliest_finish": max(r.earliest_finish for r in rows),
                "latest_start": min(r.latest_start for r in rows),
                "latest_finish": max(r.latest_finish for r in rows),
                "slack": min(r.slack for r in rows),
                "is_summary": True,
            }
        )
