"""
Critical Path Extractor.

A task is critical when its slack is zero. Summary tasks mirror their
children, so only leaves are reported. Chains follow driving edges: edges
whose bound is exactly the successor's earliest start.

Tied parallel work multiplies the number of chains, so the chain list is
enumerated lazily up to a limit while the longest chain comes from one
dynamic-programming pass over the driving edges.
"""

from __future__ import annotations

import logging
from itertools import islice
from typing import Dict, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from planline.gantt_core.deadline import Deadline, ensure_deadline
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.models import ScheduleResult
from planline.gantt_core.scheduler import Window, constraint_bound

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHAINS = 100


class CriticalPath(BaseModel):
    """Flat critical task list, the zero-slack chains it is made of, and the longest one."""
    task_ids: List[int] = Field(default_factory=list)
    chains: List[List[int]] = Field(default_factory=list)
    longest: List[int] = Field(default_factory=list)
    truncated: bool = False  # more chains exist than were listed


def critical_task_ids(graph: ProjectGraph, schedule: ScheduleResult) -> List[int]:
    """Zero-slack leaf tasks ordered by (earliest start, id)."""
    rows = [
        s for tid, s in schedule.tasks.items()
        if s.slack == 0 and graph.is_leaf(tid)
    ]
    rows.sort(key=lambda s: (s.earliest_start, s.task_id))
    return [s.task_id for s in rows]


def _driving_successors(
    graph: ProjectGraph, schedule: ScheduleResult, critical: Set[int]
) -> Dict[int, List[int]]:
    links: Dict[int, List[int]] = {tid: [] for tid in critical}
    for edge_id in graph.edge_ids():
        edge = graph.edges[edge_id]
        if edge.predecessor_id not in critical or edge.successor_id not in critical:
            continue
        pred = schedule.tasks[edge.predecessor_id]
        succ = schedule.tasks[edge.successor_id]
        bound = constraint_bound(
            edge.type,
            edge.lag,
            Window(pred.earliest_start, pred.earliest_finish, pred.duration),
            Window(succ.earliest_start, succ.earliest_finish, succ.duration),
        )
        if bound == succ.earliest_start:
            links[edge.predecessor_id].append(edge.successor_id)
    for targets in links.values():
        targets.sort()
    return links


def _heads(links: Dict[int, List[int]], schedule: ScheduleResult) -> List[int]:
    """Critical tasks without a critical driving predecessor, by (earliest start, id)."""
    driven = {succ for targets in links.values() for succ in targets}
    heads = [tid for tid in links if tid not in driven]
    heads.sort(key=lambda tid: (schedule.tasks[tid].earliest_start, tid))
    return heads


def _walk(links: Dict[int, List[int]], heads: List[int], deadline: Deadline) -> Iterator[List[int]]:
    # Depth first, smallest successor first: chains come out already sorted.
    for head in heads:
        stack: List[Tuple[int, List[int]]] = [(head, [head])]
        while stack:
            deadline.check("critical chains")
            node, path = stack.pop()
            nexts = links[node]
            if not nexts:
                yield path
                continue
            for succ in reversed(nexts):
                stack.append((succ, path + [succ]))


def critical_chains(
    graph: ProjectGraph,
    schedule: ScheduleResult,
    deadline: Optional[Deadline] = None,
    limit: Optional[int] = None,
) -> List[List[int]]:
    """Maximal chains of critical tasks linked by driving edges.

    Ordered by (earliest start of the first task, id sequence). Only the
    first `limit` chains are built; None lists every chain.
    """
    deadline = ensure_deadline(deadline)
    links = _driving_successors(graph, schedule, set(critical_task_ids(graph, schedule)))
    return list(islice(_walk(links, _heads(links, schedule), deadline), limit))


def _longest(
    links: Dict[int, List[int]],
    heads: List[int],
    schedule: ScheduleResult,
    deadline: Deadline,
) -> List[int]:
    # best[t] = (duration sum of the best chain starting at t, next task on it)
    best: Dict[int, Tuple[int, Optional[int]]] = {}
    for tid in reversed(schedule.order):
        if tid not in links:
            continue
        deadline.check("longest chain")
        total, step = 0, None
        # Sequences through different successors differ at the successor id,
        # so on equal sums the smaller id gives the smaller sequence.
        for succ in links[tid]:
            if best[succ][0] > total:
                total, step = best[succ][0], succ
        best[tid] = (schedule.tasks[tid].duration + total, step)

    if not heads:
        return []
    node: Optional[int] = min(heads, key=lambda tid: (-best[tid][0], tid))
    chain: List[int] = []
    while node is not None:
        chain.append(node)
        node = best[node][1]
    return chain


def longest_chain(
    graph: ProjectGraph,
    schedule: ScheduleResult,
    deadline: Optional[Deadline] = None,
) -> List[int]:
    """Chain with the largest duration sum; ties go to the lexicographically smallest ids."""
    deadline = ensure_deadline(deadline)
    links = _driving_successors(graph, schedule, set(critical_task_ids(graph, schedule)))
    return _longest(links, _heads(links, schedule), schedule, deadline)


def extract(
    graph: ProjectGraph,
    schedule: ScheduleResult,
    deadline: Optional[Deadline] = None,
    max_chains: int = DEFAULT_MAX_CHAINS,
) -> CriticalPath:
    deadline = ensure_deadline(deadline)
    task_ids = critical_task_ids(graph, schedule)
    links = _driving_successors(graph, schedule, set(task_ids))
    heads = _heads(links, schedule)
    chains = list(islice(_walk(links, heads, deadline), max_chains + 1))
    truncated = len(chains) > max_chains
    if truncated:
        logger.info("Project %s has more than %d critical chains; list truncated", graph.project_id, max_chains)
        chains = chains[:max_chains]
    path = CriticalPath(
        task_ids=task_ids,
        chains=chains,
        longest=_longest(links, heads, schedule, deadline),
        truncated=truncated,
    )
    logger.debug(
        "Project %s critical path: %s (%d chains)",
        graph.project_id, path.task_ids, len(path.chains),
    )
    return path
