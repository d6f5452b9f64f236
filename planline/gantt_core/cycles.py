"""
Cycle Detector - reachability over the dependency graph.

Answers "would adding pred -> succ close a loop?" by asking whether pred is
already reachable from succ along successor edges. Iterative DFS, neighbours
visited in ascending id order so witness paths are reproducible.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Set

if TYPE_CHECKING:
    from planline.gantt_core.graph import ProjectGraph


def find_path(graph: "ProjectGraph", start: int, target: int) -> Optional[List[int]]:
    """Return a successor-edge path start ~> target, or None.

    A zero-length path is returned as [start] when start == target.
    """
    if start == target:
        return [start]
    parent: Dict[int, int] = {}
    visited: Set[int] = {start}
    stack: List[int] = [start]
    # Each task is pushed at most once.
    steps_left = len(graph.tasks) + 1
    while stack:
        steps_left -= 1
        if steps_left < 0:
            break
        node = stack.pop()
        # reversed() so the smallest id is popped first
        for succ in reversed(graph.successors(node)):
            if succ in visited:
                continue
            parent[succ] = node
            if succ == target:
                path = [succ]
                while path[-1] != start:
                    path.append(parent[path[-1]])
                path.reverse()
                return path
            visited.add(succ)
            stack.append(succ)
    return None


def cycle_path(graph: "ProjectGraph", predecessor_id: int, successor_id: int) -> Optional[List[int]]:
    """Witness loop created by a prospective edge, as [pred, succ, ..., pred]."""
    if predecessor_id == successor_id:
        return [predecessor_id, predecessor_id]
    path = find_path(graph, successor_id, predecessor_id)
    if path is None:
        return None
    return [predecessor_id] + path


def would_cycle(graph: "ProjectGraph", predecessor_id: int, successor_id: int) -> bool:
    return cycle_path(graph, predecessor_id, successor_id) is not None


def reachable_successors(graph: "ProjectGraph", task_id: int) -> Set[int]:
    """Every task reachable from task_id along successor edges."""
    seen: Set[int] = set()
    stack = list(graph.successors(task_id))
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        stack.extend(graph.successors(node))
    return seen


def parent_cycle_path(graph: "ProjectGraph", task_id: int, parent_id: Optional[int]) -> Optional[List[int]]:
    """Witness for a parent link that would make task_id its own ancestor.

    Returned as [task_id, parent_id, ..., task_id] following parent links.
    """
    if parent_id is None:
        return None
    path = [task_id]
    current: Optional[int] = parent_id
    guard = len(graph.tasks) + 1
    while current is not None and guard > 0:
        path.append(current)
        if current == task_id:
            return path
        current = graph.parent_of(current)
        guard -= 1
    return None


def find_any_cycle(graph: "ProjectGraph") -> Optional[List[int]]:
    """Locate some directed cycle in the whole edge set (white/grey/black DFS)."""
    WHITE, GREY, BLACK = 0, 1, 2
    colour = {tid: WHITE for tid in graph.task_ids()}
    for root in graph.task_ids():
        if colour[root] != WHITE:
            continue
        colour[root] = GREY
        stack = [(root, iter(graph.successors(root)))]
        trail = [root]
        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if colour.get(child, WHITE) == GREY:
                    start = trail.index(child)
                    return trail[start:] + [child]
                if colour.get(child, WHITE) == WHITE:
                    colour[child] = GREY
                    stack.append((child, iter(graph.successors(child))))
                    trail.append(child)
                    advanced = True
                    break
            if not advanced:
                colour[node] = BLACK
                stack.pop()
                trail.pop()
    return None
