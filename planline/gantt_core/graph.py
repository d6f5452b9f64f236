"""
Graph Store - per-project arena of tasks and typed dependency edges.

Tasks live in a dict keyed by id; relationships are id pairs held in side
tables (parent-of, children, out-edges, in-edges). Nothing holds a reference
to another record, every lookup goes through the arena.

All iteration is ordered by id so scheduling is reproducible.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from planline.gantt_core import cycles
from planline.gantt_core.errors import (
    ConflictError,
    CycleError,
    InvalidError,
    NotFoundError,
    format_path,
)
from planline.gantt_core.models import Dependency, DependencyType, Project, Task


class ProjectGraph:
    """Tasks and dependency edges of a single project."""

    def __init__(
        self,
        project: Project,
        tasks: Iterable[Task] = (),
        edges: Iterable[Dependency] = (),
    ) -> None:
        self.project = project
        self.tasks: Dict[int, Task] = {}
        self.edges: Dict[int, Dependency] = {}
        self._children: Dict[int, Set[int]] = defaultdict(set)
        self._out: Dict[int, Set[int]] = defaultdict(set)
        self._in: Dict[int, Set[int]] = defaultdict(set)
        self._pairs: Dict[Tuple[int, int], int] = {}
        self.version = 0
        for task in tasks:
            self._put_task(task)
        for edge in edges:
            self._put_edge(edge)

    @property
    def project_id(self) -> int:
        return self.project.id  # type: ignore[return-value]

    # --- Internal side-table maintenance ---

    def _put_task(self, task: Task) -> None:
        self.tasks[task.id] = task
        if task.parent_id is not None:
            self._children[task.parent_id].add(task.id)

    def _put_edge(self, edge: Dependency) -> None:
        self.edges[edge.id] = edge
        self._out[edge.predecessor_id].add(edge.id)
        self._in[edge.successor_id].add(edge.id)
        self._pairs[(edge.predecessor_id, edge.successor_id)] = edge.id

    def _touch(self) -> None:
        self.version += 1

    def copy(self) -> "ProjectGraph":
        """Scratch copy for staging a mutation; records are copied too."""
        clone = ProjectGraph(
            self.project.model_copy(),
            [t.model_copy() for t in self.tasks.values()],
            [e.model_copy() for e in self.edges.values()],
        )
        clone.version = self.version
        return clone

    # --- Lookups ---

    def has_task(self, task_id: int) -> bool:
        return task_id in self.tasks

    def task(self, task_id: int) -> Task:
        try:
            return self.tasks[task_id]
        except KeyError:
            raise NotFoundError(f"Task {task_id} not found", ids=[task_id], resource_kind="task") from None

    def edge(self, edge_id: int) -> Dependency:
        try:
            return self.edges[edge_id]
        except KeyError:
            raise NotFoundError(
                f"Dependency {edge_id} not found", ids=[edge_id], resource_kind="dependency"
            ) from None

    def task_ids(self) -> List[int]:
        return sorted(self.tasks)

    def edge_ids(self) -> List[int]:
        return sorted(self.edges)

    def edge_between(self, predecessor_id: int, successor_id: int) -> Optional[Dependency]:
        edge_id = self._pairs.get((predecessor_id, successor_id))
        return self.edges[edge_id] if edge_id is not None else None

    def incoming(self, task_id: int) -> List[Dependency]:
        return [self.edges[e] for e in sorted(self._in.get(task_id, ()))]

    def outgoing(self, task_id: int) -> List[Dependency]:
        return [self.edges[e] for e in sorted(self._out.get(task_id, ()))]

    def predecessors(self, task_id: int) -> List[int]:
        return sorted(e.predecessor_id for e in self.incoming(task_id))

    def successors(self, task_id: int) -> List[int]:
        return sorted(e.successor_id for e in self.outgoing(task_id))

    def parent_of(self, task_id: int) -> Optional[int]:
        task = self.tasks.get(task_id)
        return task.parent_id if task else None

    def children_of(self, task_id: int) -> List[int]:
        return sorted(self._children.get(task_id, ()))

    def is_leaf(self, task_id: int) -> bool:
        return not self._children.get(task_id)

    def roots(self) -> List[int]:
        return [tid for tid in self.task_ids() if self.tasks[tid].parent_id is None]

    def ancestors(self, task_id: int) -> List[int]:
        """Parent first, root last."""
        chain: List[int] = []
        current = self.parent_of(task_id)
        while current is not None and current not in chain:
            chain.append(current)
            current = self.parent_of(current)
        return chain

    def descendants(self, task_id: int) -> List[int]:
        """Depth-first, children in id order."""
        out: List[int] = []
        stack = list(reversed(self.children_of(task_id)))
        while stack:
            node = stack.pop()
            out.append(node)
            stack.extend(reversed(self.children_of(node)))
        return out

    def depth(self, task_id: int) -> int:
        return len(self.ancestors(task_id))

    def hierarchy_order(self) -> List[int]:
        """Roots by id, each followed depth-first by its subtree."""
        order: List[int] = []
        for root in self.roots():
            order.append(root)
            order.extend(self.descendants(root))
        return order

    def bottom_up_order(self) -> List[int]:
        """Deepest tasks first; children always precede their parent."""
        return sorted(self.task_ids(), key=lambda tid: (-self.depth(tid), tid))

    # --- Guarded mutations ---

    def _check_parent(self, task_id: Optional[int], parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        parent = self.tasks.get(parent_id)
        if parent is None or parent.project_id != self.project_id:
            raise InvalidError(
                f"Parent task {parent_id} is not part of project {self.project_id}",
                ids=[parent_id],
                resource_kind="task",
            )
        if self._in.get(parent_id) or self._out.get(parent_id):
            raise InvalidError(
                f"Task {parent_id} has dependencies and cannot take subtasks",
                ids=[parent_id],
                resource_kind="task",
            )
        if task_id is not None:
            loop = cycles.parent_cycle_path(self, task_id, parent_id)
            if loop:
                raise CycleError(
                    f"Parent link {task_id} -> {parent_id} would create a cycle: {format_path(loop)}",
                    path=loop,
                )

    def add_task(self, task: Task) -> Task:
        if task.id is None:
            raise InvalidError("Task id must be assigned before it enters the graph", resource_kind="task")
        if task.project_id != self.project_id:
            raise InvalidError(
                f"Task {task.id} belongs to project {task.project_id}, not {self.project_id}",
                ids=[task.id],
                resource_kind="task",
            )
        if task.id in self.tasks:
            raise ConflictError(f"Task {task.id} already exists", ids=[task.id], resource_kind="task")
        self._check_parent(task.id, task.parent_id)
        self._put_task(task)
        self._touch()
        return task

    def replace_task(self, task: Task) -> Task:
        """Swap a task record in place, re-validating its parent link."""
        current = self.task(task.id)
        if task.project_id != current.project_id:
            raise InvalidError(
                f"Task {task.id} cannot move to another project", ids=[task.id], resource_kind="task"
            )
        if task.parent_id != current.parent_id:
            self._check_parent(task.id, task.parent_id)
            if current.parent_id is not None:
                self._children[current.parent_id].discard(task.id)
            if task.parent_id is not None:
                self._children[task.parent_id].add(task.id)
        self.tasks[task.id] = task
        self._touch()
        return task

    def set_parent(self, task_id: int, parent_id: Optional[int]) -> Task:
        task = self.task(task_id)
        return self.replace_task(task.model_copy(update={"parent_id": parent_id}))

    def remove_task(self, task_id: int) -> Tuple[List[int], List[int]]:
        """Remove a task, orphan its children and drop its edges.

        Returns (detached child ids, removed edge ids).
        """
        task = self.task(task_id)
        detached = self.children_of(task_id)
        for child_id in detached:
            self.tasks[child_id] = self.tasks[child_id].model_copy(update={"parent_id": None})
        self._children.pop(task_id, None)
        if task.parent_id is not None:
            self._children[task.parent_id].discard(task_id)

        removed = sorted(self._out.get(task_id, set()) | self._in.get(task_id, set()))
        for edge_id in removed:
            self._drop_edge(edge_id)
        self._out.pop(task_id, None)
        self._in.pop(task_id, None)
        del self.tasks[task_id]
        self._touch()
        return detached, removed

    def check_edge(self, predecessor_id: int, successor_id: int) -> None:
        """Run every add-edge guard without recording anything."""
        if predecessor_id == successor_id:
            raise InvalidError(
                f"Task {predecessor_id} cannot depend on itself",
                ids=[predecessor_id],
                resource_kind="dependency",
            )
        pred = self.tasks.get(predecessor_id)
        succ = self.tasks.get(successor_id)
        if pred is None or succ is None:
            outsider = predecessor_id if pred is None else successor_id
            raise InvalidError(
                f"Task {outsider} is not part of project {self.project_id}",
                ids=[predecessor_id, successor_id],
                resource_kind="dependency",
            )
        summaries = [tid for tid in (predecessor_id, successor_id) if not self.is_leaf(tid)]
        if summaries:
            # Summary dates are rolled up from their children, so only leaves carry edges.
            raise InvalidError(
                f"Task {summaries[0]} has subtasks and cannot take dependencies",
                ids=summaries,
                resource_kind="dependency",
            )
        if (predecessor_id, successor_id) in self._pairs:
            raise ConflictError(
                f"Dependency {predecessor_id} -> {successor_id} already exists",
                ids=[predecessor_id, successor_id],
                resource_kind="dependency",
            )
        loop = cycles.cycle_path(self, predecessor_id, successor_id)
        if loop:
            raise CycleError(
                f"Dependency {predecessor_id} -> {successor_id} would create a cycle: {format_path(loop)}",
                path=loop,
            )

    def add_edge(self, edge: Dependency) -> Dependency:
        if edge.id is None:
            raise InvalidError("Dependency id must be assigned before it enters the graph")
        self.check_edge(edge.predecessor_id, edge.successor_id)
        self._put_edge(edge)
        self._touch()
        return edge

    def _drop_edge(self, edge_id: int) -> Dependency:
        edge = self.edges.pop(edge_id)
        self._out[edge.predecessor_id].discard(edge_id)
        self._in[edge.successor_id].discard(edge_id)
        self._pairs.pop((edge.predecessor_id, edge.successor_id), None)
        return edge

    def remove_edge(self, edge_id: int) -> Dependency:
        self.edge(edge_id)
        edge = self._drop_edge(edge_id)
        self._touch()
        return edge

    def update_edge(self, edge_id: int, dep_type: DependencyType, lag: int) -> Dependency:
        current = self.edge(edge_id)
        # Type and lag never change reachability; the pair is re-checked so every
        # edge write goes through the same guard.
        self._drop_edge(edge_id)
        try:
            self.check_edge(current.predecessor_id, current.successor_id)
        finally:
            self._put_edge(current)
        updated = current.model_copy(update={"type": dep_type, "lag": lag})
        self.edges[edge_id] = updated
        self._touch()
        return updated

    def replace_project(self, project: Project) -> None:
        self.project = project
        self._touch()
