"""
Gantt Service - guarded operations over projects, tasks and dependencies.

Implements:
- Transactional mutations: staged on a graph copy, persisted, then swapped in
- Per-project shared/exclusive locking
- Snapshot cache keyed by graph version and "today"
- Read deadlines for snapshot, critical path and schedule reads
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from planline.config import runtime_config
from planline.gantt_core import cycles, progress
from planline.gantt_core.deadline import Deadline
from planline.gantt_core.errors import (
    ConflictError,
    GanttError,
    InternalError,
    InvalidError,
    NotFoundError,
)
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.locking import ProjectLockRegistry
from planline.gantt_core.models import (
    Dependency,
    DependencyType,
    Project,
    ProjectStatus,
    ProjectUpdate,
    ScheduleResult,
    Task,
    TaskStatus,
    TaskUpdate,
)
from planline.gantt_core.repository import ANY_PARENT, GanttRepository, gantt_repo_from_env
from planline.gantt_core.scheduler import compute_schedule
from planline.gantt_core.snapshot import GanttSnapshot, ProjectStatistics, assemble

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validated(model: Type[M], data: Mapping[str, Any], resource_kind: str, ids=()) -> M:
    """Build a pydantic record, turning validation failures into InvalidError."""
    try:
        return model(**data)
    except ValidationError as exc:
        reasons = "; ".join(err["msg"] for err in exc.errors())
        raise InvalidError(f"Invalid {resource_kind}: {reasons}", ids=ids, resource_kind=resource_kind) from None


def _project_status(value: Optional[Union[ProjectStatus, str]]) -> Optional[ProjectStatus]:
    if value is None:
        return None
    try:
        return ProjectStatus(value)
    except ValueError:
        raise InvalidError(f"Unknown project status {value!r}", resource_kind="project") from None


def _check_page(offset: int, limit: Optional[int], resource_kind: str) -> None:
    if offset < 0:
        raise InvalidError(f"offset must not be negative, got {offset}", resource_kind=resource_kind)
    if limit is not None and limit < 1:
        raise InvalidError(f"limit must be positive, got {limit}", resource_kind=resource_kind)


class SnapshotCache:
    """Last snapshot per project, valid for one (graph version, today) pair."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[int, Tuple[int, date, GanttSnapshot]] = {}

    def get(self, project_id: int, version: int, today: date) -> Optional[GanttSnapshot]:
        with self._lock:
            entry = self._entries.get(project_id)
        if entry and entry[0] == version and entry[1] == today:
            return entry[2]
        return None

    def put(self, project_id: int, version: int, today: date, snapshot: GanttSnapshot) -> None:
        with self._lock:
            self._entries[project_id] = (version, today, snapshot)

    def invalidate(self, project_id: int) -> None:
        with self._lock:
            self._entries.pop(project_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class GanttService:
    """Scheduling and dependency engine over a GanttRepository."""

    def __init__(
        self,
        repository: Optional[GanttRepository] = None,
        config: Optional[runtime_config.EngineConfig] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._repo = repository or gantt_repo_from_env()
        self.config = config or runtime_config.get_engine_config()
        self._today = today or date.today
        self.locks = ProjectLockRegistry()
        self.cache = SnapshotCache()
        self._graphs: Dict[int, ProjectGraph] = {}
        self._graphs_lock = threading.Lock()

    @property
    def repository(self) -> GanttRepository:
        return self._repo

    def today(self) -> date:
        return self._today()

    # --- Graph store plumbing ---

    def _graph(self, project_id: int) -> ProjectGraph:
        with self._graphs_lock:
            graph = self._graphs.get(project_id)
        if graph is not None:
            return graph
        records = self._repo.load_project_graph(project_id)
        if records is None:
            raise NotFoundError(f"Project {project_id} not found", ids=[project_id], resource_kind="project")
        graph = ProjectGraph(records.project, records.tasks, records.dependencies)
        with self._graphs_lock:
            # Another reader may have loaded it first; keep theirs.
            graph = self._graphs.setdefault(project_id, graph)
        logger.debug("Loaded graph for project %s (%d tasks)", project_id, len(graph.tasks))
        return graph

    def _forget(self, project_id: int) -> None:
        with self._graphs_lock:
            self._graphs.pop(project_id, None)
        self.cache.invalidate(project_id)

    def _commit(self, graph: ProjectGraph, staged: ProjectGraph) -> None:
        staged.version = max(staged.version, graph.version + 1)
        with self._graphs_lock:
            self._graphs[staged.project_id] = staged
        self.cache.invalidate(staged.project_id)

    @contextmanager
    def _repository_write(self, project_id: Optional[int]) -> Iterator[None]:
        """Run a group of repository writes as one transaction."""
        try:
            with self._repo.transaction():
                yield
        except GanttError:
            raise
        except Exception as exc:
            if project_id is not None:
                self._forget(project_id)
            logger.warning("Repository write failed for project %s: %s", project_id, exc)
            raise InternalError(
                f"Repository write failed for project {project_id}: {exc}",
                ids=[project_id] if project_id is not None else [],
                resource_kind="project",
            ) from exc

    def _project_of_task(self, task_id: int) -> int:
        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", ids=[task_id], resource_kind="task")
        return task.project_id

    def _project_of_dependency(self, dependency_id: int) -> int:
        dep = self._repo.get_dependency(dependency_id)
        if dep is None:
            raise NotFoundError(
                f"Dependency {dependency_id} not found", ids=[dependency_id], resource_kind="dependency"
            )
        return dep.project_id

    def _roll_up(self, staged: ProjectGraph) -> Tuple[List[Task], Optional[Project]]:
        """Bring stored progress/status of the staged graph in line with the derived values."""
        derived = progress.derive(staged)
        now = _utc_now()
        changed = []
        for task in progress.stale_tasks(staged, derived):
            task = task.model_copy(update={"updated_at": now})
            staged.replace_task(task)
            changed.append(task)
        overall = progress.project_progress(staged, derived)
        status = progress.project_status(overall, staged.project.status)
        project = None
        if status != staged.project.status:
            project = staged.project.model_copy(update={"status": status, "updated_at": now})
            staged.replace_project(project)
        return changed, project

    def _persist_roll_up(self, staged: ProjectGraph) -> None:
        changed, project = self._roll_up(staged)
        for task in changed:
            self._repo.update_task(task)
        if project is not None:
            self._repo.update_project(project)
            logger.info("Project %s status rolled up to %s", project.id, project.status.value)

    def _deadline(self, timeout: Optional[float]) -> Deadline:
        return Deadline(timeout if timeout is not None else self.config.read_timeout_seconds)

    # --- Projects ---

    def create_project(
        self,
        name: str,
        start_date: date,
        end_date: date,
        description: Optional[str] = None,
    ) -> int:
        project = _validated(
            Project,
            {"name": name, "description": description, "start_date": start_date, "end_date": end_date},
            "project",
        )
        with self.locks.catalog:
            if self._repo.project_name_exists(project.name):
                raise ConflictError(
                    f"Project name '{project.name}' already exists", ids=[project.name], resource_kind="project"
                )
            with self._repository_write(None):
                created = self._repo.create_project(project)
        logger.info("Created project %s (%s)", created.id, created.name)
        return created.id

    def get_project(self, project_id: int) -> Project:
        with self.locks.read(project_id):
            return self._graph(project_id).project.model_copy()

    def list_projects(
        self,
        status: Optional[Union[ProjectStatus, str]] = None,
        name_contains: Optional[str] = None,
        start_from: Optional[date] = None,
        start_to: Optional[date] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Project]:
        """Projects by id. start_from/start_to keep projects whose start date falls in the range."""
        status = _project_status(status)
        _check_page(offset, limit, "project")
        if start_from is not None and start_to is not None and start_to < start_from:
            raise InvalidError(
                f"start_to {start_to} is before start_from {start_from}", resource_kind="project"
            )
        return self._repo.list_projects(
            status=status,
            name_contains=name_contains,
            start_from=start_from,
            start_to=start_to,
            offset=offset,
            limit=limit,
        )

    def count_projects(self, status: Optional[Union[ProjectStatus, str]] = None) -> int:
        return self._repo.count_projects(status=_project_status(status))

    def update_project(self, project_id: int, fields: Union[ProjectUpdate, Mapping[str, Any]]) -> Project:
        if not isinstance(fields, ProjectUpdate):
            fields = _validated(ProjectUpdate, fields, "project", ids=[project_id])
        changes = fields.model_dump(exclude_unset=True)
        with self.locks.catalog, self.locks.write(project_id):
            graph = self._graph(project_id)
            current = graph.project
            if "name" in changes and changes["name"] is None:
                changes.pop("name")
            data = {**current.model_dump(), **changes, "updated_at": _utc_now()}
            project = _validated(Project, data, "project", ids=[project_id])
            if project.name != current.name and self._repo.project_name_exists(project.name, exclude_id=project_id):
                raise ConflictError(
                    f"Project name '{project.name}' already exists", ids=[project.name], resource_kind="project"
                )
            staged = graph.copy()
            staged.replace_project(project)
            with self._repository_write(project_id):
                self._repo.update_project(project)
                if "status" not in changes:
                    self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info("Updated project %s fields=%s", project_id, sorted(changes))
        return staged.project.model_copy()

    def set_project_status(self, project_id: int, status: Union[ProjectStatus, str]) -> Project:
        try:
            status = ProjectStatus(status)
        except ValueError:
            raise InvalidError(f"Unknown project status {status!r}", ids=[project_id], resource_kind="project") from None
        return self.update_project(project_id, ProjectUpdate(status=status))

    def delete_project(self, project_id: int) -> None:
        with self.locks.write(project_id):
            self._graph(project_id)
            with self._repository_write(project_id):
                self._repo.delete_project(project_id)
            self._forget(project_id)
        logger.info("Deleted project %s", project_id)

    def overdue_projects(self) -> List[Project]:
        today = self.today()
        return [p for p in self._repo.list_projects() if progress.is_overdue(p.end_date, p.status, today)]

    def project_progress(self, project_id: int) -> float:
        with self.locks.read(project_id):
            return progress.project_progress(self._graph(project_id))

    # --- Tasks ---

    def create_task(
        self,
        project_id: int,
        name: str,
        start_date: date,
        end_date: date,
        description: Optional[str] = None,
        parent_id: Optional[int] = None,
        duration: Optional[int] = None,
    ) -> int:
        task = _validated(
            Task,
            {
                "project_id": project_id,
                "parent_id": parent_id,
                "name": name,
                "description": description,
                "start_date": start_date,
                "end_date": end_date,
                "duration": duration,
            },
            "task",
        )
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            if len(graph.tasks) >= self.config.max_project_tasks:
                raise InvalidError(
                    f"Project {project_id} already has {len(graph.tasks)} tasks "
                    f"(limit {self.config.max_project_tasks})",
                    ids=[project_id],
                    resource_kind="project",
                )
            if parent_id is not None and not graph.has_task(parent_id):
                raise InvalidError(
                    f"Parent task {parent_id} is not part of project {project_id}",
                    ids=[parent_id],
                    resource_kind="task",
                )
            staged = graph.copy()
            with self._repository_write(project_id):
                created = self._repo.create_task(task)
                staged.add_task(created)
                self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info("Created task %s in project %s (parent=%s)", created.id, project_id, parent_id)
        return created.id

    def add_subtask(
        self,
        parent_id: int,
        name: str,
        start_date: date,
        end_date: date,
        description: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> int:
        project_id = self._project_of_task(parent_id)
        return self.create_task(
            project_id,
            name,
            start_date,
            end_date,
            description=description,
            parent_id=parent_id,
            duration=duration,
        )

    def get_task(self, task_id: int) -> Task:
        project_id = self._project_of_task(task_id)
        with self.locks.read(project_id):
            return self._graph(project_id).task(task_id).model_copy()

    def list_tasks(
        self,
        project_id: int,
        parent_id: Any = ANY_PARENT,
        status: Optional[Union[TaskStatus, str]] = None,
        name_contains: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Task]:
        try:
            status = TaskStatus(status) if status is not None else None
        except ValueError:
            raise InvalidError(f"Unknown task status {status!r}", resource_kind="task") from None
        _check_page(offset, limit, "task")
        with self.locks.read(project_id):
            self._graph(project_id)
            return self._repo.list_tasks(
                project_id,
                parent_id=parent_id,
                status=status,
                name_contains=name_contains,
                offset=offset,
                limit=limit,
            )

    def overdue_tasks(self, project_id: int) -> List[Task]:
        today = self.today()
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            derived = progress.derive(graph)
            return [
                graph.tasks[tid].model_copy()
                for tid in graph.task_ids()
                if progress.is_overdue(graph.tasks[tid].end_date, derived[tid].status, today)
            ]

    def update_task(self, task_id: int, fields: Union[TaskUpdate, Mapping[str, Any]]) -> Task:
        if not isinstance(fields, TaskUpdate):
            fields = _validated(TaskUpdate, fields, "task", ids=[task_id])
        changes = fields.model_dump(exclude_unset=True)
        project_id = self._project_of_task(task_id)
        if changes.get("project_id") not in (None, project_id):
            raise InvalidError(
                f"Task {task_id} cannot move to project {changes['project_id']}",
                ids=[task_id],
                resource_kind="task",
            )
        changes.pop("project_id", None)
        for key in ("name", "start_date", "end_date"):
            if key in changes and changes[key] is None:
                changes.pop(key)

        with self.locks.write(project_id):
            graph = self._graph(project_id)
            current = graph.task(task_id)
            data = {**current.model_dump(), **changes, "updated_at": _utc_now()}
            dates_moved = "start_date" in changes or "end_date" in changes
            if dates_moved and "duration" not in changes:
                data["duration"] = None
            task = _validated(Task, data, "task", ids=[task_id])
            staged = graph.copy()
            staged.replace_task(task)
            with self._repository_write(project_id):
                self._repo.update_task(task)
                self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info("Updated task %s fields=%s", task_id, sorted(changes))
        return staged.task(task_id).model_copy()

    def shift_task(self, task_id: int, day_offset: int) -> Task:
        """Move a task and all of its descendants by day_offset calendar days."""
        project_id = self._project_of_task(task_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            graph.task(task_id)
            staged = graph.copy()
            now = _utc_now()
            moved = []
            try:
                delta = timedelta(days=int(day_offset))
                for tid in [task_id] + staged.descendants(task_id):
                    current = staged.task(tid)
                    shifted = current.model_copy(
                        update={
                            "start_date": current.start_date + delta,
                            "end_date": current.end_date + delta,
                            "updated_at": now,
                        }
                    )
                    staged.replace_task(shifted)
                    moved.append(shifted)
            except OverflowError:
                raise InvalidError(
                    f"Shifting task {task_id} by {day_offset} days leaves the supported date range",
                    ids=[task_id],
                    resource_kind="task",
                ) from None
            with self._repository_write(project_id):
                for task in moved:
                    self._repo.update_task(task)
            self._commit(graph, staged)
        logger.info("Shifted task %s (+%d descendants) by %d days", task_id, len(moved) - 1, day_offset)
        return staged.task(task_id).model_copy()

    def set_progress(self, task_id: int, percent: float) -> Task:
        project_id = self._project_of_task(task_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            current = graph.task(task_id)
            if not graph.is_leaf(task_id):
                raise InvalidError(
                    f"Task {task_id} has subtasks; its progress is rolled up from them",
                    ids=[task_id],
                    resource_kind="task",
                )
            data = current.model_dump()
            data["progress"] = percent
            data["updated_at"] = _utc_now()
            task = _validated(Task, data, "task", ids=[task_id])
            task = task.model_copy(update={"status": progress.status_after_progress(task.progress, current.status)})
            staged = graph.copy()
            staged.replace_task(task)
            with self._repository_write(project_id):
                self._repo.update_task(task)
                self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info("Task %s progress set to %s (%s)", task_id, task.progress, task.status.value)
        return staged.task(task_id).model_copy()

    def set_status(self, task_id: int, status: Union[TaskStatus, str]) -> Task:
        try:
            status = TaskStatus(status)
        except ValueError:
            raise InvalidError(f"Unknown task status {status!r}", ids=[task_id], resource_kind="task") from None
        project_id = self._project_of_task(task_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            current = graph.task(task_id)
            if not graph.is_leaf(task_id):
                raise InvalidError(
                    f"Task {task_id} has subtasks; its status is rolled up from them",
                    ids=[task_id],
                    resource_kind="task",
                )
            percent = progress.progress_after_status(current, status)
            task = current.model_copy(update={"status": status, "progress": percent, "updated_at": _utc_now()})
            staged = graph.copy()
            staged.replace_task(task)
            with self._repository_write(project_id):
                self._repo.update_task(task)
                self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info("Task %s status set to %s (progress %s)", task_id, status.value, percent)
        return staged.task(task_id).model_copy()

    def delete_task(self, task_id: int) -> None:
        project_id = self._project_of_task(task_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            staged = graph.copy()
            detached, removed_edges = staged.remove_task(task_id)
            with self._repository_write(project_id):
                for edge_id in removed_edges:
                    self._repo.delete_dependency(edge_id)
                for child_id in detached:
                    self._repo.update_task(staged.task(child_id))
                self._repo.delete_task(task_id)
                self._persist_roll_up(staged)
            self._commit(graph, staged)
        logger.info(
            "Deleted task %s (detached children=%s, removed edges=%s)", task_id, detached, removed_edges
        )

    # --- Dependencies ---

    def add_dependency(
        self,
        predecessor_id: int,
        successor_id: int,
        type: Optional[Union[DependencyType, str]] = None,
        lag: Optional[int] = None,
    ) -> int:
        dep_type = self._dependency_type(type, predecessor_id)
        lag = self.config.default_lag if lag is None else lag
        project_id = self._project_of_task(predecessor_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            self._check_successor(graph, predecessor_id, successor_id)
            staged = graph.copy()
            staged.check_edge(predecessor_id, successor_id)
            edge = _validated(
                Dependency,
                {
                    "project_id": project_id,
                    "predecessor_id": predecessor_id,
                    "successor_id": successor_id,
                    "type": dep_type,
                    "lag": lag,
                },
                "dependency",
                ids=[predecessor_id, successor_id],
            )
            with self._repository_write(project_id):
                created = self._repo.create_dependency(edge)
            staged.add_edge(created)
            self._commit(graph, staged)
        logger.info(
            "Added dependency %s: %s -> %s (%s, lag %s)",
            created.id, predecessor_id, successor_id, dep_type.value, lag,
        )
        return created.id

    def _check_successor(self, graph: ProjectGraph, predecessor_id: int, successor_id: int) -> None:
        """NotFound for an unknown successor, Invalid for one in another project."""
        if graph.has_task(successor_id):
            return
        if self._repo.get_task(successor_id) is None:
            raise NotFoundError(f"Task {successor_id} not found", ids=[successor_id], resource_kind="task")
        raise InvalidError(
            f"Tasks {predecessor_id} and {successor_id} belong to different projects",
            ids=[predecessor_id, successor_id],
            resource_kind="dependency",
        )

    def _dependency_type(self, value: Optional[Union[DependencyType, str]], ref: int) -> DependencyType:
        if value is None:
            return self.config.default_dependency_type
        try:
            return DependencyType(str(getattr(value, "value", value)).upper())
        except ValueError:
            raise InvalidError(
                f"Unknown dependency type {value!r}", ids=[ref], resource_kind="dependency"
            ) from None

    def remove_dependency(self, dependency_id: int) -> None:
        project_id = self._project_of_dependency(dependency_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            staged = graph.copy()
            staged.remove_edge(dependency_id)
            with self._repository_write(project_id):
                self._repo.delete_dependency(dependency_id)
            self._commit(graph, staged)
        logger.info("Removed dependency %s", dependency_id)

    def update_dependency(
        self,
        dependency_id: int,
        type: Optional[Union[DependencyType, str]] = None,
        lag: Optional[int] = None,
    ) -> Dependency:
        project_id = self._project_of_dependency(dependency_id)
        with self.locks.write(project_id):
            graph = self._graph(project_id)
            current = graph.edge(dependency_id)
            dep_type = current.type if type is None else self._dependency_type(type, dependency_id)
            new_lag = current.lag if lag is None else lag
            _validated(
                Dependency,
                {**current.model_dump(), "type": dep_type, "lag": new_lag},
                "dependency",
                ids=[dependency_id],
            )
            staged = graph.copy()
            updated = staged.update_edge(dependency_id, dep_type, new_lag)
            with self._repository_write(project_id):
                self._repo.update_dependency(updated)
            self._commit(graph, staged)
        logger.info("Updated dependency %s (%s, lag %s)", dependency_id, dep_type.value, new_lag)
        return updated.model_copy()

    def list_dependencies(self, project_id: int) -> List[Dependency]:
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            return [graph.edges[e].model_copy() for e in graph.edge_ids()]

    def task_dependencies(self, task_id: int) -> List[Dependency]:
        """Edges where the task is predecessor or successor, by edge id."""
        project_id = self._project_of_task(task_id)
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            graph.task(task_id)
            edges = {e.id: e for e in graph.incoming(task_id) + graph.outgoing(task_id)}
            return [edges[k].model_copy() for k in sorted(edges)]

    def would_cycle(self, predecessor_id: int, successor_id: int) -> bool:
        project_id = self._project_of_task(predecessor_id)
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            graph.task(predecessor_id)
            self._check_successor(graph, predecessor_id, successor_id)
            return cycles.would_cycle(graph, predecessor_id, successor_id)

    def reachable_successors(self, task_id: int) -> List[int]:
        project_id = self._project_of_task(task_id)
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            graph.task(task_id)
            return sorted(cycles.reachable_successors(graph, task_id))

    # --- Reads ---

    def compute_schedule(self, project_id: int, timeout: Optional[float] = None) -> ScheduleResult:
        deadline = self._deadline(timeout)
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            return compute_schedule(graph, anchor=self.config.schedule_anchor, deadline=deadline)

    def get_snapshot(self, project_id: int, timeout: Optional[float] = None) -> GanttSnapshot:
        deadline = self._deadline(timeout)
        today = self.today()
        with self.locks.read(project_id):
            graph = self._graph(project_id)
            if self.config.snapshot_cache:
                cached = self.cache.get(project_id, graph.version, today)
                if cached is not None:
                    logger.debug("Snapshot cache hit for project %s (version %s)", project_id, graph.version)
                    return cached
            snapshot = assemble(
                graph,
                today,
                anchor=self.config.schedule_anchor,
                deadline=deadline,
                max_chains=self.config.max_critical_chains,
            )
            if self.config.snapshot_cache:
                self.cache.put(project_id, graph.version, today, snapshot)
        return snapshot

    def critical_path(self, project_id: int, longest: bool = False, timeout: Optional[float] = None) -> List[int]:
        snapshot = self.get_snapshot(project_id, timeout=timeout)
        if longest:
            return list(snapshot.longest_critical_chain)
        return list(snapshot.critical_path)

    def project_statistics(self, project_id: int, timeout: Optional[float] = None) -> ProjectStatistics:
        return self.get_snapshot(project_id, timeout=timeout).statistics

    def recalculate(self, project_id: int) -> None:
        """Drop cached state for a project; the next read reloads and reschedules."""
        with self.locks.write(project_id):
            self._graph(project_id)
            self._forget(project_id)
        logger.info("Recalculation requested for project %s", project_id)


# Module-level default service
_default_service: Optional[GanttService] = None


def get_gantt_service() -> GanttService:
    """Get default gantt service."""
    global _default_service
    if _default_service is None:
        _default_service = GanttService()
    return _default_service


def set_gantt_service(service: Optional[GanttService]) -> None:
    """Override default service (for testing)."""
    global _default_service
    _default_service = service
