"""Storage abstractions for projects, tasks and dependency edges."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import date
from itertools import islice
from pathlib import Path
from typing import Any, ContextManager, Dict, Iterable, Iterator, List, NamedTuple, Optional, Protocol, TypeVar

from planline.gantt_core.models import (
    Dependency,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Sentinel for list_tasks(parent_id=...): "any parent" as opposed to None (roots only).
ANY_PARENT: Any = object()

R = TypeVar("R")


def _page(records: Iterable[R], offset: int = 0, limit: Optional[int] = None) -> List[R]:
    stop = None if limit is None else offset + limit
    return list(islice(records, offset, stop))


class ProjectRecords(NamedTuple):
    project: Project
    tasks: List[Task]
    dependencies: List[Dependency]


class GanttRepository(Protocol):
    def transaction(self) -> ContextManager[None]:
        """Writes inside the block are all kept or all discarded."""
        ...

    def create_project(self, project: Project) -> Project:
        ...

    def get_project(self, project_id: int) -> Optional[Project]:
        ...

    def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        name_contains: Optional[str] = None,
        start_from: Optional[date] = None,
        start_to: Optional[date] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Project]:
        ...

    def count_projects(self, status: Optional[ProjectStatus] = None) -> int:
        ...

    def update_project(self, project: Project) -> Project:
        ...

    def delete_project(self, project_id: int) -> bool:
        ...

    def project_name_exists(self, name: str, exclude_id: Optional[int] = None) -> bool:
        ...

    def create_task(self, task: Task) -> Task:
        ...

    def get_task(self, task_id: int) -> Optional[Task]:
        ...

    def list_tasks(
        self,
        project_id: int,
        parent_id: Any = ANY_PARENT,
        status: Optional[TaskStatus] = None,
        name_contains: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Task]:
        ...

    def update_task(self, task: Task) -> Task:
        ...

    def delete_task(self, task_id: int) -> bool:
        ...

    def create_dependency(self, dependency: Dependency) -> Dependency:
        ...

    def get_dependency(self, dependency_id: int) -> Optional[Dependency]:
        ...

    def list_dependencies(self, project_id: int) -> List[Dependency]:
        ...

    def update_dependency(self, dependency: Dependency) -> Dependency:
        ...

    def delete_dependency(self, dependency_id: int) -> bool:
        ...

    def dependency_exists(self, predecessor_id: int, successor_id: int) -> bool:
        ...

    def load_project_graph(self, project_id: int) -> Optional[ProjectRecords]:
        ...


class InMemoryGanttRepository:
    """Dict-backed repository. Records are copied on the way in and out."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: Dict[int, Project] = {}
        self._tasks: Dict[int, Task] = {}
        self._dependencies: Dict[int, Dependency] = {}
        self._next_ids: Dict[str, int] = {"project": 1, "task": 1, "dependency": 1}
        self._tx_depth = 0
        self._tx_dirty = False

    def _allocate(self, kind: str) -> int:
        value = self._next_ids[kind]
        self._next_ids[kind] = value + 1
        return value

    def _changed(self) -> None:
        """Hook called once per committed write or transaction."""

    def _written(self) -> None:
        if self._tx_depth:
            self._tx_dirty = True
        else:
            self._changed()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes; on any error every write in the block is rolled back.

        Nested blocks join the outermost one. Records are replaced, never
        mutated, so shallow copies of the tables are enough to restore them.
        """
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield
                finally:
                    self._tx_depth -= 1
                return
            saved = (dict(self._projects), dict(self._tasks), dict(self._dependencies), dict(self._next_ids))
            self._tx_depth = 1
            self._tx_dirty = False
            try:
                yield
                self._tx_depth = 0
                if self._tx_dirty:
                    self._changed()
            except BaseException:
                self._projects, self._tasks, self._dependencies, self._next_ids = saved
                logger.debug("Rolled back repository transaction")
                raise
            finally:
                self._tx_depth = 0
                self._tx_dirty = False

    # --- Projects ---

    def create_project(self, project: Project) -> Project:
        with self._lock:
            stored = project.model_copy(update={"id": self._allocate("project")})
            self._projects[stored.id] = stored
            self._written()
            return stored.model_copy()

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy() if project else None

    def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        name_contains: Optional[str] = None,
        start_from: Optional[date] = None,
        start_to: Optional[date] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Project]:
        """Projects by id; start_from/start_to bound the start date inclusively."""
        with self._lock:
            matches = []
            for pid in sorted(self._projects):
                project = self._projects[pid]
                if status is not None and project.status != status:
                    continue
                if name_contains and name_contains.lower() not in project.name.lower():
                    continue
                if start_from is not None and project.start_date < start_from:
                    continue
                if start_to is not None and project.start_date > start_to:
                    continue
                matches.append(project)
            return [p.model_copy() for p in _page(matches, offset, limit)]

    def count_projects(self, status: Optional[ProjectStatus] = None) -> int:
        with self._lock:
            return sum(1 for p in self._projects.values() if status is None or p.status == status)

    def update_project(self, project: Project) -> Project:
        with self._lock:
            if project.id not in self._projects:
                raise KeyError(project.id)
            self._projects[project.id] = project.model_copy()
            self._written()
            return project

    def delete_project(self, project_id: int) -> bool:
        with self._lock:
            if self._projects.pop(project_id, None) is None:
                return False
            for tid in [t.id for t in self._tasks.values() if t.project_id == project_id]:
                del self._tasks[tid]
            for did in [d.id for d in self._dependencies.values() if d.project_id == project_id]:
                del self._dependencies[did]
            self._written()
            return True

    def project_name_exists(self, name: str, exclude_id: Optional[int] = None) -> bool:
        key = name.strip().lower()
        with self._lock:
            return any(
                p.name.lower() == key and p.id != exclude_id
                for p in self._projects.values()
            )

    # --- Tasks ---

    def create_task(self, task: Task) -> Task:
        with self._lock:
            stored = task.model_copy(update={"id": self._allocate("task")})
            self._tasks[stored.id] = stored
            self._written()
            return stored.model_copy()

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy() if task else None

    def list_tasks(
        self,
        project_id: int,
        parent_id: Any = ANY_PARENT,
        status: Optional[TaskStatus] = None,
        name_contains: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Task]:
        with self._lock:
            results: List[Task] = []
            for tid in sorted(self._tasks):
                task = self._tasks[tid]
                if task.project_id != project_id:
                    continue
                if parent_id is not ANY_PARENT and task.parent_id != parent_id:
                    continue
                if status is not None and task.status != status:
                    continue
                if name_contains and name_contains.lower() not in task.name.lower():
                    continue
                results.append(task)
            return [t.model_copy() for t in _page(results, offset, limit)]

    def update_task(self, task: Task) -> Task:
        with self._lock:
            if task.id not in self._tasks:
                raise KeyError(task.id)
            self._tasks[task.id] = task.model_copy()
            self._written()
            return task

    def delete_task(self, task_id: int) -> bool:
        with self._lock:
            if self._tasks.pop(task_id, None) is None:
                return False
            for tid, task in list(self._tasks.items()):
                if task.parent_id == task_id:
                    self._tasks[tid] = task.model_copy(update={"parent_id": None})
            for did in [
                d.id for d in self._dependencies.values()
                if task_id in (d.predecessor_id, d.successor_id)
            ]:
                del self._dependencies[did]
            self._written()
            return True

    # --- Dependencies ---

    def create_dependency(self, dependency: Dependency) -> Dependency:
        with self._lock:
            stored = dependency.model_copy(update={"id": self._allocate("dependency")})
            self._dependencies[stored.id] = stored
            self._written()
            return stored.model_copy()

    def get_dependency(self, dependency_id: int) -> Optional[Dependency]:
        with self._lock:
            dep = self._dependencies.get(dependency_id)
            return dep.model_copy() if dep else None

    def list_dependencies(self, project_id: int) -> List[Dependency]:
        with self._lock:
            return [
                self._dependencies[did].model_copy()
                for did in sorted(self._dependencies)
                if self._dependencies[did].project_id == project_id
            ]

    def update_dependency(self, dependency: Dependency) -> Dependency:
        with self._lock:
            if dependency.id not in self._dependencies:
                raise KeyError(dependency.id)
            self._dependencies[dependency.id] = dependency.model_copy()
            self._written()
            return dependency

    def delete_dependency(self, dependency_id: int) -> bool:
        with self._lock:
            removed = self._dependencies.pop(dependency_id, None) is not None
            if removed:
                self._written()
            return removed

    def dependency_exists(self, predecessor_id: int, successor_id: int) -> bool:
        with self._lock:
            return any(
                d.predecessor_id == predecessor_id and d.successor_id == successor_id
                for d in self._dependencies.values()
            )

    def load_project_graph(self, project_id: int) -> Optional[ProjectRecords]:
        with self._lock:
            project = self.get_project(project_id)
            if project is None:
                return None
            return ProjectRecords(project, self.list_tasks(project_id), self.list_dependencies(project_id))


class FileSystemGanttRepository(InMemoryGanttRepository):
    """
    Repository persisted to one JSON document.

    The whole document is rewritten after every write through a temp file in
    the same directory followed by os.replace, so readers never see a torn file.
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        super().__init__()
        self._path = Path(path or os.getenv("GANTT_FS_PATH") or Path.cwd() / "var" / "gantt" / "gantt.json")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        self._projects = {p["id"]: Project(**p) for p in data.get("projects", [])}
        self._tasks = {t["id"]: Task(**t) for t in data.get("tasks", [])}
        self._dependencies = {d["id"]: Dependency(**d) for d in data.get("dependencies", [])}
        self._next_ids.update(data.get("next_ids", {}))
        logger.debug(
            "Loaded %d projects, %d tasks, %d dependencies from %s",
            len(self._projects), len(self._tasks), len(self._dependencies), self._path,
        )

    def _changed(self) -> None:
        document = {
            "next_ids": dict(self._next_ids),
            "projects": [self._projects[k].model_dump(mode="json") for k in sorted(self._projects)],
            "tasks": [self._tasks[k].model_dump(mode="json") for k in sorted(self._tasks)],
            "dependencies": [self._dependencies[k].model_dump(mode="json") for k in sorted(self._dependencies)],
        }
        fd, tmp_name = tempfile.mkstemp(prefix=".gantt-", suffix=".json", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_name, self._path)
        except Exception as exc:
            logger.warning("Failed to persist gantt document %s: %s", self._path, exc)
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


def gantt_repo_from_env() -> GanttRepository:
    from planline.config import runtime_config

    if runtime_config.get_backend() == "filesystem":
        return FileSystemGanttRepository(runtime_config.get_fs_path())
    return InMemoryGanttRepository()
