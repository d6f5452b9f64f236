from datetime import date

import pytest

from planline.config.runtime_config import EngineConfig
from planline.gantt_core.graph import ProjectGraph
from planline.gantt_core.models import Dependency, DependencyType, Project, Task
from planline.gantt_core.repository import InMemoryGanttRepository
from planline.gantt_core.service import GanttService


def jan(day: int) -> date:
    return date(2025, 1, day)


@pytest.fixture
def build_graph():
    """
    Build a ProjectGraph straight from records, bypassing the guards.

    tasks: (id, start_day, end_day) or (id, start_day, end_day, parent_id), January 2025
    edges: (pred, succ) or (pred, succ, type) or (pred, succ, type, lag)
    """

    def _build(tasks, edges=(), start=jan(1), end=jan(31)):
        project = Project(id=1, name="P", start_date=start, end_date=end)
        records = []
        for row in tasks:
            tid, first, last = row[:3]
            parent = row[3] if len(row) > 3 else None
            records.append(
                Task(
                    id=tid,
                    project_id=1,
                    parent_id=parent,
                    name=f"T{tid}",
                    start_date=first if isinstance(first, date) else jan(first),
                    end_date=last if isinstance(last, date) else jan(last),
                )
            )
        deps = []
        for i, row in enumerate(edges, start=1):
            pred, succ = row[:2]
            dep_type = row[2] if len(row) > 2 else DependencyType.FS
            lag = row[3] if len(row) > 3 else 0
            deps.append(
                Dependency(id=i, project_id=1, predecessor_id=pred, successor_id=succ, type=dep_type, lag=lag)
            )
        return ProjectGraph(project, records, deps)

    return _build


@pytest.fixture
def repo():
    return InMemoryGanttRepository()


@pytest.fixture
def service(repo):
    return GanttService(repository=repo, config=EngineConfig(), today=lambda: jan(15))


@pytest.fixture
def project_id(service):
    return service.create_project("Website relaunch", jan(1), jan(31))
