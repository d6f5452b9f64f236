"""
Tests for the in-memory and filesystem Gantt repositories.
"""

import json
from datetime import date

import pytest

from planline.gantt_core.models import Dependency, Project, ProjectStatus, Task, TaskStatus
from planline.gantt_core.repository import (
    FileSystemGanttRepository,
    InMemoryGanttRepository,
    gantt_repo_from_env,
)


def _project(name="Website relaunch"):
    return Project(name=name, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))


def _task(project_id, name, parent_id=None):
    return Task(
        project_id=project_id,
        parent_id=parent_id,
        name=name,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 5),
    )


def _seed(repo):
    project = repo.create_project(_project())
    parent = repo.create_task(_task(project.id, "Design"))
    child = repo.create_task(_task(project.id, "Design review", parent_id=parent.id))
    build = repo.create_task(_task(project.id, "Build"))
    dep = repo.create_dependency(
        Dependency(project_id=project.id, predecessor_id=parent.id, successor_id=build.id)
    )
    return project, parent, child, build, dep


class TestInMemoryRepository:

    def test_ids_are_allocated_per_kind(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        assert project.id == 1
        assert (parent.id, child.id, build.id) == (1, 2, 3)
        assert dep.id == 1

    def test_records_are_copied(self):
        repo = InMemoryGanttRepository()
        project, parent, *_ = _seed(repo)
        fetched = repo.get_task(parent.id)
        fetched.name = "Mutated"
        assert repo.get_task(parent.id).name == "Design"

    def test_task_filters(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, _ = _seed(repo)
        repo.update_task(build.model_copy(update={"status": TaskStatus.IN_PROGRESS}))
        assert [t.id for t in repo.list_tasks(project.id)] == [parent.id, child.id, build.id]
        assert [t.id for t in repo.list_tasks(project.id, parent_id=None)] == [parent.id, build.id]
        assert [t.id for t in repo.list_tasks(project.id, parent_id=parent.id)] == [child.id]
        assert [t.id for t in repo.list_tasks(project.id, status=TaskStatus.IN_PROGRESS)] == [build.id]
        assert [t.id for t in repo.list_tasks(project.id, name_contains="REVIEW")] == [child.id]

    def test_project_filters_and_names(self):
        repo = InMemoryGanttRepository()
        first = repo.create_project(_project())
        second = repo.create_project(_project("Mobile app"))
        repo.update_project(second.model_copy(update={"status": ProjectStatus.ON_HOLD}))
        assert [p.id for p in repo.list_projects(status=ProjectStatus.ON_HOLD)] == [second.id]
        assert [p.id for p in repo.list_projects(name_contains="mobile")] == [second.id]
        assert repo.project_name_exists(" website RELAUNCH ")
        assert not repo.project_name_exists("Website relaunch", exclude_id=first.id)

    def test_project_start_range_paging_and_counts(self):
        repo = InMemoryGanttRepository()
        jan = repo.create_project(_project())
        feb = repo.create_project(
            Project(name="Mobile app", start_date=date(2025, 2, 1), end_date=date(2025, 2, 28))
        )
        mar = repo.create_project(
            Project(name="Data warehouse", start_date=date(2025, 3, 1), end_date=date(2025, 3, 31))
        )
        repo.update_project(mar.model_copy(update={"status": ProjectStatus.ON_HOLD}))

        in_range = repo.list_projects(start_from=date(2025, 1, 15), start_to=date(2025, 3, 1))
        assert [p.id for p in in_range] == [feb.id, mar.id]
        assert [p.id for p in repo.list_projects(start_to=date(2025, 1, 1))] == [jan.id]
        assert [p.id for p in repo.list_projects(offset=1, limit=1)] == [feb.id]
        assert repo.list_projects(offset=5) == []
        assert repo.count_projects() == 3
        assert repo.count_projects(status=ProjectStatus.ON_HOLD) == 1

    def test_task_paging(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, _ = _seed(repo)
        assert [t.id for t in repo.list_tasks(project.id, limit=2)] == [parent.id, child.id]
        assert [t.id for t in repo.list_tasks(project.id, offset=2, limit=2)] == [build.id]

    def test_transaction_rolls_back_every_write(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        with pytest.raises(RuntimeError):
            with repo.transaction():
                repo.update_task(build.model_copy(update={"progress": 50.0}))
                repo.delete_dependency(dep.id)
                repo.create_task(_task(project.id, "Deploy"))
                raise RuntimeError("disk full")
        assert repo.get_task(build.id).progress == 0.0
        assert repo.get_dependency(dep.id) is not None
        assert [t.id for t in repo.list_tasks(project.id)] == [parent.id, child.id, build.id]
        assert repo.create_task(_task(project.id, "Deploy")).id == 4

    def test_nested_transactions_commit_together(self):
        repo = InMemoryGanttRepository()
        project, parent, *_ = _seed(repo)
        with repo.transaction():
            with repo.transaction():
                repo.update_task(parent.model_copy(update={"name": "Discovery"}))
            repo.update_project(project.model_copy(update={"description": "Q1"}))
        assert repo.get_task(parent.id).name == "Discovery"
        assert repo.get_project(project.id).description == "Q1"

    def test_delete_task_orphans_children_and_drops_edges(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        assert repo.delete_task(parent.id)
        assert repo.get_task(child.id).parent_id is None
        assert repo.get_dependency(dep.id) is None
        assert not repo.delete_task(parent.id)

    def test_delete_project_cascades(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        other = repo.create_project(_project("Other"))
        kept = repo.create_task(_task(other.id, "Kept"))
        assert repo.delete_project(project.id)
        assert repo.list_tasks(project.id) == []
        assert repo.list_dependencies(project.id) == []
        assert repo.get_task(kept.id) is not None
        assert not repo.delete_project(project.id)

    def test_dependency_lookup(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        assert repo.dependency_exists(parent.id, build.id)
        assert not repo.dependency_exists(build.id, parent.id)
        repo.update_dependency(dep.model_copy(update={"lag": 4}))
        assert repo.get_dependency(dep.id).lag == 4

    def test_update_missing_record(self):
        repo = InMemoryGanttRepository()
        with pytest.raises(KeyError):
            repo.update_task(_task(1, "Ghost").model_copy(update={"id": 7}))

    def test_load_project_graph(self):
        repo = InMemoryGanttRepository()
        project, parent, child, build, dep = _seed(repo)
        records = repo.load_project_graph(project.id)
        assert records.project.id == project.id
        assert [t.id for t in records.tasks] == [parent.id, child.id, build.id]
        assert [d.id for d in records.dependencies] == [dep.id]
        assert repo.load_project_graph(42) is None


class TestFileSystemRepository:

    def test_state_survives_reopen(self, tmp_path):
        path = tmp_path / "gantt.json"
        repo = FileSystemGanttRepository(path)
        project, parent, child, build, dep = _seed(repo)

        reopened = FileSystemGanttRepository(path)
        assert reopened.get_project(project.id).name == "Website relaunch"
        assert reopened.get_task(child.id).parent_id == parent.id
        assert reopened.get_dependency(dep.id).successor_id == build.id
        # Counters continue where the first instance stopped.
        assert reopened.create_task(_task(project.id, "Deploy")).id == 4

    def test_document_layout(self, tmp_path):
        path = tmp_path / "nested" / "gantt.json"
        repo = FileSystemGanttRepository(path)
        _seed(repo)
        document = json.loads(path.read_text(encoding="utf-8"))
        assert sorted(document) == ["dependencies", "next_ids", "projects", "tasks"]
        assert document["projects"][0]["start_date"] == "2025-01-01"
        assert not [p for p in path.parent.iterdir() if p.name.startswith(".gantt-")]

    def test_deletes_are_persisted(self, tmp_path):
        path = tmp_path / "gantt.json"
        repo = FileSystemGanttRepository(path)
        project, *_ = _seed(repo)
        repo.delete_project(project.id)
        assert FileSystemGanttRepository(path).list_projects() == []


    def test_transaction_writes_document_once(self, tmp_path, monkeypatch):
        path = tmp_path / "gantt.json"
        repo = FileSystemGanttRepository(path)
        project, parent, child, build, _ = _seed(repo)
        writes = []
        original = FileSystemGanttRepository._changed

        def counting(self):
            writes.append(1)
            original(self)

        monkeypatch.setattr(FileSystemGanttRepository, "_changed", counting)
        with repo.transaction():
            repo.update_task(parent.model_copy(update={"progress": 20.0}))
            repo.update_task(build.model_copy(update={"progress": 40.0}))
        assert len(writes) == 1
        reopened = FileSystemGanttRepository(path)
        assert [reopened.get_task(t.id).progress for t in (parent, build)] == [20.0, 40.0]

    def test_failed_transaction_leaves_document_alone(self, tmp_path):
        path = tmp_path / "gantt.json"
        repo = FileSystemGanttRepository(path)
        project, parent, *_ = _seed(repo)
        before = path.read_text(encoding="utf-8")
        with pytest.raises(KeyError):
            with repo.transaction():
                repo.update_task(parent.model_copy(update={"name": "Discovery"}))
                repo.update_task(_task(project.id, "Ghost").model_copy(update={"id": 99}))
        assert path.read_text(encoding="utf-8") == before
        assert repo.get_task(parent.id).name == "Design"


class TestRepoFromEnv:

    def test_defaults_to_memory(self, monkeypatch):
        monkeypatch.delenv("GANTT_BACKEND", raising=False)
        assert isinstance(gantt_repo_from_env(), InMemoryGanttRepository)
        assert not isinstance(gantt_repo_from_env(), FileSystemGanttRepository)

    def test_filesystem_backend(self, monkeypatch, tmp_path):
        path = tmp_path / "env" / "gantt.json"
        monkeypatch.setenv("GANTT_BACKEND", "filesystem")
        monkeypatch.setenv("GANTT_FS_PATH", str(path))
        repo = gantt_repo_from_env()
        assert isinstance(repo, FileSystemGanttRepository)
        assert repo.path == path
