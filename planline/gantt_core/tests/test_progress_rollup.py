"""
Tests for status transitions and progress roll-up.
"""

from datetime import date

import pytest

from planline.gantt_core import progress
from planline.gantt_core.errors import InvalidError
from planline.gantt_core.models import ProjectStatus, Task, TaskStatus
from planline.gantt_core.progress import Derived


def _with(graph, task_id, pct, status):
    graph.replace_task(graph.task(task_id).model_copy(update={"progress": pct, "status": status}))


def _leaf(pct=0.0, status=TaskStatus.NOT_STARTED):
    return Task(
        id=1, project_id=1, name="leaf",
        start_date=date(2025, 1, 1), end_date=date(2025, 1, 5),
        progress=pct, status=status,
    )


class TestLeafTransitions:

    @pytest.mark.parametrize(
        "pct,current,expected",
        [
            (100, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
            (0, TaskStatus.IN_PROGRESS, TaskStatus.NOT_STARTED),
            (0, TaskStatus.ON_HOLD, TaskStatus.ON_HOLD),
            (0, TaskStatus.CANCELLED, TaskStatus.CANCELLED),
            (40, TaskStatus.NOT_STARTED, TaskStatus.IN_PROGRESS),
            (40, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS),
            (40, TaskStatus.CANCELLED, TaskStatus.IN_PROGRESS),
            (40, TaskStatus.ON_HOLD, TaskStatus.ON_HOLD),
        ],
    )
    def test_status_after_progress(self, pct, current, expected):
        assert progress.status_after_progress(pct, current) == expected

    def test_completed_forces_full_progress(self):
        assert progress.progress_after_status(_leaf(30, TaskStatus.IN_PROGRESS), TaskStatus.COMPLETED) == 100.0

    def test_not_started_resets_progress(self):
        assert progress.progress_after_status(_leaf(30, TaskStatus.IN_PROGRESS), TaskStatus.NOT_STARTED) == 0.0

    def test_on_hold_keeps_progress(self):
        assert progress.progress_after_status(_leaf(30, TaskStatus.IN_PROGRESS), TaskStatus.ON_HOLD) == 30

    @pytest.mark.parametrize("status", [TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD, TaskStatus.CANCELLED])
    def test_finished_task_cannot_leave_completed(self, status):
        with pytest.raises(InvalidError):
            progress.progress_after_status(_leaf(100, TaskStatus.COMPLETED), status)

    def test_started_task_cannot_be_cancelled(self):
        with pytest.raises(InvalidError):
            progress.progress_after_status(_leaf(20, TaskStatus.IN_PROGRESS), TaskStatus.CANCELLED)

    def test_untouched_task_can_be_cancelled(self):
        assert progress.progress_after_status(_leaf(), TaskStatus.CANCELLED) == 0.0


class TestRollUp:

    def test_duration_weighted_parent(self, build_graph):
        # Parent T with X (4 days, 100%) and Y (6 days, 50%)
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1)])
        _with(graph, 2, 100, TaskStatus.COMPLETED)
        _with(graph, 3, 50, TaskStatus.IN_PROGRESS)
        derived = progress.derive(graph)
        assert derived[1].progress == 70.0
        assert derived[1].status == TaskStatus.IN_PROGRESS

    def test_nested_parents_roll_up_bottom_first(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 10, 1), (3, 1, 5, 2), (4, 6, 10, 2)])
        _with(graph, 3, 100, TaskStatus.COMPLETED)
        _with(graph, 4, 100, TaskStatus.COMPLETED)
        derived = progress.derive(graph)
        assert derived[2] == Derived(100.0, TaskStatus.COMPLETED)
        assert derived[1] == Derived(100.0, TaskStatus.COMPLETED)

    def test_all_cancelled(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1)])
        _with(graph, 2, 0, TaskStatus.CANCELLED)
        _with(graph, 3, 0, TaskStatus.CANCELLED)
        assert progress.derive(graph)[1].status == TaskStatus.CANCELLED

    def test_all_not_started(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1)])
        assert progress.derive(graph)[1] == Derived(0.0, TaskStatus.NOT_STARTED)

    def test_completed_and_untouched_children_mean_in_progress(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1)])
        _with(graph, 2, 100, TaskStatus.COMPLETED)
        derived = progress.derive(graph)
        assert derived[1] == Derived(40.0, TaskStatus.IN_PROGRESS)

    def test_prior_status_kept_when_rules_are_silent(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1)])
        _with(graph, 1, 0, TaskStatus.ON_HOLD)
        _with(graph, 2, 0, TaskStatus.ON_HOLD)
        assert progress.derive(graph)[1].status == TaskStatus.ON_HOLD

    def test_stale_tasks_lists_only_changes(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 4, 1), (3, 5, 10, 1), (4, 1, 2)])
        _with(graph, 2, 100, TaskStatus.COMPLETED)
        stale = progress.stale_tasks(graph, progress.derive(graph))
        assert [t.id for t in stale] == [1]
        assert stale[0].progress == 40.0

    def test_project_progress_over_roots(self, build_graph):
        graph = build_graph([(1, 1, 4), (2, 5, 10)])
        _with(graph, 1, 100, TaskStatus.COMPLETED)
        assert progress.project_progress(graph) == 40.0

    def test_empty_project_progress(self, build_graph):
        assert progress.project_progress(build_graph([])) == 0.0

    def test_weighted_mean_rounds(self):
        assert progress.weighted_mean([(33.333, 1), (0, 2)]) == 11.11
        assert progress.weighted_mean([]) == 0.0


class TestProjectStatus:

    def test_full_progress_completes(self):
        assert progress.project_status(100, ProjectStatus.IN_PROGRESS) == ProjectStatus.COMPLETED

    def test_partial_progress_starts_planning_project(self):
        assert progress.project_status(10, ProjectStatus.PLANNING) == ProjectStatus.IN_PROGRESS

    def test_otherwise_unchanged(self):
        assert progress.project_status(10, ProjectStatus.ON_HOLD) == ProjectStatus.ON_HOLD
        assert progress.project_status(0, ProjectStatus.PLANNING) == ProjectStatus.PLANNING


class TestOverdue:

    def test_past_end_and_not_completed(self):
        today = date(2025, 2, 1)
        assert progress.is_overdue(date(2025, 1, 20), TaskStatus.IN_PROGRESS, today)
        assert not progress.is_overdue(date(2025, 1, 20), TaskStatus.COMPLETED, today)
        assert not progress.is_overdue(date(2025, 2, 1), TaskStatus.IN_PROGRESS, today)
        assert progress.is_overdue(date(2025, 1, 31), ProjectStatus.PLANNING, today)
        assert not progress.is_overdue(date(2025, 1, 31), ProjectStatus.COMPLETED, today)
