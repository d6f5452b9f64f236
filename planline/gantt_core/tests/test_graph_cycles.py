"""
Tests for the project graph arena and the cycle detector.
"""

from datetime import date

import pytest

from planline.gantt_core import cycles
from planline.gantt_core.errors import ConflictError, CycleError, InvalidError, NotFoundError
from planline.gantt_core.models import Dependency, DependencyType, Task


def _edge(edge_id, pred, succ, dep_type=DependencyType.FS, lag=0, project_id=1):
    return Dependency(
        id=edge_id, project_id=project_id, predecessor_id=pred, successor_id=succ, type=dep_type, lag=lag
    )


class TestProjectGraph:

    def test_iteration_is_ordered_by_id(self, build_graph):
        graph = build_graph([(3, 1, 2), (1, 1, 2), (2, 1, 2)], edges=[(1, 3), (1, 2)])
        assert graph.task_ids() == [1, 2, 3]
        assert graph.successors(1) == [2, 3]
        assert [e.id for e in graph.outgoing(1)] == [1, 2]
        assert graph.predecessors(3) == [1]

    def test_hierarchy_helpers(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 5, 1), (3, 6, 10, 1), (4, 1, 2, 2), (5, 1, 3)])
        assert graph.roots() == [1, 5]
        assert graph.children_of(1) == [2, 3]
        assert graph.ancestors(4) == [2, 1]
        assert graph.descendants(1) == [2, 4, 3]
        assert graph.depth(4) == 2
        assert graph.is_leaf(4) and not graph.is_leaf(2)
        assert graph.hierarchy_order() == [1, 2, 4, 3, 5]
        order = graph.bottom_up_order()
        assert order.index(4) < order.index(2) < order.index(1)

    def test_add_edge_guards(self, build_graph):
        graph = build_graph([(1, 1, 2), (2, 3, 4)], edges=[(1, 2)])
        with pytest.raises(InvalidError):
            graph.add_edge(_edge(10, 1, 1))
        with pytest.raises(InvalidError) as excinfo:
            graph.add_edge(_edge(11, 1, 99))
        assert 99 in excinfo.value.ids
        with pytest.raises(ConflictError):
            graph.add_edge(_edge(12, 1, 2))
        with pytest.raises(CycleError) as excinfo:
            graph.add_edge(_edge(13, 2, 1))
        assert excinfo.value.path == [2, 1, 2]
        assert graph.edge_ids() == [1]

    def test_summary_tasks_take_no_edges(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 5, 1), (3, 11, 12)])
        with pytest.raises(InvalidError) as excinfo:
            graph.add_edge(_edge(10, 1, 3))
        assert excinfo.value.ids == (1,)
        with pytest.raises(InvalidError):
            graph.add_edge(_edge(11, 3, 1))
        graph.add_edge(_edge(12, 2, 3))
        assert graph.edge_ids() == [12]

    def test_task_with_edges_takes_no_children(self, build_graph):
        graph = build_graph([(1, 1, 5), (2, 6, 10), (3, 1, 2)], edges=[(1, 2)])
        child = Task(id=4, project_id=1, parent_id=2, name="x", start_date=date(2025, 1, 6), end_date=date(2025, 1, 7))
        with pytest.raises(InvalidError):
            graph.add_task(child)
        with pytest.raises(InvalidError):
            graph.set_parent(3, 1)
        assert graph.is_leaf(1) and graph.is_leaf(2)

    def test_remove_task_orphans_children_and_drops_edges(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 5, 1), (3, 6, 10, 1), (4, 1, 3)], edges=[(2, 3), (4, 1)])
        version = graph.version
        detached, removed = graph.remove_task(1)
        assert detached == [2, 3]
        assert removed == [2]
        assert graph.tasks[2].parent_id is None
        assert graph.roots() == [2, 3, 4]
        assert graph.edge_ids() == [1]
        assert graph.version > version

    def test_parent_link_cycle_rejected(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 5, 1), (3, 1, 2, 2)])
        task = graph.task(1).model_copy(update={"parent_id": 3})
        with pytest.raises(CycleError) as excinfo:
            graph.replace_task(task)
        assert excinfo.value.path == [1, 3, 2, 1]
        assert graph.task(1).parent_id is None

    def test_parent_outside_project_rejected(self, build_graph):
        graph = build_graph([(1, 1, 10)])
        orphan = Task(id=2, project_id=1, parent_id=77, name="x", start_date=date(2025, 1, 1), end_date=date(2025, 1, 2))
        with pytest.raises(InvalidError):
            graph.add_task(orphan)
        foreign = Task(id=3, project_id=2, name="y", start_date=date(2025, 1, 1), end_date=date(2025, 1, 2))
        with pytest.raises(InvalidError):
            graph.add_task(foreign)

    def test_set_parent_moves_child_between_parents(self, build_graph):
        graph = build_graph([(1, 1, 10), (2, 1, 10), (3, 1, 2, 1)])
        graph.set_parent(3, 2)
        assert graph.children_of(1) == []
        assert graph.children_of(2) == [3]

    def test_update_edge_keeps_pair(self, build_graph):
        graph = build_graph([(1, 1, 2), (2, 3, 4)], edges=[(1, 2)])
        updated = graph.update_edge(1, DependencyType.SS, 3)
        assert updated.type == DependencyType.SS
        assert updated.lag == 3
        assert graph.edge_between(1, 2).lag == 3

    def test_copy_is_independent(self, build_graph):
        graph = build_graph([(1, 1, 2), (2, 3, 4)])
        clone = graph.copy()
        clone.add_edge(_edge(5, 1, 2))
        assert graph.edge_ids() == []
        assert clone.edge_ids() == [5]

    def test_missing_lookups(self, build_graph):
        graph = build_graph([(1, 1, 2)])
        with pytest.raises(NotFoundError):
            graph.task(9)
        with pytest.raises(NotFoundError):
            graph.remove_edge(9)


class TestCycleDetector:

    def test_witness_path_for_closing_edge(self, build_graph):
        # A(1) -> B(2) -> C(3); proposing C -> A
        graph = build_graph([(1, 1, 2), (2, 1, 2), (3, 1, 2)], edges=[(1, 2), (2, 3)])
        assert cycles.cycle_path(graph, 3, 1) == [3, 1, 2, 3]
        assert cycles.would_cycle(graph, 3, 1)
        assert not cycles.would_cycle(graph, 1, 3)

    def test_self_loop_always_cycles(self, build_graph):
        graph = build_graph([(1, 1, 2)])
        assert cycles.would_cycle(graph, 1, 1)

    def test_reachable_successors(self, build_graph):
        graph = build_graph(
            [(1, 1, 2), (2, 1, 2), (3, 1, 2), (4, 1, 2), (5, 1, 2)],
            edges=[(1, 2), (2, 3), (1, 4)],
        )
        assert cycles.reachable_successors(graph, 1) == {2, 3, 4}
        assert cycles.reachable_successors(graph, 3) == set()
        assert cycles.reachable_successors(graph, 5) == set()

    def test_find_path_prefers_smallest_ids(self, build_graph):
        graph = build_graph(
            [(1, 1, 2), (2, 1, 2), (3, 1, 2), (4, 1, 2)],
            edges=[(1, 3), (1, 2), (2, 4), (3, 4)],
        )
        assert cycles.find_path(graph, 1, 4) == [1, 2, 4]

    def test_find_any_cycle_on_unguarded_graph(self, build_graph):
        graph = build_graph([(1, 1, 2), (2, 1, 2), (3, 1, 2)], edges=[(1, 2), (2, 3), (3, 2)])
        assert cycles.find_any_cycle(graph) == [2, 3, 2]

    def test_acyclic_graph_has_no_cycle(self, build_graph):
        graph = build_graph([(1, 1, 2), (2, 1, 2)], edges=[(1, 2)])
        assert cycles.find_any_cycle(graph) is None
