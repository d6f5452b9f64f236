"""
Tests for per-project read/write locks and concurrent service use.
"""

import threading
from datetime import date

from planline.gantt_core.locking import ProjectLockRegistry, ReadWriteLock


def jan(day):
    return date(2025, 1, day)


class TestReadWriteLock:

    def test_readers_share(self):
        lock = ReadWriteLock()
        entered = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                entered.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []
        lock.acquire_write()

        def reader():
            with lock.read():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        t.join(timeout=0.2)
        assert events == []
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5)
        assert events == ["write-done", "read"]

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []
        lock.acquire_read()

        writer_waiting = threading.Event()

        def writer():
            writer_waiting.set()
            with lock.write():
                order.append("write")

        def late_reader():
            with lock.read():
                order.append("read")

        w = threading.Thread(target=writer)
        w.start()
        writer_waiting.wait(timeout=5)
        # Give the writer time to register itself as waiting.
        w.join(timeout=0.2)
        r = threading.Thread(target=late_reader)
        r.start()
        r.join(timeout=0.2)
        assert order == []
        lock.release_read()
        w.join(timeout=5)
        r.join(timeout=5)
        assert order == ["write", "read"]


class TestProjectLockRegistry:

    def test_one_lock_per_project(self):
        registry = ProjectLockRegistry()
        assert registry.get(1) is registry.get(1)
        assert registry.get(1) is not registry.get(2)

    def test_lock_outlives_deleted_project(self, service, project_id):
        lock = service.locks.get(project_id)
        service.delete_project(project_id)
        assert service.locks.get(project_id) is lock

    def test_projects_do_not_contend(self):
        registry = ProjectLockRegistry()
        done = threading.Event()
        with registry.write(1):
            def other():
                with registry.write(2):
                    done.set()

            t = threading.Thread(target=other)
            t.start()
            assert done.wait(timeout=5)
            t.join(timeout=5)


def test_concurrent_writers_keep_graph_consistent(service, project_id):
    task_ids = [service.create_task(project_id, f"T{i}", jan(1), jan(2)) for i in range(8)]
    errors = []

    def worker(offset):
        try:
            for tid in task_ids[offset::2]:
                service.shift_task(tid, 1)
                service.get_snapshot(project_id)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    snapshot = service.get_snapshot(project_id)
    assert {row.planned_start for row in snapshot.tasks} == {jan(2)}
