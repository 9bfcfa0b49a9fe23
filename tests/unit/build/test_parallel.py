"""Unit tests for the parallel compile pool."""

import threading
import time

import pytest

from nativebuild.build.parallel import run_parallel
from nativebuild.build.process_runner import ProcessResult


def ok(item):
    return ProcessResult([str(item)], 0, "", "")


class TestRunParallel:
    """Test cases for run_parallel."""

    def test_empty_input(self):
        run = run_parallel(ok, [], jobs=4)
        assert run.outcomes == []
        assert run.success
        assert run.first_failure is None

    def test_outcomes_in_input_order(self):
        def slow_first(item):
            # Earlier items finish later
            time.sleep(0.01 * (5 - item))
            return ok(item)

        run = run_parallel(slow_first, [0, 1, 2, 3, 4], jobs=5)

        assert [outcome.item for outcome in run.outcomes] == [0, 1, 2, 3, 4]
        assert run.success

    def test_same_result_for_any_worker_count(self):
        items = [f"unit{i}.ll" for i in range(12)]
        serial = run_parallel(ok, items, jobs=1)
        parallel = run_parallel(ok, items, jobs=8)

        assert [o.result.command for o in serial.outcomes] == [o.result.command for o in parallel.outcomes]

    def test_respects_job_limit(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def task(item):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return ok(item)

        run_parallel(task, list(range(10)), jobs=2)

        assert state["peak"] <= 2

    def test_failures_do_not_cancel_others(self):
        seen = []
        lock = threading.Lock()

        def task(item):
            with lock:
                seen.append(item)
            return ProcessResult([item], 1 if item == "bad.c" else 0, "", "boom")

        run = run_parallel(task, ["a.c", "bad.c", "b.c", "c.c"], jobs=2)

        assert sorted(seen) == ["a.c", "b.c", "bad.c", "c.c"]
        assert not run.success
        assert run.first_failure.item == "bad.c"
        assert len(run.outcomes) == 4

    def test_task_exception_reraised_after_all_finish(self):
        finished = []

        def task(item):
            if item == 0:
                raise RuntimeError("spawn failed")
            time.sleep(0.01)
            finished.append(item)
            return ok(item)

        with pytest.raises(RuntimeError, match="spawn failed"):
            run_parallel(task, [0, 1, 2, 3], jobs=4)

        assert sorted(finished) == [1, 2, 3]
