from __future__ import annotations

import threading
import time
import unittest

from contracts.documents import TaskStatus
from staging.errors import RasterizationError
from staging.scheduler import DocumentScheduler, build_stage_report


class TestDocumentScheduler(unittest.TestCase):
    def test_bounded_concurrency_and_failure_isolation(self) -> None:
        lock = threading.Lock()
        active = 0
        max_active = 0
        finished: list[str] = []

        def make_task(key: str):
            def task() -> TaskStatus:
                nonlocal active, max_active
                with lock:
                    active += 1
                    max_active = max(max_active, active)
                try:
                    time.sleep(0.05)
                    if key == "d3":
                        raise RasterizationError("boom")
                    return TaskStatus.SUCCEEDED
                finally:
                    with lock:
                        active -= 1
                        finished.append(key)

            return task

        keys = ["d1", "d2", "d3", "d4", "d5"]
        with DocumentScheduler(stage="test", concurrency=2) as scheduler:
            for key in keys:
                scheduler.submit(key, make_task(key))
            outcomes = scheduler.drain()

            # drain() returned only after every task finished
            self.assertEqual(sorted(finished), keys)

        self.assertLessEqual(max_active, 2)
        self.assertGreaterEqual(max_active, 1)
        self.assertEqual([o.doc_key for o in outcomes], keys)
        self.assertEqual(
            [o.status for o in outcomes],
            [TaskStatus.SUCCEEDED, TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.SUCCEEDED, TaskStatus.SUCCEEDED],
        )
        self.assertIsInstance(outcomes[2].error, RasterizationError)

    def test_unexpected_exceptions_and_return_values(self) -> None:
        with DocumentScheduler(stage="test", concurrency=1) as scheduler:
            scheduler.submit("a", lambda: None)
            scheduler.submit("b", lambda: TaskStatus.SKIPPED)
            scheduler.submit("c", lambda: 1 / 0)
            outcomes = scheduler.drain()

        report = build_stage_report("test", outcomes)
        self.assertEqual(report.succeeded, ["a"])
        self.assertEqual(report.skipped, ["b"])
        self.assertEqual([f.doc_key for f in report.failed], ["c"])
        self.assertEqual(report.failed[0].error_type, "ZeroDivisionError")
        self.assertFalse(report.ok)
        self.assertEqual(report.processed, 3)

    def test_invalid_concurrency(self) -> None:
        with self.assertRaises(ValueError):
            DocumentScheduler(stage="test", concurrency=0)


if __name__ == "__main__":
    unittest.main()
