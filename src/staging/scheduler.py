"""
Bounded worker pool driving one stage's per-document tasks.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable

from contracts.documents import DocumentFailure, StageReport, TaskStatus

from .errors import StagingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    doc_key: str
    status: TaskStatus
    error: BaseException | None = None


class DocumentScheduler:
    """
    Runs at most `concurrency` document tasks at once.

    A task that raises is logged with its doc key and recorded as failed; it
    never cancels the pool or sibling tasks. There is no priority, no
    cancellation and no timeout: `drain()` returns once every submitted task
    has finished.

    Tasks return a `TaskStatus` (SUCCEEDED or SKIPPED); any other return value
    counts as SUCCEEDED.
    """

    def __init__(self, *, stage: str, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.stage = stage
        self.concurrency = concurrency
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix=f"{stage}-worker")
        self._pending: list[Future[TaskOutcome]] = []
        self._lock = threading.Lock()

    def __enter__(self) -> DocumentScheduler:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _run(self, doc_key: str, task: Callable[[], Any]) -> TaskOutcome:
        try:
            result = task()
        except StagingError as e:
            logger.error("[%s] [%s] Failed: %s", self.stage, doc_key, e)
            return TaskOutcome(doc_key=doc_key, status=TaskStatus.FAILED, error=e)
        except Exception as e:
            logger.exception("[%s] [%s] Failed with unexpected error: %s", self.stage, doc_key, e)
            return TaskOutcome(doc_key=doc_key, status=TaskStatus.FAILED, error=e)

        status = result if isinstance(result, TaskStatus) else TaskStatus.SUCCEEDED
        return TaskOutcome(doc_key=doc_key, status=status)

    def submit(self, doc_key: str, task: Callable[[], Any]) -> None:
        future = self._executor.submit(self._run, doc_key, task)
        with self._lock:
            self._pending.append(future)

    def drain(self) -> list[TaskOutcome]:
        """
        Block until all submitted tasks completed; outcomes are returned in
        submission order.
        """

        with self._lock:
            pending, self._pending = self._pending, []
        wait(pending)
        return [f.result() for f in pending]

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def build_stage_report(stage: str, outcomes: list[TaskOutcome]) -> StageReport:
    failed = [
        DocumentFailure(doc_key=o.doc_key, error_type=type(o.error).__name__, message=str(o.error))
        for o in outcomes
        if o.status == TaskStatus.FAILED
    ]
    return StageReport(
        stage=stage,
        succeeded=[o.doc_key for o in outcomes if o.status == TaskStatus.SUCCEEDED],
        skipped=[o.doc_key for o in outcomes if o.status == TaskStatus.SKIPPED],
        failed=failed,
    )
