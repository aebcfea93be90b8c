# matrix.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Optional

from .model import MatrixResult, Platform, RunResult, RunStatus, TriggerKind, Workflow
from .runner import run_workflow

logger = logging.getLogger(__name__)


def run_matrix(
    workflow: Workflow,
    trigger: TriggerKind,
    *,
    platforms: Optional[Iterable[Platform]] = None,
    max_workers: int | None = None,
    fail_fast: Optional[bool] = None,
    cancel: Optional[threading.Event] = None,
    **run_kwargs,
) -> MatrixResult:
    """
    Fan out one independent run per platform.

    - Runs execute in parallel on a thread pool and share no mutable state.
    - With fail_fast, the first halted run sets `cancel`: queued runs never
      start, and runs in flight stop before their next step (the step
      already executing finishes).
    - Results come back in platform declaration order.
    """
    cells = list(platforms) if platforms is not None else list(workflow.platforms)
    if len(set(cells)) != len(cells):
        raise ValueError(f"Duplicate platforms in matrix: {[p.value for p in cells]}")
    if fail_fast is None:
        fail_fast = workflow.fail_fast
    if max_workers is None:
        max_workers = max(1, len(cells))
    if cancel is None:
        cancel = threading.Event()

    finished: Dict[Platform, RunResult] = {}
    cancelled = []

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        in_flight: Dict[Future, Platform] = {
            pool.submit(run_workflow, workflow, p, trigger, cancel=cancel, **run_kwargs): p
            for p in cells
        }

        halted = False

        for fut in as_completed(list(in_flight)):
            platform = in_flight[fut]
            if fut.cancelled():
                continue
            run = fut.result()
            finished[platform] = run
            if run.status is RunStatus.CANCELLED:
                cancelled.append(platform)

            if run.status is RunStatus.HALTED and fail_fast and not halted:
                halted = True
                logger.info("%s halted; cancelling sibling matrix runs", platform.matrix_label)
                # cancel queued runs before setting the event so they never start
                for other, p in in_flight.items():
                    if other is not fut and other.cancel():
                        cancelled.append(p)
                cancel.set()

    result = MatrixResult(trigger=trigger)
    for p in cells:
        if p in finished:
            result.runs[p] = finished[p]
    result.cancelled = [p for p in cells if p in cancelled]
    return result
