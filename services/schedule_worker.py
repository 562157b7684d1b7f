"""Runs schedule generation off the caller's thread."""

import copy
import logging
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from models.entities import Buyer, EventConfig, ScheduleResult, Supplier
from services.config import SchedulerSettings
from services.scheduling_engine import SchedulingEngine

logger = logging.getLogger(__name__)


@dataclass
class WorkerResponse:
    """Either a generated result or the error message that replaced it."""
    result: Optional[ScheduleResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ScheduleWorker:
    """
    Single background thread for generating schedules.

    Use it as a context manager or call shutdown() when done. A worker that
    is garbage collected without either stops its thread without waiting.

    Inputs are deep-copied before hand-off, so the worker never shares state
    with the caller. Commit the result with
    ScheduleManager.apply_schedule_result.
    """

    def __init__(self, settings: Optional[SchedulerSettings] = None):
        self.engine = SchedulingEngine(settings)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="schedule-worker")
        self._finalizer = weakref.finalize(self, self._executor.shutdown, wait=False)

    def submit(self, config: EventConfig, suppliers: list[Supplier], buyers: list[Buyer]) -> "Future[WorkerResponse]":
        payload = copy.deepcopy((config, list(suppliers), list(buyers)))
        return self._executor.submit(self._run, *payload)

    def _run(self, config: EventConfig, suppliers: list[Supplier], buyers: list[Buyer]) -> WorkerResponse:
        try:
            result = self.engine.generate_schedule(config, suppliers, buyers)
        except Exception as e:
            logger.exception("Schedule generation failed")
            return WorkerResponse(error=str(e) or e.__class__.__name__)
        return WorkerResponse(result=result)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
        self._finalizer.detach()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
