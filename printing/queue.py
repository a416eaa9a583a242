"""
Single-worker print dispatch queue.

Jobs run one at a time, oldest first. A failed job is never retried in
place: it goes onto a delay heap keyed by its next attempt time and rejoins
the tail of the FIFO once that time passes, so the worker keeps printing
other jobs meanwhile. Time comes from an injected clock, which lets tests
drive retries without waiting.
"""

import heapq
import itertools
import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from django.conf import settings
from django.db import connections

from core_backend.exceptions import PrinterError

from .clock import SystemClock
from .jobs import PrintJob, PrintJobKind

logger = logging.getLogger(__name__)


@dataclass
class QueueStats:
    submitted: int = 0
    printed: int = 0
    retried: int = 0
    failed: int = 0


class PrintDispatchQueue:
    def __init__(
        self,
        sender: Callable[[PrintJob], None],
        notifier=None,
        fallback_sink=None,
        clock=None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        inter_job_delay: float = 0.5,
        job_timeout: Optional[float] = 15.0,
        on_result: Optional[Callable[[PrintJob, bool], None]] = None,
        autostart: bool = True,
    ):
        self.sender = sender
        self.notifier = notifier
        self.fallback_sink = fallback_sink
        self.clock = clock or SystemClock()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.inter_job_delay = inter_job_delay
        self.job_timeout = job_timeout
        self.on_result = on_result
        self.autostart = autostart
        self.stats = QueueStats()

        self._ready: deque = deque()
        self._delayed: List[Tuple[float, int, PrintJob]] = []
        self._sequence = itertools.count()
        self._cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._busy = False
        # One device thread for the life of the queue; a send that outlives its
        # deadline keeps it busy, so no second send can start beside it.
        self._send_executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_settings(cls, **kwargs) -> "PrintDispatchQueue":
        conf = settings.POS_PRINTING
        options = {
            "max_retries": conf["MAX_RETRIES"],
            "base_delay": conf["RETRY_BASE_DELAY"],
            "max_delay": conf["RETRY_MAX_DELAY"],
            "inter_job_delay": conf["INTER_JOB_DELAY"],
            "job_timeout": conf["JOB_TIMEOUT"],
        }
        options.update(kwargs)
        return cls(**options)

    # ------------------------------------------------------------------
    # Submission and inspection
    # ------------------------------------------------------------------

    def submit(self, job: PrintJob) -> PrintJob:
        """Append a job to the tail of the queue. Never blocks on printing."""
        if job.max_retries is None:
            job.max_retries = self.max_retries
        with self._cond:
            self._ready.append(job)
            self.stats.submitted += 1
            pending = len(self._ready)
            self._cond.notify_all()
            if self.autostart:
                self._ensure_worker()
        logger.info(f"Print job {job.id} queued for {job.printer_name}, {pending} waiting")
        return job

    def pending(self) -> List[str]:
        with self._cond:
            return [job.id for job in self._ready]

    def scheduled(self) -> List[Tuple[float, str]]:
        """Delayed retries as (due time, job id), soonest first."""
        with self._cond:
            return [(due, job.id) for due, _, job in sorted(self._delayed)]

    def is_idle(self) -> bool:
        with self._cond:
            return not (self._ready or self._delayed or self._busy)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued and delayed job has finished."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not (self._ready or self._delayed or self._busy), timeout=timeout
            )

    def backoff(self, retries: int) -> float:
        return min(self.base_delay * (2 ** retries), self.max_delay)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def drain(self) -> QueueStats:
        """
        Process jobs on the calling thread until the queue and the delay heap
        are both empty. Waits for delayed jobs through the clock.
        """
        while True:
            with self._cond:
                self._promote_due()
                if self._ready:
                    job = self._ready.popleft()
                    self._busy = True
                    wait_for = 0.0
                elif self._delayed:
                    job = None
                    wait_for = self._delayed[0][0] - self.clock.now()
                else:
                    return self.stats
            if job is None:
                self.clock.sleep(wait_for)
                continue
            self._process(job)
            if self._has_work():
                self.clock.sleep(self.inter_job_delay)

    def _ensure_worker(self) -> None:
        # Caller holds self._cond
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(
                target=self._run, name="print-dispatch", daemon=True
            )
            self._worker.start()

    def _run(self) -> None:
        logger.debug("Print dispatch worker started")
        try:
            while True:
                job = self._next_job()
                if job is None:
                    break
                self._process(job)
                if self._has_work():
                    self.clock.sleep(self.inter_job_delay)
        finally:
            connections.close_all()
            logger.debug("Print dispatch worker stopped, queue drained")

    def _next_job(self) -> Optional[PrintJob]:
        with self._cond:
            while True:
                self._promote_due()
                if self._ready:
                    self._busy = True
                    return self._ready.popleft()
                if not self._delayed:
                    self._worker = None
                    return None
                self._cond.wait(timeout=max(self._delayed[0][0] - self.clock.now(), 0.0))

    def _promote_due(self) -> None:
        # Caller holds self._cond
        now = self.clock.now()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, job = heapq.heappop(self._delayed)
            self._ready.append(job)

    def _has_work(self) -> bool:
        with self._cond:
            return bool(self._ready or self._delayed)

    def _process(self, job: PrintJob) -> None:
        try:
            self._send_with_deadline(job)
        except PrinterError as e:
            self._handle_failure(job, e)
        except Exception as e:
            self._handle_failure(job, PrinterError(str(e)))
        else:
            self.stats.printed += 1
            logger.info(f"Print job {job.id} printed on {job.printer_name}")
            self._report_result(job, True)
        finally:
            with self._cond:
                self._busy = False
                self._cond.notify_all()

    def _send_with_deadline(self, job: PrintJob) -> None:
        timeout = job.deadline or self.job_timeout
        if not timeout:
            self.sender(job)
            return

        if self._send_executor is None:
            self._send_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="print-send")
        future = self._send_executor.submit(self.sender, job)
        try:
            future.result(timeout=timeout)
        except FutureTimeout:
            if future.cancel():
                # Never started: an earlier send that missed its deadline still holds the device
                raise PrinterError(f"{job.printer_name} is still busy with an earlier job")
            raise PrinterError(f"{job.printer_name} did not respond within {timeout:g}s")

    def _handle_failure(self, job: PrintJob, error: PrinterError) -> None:
        self._report_result(job, False)
        job.retries += 1
        job.last_error = str(error)

        if error.retryable and job.retries < job.max_retries:
            delay = self.backoff(job.retries)
            with self._cond:
                heapq.heappush(
                    self._delayed, (self.clock.now() + delay, next(self._sequence), job)
                )
                self._cond.notify_all()
            self.stats.retried += 1
            logger.warning(
                f"Print job {job.id} failed (attempt {job.retries}/{job.max_retries}): {error}. "
                f"Retrying in {delay:g}s"
            )
            return

        self.stats.failed += 1
        logger.error(f"Print job {job.id} dropped after {job.retries} attempt(s): {error}")
        self._report_exhausted(job, error)

    def _report_exhausted(self, job: PrintJob, error: PrinterError) -> None:
        if self.notifier is not None:
            try:
                self.notifier.printer_error(
                    message=f"Failed to print {job.kind.label} on {job.printer_name}: {error}",
                    job_kind=job.kind.value,
                    order_id=job.order_id,
                )
            except Exception as e:
                logger.error(f"Error publishing printer error for job {job.id}: {e}")

        if job.kind != PrintJobKind.CUSTOMER_RECEIPT:
            return
        if self.fallback_sink is None or job.receipt is None:
            logger.error(f"Receipt job {job.id} failed and no fallback document could be written")
            return
        try:
            path = self.fallback_sink.write(job.receipt, reason=str(error))
            logger.info(f"Fallback receipt for order {job.order_id} written to {path}")
        except Exception as e:
            logger.error(f"Error writing fallback receipt for job {job.id}: {e}")

    def _report_result(self, job: PrintJob, ok: bool) -> None:
        if self.on_result is None:
            return
        try:
            self.on_result(job, ok)
        except Exception as e:
            logger.error(f"Error recording print result for job {job.id}: {e}")
