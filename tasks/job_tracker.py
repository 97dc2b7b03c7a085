# tasks/job_tracker.py
"""
Delayed email job tracker

Each send request becomes an EmailJob that travels for its delivery time
and then hands the message to the mailer. Jobs run as coroutines on one
event loop owned by the tracker; the loop lives on a background thread so
Flask request threads can create and poll jobs synchronously.

One coroutine per job drives both progress ticks and the final delivery,
so a terminal job always reports progress 100.
"""

import asyncio
import logging
import math
import secrets
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.transport import TransportMode

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Lifecycle of a delivery"""
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.IN_TRANSIT


@dataclass
class EmailJob:
    id: str
    sender: str
    recipient: str
    subject: str
    message: str
    transport_mode: TransportMode
    delivery_time_seconds: float
    start_time: float
    original_delivery_time_seconds: float = 0.0
    speed_multiplier: float = 1.0
    status: JobStatus = JobStatus.IN_TRANSIT
    progress: float = 0.0
    delivered_at: Optional[float] = None
    error: Optional[str] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def update_progress(self, progress: float) -> None:
        with self._lock:
            if self.status is JobStatus.IN_TRANSIT:
                self.progress = max(self.progress, min(100.0, progress))

    def finish(self, status: JobStatus, finished_at: float, error: Optional[str] = None) -> bool:
        """Move to a terminal state; only the first call wins"""
        with self._lock:
            if self.status.is_terminal:
                return False
            self.progress = 100.0
            self.status = status
            self.delivered_at = finished_at
            self.error = error
            return True

    def elapsed_seconds(self, now: float) -> float:
        return max(0.0, now - self.start_time)

    def remaining_seconds(self, now: float) -> float:
        return max(0.0, self.delivery_time_seconds - self.elapsed_seconds(now))

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status.value,
            'progress': round(self.progress, 2),
            'transportMode': self.transport_mode.value,
            'from': self.sender,
            'to': self.recipient,
            'subject': self.subject,
            'totalDeliverySeconds': self.delivery_time_seconds,
            'startTime': self.start_time,
            'deliveredAt': self.delivered_at,
        }

    def status_view(self, now: float) -> Dict[str, Any]:
        """Summary plus wall-clock elapsed/remaining computed at query time"""
        elapsed = self.elapsed_seconds(now)
        if self.status.is_terminal:
            elapsed = max(elapsed, self.delivery_time_seconds)
        view = self.summary()
        view.update({
            'elapsedSeconds': math.floor(min(elapsed, self.delivery_time_seconds)),
            'remainingSeconds': 0 if self.status.is_terminal else math.ceil(self.remaining_seconds(now)),
            'originalDeliveryTime': self.original_delivery_time_seconds,
            'speedMultiplier': self.speed_multiplier,
            'error': self.error,
        })
        return view


def generate_job_id(now: float) -> str:
    return f"email_{int(now * 1000)}_{secrets.token_hex(4)}"


class JobTracker:
    """
    In-memory registry of delivery jobs

    Jobs are kept for the lifetime of the tracker. start() must be called
    before jobs are created; shutdown() cancels whatever is still in transit.
    """

    def __init__(self, mailer, tick_seconds: float = 1.0,
                 clock: Callable[[], float] = time.time):
        if tick_seconds <= 0:
            raise ValueError('tick_seconds must be positive')
        self.mailer = mailer
        self.tick_seconds = tick_seconds
        self.clock = clock

        self._jobs: Dict[str, EmailJob] = {}
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.new_event_loop()
        ready = threading.Event()

        def run_loop():
            asyncio.set_event_loop(self._loop)
            self._loop.call_soon(ready.set)
            self._loop.run_forever()

        self._thread = threading.Thread(target=run_loop, name='snailmail-jobs', daemon=True)
        self._thread.start()
        ready.wait()
        logger.info(f"Job tracker started (tick {self.tick_seconds}s)")

    def shutdown(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return

        with self._lock:
            pending = list(self._futures)
        for job_id in pending:
            self.cancel_job(job_id)

        drain = asyncio.run_coroutine_threadsafe(self._drain(), self._loop)
        drain.result(timeout=timeout)

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        self._loop.close()
        self._loop = None
        self._thread = None
        logger.info(f"Job tracker stopped ({len(pending)} job(s) cancelled)")

    def create_job(self, sender: str, recipient: str, subject: str, message: str,
                   transport_mode: TransportMode, delivery_time_seconds: float,
                   speed_multiplier: float = 1.0) -> EmailJob:
        if not self.running:
            raise RuntimeError('Job tracker is not running')
        if delivery_time_seconds < 0:
            raise ValueError('delivery_time_seconds must be non-negative')
        if speed_multiplier <= 0:
            raise ValueError('speed_multiplier must be positive')

        now = self.clock()
        job = EmailJob(
            id=generate_job_id(now),
            sender=sender,
            recipient=recipient,
            subject=subject,
            message=message,
            transport_mode=transport_mode,
            delivery_time_seconds=delivery_time_seconds / speed_multiplier,
            original_delivery_time_seconds=delivery_time_seconds,
            speed_multiplier=speed_multiplier,
            start_time=now,
        )

        with self._lock:
            self._jobs[job.id] = job
            future = asyncio.run_coroutine_threadsafe(self._run_job(job), self._loop)
            self._futures[job.id] = future

        logger.info(f"Scheduled {job.id} via {transport_mode.value}, "
                    f"arriving in {job.delivery_time_seconds:.1f}s")
        return job

    def get_job(self, job_id: str) -> Optional[EmailJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[EmailJob]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.start_time)

    def cancel_job(self, job_id: str) -> bool:
        """Stop a job that is still in transit; it is recorded as failed"""
        with self._lock:
            future = self._futures.pop(job_id, None)
            job = self._jobs.get(job_id)
        if future is None or not future.cancel():
            return False
        # A task cancelled before its first step never enters _run_job
        job.finish(JobStatus.FAILED, self.clock(), error='cancelled')
        logger.warning(f"Delivery cancelled: {job_id}")
        return True

    @staticmethod
    async def _drain() -> None:
        tasks = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_job(self, job: EmailJob) -> None:
        total = job.delivery_time_seconds
        try:
            elapsed = job.elapsed_seconds(self.clock())
            while elapsed < total:
                await asyncio.sleep(min(self.tick_seconds, total - elapsed))
                elapsed = job.elapsed_seconds(self.clock())
                job.update_progress(elapsed / total * 100)

            job.update_progress(100.0)
            try:
                await self.mailer.deliver(job)
            except Exception as e:
                logger.error(f"Failed to deliver email {job.id}: {e}", exc_info=True)
                job.finish(JobStatus.FAILED, self.clock(), error=str(e))
            else:
                job.finish(JobStatus.DELIVERED, self.clock())
                logger.info(f"Delivered {job.id} via {job.transport_mode.value}")
        except asyncio.CancelledError:
            job.finish(JobStatus.FAILED, self.clock(), error='cancelled')
            raise
        finally:
            with self._lock:
                self._futures.pop(job.id, None)
