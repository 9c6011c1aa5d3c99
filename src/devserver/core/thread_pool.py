"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads pulling connection jobs off a bounded queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit(process, conn)──►  [ job queue, 100 deep ]   │
    │                                                   │                 │
    │                   ┌──────────────┬────────────────┤                 │
    │                   ▼              ▼                ▼                 │
    │               Worker-0       Worker-1   ...   Worker-N              │
    │               conn a1b2      conn 9f0e        (idle)                │
    │               keep-alive     /ws session                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A worker owns a connection for as long as it lives: every keep-alive
request on it, and the whole message loop of an upgraded WebSocket. So an
open echo socket pins one worker. The pool starts ``min_workers`` threads
and adds one whenever all of them are busy and a job is waiting, up to
``max_workers``.

Shutdown drains the queue (bounded by a timeout), then hands every worker
a ``None`` job. Workers still inside a WebSocket session are daemon threads
and are left behind; ``active_jobs()`` names them for the shutdown log.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any, List
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)


@dataclass
class Job:
    """
    One unit of pool work, normally a whole client connection.

    ``label`` shows up in log lines; the server passes the connection id.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    label: str = ""
    queued_at: float = field(default_factory=time.monotonic)

    def describe(self) -> str:
        return self.label or getattr(self.func, "__name__", "job")


class Worker(threading.Thread):
    """Runs jobs until handed ``None``; a job that raises is logged and skipped."""

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", number: int, poll_interval: float):
        super().__init__(name=f"devserver-worker-{number}", daemon=True)
        self.jobs = jobs
        self.number = number
        self.poll_interval = poll_interval

        self.current: Optional[Job] = None
        self.completed = 0
        self.failed = 0
        self._stop_requested = threading.Event()

    @property
    def busy(self) -> bool:
        return self.current is not None

    def run(self):
        while not self._stop_requested.is_set():
            try:
                job = self.jobs.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            try:
                if job is None:
                    return
                self._run_job(job)
            finally:
                self.jobs.task_done()

    def _run_job(self, job: Job):
        self.current = job
        waited = time.monotonic() - job.queued_at
        if waited > 1.0:
            logger.debug(f"{self.name}: {job.describe()} waited {waited:.2f}s for a worker")

        try:
            job.func(*job.args, **job.kwargs)
            self.completed += 1
        except Exception as e:
            self.failed += 1
            logger.exception(f"{self.name}: {job.describe()} failed: {e}")
        finally:
            self.current = None

    def stop(self):
        self._stop_requested.set()


class ThreadPool:
    """
    Bounded, growing pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        accepted = pool.submit(process, args=(conn,), label=conn.id)
        ...
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        poll_interval: float = 1.0
    ):
        """
        Args:
            min_workers: Threads started by start().
            max_workers: Ceiling for growth under load.
            queue_size: Jobs that may wait for a worker before submit()
                blocks or gives up.
            poll_interval: How often an idle worker checks for stop().
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.poll_interval = poll_interval

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()  # guards _workers
        self._running = False
        self._closing = False

    def start(self):
        if self._running:
            return

        self._closing = False
        with self._lock:
            while len(self._workers) < self.min_workers:
                self._spawn()
        self._running = True
        logger.info(f"Thread pool started with {self.min_workers} workers (max {self.max_workers})")

    def _spawn(self) -> Worker:
        # caller holds self._lock
        worker = Worker(self._jobs, len(self._workers), self.poll_interval)
        self._workers.append(worker)
        worker.start()
        return worker

    # =========================================================================
    # SUBMITTING
    # =========================================================================

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None,
        label: str = "",
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)``.

        Returns:
            True once queued, False if the queue stayed full (block=False,
            or queue_timeout ran out).

        Raises:
            RuntimeError: start() has not run, or shutdown() has.
        """
        if not self._running:
            raise RuntimeError("Thread pool not started")
        if self._closing:
            raise RuntimeError("Thread pool is shutting down")

        job = Job(func=func, args=args, kwargs=kwargs or {}, label=label)
        try:
            self._jobs.put(job, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._grow_if_saturated()
        return True

    def _grow_if_saturated(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self._jobs.empty() or not all(w.busy for w in self._workers):
                return
            worker = self._spawn()
            logger.debug(f"All workers busy, added {worker.name} ({len(self._workers)} total)")

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the workers.

        Args:
            wait: Let queued jobs start first.
            timeout: Stop waiting for the queue after this many seconds.
        """
        if not self._running:
            return

        logger.info("Shutting down thread pool...")
        self._closing = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not self._jobs.empty():
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning(f"{self._jobs.qsize()} queued connections dropped at shutdown")
                    break
                time.sleep(0.1)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.stop()
            try:
                self._jobs.put(None, block=False)
            except queue.Full:
                pass  # stop() alone ends an idle worker at its next poll

        for worker in workers:
            worker.join(timeout=2.0)

        stuck = [job.describe() for job in (w.current for w in workers) if job is not None]
        if stuck:
            logger.info(f"Leaving {len(stuck)} open sessions behind: {', '.join(stuck)}")

        self._running = False
        logger.info(
            f"Thread pool stopped: {sum(w.completed for w in workers)} jobs done, "
            f"{sum(w.failed for w in workers)} failed"
        )

    # =========================================================================
    # MONITORING
    # =========================================================================

    def active_jobs(self) -> List[str]:
        """Labels of the jobs running right now."""
        with self._lock:
            return [job.describe() for job in (w.current for w in self._workers) if job is not None]

    def __len__(self) -> int:
        return len(self._workers)
