"""
Task Orchestrator - In-process priority job queue with typed jobs.

Per job type:
- a bounded queue (priority eviction when full)
- a fixed number of worker threads (the type's concurrency)
- retry with exponential backoff: base * 2**(attempt-1), via tenacity's
  stop/wait strategies
- an attempt timeout; timed-out attempts are cancelled cooperatively and
  keep their worker slot until the attempt thread has exited

Company-analysis jobs are single-flight on (company_id, source_site):
a submission while an equal job is queued or running returns that job's id.

Handlers never raise across job boundaries. Anything that escapes a handler
is recorded as a Retryable outcome for that job only.

Finished jobs are kept for status lookups until `max_finished_jobs` or
`finished_job_ttl_seconds` is exceeded; permanent failures are also kept in
a bounded list.
"""
import logging
import threading
import time
import uuid
from collections import Counter, deque
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.config_loader import OrchestratorConfig
from pipeline.jobs import (
    Job,
    JobContext,
    JobPayload,
    JobState,
    JobStatus,
    JobType,
    Permanent,
    Retryable,
    Success,
    TERMINAL_STATES,
    describe,
    job_type_of,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any, JobContext], Any]

MIN_PRIORITY = 1
MAX_PRIORITY = 10
CANCELLED = "Cancelled"


class TaskOrchestrator:
    """
    Usage:
        orchestrator = TaskOrchestrator(handlers, config.orchestrator)
        orchestrator.start()
        job_id = orchestrator.submit(ScrapeRequest(site="dev.bg"))
        status = orchestrator.wait(job_id, timeout=60)
        orchestrator.shutdown()
    """

    def __init__(self, handlers: Dict[JobType, Handler], config: Optional[OrchestratorConfig] = None):
        missing = [job_type.value for job_type in JobType if job_type not in handlers]
        if missing:
            raise ValueError(f"No handler registered for job types: {missing}")

        self.handlers = dict(handlers)
        self.config = config or OrchestratorConfig()

        self._cond = threading.Condition()
        self._jobs: Dict[str, Job] = {}
        self._queues: Dict[JobType, List[Job]] = {job_type: [] for job_type in JobType}
        # Serial key -> job id, for queued and running company-analysis jobs
        self._serial_owners: Dict[Tuple[str, str], str] = {}
        self._running_serials = set()
        self._sequence = 0

        self._finished: deque = deque()
        self._failures: deque = deque(maxlen=max(1, self.config.max_failures))
        # (job type, state) counts of finished jobs no longer retained
        self._pruned = Counter()

        self._stop_event = threading.Event()
        self._workers: List[threading.Thread] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._workers:
            return
        self._stop_event.clear()
        for job_type in JobType:
            concurrency = max(1, self.config.for_type(job_type.value).concurrency)
            for index in range(concurrency):
                worker = threading.Thread(
                    target=self._worker_loop,
                    args=(job_type,),
                    name=f"{job_type.value}-worker-{index}",
                    daemon=True,
                )
                worker.start()
                self._workers.append(worker)
        logger.info(f"Task orchestrator started with {len(self._workers)} workers")

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop workers. Queued jobs stay queued; running attempts finish first when wait=True."""
        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()
        if wait:
            for worker in self._workers:
                worker.join(timeout)
        self._workers = []
        logger.info("Task orchestrator stopped")

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, payload: JobPayload, priority: Optional[int] = None) -> str:
        """Queue a job and return its id (or the id of the job it coalesced into)."""
        job_type = job_type_of(payload)
        type_config = self.config.for_type(job_type.value)
        priority = type_config.priority if priority is None else priority
        priority = max(MIN_PRIORITY, min(MAX_PRIORITY, priority))

        serial_key = getattr(payload, 'serial_key', None)

        with self._cond:
            if serial_key is not None and serial_key in self._serial_owners:
                existing_id = self._serial_owners[serial_key]
                logger.info(f"Coalesced {job_type.value} job {describe(payload)} into {existing_id}")
                return existing_id

            self._sequence += 1
            now = time.monotonic()
            job = Job(
                job_id=uuid.uuid4().hex,
                payload=payload,
                job_type=job_type,
                priority=priority,
                max_retries=max(1, type_config.max_retries),
                backoff_seconds=type_config.backoff_seconds,
                timeout_seconds=type_config.timeout_seconds,
                sequence=self._sequence,
                ready_at=now,
                created_at=now,
                serial_key=serial_key,
            )
            self._jobs[job.job_id] = job

            queue = self._queues[job_type]
            if len(queue) >= type_config.max_queue_size and not self._evict_for(job, queue):
                self._finish(job, JobState.DROPPED, error="Queue full")
                logger.warning(
                    f"Rejected {job_type.value} job {job.job_id} (priority {priority}): queue full"
                )
                return job.job_id

            queue.append(job)
            if serial_key is not None:
                self._serial_owners[serial_key] = job.job_id
            self._cond.notify_all()

        logger.debug(f"Queued {job_type.value} job {job.job_id} (priority {priority}) {describe(payload)}")
        return job.job_id

    def _evict_for(self, incoming: Job, queue: List[Job]) -> bool:
        """Drop the oldest lowest-priority waiting job if `incoming` outranks it."""
        waiting = [job for job in queue if job.state == JobState.QUEUED]
        if not waiting:
            return False
        victim = min(waiting, key=lambda job: (job.priority, job.sequence))
        if victim.priority >= incoming.priority:
            return False

        queue.remove(victim)
        self._finish(victim, JobState.DROPPED, error=f"Evicted by higher-priority job {incoming.job_id}")
        logger.warning(
            f"Evicted {victim.job_type.value} job {victim.job_id} (priority {victim.priority}) "
            f"for {incoming.job_id} (priority {incoming.priority})"
        )
        return True

    def cancel(self, job_id: str) -> bool:
        """
        Cancel a job. A waiting job is dropped; a running attempt gets its
        cancel_event set and the job is not retried. Returns False for
        unknown or finished jobs.
        """
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None or job.state in TERMINAL_STATES:
                return False

            job.cancel_requested = True
            if job.state == JobState.RUNNING:
                if job.attempt_cancel is not None:
                    job.attempt_cancel.set()
                logger.info(f"Cancellation requested for running job {job_id}")
            else:
                self._queues[job.job_type].remove(job)
                self._finish(job, JobState.DROPPED, error=CANCELLED)
                logger.info(f"Cancelled {job.job_type.value} job {job_id} before it ran")
            self._cond.notify_all()
            return True

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, job_id: str) -> Optional[JobStatus]:
        with self._cond:
            job = self._jobs.get(job_id)
            return job.snapshot() if job else None

    def wait(
        self,
        job_id: str,
        timeout: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> Optional[JobStatus]:
        """
        Block until the job reaches a terminal state (or timeout); returns its status.

        Setting `stop_event` cancels the job; the wait continues until the job
        has actually stopped.
        """
        with self._cond:
            job = self._jobs.get(job_id)
        if job is None:
            return None

        if stop_event is None:
            job.done_event.wait(timeout)
        else:
            deadline = None if timeout is None else time.monotonic() + timeout
            cancelled = False
            while not job.done_event.is_set():
                if stop_event.is_set() and not cancelled:
                    self.cancel(job_id)
                    cancelled = True
                poll = self.config.poll_interval_seconds
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    poll = min(poll, remaining)
                job.done_event.wait(poll)

        with self._cond:
            return job.snapshot()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is queued, scheduled for retry or running."""
        with self._cond:
            return self._cond.wait_for(
                lambda: all(job.state in TERMINAL_STATES for job in self._jobs.values()),
                timeout=timeout,
            )

    def failures(self) -> List[JobStatus]:
        """Most recent permanent failures, oldest first."""
        with self._cond:
            return list(self._failures)

    def stats(self) -> Dict[str, Any]:
        with self._cond:
            by_state = {state.value: 0 for state in JobState}
            by_type = {job_type.value: {state.value: 0 for state in JobState} for job_type in JobType}
            for job in self._jobs.values():
                by_state[job.state.value] += 1
                by_type[job.job_type.value][job.state.value] += 1
            for (job_type, state), count in self._pruned.items():
                by_state[state.value] += count
                by_type[job_type.value][state.value] += count
            return {
                "total": len(self._jobs) + sum(self._pruned.values()),
                "retained": len(self._jobs),
                "by_state": by_state,
                "by_type": by_type,
                "queued": {job_type.value: len(queue) for job_type, queue in self._queues.items()},
            }

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _next_ready(self, job_type: JobType) -> Tuple[Optional[Job], float]:
        """Pick the best runnable job; else return how long to sleep."""
        now = time.monotonic()
        best = None
        wait_for = self.config.poll_interval_seconds

        for job in self._queues[job_type]:
            if job.ready_at > now:
                wait_for = min(wait_for, job.ready_at - now)
                continue
            if job.state == JobState.RETRY_SCHEDULED:
                job.state = JobState.QUEUED
            if job.serial_key is not None and job.serial_key in self._running_serials:
                continue
            if best is None or (-job.priority, job.sequence) < (-best.priority, best.sequence):
                best = job

        if best is not None:
            self._queues[job_type].remove(best)
        return best, max(0.0, wait_for)

    def _worker_loop(self, job_type: JobType) -> None:
        while True:
            with self._cond:
                job = None
                while not self._stop_event.is_set():
                    job, wait_for = self._next_ready(job_type)
                    if job is not None:
                        break
                    self._cond.wait(timeout=wait_for or self.config.poll_interval_seconds)
                if job is None:
                    return

                job.state = JobState.RUNNING
                job.attempt_count += 1
                attempt = job.attempt_count
                cancel_event = threading.Event()
                job.attempt_cancel = cancel_event
                if job.serial_key is not None:
                    self._running_serials.add(job.serial_key)

            logger.info(
                f"Running {job.job_type.value} job {job.job_id} "
                f"(attempt {attempt}/{job.max_retries}) {describe(job.payload)}"
            )
            outcome, exception = self._execute(job, attempt, cancel_event)

            with self._cond:
                job.attempt_cancel = None
                job.exception = exception
                self._complete(job, outcome)
                self._cond.notify_all()

    def _execute(self, job: Job, attempt: int, cancel_event: threading.Event):
        context = JobContext(job.job_id, attempt, cancel_event, on_progress=self._report_progress)
        handler = self.handlers[job.job_type]
        holder = {}

        def target():
            try:
                holder['outcome'] = handler(job.payload, context)
            except Exception as e:
                logger.exception(f"Job {job.job_id} raised {type(e).__name__}: {e}")
                holder['exception'] = e
                holder['outcome'] = Retryable(f"{type(e).__name__}: {e}")

        attempt_thread = threading.Thread(
            target=target,
            name=f"{job.job_type.value}-{job.job_id[:8]}-attempt-{attempt}",
            daemon=True,
        )
        attempt_thread.start()
        attempt_thread.join(job.timeout_seconds)

        if attempt_thread.is_alive():
            cancel_event.set()
            logger.warning(
                f"Job {job.job_id} timed out after {job.timeout_seconds}s; "
                f"cancellation requested, waiting for the attempt to stop"
            )
            # The worker slot and serial key stay held until the attempt exits
            attempt_thread.join()
            return Retryable(f"Timed out after {job.timeout_seconds}s"), holder.get('exception')

        outcome = holder.get('outcome')
        if not isinstance(outcome, (Success, Retryable, Permanent)):
            outcome = Success(outcome)
        return outcome, holder.get('exception')

    def _report_progress(self, job_id: str, value: int) -> None:
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None or job.state != JobState.RUNNING:
                return
            value = max(0, min(100, int(value)))
            # Checkpoints only move forward
            if value > job.progress:
                job.progress = value
                logger.debug(f"Job {job_id} progress: {value}%")

    def _complete(self, job: Job, outcome) -> None:
        if job.serial_key is not None:
            self._running_serials.discard(job.serial_key)

        if isinstance(outcome, Success):
            job.progress = 100
            self._finish(job, JobState.SUCCEEDED, result=outcome.result)
            logger.info(f"Job {job.job_id} ({job.job_type.value}) succeeded")
            return

        if job.cancel_requested:
            self._finish(job, JobState.DROPPED, error=CANCELLED)
            logger.info(f"Job {job.job_id} ({job.job_type.value}) cancelled: {outcome.error}")
            return

        if isinstance(outcome, Permanent):
            self._finish(job, JobState.FAILED_PERMANENT, error=outcome.error)
            logger.error(f"Job {job.job_id} ({job.job_type.value}) failed permanently: {outcome.error}")
            return

        job.error = outcome.error
        if job.retries_exhausted():
            self._finish(job, JobState.FAILED_PERMANENT, error=outcome.error)
            logger.error(
                f"Job {job.job_id} ({job.job_type.value}) failed after {job.attempt_count} attempts: {outcome.error}"
            )
            return

        delay = job.backoff_delay()
        job.delays.append(delay)
        job.state = JobState.RETRY_SCHEDULED
        job.ready_at = time.monotonic() + delay
        self._queues[job.job_type].append(job)
        logger.warning(
            f"Job {job.job_id} ({job.job_type.value}) attempt {job.attempt_count} failed: {outcome.error}. "
            f"Retrying in {delay:.2f}s"
        )

    def _finish(self, job: Job, state: JobState, result: Any = None, error: Optional[str] = None) -> None:
        """Move a job to a terminal state. Caller holds the lock."""
        job.state = state
        job.result = result
        if error is not None:
            job.error = error
        job.finished_at = time.monotonic()
        if job.serial_key is not None and self._serial_owners.get(job.serial_key) == job.job_id:
            del self._serial_owners[job.serial_key]
        if state == JobState.FAILED_PERMANENT:
            self._failures.append(job.snapshot())
        self._finished.append(job)
        job.done_event.set()
        self._prune_finished()

    def _prune_finished(self) -> None:
        """Forget the oldest finished jobs beyond the retention limits. Caller holds the lock."""
        cutoff = time.monotonic() - self.config.finished_job_ttl_seconds
        while self._finished and (
            len(self._finished) > self.config.max_finished_jobs
            or self._finished[0].finished_at <= cutoff
        ):
            job = self._finished.popleft()
            self._jobs.pop(job.job_id, None)
            self._pruned[(job.job_type, job.state)] += 1
