"""Polling loop that tracks a processing job until it settles.

The poller owns a single asyncio task per job view. Every fetch cycle takes a
monotonically increasing cycle number and runs under the generation that was
current when it started; its result is applied only if that generation is
still current and no newer cycle has been applied yet. ``stop()`` bumps the
generation, so a response that resolves after teardown never mutates state.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .errors import NotFoundError, NotYetAvailableError, RequestFailedError, SyncError
from .events import emit_poll_event
from .records import Job, JobStatus, Question, Snapshot, Transcript


LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

Subscriber = Callable[[Snapshot], None]


class JobSource(Protocol):
    """The subset of the pipeline client the poller depends on."""

    async def get_job(self, job_id: str) -> Job: ...

    async def get_transcript(self, job_id: str) -> Transcript: ...

    async def get_questions(self, job_id: str) -> Tuple[Question, ...]: ...


class StatusPoller:
    """Refresh a job, its transcript and its questions on a fixed interval."""

    def __init__(self, client: JobSource, *, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._client = client
        self._interval = interval
        self._generation = 0
        self._issued_cycles = 0
        self._applied_cycle = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._snapshot: Optional[Snapshot] = None
        self._subscribers: List[Subscriber] = []
        self._job_missing = False
        self._results_pending = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register *subscriber* for published snapshots and return an unsubscribe hook."""

        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(subscriber)

        return _unsubscribe

    async def start(self, job_id: str) -> None:
        """Begin tracking *job_id*, replacing any previous polling task.

        The current snapshot survives a restart for the same job (for example
        after a retry) and is replaced when the job changes.
        """

        await self.stop()
        if self._snapshot is None or self._snapshot.job_id != job_id:
            self._snapshot = Snapshot(job_id=job_id)
        self._job_missing = False
        self._results_pending = False
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(generation), name=f"status-poller-{job_id}")

    async def stop(self) -> None:
        """Stop polling; late responses of in-flight requests are discarded."""

        self._generation += 1
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> None:
        """Wait until the current polling task has finished.

        An unexpected error that ended the task is re-raised here.
        """

        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            if task is self._task:
                self._task = None
            raise task.exception()

    async def refresh(self, job_id: Optional[str] = None) -> Optional[Snapshot]:
        """Run one fetch cycle immediately, outside the regular schedule.

        Passing a different *job_id* stops any running task and retargets the
        poller without scheduling further cycles.
        """

        if job_id is not None and (self._snapshot is None or self._snapshot.job_id != job_id):
            await self.stop()
            self._snapshot = Snapshot(job_id=job_id)
            self._job_missing = False
            self._results_pending = False
        if self._snapshot is None:
            raise RuntimeError("The poller has not been started")
        return await self._cycle(self._generation)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    async def _run(self, generation: int) -> None:
        job_id = self._snapshot.job_id if self._snapshot else ""
        emit_poll_event(job_id, "Polling started", generation=generation, level=logging.DEBUG)
        try:
            while generation == self._generation:
                await self._cycle(generation)
                if generation != self._generation or not self._should_continue():
                    break
                await asyncio.sleep(self._interval)
        finally:
            emit_poll_event(job_id, "Polling stopped", generation=generation, level=logging.DEBUG)

    def _should_continue(self) -> bool:
        if self._job_missing:
            return False
        job = self._snapshot.job if self._snapshot else None
        if job is None:
            return True
        if job.status is JobStatus.ERROR:
            emit_poll_event(
                job.id,
                "Job reported an error; polling paused until retry",
                payload={"error": job.error_message},
                level=logging.WARNING,
            )
            return False
        if job.status is JobStatus.COMPLETED:
            # The cycle that observed completion fetched the results; only keep
            # going when one of those fetches failed.
            return self._results_pending
        return True

    # ------------------------------------------------------------------
    # Fetch cycle
    # ------------------------------------------------------------------
    def _is_current(self, generation: int, cycle: int) -> bool:
        return generation == self._generation and cycle > self._applied_cycle

    async def _cycle(self, generation: int) -> Optional[Snapshot]:
        assert self._snapshot is not None
        self._issued_cycles += 1
        cycle = self._issued_cycles
        job_id = self._snapshot.job_id
        start = time.perf_counter()

        try:
            job = await self._client.get_job(job_id)
        except NotFoundError as error:
            emit_poll_event(
                job_id,
                "Job not found; polling stopped",
                generation=generation,
                cycle=cycle,
                payload={"error": error.message},
                level=logging.WARNING,
            )
            if not self._is_current(generation, cycle):
                return None
            self._job_missing = True
            return self._publish(self._snapshot.evolve(cycle=cycle, banner=f"Job {job_id} was not found."))
        except RequestFailedError as error:
            emit_poll_event(
                job_id,
                "Job status fetch failed; keeping previous state",
                generation=generation,
                cycle=cycle,
                payload={"error": error.message},
                level=logging.WARNING,
            )
            if not self._is_current(generation, cycle):
                return None
            return self._publish(
                self._snapshot.evolve(cycle=cycle, banner=f"Failed to refresh job status: {error.message}")
            )

        updates: Dict[str, Any] = {"job": job, "cycle": cycle, "banner": None}
        results_pending = False
        if job.status.exposes_results:
            transcript_result, questions_result = await asyncio.gather(
                self._client.get_transcript(job_id),
                self._client.get_questions(job_id),
                return_exceptions=True,
            )
            if self._absorb_failure(transcript_result, "transcript", job_id, generation, cycle):
                results_pending = True
            else:
                updates["transcript"] = transcript_result
            if self._absorb_failure(questions_result, "questions", job_id, generation, cycle):
                results_pending = True
            else:
                updates["questions"] = questions_result

        if not self._is_current(generation, cycle):
            emit_poll_event(
                job_id,
                "Discarding superseded poll result",
                generation=generation,
                cycle=cycle,
                level=logging.DEBUG,
            )
            return None

        self._results_pending = results_pending
        emit_poll_event(
            job_id,
            "Poll cycle applied",
            generation=generation,
            cycle=cycle,
            payload={"status": job.status.value, "progress": job.progress},
            duration_ms=(time.perf_counter() - start) * 1000.0,
            level=logging.DEBUG,
        )
        return self._publish(self._snapshot.evolve(**updates))

    @staticmethod
    def _absorb_failure(result: Any, resource: str, job_id: str, generation: int, cycle: int) -> bool:
        """Return ``True`` when *result* is a sub-fetch failure to retry next cycle."""

        if not isinstance(result, BaseException):
            return False
        if isinstance(result, (NotFoundError, NotYetAvailableError)):
            emit_poll_event(
                job_id,
                f"{resource.capitalize()} not available yet",
                generation=generation,
                cycle=cycle,
                level=logging.DEBUG,
            )
            return True
        if isinstance(result, SyncError):
            emit_poll_event(
                job_id,
                f"{resource.capitalize()} fetch failed; will retry next cycle",
                generation=generation,
                cycle=cycle,
                payload={"error": str(result)},
                level=logging.WARNING,
            )
            return True
        raise result

    def _publish(self, snapshot: Snapshot) -> Snapshot:
        self._snapshot = snapshot
        self._applied_cycle = snapshot.cycle
        for subscriber in list(self._subscribers):
            try:
                subscriber(snapshot)
            except Exception:  # noqa: BLE001 - a broken view must not stop polling
                LOGGER.exception("Snapshot subscriber %r failed", subscriber)
        return snapshot


__all__ = ["DEFAULT_POLL_INTERVAL", "JobSource", "StatusPoller", "Subscriber"]
