"""One job view: the poller, the segment tracker and the answer book wired together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

from ..config import AppConfig
from .answers import AnswerBook
from .client import PipelineClient
from .errors import JobFailedError
from .export import write_questions_csv
from .poller import DEFAULT_POLL_INTERVAL, StatusPoller, Subscriber
from .progress import ProgressTracker, describe_status
from .records import JobStatus, Question, Segment, Snapshot
from .timeline import PlaybackController, SegmentTracker


LOGGER = logging.getLogger(__name__)


class JobViewSession:
    """State behind a single job view.

    Every published snapshot feeds the segment tracker and the progress
    tracker before any view subscriber sees it, so a subscriber always reads a
    consistent active segment and progress value.
    """

    def __init__(
        self,
        client: PipelineClient,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        exports_root: Optional[Path] = None,
        player: Optional[PlaybackController] = None,
        on_segment_change: Optional[Callable[[Optional[int]], None]] = None,
    ) -> None:
        self._client = client
        self._exports_root = exports_root
        self._poller = StatusPoller(client, interval=poll_interval)
        self._tracker = SegmentTracker(player, on_change=on_segment_change)
        self._answers = AnswerBook()
        self._progress = ProgressTracker()
        self._job_id: Optional[str] = None
        self._poller.subscribe(self._absorb_snapshot)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        client: Optional[PipelineClient] = None,
        player: Optional[PlaybackController] = None,
    ) -> "JobViewSession":
        return cls(
            client or PipelineClient.from_config(config),
            poll_interval=config.poll_interval_seconds,
            exports_root=config.exports_root,
            player=player,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self, job_id: str, *, follow: bool = True) -> Optional[Snapshot]:
        """Show *job_id*, polling it in the background when *follow* is set.

        Without *follow* a single fetch cycle runs and its snapshot is returned.
        """

        self._switch_to(job_id)
        if follow:
            await self._poller.start(job_id)
            return self._poller.snapshot
        return await self._poller.refresh(job_id)

    async def close(self) -> None:
        await self._poller.stop()

    async def wait(self) -> None:
        await self._poller.wait()

    async def refresh(self) -> Optional[Snapshot]:
        return await self._poller.refresh()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        return self._poller.subscribe(subscriber)

    def _switch_to(self, job_id: str) -> None:
        if job_id == self._job_id:
            return
        LOGGER.info("Opening job view for %s", job_id)
        self._job_id = job_id
        self._answers.bind(job_id)
        self._progress.reset()
        self._tracker.reset()

    def _absorb_snapshot(self, snapshot: Snapshot) -> None:
        if snapshot.job_id != self._job_id:
            return
        self._tracker.update_segments(snapshot.segments)
        self._progress.observe(snapshot.job)

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------
    @property
    def job_id(self) -> Optional[str]:
        return self._job_id

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._poller.snapshot

    @property
    def poller(self) -> StatusPoller:
        return self._poller

    @property
    def tracker(self) -> SegmentTracker:
        return self._tracker

    @property
    def answers(self) -> AnswerBook:
        return self._answers

    @property
    def active_segment_index(self) -> Optional[int]:
        return self._tracker.active_index

    @property
    def active_segment(self) -> Optional[Segment]:
        index = self._tracker.active_index
        segments = self._tracker.segments
        if index is None or index >= len(segments):
            return None
        return segments[index]

    @property
    def status_text(self) -> str:
        snapshot = self.snapshot
        return describe_status(snapshot.job if snapshot else None)

    @property
    def display_progress(self) -> int:
        return self._progress.value

    @property
    def banner(self) -> Optional[str]:
        snapshot = self.snapshot
        return snapshot.banner if snapshot else None

    @property
    def has_failed(self) -> bool:
        snapshot = self.snapshot
        return snapshot is not None and snapshot.job is not None and snapshot.job.status is JobStatus.ERROR

    def require_healthy(self) -> None:
        """Raise :class:`JobFailedError` when the backend reports the job as failed."""

        if self.has_failed:
            job = self.snapshot.job
            raise JobFailedError(job.id, job.error_message or "")

    def questions_for_active_segment(self) -> Tuple[Question, ...]:
        """Questions to show next to the active segment.

        Segment-embedded questions win; otherwise legacy questions anchored at
        the segment's start time are used.
        """

        segment = self.active_segment
        snapshot = self.snapshot
        if segment is None or snapshot is None:
            return ()
        if segment.has_questions:
            return segment.questions
        return tuple(
            question for question in snapshot.questions if question.segment_start == segment.start_time
        )

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def _require_job(self) -> str:
        if self._job_id is None:
            raise RuntimeError("No job is open")
        return self._job_id

    async def retry(self) -> None:
        """Ask the backend to transcribe again and resume polling."""

        job_id = self._require_job()
        await self._client.retry_transcription(job_id)
        await self._poller.start(job_id)

    async def generate_questions(self) -> Tuple[Question, ...]:
        job_id = self._require_job()
        questions = await self._client.generate_questions(job_id)
        await self._poller.refresh()
        return questions

    def export(
        self,
        *,
        output: Optional[Path] = None,
        exports_root: Optional[Path] = None,
        timestamp: Optional[str] = None,
    ) -> Path:
        """Write every known question of the job to CSV and return the path."""

        snapshot = self.snapshot
        if snapshot is None:
            raise RuntimeError("No job is open")
        root = exports_root or self._exports_root or Path.cwd()
        title = snapshot.job.title if snapshot.job else ""
        return write_questions_csv(
            snapshot.all_questions(),
            root,
            title=title,
            output=output,
            timestamp=timestamp,
        )


__all__ = ["JobViewSession"]
