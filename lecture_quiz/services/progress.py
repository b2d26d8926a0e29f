"""Utilities for reporting job status and non-regressing progress percentages."""

from __future__ import annotations

from typing import Dict, Optional

from .records import Job, JobStatus


# Shown when the backend reports a status without a progress value.
STATUS_FALLBACK_PROGRESS: Dict[JobStatus, int] = {
    JobStatus.UPLOADED: 10,
    JobStatus.TRANSCRIBING: 40,
    JobStatus.GENERATING_QUESTIONS: 70,
    JobStatus.COMPLETED: 100,
    JobStatus.ERROR: 100,
}

STATUS_TEXT: Dict[JobStatus, str] = {
    JobStatus.UPLOADED: "Preparing for transcription...",
    JobStatus.TRANSCRIBING: "Transcribing video...",
    JobStatus.GENERATING_QUESTIONS: "Generating questions...",
    JobStatus.COMPLETED: "Processing complete",
}


def describe_status(job: Optional[Job]) -> str:
    """Return the human readable status line for *job*."""

    if job is None:
        return ""
    if job.status is JobStatus.ERROR:
        return f"Error: {job.error_message}"
    return STATUS_TEXT[job.status]


def display_progress(job: Optional[Job]) -> int:
    """Return the integer percentage to show for *job*."""

    if job is None:
        return 0
    if job.progress is not None:
        return int(round(job.progress))
    return STATUS_FALLBACK_PROGRESS[job.status]


class ProgressTracker:
    """Keep the displayed progress of one job view from moving backwards.

    Polls can observe a lower value than a previous one (a late backend
    write, or a status without progress falling back to its default). The
    tracker holds the highest value seen and only starts over when the job
    changes or leaves the ``error`` state through a retry.
    """

    def __init__(self) -> None:
        self._job_id: Optional[str] = None
        self._last_status: Optional[JobStatus] = None
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def reset(self) -> None:
        self._job_id = None
        self._last_status = None
        self._value = 0

    def observe(self, job: Optional[Job]) -> int:
        if job is None:
            return self._value

        restarted = self._last_status is JobStatus.ERROR and job.status is not JobStatus.ERROR
        if job.id != self._job_id or restarted:
            self._value = 0
        self._job_id = job.id
        self._last_status = job.status

        self._value = max(self._value, display_progress(job))
        return self._value


__all__ = [
    "ProgressTracker",
    "STATUS_FALLBACK_PROGRESS",
    "STATUS_TEXT",
    "describe_status",
    "display_progress",
]
