"""Async HTTP client for the video processing backend.

Every endpoint answers with an envelope ``{"success": bool, "message": str,
"data": ...}``. The client unwraps it, maps transport and server failures onto
:mod:`lecture_quiz.services.errors`, and returns parsed records.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from typing import Any, Optional, Tuple

import httpx

from ..config import AppConfig
from .errors import (
    IdentityUnresolvableError,
    MalformedResponseError,
    NotFoundError,
    NotYetAvailableError,
    RequestFailedError,
)
from .events import emit_identity_event, emit_request_event
from .records import Job, ProgressScale, Question, Transcript, parse_job, parse_questions, parse_transcript


LOGGER = logging.getLogger(__name__)

_OBJECT_ID_LENGTH = 24
_OBJECT_ID_PATTERN = re.compile(r"([0-9a-f]{24})", re.IGNORECASE)
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def normalize_job_id(raw_id: Optional[str]) -> str:
    """Clean a job id typed by a user or copied from a URL.

    Whitespace is removed. Inputs that are not exactly ObjectId-sized have the
    first 24-character hex run extracted when present; otherwise characters
    that cannot appear in an id are stripped.
    """

    cleaned = re.sub(r"\s+", "", raw_id or "")
    if len(cleaned) != _OBJECT_ID_LENGTH:
        match = _OBJECT_ID_PATTERN.search(cleaned)
        if match:
            cleaned = match.group(1)
        else:
            cleaned = _UNSAFE_ID_CHARS.sub("", cleaned)
    if not cleaned:
        raise ValueError("Job id is required")
    return cleaned


class PipelineClient:
    """Typed access to the job, transcript and question resources."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        progress_scale: ProgressScale = "percent",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._progress_scale: ProgressScale = progress_scale

    @classmethod
    def from_config(cls, config: AppConfig) -> "PipelineClient":
        return cls(
            config.api_base_url,
            timeout=config.request_timeout_seconds,
            progress_scale=config.progress_scale,
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "PipelineClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str) -> Any:
        start = time.perf_counter()
        try:
            response = await self._http.request(method, path)
        except httpx.HTTPError as error:
            emit_request_event(
                method,
                path,
                payload={"status": "error", "error": f"{error.__class__.__name__}: {error}"},
                duration_ms=(time.perf_counter() - start) * 1000.0,
                level=logging.WARNING,
            )
            raise RequestFailedError(f"{method} {path} failed: {error}") from error

        emit_request_event(
            method,
            path,
            payload={"status_code": response.status_code},
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )

        try:
            body = response.json()
        except ValueError:
            body = None

        message = None
        if isinstance(body, Mapping):
            message = body.get("message") or None

        if response.status_code == 404:
            raise NotFoundError(message or f"{path} was not found", status_code=404)
        if response.is_error:
            raise RequestFailedError(
                message or f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(body, Mapping):
            raise MalformedResponseError(
                f"{method} {path} did not return a JSON envelope",
                status_code=response.status_code,
            )
        if not body.get("success", False):
            raise RequestFailedError(
                message or f"{method} {path} reported failure",
                status_code=response.status_code,
            )
        return body.get("data")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    async def get_job(self, job_id: str) -> Job:
        data = await self._request("GET", f"/videos/{job_id}")
        if data is None:
            raise MalformedResponseError(f"No video data returned for {job_id}")
        return parse_job(data, fallback_id=job_id, progress_scale=self._progress_scale)

    async def list_jobs(self) -> Tuple[Job, ...]:
        data = await self._request("GET", "/videos")
        if data is None:
            return ()
        if not isinstance(data, list):
            raise MalformedResponseError("Video list must be an array")
        jobs = []
        for position, item in enumerate(data):
            try:
                jobs.append(parse_job(item, progress_scale=self._progress_scale))
            except IdentityUnresolvableError:
                emit_identity_event("Skipping video without identifier", payload={"position": position})
        return tuple(jobs)

    async def get_transcript(self, job_id: str) -> Transcript:
        data = await self._request("GET", f"/transcripts/video/{job_id}")
        if data is None:
            raise NotYetAvailableError(f"Transcript for {job_id} is not available yet")
        return parse_transcript(data, fallback_job_id=job_id)

    async def get_questions(self, job_id: str) -> Tuple[Question, ...]:
        data = await self._request("GET", f"/questions/video/{job_id}")
        if data is None:
            LOGGER.debug("No question data returned for %s", job_id)
        return parse_questions(data)

    async def retry_transcription(self, job_id: str) -> None:
        await self._request("GET", f"/transcripts/transcribe/{job_id}")
        LOGGER.info("Requested transcription for %s", job_id)

    async def generate_questions(self, job_id: str) -> Tuple[Question, ...]:
        data = await self._request("POST", f"/questions/generate/{job_id}")
        questions = parse_questions(data)
        LOGGER.info("Generated %d questions for %s", len(questions), job_id)
        return questions


__all__ = ["PipelineClient", "normalize_job_id"]
