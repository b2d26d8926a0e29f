"""Immutable records for jobs, transcripts and questions plus wire parsing.

The backend speaks two question shapes: questions embedded in transcript
segments and legacy standalone questions returned by the question endpoint.
Both are normalised here, once, into :class:`Question` so the rest of the
engine never branches on shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Set, Tuple

from .errors import IdentityUnresolvableError, MalformedResponseError
from .events import emit_identity_event


LOGGER = logging.getLogger(__name__)


ProgressScale = Literal["percent", "fraction"]
KeyNamespace = Literal["segment", "legacy"]

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class JobStatus(str, Enum):
    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    GENERATING_QUESTIONS = "generating_questions"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def exposes_results(self) -> bool:
        """Whether transcript and questions are worth fetching in this state."""

        return self in (JobStatus.GENERATING_QUESTIONS, JobStatus.COMPLETED)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class Job:
    id: str
    title: str
    status: JobStatus
    progress: Optional[float] = None
    error_message: Optional[str] = None
    duration: Optional[float] = None
    filename: Optional[str] = None


@dataclass(frozen=True)
class Option:
    text: str
    is_correct: bool
    backend_id: Optional[str] = None


@dataclass(frozen=True, eq=False)
class QuestionKey:
    """Stable identity of a question across polls.

    Segment questions are identified by segment index and position within the
    segment (plus the backend id when present). Legacy questions use the
    backend id when it is present and unique, otherwise their position in the
    unfiltered backend list. Equality and hashing use :attr:`token` only.
    """

    namespace: KeyNamespace
    position: int
    segment_index: Optional[int] = None
    backend_id: Optional[str] = None

    @property
    def token(self) -> str:
        if self.namespace == "segment":
            return f"segment-{self.segment_index}-question-{self.position}-{self.backend_id or ''}"
        if self.backend_id:
            return f"legacy-id-{self.backend_id}"
        return f"legacy-pos-{self.position}"

    def option_key(self, index: int, option: Option) -> str:
        return f"{self.token}-option-{index}-{option.backend_id or ''}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuestionKey):
            return NotImplemented
        return self.token == other.token

    def __hash__(self) -> int:
        return hash(self.token)

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class Question:
    key: QuestionKey
    text: str
    options: Tuple[Option, ...]
    explanation: Optional[str] = None
    segment_start: Optional[float] = None
    segment_end: Optional[float] = None

    @property
    def backend_id(self) -> Optional[str]:
        return self.key.backend_id

    @property
    def correct_index(self) -> Optional[int]:
        for index, option in enumerate(self.options):
            if option.is_correct:
                return index
        return None

    def option_key(self, index: int) -> str:
        return self.key.option_key(index, self.options[index])

    def option_keys(self) -> List[str]:
        return [self.option_key(index) for index in range(len(self.options))]


@dataclass(frozen=True)
class Segment:
    index: int
    start_time: float
    end_time: float
    text: str
    questions: Tuple[Question, ...] = ()
    questions_present: bool = False

    @property
    def has_questions(self) -> bool:
        return bool(self.questions)

    def contains(self, time: float) -> bool:
        return self.start_time <= time < self.end_time


@dataclass(frozen=True)
class Transcript:
    id: str
    job_id: str
    full_text: str
    segments: Tuple[Segment, ...] = ()

    @property
    def segment_questions(self) -> Tuple[Question, ...]:
        return tuple(question for segment in self.segments for question in segment.questions)

    @property
    def has_segment_questions(self) -> bool:
        return any(segment.has_questions for segment in self.segments)


@dataclass(frozen=True)
class Snapshot:
    """Bundle of job, transcript and legacy questions published atomically."""

    job_id: str
    job: Optional[Job] = None
    transcript: Optional[Transcript] = None
    questions: Tuple[Question, ...] = ()
    cycle: int = 0
    banner: Optional[str] = None

    @property
    def segments(self) -> Tuple[Segment, ...]:
        if self.transcript is None:
            return ()
        return self.transcript.segments

    @property
    def has_any_questions(self) -> bool:
        if self.questions:
            return True
        return self.transcript is not None and self.transcript.has_segment_questions

    def all_questions(self) -> Tuple[Question, ...]:
        """Return segment questions in order followed by unseen legacy questions."""

        embedded = self.transcript.segment_questions if self.transcript else ()
        seen_ids: Set[str] = {q.backend_id for q in embedded if q.backend_id}
        legacy = tuple(
            question
            for question in self.questions
            if not question.backend_id or question.backend_id not in seen_ids
        )
        return tuple(embedded) + legacy

    def evolve(self, **changes: Any) -> "Snapshot":
        return replace(self, **changes)


# ----------------------------------------------------------------------
# Wire parsing
# ----------------------------------------------------------------------
def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(f"Expected an object for {what}, got {type(payload).__name__}")
    return payload


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _backend_id(payload: Mapping[str, Any]) -> Optional[str]:
    return _optional_text(payload.get("id")) or _optional_text(payload.get("_id"))


def _coerce_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _require_time(payload: Mapping[str, Any], field_name: str, what: str) -> float:
    value = _coerce_number(payload.get(field_name))
    if value is None:
        raise MalformedResponseError(f"{what} is missing a numeric '{field_name}'")
    return value


def scale_progress(value: Any, scale: ProgressScale = "percent") -> Optional[float]:
    """Convert a wire progress value to a percentage clamped to ``[0, 100]``."""

    number = _coerce_number(value)
    if number is None:
        return None
    if scale == "fraction":
        number *= 100.0
    return max(0.0, min(number, 100.0))


def parse_job(
    payload: Any,
    *,
    fallback_id: Optional[str] = None,
    progress_scale: ProgressScale = "percent",
) -> Job:
    data = _require_mapping(payload, "job")

    raw_status = data.get("status")
    try:
        status = JobStatus(raw_status)
    except ValueError as error:
        raise MalformedResponseError(f"Unknown job status {raw_status!r}") from error

    job_id = _backend_id(data)
    if job_id is None:
        if fallback_id is None:
            raise IdentityUnresolvableError("Job payload carries no identifier")
        emit_identity_event(
            "Job payload without identifier; using requested id",
            payload={"job_id": fallback_id},
        )
        job_id = fallback_id

    error_message = _optional_text(data.get("errorMessage"))
    if status is JobStatus.ERROR and error_message is None:
        error_message = UNKNOWN_ERROR_MESSAGE

    return Job(
        id=job_id,
        title=_optional_text(data.get("title")) or "",
        status=status,
        progress=scale_progress(data.get("processingProgress"), progress_scale),
        error_message=error_message,
        duration=_coerce_number(data.get("duration")),
        filename=_optional_text(data.get("filename")),
    )


def _parse_options(raw_options: Any, key: QuestionKey) -> Tuple[Option, ...]:
    if raw_options is None:
        return ()
    if not isinstance(raw_options, list):
        raise MalformedResponseError(f"Options of {key} must be a list")

    options: List[Option] = []
    for raw in raw_options:
        option = _require_mapping(raw, f"option of {key}")
        options.append(
            Option(
                text=str(option.get("text") or ""),
                is_correct=bool(option.get("isCorrect", False)),
                backend_id=_optional_text(option.get("id")),
            )
        )

    correct = sum(1 for option in options if option.is_correct)
    if options and correct != 1:
        LOGGER.warning("Question %s has %d correct options; expected exactly one", key, correct)
    return tuple(options)


def normalize_question(
    payload: Any,
    key: QuestionKey,
    *,
    segment_start: Optional[float] = None,
    segment_end: Optional[float] = None,
) -> Question:
    """Build the canonical :class:`Question` for either wire shape."""

    data = _require_mapping(payload, f"question {key}")
    text = _optional_text(data.get("questionText")) or _optional_text(data.get("question")) or ""
    if segment_start is None:
        segment_start = _coerce_number(data.get("segmentStartTime"))
    if segment_end is None:
        segment_end = _coerce_number(data.get("segmentEndTime"))
    return Question(
        key=key,
        text=text,
        options=_parse_options(data.get("options"), key),
        explanation=_optional_text(data.get("explanation")),
        segment_start=segment_start,
        segment_end=segment_end,
    )


def _parse_segment(payload: Any, index: int) -> Segment:
    data = _require_mapping(payload, f"segment {index}")
    what = f"Segment {index}"
    start = _require_time(data, "startTime", what)
    end = _require_time(data, "endTime", what)
    if end <= start:
        LOGGER.warning("%s has a non-positive duration (%.3f -> %.3f)", what, start, end)

    raw_questions = data.get("questions")
    questions: List[Question] = []
    if raw_questions is not None:
        if not isinstance(raw_questions, list):
            raise MalformedResponseError(f"{what} questions must be a list")
        for position, raw in enumerate(raw_questions):
            backend_id = _backend_id(raw) if isinstance(raw, Mapping) else None
            key = QuestionKey("segment", position, segment_index=index, backend_id=backend_id)
            if backend_id is None:
                emit_identity_event(
                    "Segment question without backend id",
                    payload={"key": key.token},
                    level=logging.DEBUG,
                )
            questions.append(
                normalize_question(raw, key, segment_start=start, segment_end=end)
            )

    return Segment(
        index=index,
        start_time=start,
        end_time=end,
        text=str(data.get("text") or ""),
        questions=tuple(questions),
        questions_present=raw_questions is not None,
    )


def parse_transcript(payload: Any, *, fallback_job_id: str = "") -> Transcript:
    data = _require_mapping(payload, "transcript")
    raw_segments = data.get("segments") or []
    if not isinstance(raw_segments, list):
        raise MalformedResponseError("Transcript segments must be a list")

    return Transcript(
        id=_backend_id(data) or "",
        job_id=_optional_text(data.get("videoId")) or fallback_job_id,
        full_text=str(data.get("fullTranscript") or ""),
        segments=tuple(_parse_segment(raw, index) for index, raw in enumerate(raw_segments)),
    )


def parse_questions(payload: Any) -> Tuple[Question, ...]:
    """Normalise a list of legacy standalone questions."""

    if payload is None:
        return ()
    if not isinstance(payload, list):
        raise MalformedResponseError("Question list must be an array")

    seen: Dict[str, int] = {}
    questions: List[Question] = []
    for position, raw in enumerate(payload):
        backend_id = _backend_id(raw) if isinstance(raw, Mapping) else None
        if backend_id is not None and backend_id in seen:
            emit_identity_event(
                "Duplicate question id; falling back to positional identity",
                payload={"backend_id": backend_id, "position": position, "first": seen[backend_id]},
            )
            backend_id = None
        elif backend_id is None:
            emit_identity_event(
                "Question without backend id; using positional identity",
                payload={"position": position},
                level=logging.DEBUG,
            )
        else:
            seen[backend_id] = position
        key = QuestionKey("legacy", position, backend_id=backend_id)
        questions.append(normalize_question(raw, key))
    return tuple(questions)


__all__ = [
    "Job",
    "JobStatus",
    "Option",
    "ProgressScale",
    "Question",
    "QuestionKey",
    "Segment",
    "Snapshot",
    "Transcript",
    "UNKNOWN_ERROR_MESSAGE",
    "normalize_question",
    "parse_job",
    "parse_questions",
    "parse_transcript",
    "scale_progress",
]
