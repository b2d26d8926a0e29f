from __future__ import annotations

import logging

import pytest

from lecture_quiz.services.errors import IdentityUnresolvableError, MalformedResponseError
from lecture_quiz.services.records import (
    JobStatus,
    QuestionKey,
    Snapshot,
    normalize_question,
    parse_job,
    parse_questions,
    parse_transcript,
    scale_progress,
)

from conftest import make_transcript, make_video


def test_parse_job_reads_backend_fields() -> None:
    job = parse_job(make_video(status="transcribing", processingProgress="42.5"))

    assert job.id == "65f0c0ffee0000000000abcd"
    assert job.status is JobStatus.TRANSCRIBING
    assert job.progress == pytest.approx(42.5)
    assert job.duration == 125
    assert job.error_message is None


def test_parse_job_uses_requested_id_when_payload_has_none(caplog) -> None:
    payload = make_video()
    del payload["_id"]

    with caplog.at_level(logging.WARNING, logger="lecture_quiz.events"):
        job = parse_job(payload, fallback_id="requested")

    assert job.id == "requested"
    assert any(getattr(record, "debug_event_type", None) == "IDENTITY_FALLBACK" for record in caplog.records)


def test_parse_job_error_without_message_gets_placeholder() -> None:
    job = parse_job(make_video(status="error", errorMessage=""))

    assert job.status is JobStatus.ERROR
    assert job.error_message == "Unknown error"


def test_parse_job_rejects_unknown_status() -> None:
    with pytest.raises(MalformedResponseError):
        parse_job(make_video(status="exploded"))


@pytest.mark.parametrize(
    ("value", "scale", "expected"),
    [
        (55, "percent", 55.0),
        ("70", "percent", 70.0),
        (0.25, "fraction", 25.0),
        (140, "percent", 100.0),
        (-3, "percent", 0.0),
        (None, "percent", None),
        ("soon", "percent", None),
    ],
)
def test_scale_progress(value, scale, expected) -> None:
    assert scale_progress(value, scale) == expected


def test_segment_and_legacy_shapes_normalize_to_the_same_question() -> None:
    options = [
        {"text": "Energy", "isCorrect": True},
        {"text": "Entropy", "isCorrect": False},
    ]
    embedded = normalize_question(
        {"question": "What is conserved?", "options": options, "explanation": "First law."},
        QuestionKey("segment", 0, segment_index=0),
        segment_start=0.0,
        segment_end=30.0,
    )
    legacy = normalize_question(
        {
            "questionText": "What is conserved?",
            "options": options,
            "explanation": "First law.",
            "segmentStartTime": 0,
            "segmentEndTime": 30,
        },
        QuestionKey("legacy", 0),
    )

    assert embedded.text == legacy.text == "What is conserved?"
    assert embedded.options == legacy.options
    assert embedded.correct_index == legacy.correct_index == 0
    assert (embedded.segment_start, embedded.segment_end) == (legacy.segment_start, legacy.segment_end)


def test_parse_transcript_builds_indexed_segments() -> None:
    transcript = parse_transcript(make_transcript())

    assert [segment.index for segment in transcript.segments] == [0, 1]
    first, second = transcript.segments
    assert first.has_questions and first.questions_present
    assert not second.has_questions and second.questions_present
    assert first.questions[0].key.token == "segment-0-question-0-q-1"
    assert first.questions[0].segment_start == 0


def test_parse_transcript_requires_segment_times() -> None:
    payload = make_transcript(segments=[{"startTime": 0, "text": "no end"}])

    with pytest.raises(MalformedResponseError):
        parse_transcript(payload)


def test_parse_transcript_tolerates_missing_segments() -> None:
    transcript = parse_transcript({"_id": "t", "videoId": "v"})

    assert transcript.segments == ()
    assert not transcript.has_segment_questions


def test_parse_questions_falls_back_to_position_for_duplicate_ids() -> None:
    questions = parse_questions(
        [
            {"id": "dup", "questionText": "First", "options": []},
            {"id": "dup", "questionText": "Second", "options": []},
            {"questionText": "Third", "options": []},
        ]
    )

    tokens = [question.key.token for question in questions]
    assert tokens == ["legacy-id-dup", "legacy-pos-1", "legacy-pos-2"]
    assert len(set(question.key for question in questions)) == 3


def test_question_keys_do_not_collide_across_namespaces() -> None:
    keys = {
        QuestionKey("segment", 0, segment_index=0),
        QuestionKey("segment", 0, segment_index=1),
        QuestionKey("segment", 1, segment_index=0),
        QuestionKey("legacy", 0),
        QuestionKey("legacy", 0, backend_id="0"),
    }

    assert len(keys) == 5


def test_snapshot_all_questions_skips_legacy_duplicates_of_embedded() -> None:
    transcript = parse_transcript(make_transcript())
    legacy = parse_questions(
        [
            {"id": "q-1", "questionText": "What is conserved?", "options": []},
            {"id": "q-9", "questionText": "Extra", "options": []},
        ]
    )
    snapshot = Snapshot(job_id="v", transcript=transcript, questions=legacy)

    texts = [question.text for question in snapshot.all_questions()]
    assert texts == ["What is conserved?", "Extra"]
    assert snapshot.has_any_questions


def test_parse_job_without_any_identity_is_unresolvable() -> None:
    payload = make_video()
    del payload["_id"]

    with pytest.raises(IdentityUnresolvableError):
        parse_job(payload)
