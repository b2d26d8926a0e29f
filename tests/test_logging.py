from __future__ import annotations

import logging
from pathlib import Path

from lecture_quiz.logging_utils import LOG_FILE_NAME, get_log_file_path, prepare_logging
from lecture_quiz.services.events import emit_poll_event, emit_structured_event, normalize_context


def test_prepare_logging_replaces_its_own_handlers(tmp_path: Path) -> None:
    root = logging.getLogger()
    original_level = root.level
    try:
        prepare_logging(tmp_path)
        prepare_logging(tmp_path, verbose=True)

        owned = [handler for handler in root.handlers if getattr(handler, "_lecture_quiz_owned", False)]
        assert len(owned) == 2
        assert root.level == logging.DEBUG

        logging.getLogger("lecture_quiz.tests").info("written to file")
        for handler in owned:
            handler.flush()
        assert "written to file" in get_log_file_path(tmp_path).read_text(encoding="utf-8")
        assert get_log_file_path(tmp_path).name == LOG_FILE_NAME
    finally:
        for handler in list(root.handlers):
            if getattr(handler, "_lecture_quiz_owned", False):
                root.removeHandler(handler)
                handler.close()
        root.setLevel(original_level)


def test_structured_event_attaches_debug_extras(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="lecture_quiz.events"):
        emit_structured_event(
            "TEST_EVENT",
            "Something happened",
            payload={"status": 200, "empty": ""},
            correlation={"job_id": "job-1"},
            duration_ms=12.345,
        )

    record = caplog.records[-1]
    assert record.getMessage() == "[TEST_EVENT] Something happened (job_id=job-1, status=200, duration_ms=12.3)"
    assert record.debug_event_type == "TEST_EVENT"
    assert record.debug_payload == {"status": 200}
    assert record.debug_correlation == {"job_id": "job-1"}


def test_poll_event_correlates_generation_and_cycle(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="lecture_quiz.events"):
        emit_poll_event("job-1", "Poll cycle applied", generation=2, cycle=7, level=logging.DEBUG)

    record = caplog.records[-1]
    assert record.debug_event_type == "POLL_CYCLE"
    assert record.debug_correlation == {"job_id": "job-1", "generation": 2, "cycle": 7}


def test_normalize_context_truncates_long_values() -> None:
    context = normalize_context({"text": "x" * 500, "none": None, "": "skipped"})

    assert list(context) == ["text"]
    assert context["text"].endswith("…")
    assert len(context["text"]) == 201
