"""CSV export of quiz questions."""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from .records import Question


LOGGER = logging.getLogger(__name__)

OPTION_COLUMNS = 4
OPTION_LETTERS = "ABCD"
CSV_HEADER = [
    "Question",
    "Option A",
    "Option B",
    "Option C",
    "Option D",
    "Correct Answer",
    "Explanation",
]


class ExportError(RuntimeError):
    """Raised when an export cannot be written."""


def slugify(value: str) -> str:
    """Return a filesystem-friendly representation of *value*."""

    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value).strip("-")
    return value or "questions"


def build_export_name(title: str, *, timestamp: Optional[str] = None) -> str:
    stamp = timestamp or datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{slugify(title)}-{stamp}.csv"


def _question_row(question: Question) -> List[str]:
    options = list(question.options)
    if len(options) > OPTION_COLUMNS:
        LOGGER.warning(
            "Question %s has %d options; only the first %d are exported",
            question.key,
            len(options),
            OPTION_COLUMNS,
        )
        options = options[:OPTION_COLUMNS]

    texts = [option.text for option in options]
    texts.extend([""] * (OPTION_COLUMNS - len(texts)))

    correct = ""
    for index, option in enumerate(options):
        if option.is_correct:
            correct = OPTION_LETTERS[index]
            break

    return [question.text, *texts, correct, question.explanation or ""]


def export_questions_csv(questions: Iterable[Question]) -> str:
    """Render *questions* as CSV text with one row per question."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for question in questions:
        writer.writerow(_question_row(question))
    return buffer.getvalue()


def write_questions_csv(
    questions: Iterable[Question],
    exports_root: Path,
    *,
    title: str = "",
    output: Optional[Path] = None,
    timestamp: Optional[str] = None,
) -> Path:
    """Write the CSV export and return its path.

    Without an explicit *output* path the file lands in *exports_root* under
    a slugified, timestamped name derived from *title*.
    """

    target = output if output is not None else exports_root / build_export_name(title, timestamp=timestamp)
    content = export_questions_csv(questions)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as error:
        raise ExportError(f"Unable to write export to {target}: {error}") from error
    LOGGER.info("Exported questions to %s", target)
    return target


__all__ = [
    "CSV_HEADER",
    "ExportError",
    "build_export_name",
    "export_questions_csv",
    "slugify",
    "write_questions_csv",
]
