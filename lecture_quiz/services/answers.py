"""Per-question answer state for one job view."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from .records import Question, QuestionKey


LOGGER = logging.getLogger(__name__)


class OptionState(str, Enum):
    OPEN = "open"
    CHOSEN_CORRECT = "chosen_correct"
    CHOSEN_INCORRECT = "chosen_incorrect"
    CORRECT_UNCHOSEN = "correct_unchosen"
    UNCHOSEN_INCORRECT = "unchosen_incorrect"


@dataclass(frozen=True)
class AnswerRecord:
    key: QuestionKey
    option_key: str

    @property
    def explanation_revealed(self) -> bool:
        # Revealing follows from answering; there is no separate toggle.
        return True


@dataclass(frozen=True)
class Score:
    answered: int
    correct: int
    total: int


def option_states(question: Question, chosen_option_key: Optional[str]) -> List[OptionState]:
    """Derive the display state of every option from the chosen option key."""

    if chosen_option_key is None:
        return [OptionState.OPEN for _ in question.options]

    states: List[OptionState] = []
    for index, option in enumerate(question.options):
        chosen = question.option_key(index) == chosen_option_key
        if chosen and option.is_correct:
            states.append(OptionState.CHOSEN_CORRECT)
        elif chosen:
            states.append(OptionState.CHOSEN_INCORRECT)
        elif option.is_correct:
            states.append(OptionState.CORRECT_UNCHOSEN)
        else:
            states.append(OptionState.UNCHOSEN_INCORRECT)
    return states


class AnswerBook:
    """Answer and expansion state scoped to a single job id.

    Snapshots refreshed by the poller never touch this state; it is only
    cleared by an explicit reset or by binding a different job.
    """

    def __init__(self, job_id: Optional[str] = None) -> None:
        self._job_id = job_id
        self._answers: Dict[QuestionKey, AnswerRecord] = {}
        self._expanded: Set[int] = set()

    @property
    def job_id(self) -> Optional[str]:
        return self._job_id

    def bind(self, job_id: str) -> bool:
        """Scope the book to *job_id*; returns ``True`` when state was cleared."""

        if job_id == self._job_id:
            return False
        LOGGER.debug("Answer state moved from job %s to %s", self._job_id, job_id)
        self._job_id = job_id
        self.reset_all()
        return True

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    def record_answer(self, key: QuestionKey, option_key: str) -> bool:
        """Record the first answer for *key*; later answers are ignored."""

        if key in self._answers:
            return False
        self._answers[key] = AnswerRecord(key=key, option_key=option_key)
        return True

    def answer_question(self, question: Question, option_index: int) -> bool:
        if not 0 <= option_index < len(question.options):
            raise IndexError(f"Option {option_index} does not exist for {question.key}")
        return self.record_answer(question.key, question.option_key(option_index))

    def is_answered(self, key: QuestionKey) -> bool:
        return key in self._answers

    def chosen_option(self, key: QuestionKey) -> Optional[str]:
        record = self._answers.get(key)
        return record.option_key if record else None

    def explanation_revealed(self, key: QuestionKey) -> bool:
        record = self._answers.get(key)
        return record is not None and record.explanation_revealed

    def option_states(self, question: Question) -> List[OptionState]:
        return option_states(question, self.chosen_option(question.key))

    def is_correct(self, question: Question) -> Optional[bool]:
        chosen = self.chosen_option(question.key)
        if chosen is None:
            return None
        return OptionState.CHOSEN_CORRECT in option_states(question, chosen)

    def score(self, questions: Iterable[Question]) -> Score:
        answered = correct = total = 0
        for question in questions:
            total += 1
            verdict = self.is_correct(question)
            if verdict is None:
                continue
            answered += 1
            if verdict:
                correct += 1
        return Score(answered=answered, correct=correct, total=total)

    def __len__(self) -> int:
        return len(self._answers)

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------
    def reset_segment(self, segment_index: int) -> int:
        """Forget answers of the questions embedded in one segment."""

        return self._drop(
            lambda key: key.namespace == "segment" and key.segment_index == segment_index
        )

    def reset_legacy(self) -> int:
        """Forget answers of every legacy standalone question."""

        return self._drop(lambda key: key.namespace == "legacy")

    def reset_all(self) -> None:
        self._answers.clear()
        self._expanded.clear()

    def _drop(self, predicate) -> int:
        doomed = [key for key in self._answers if predicate(key)]
        for key in doomed:
            del self._answers[key]
        return len(doomed)

    # ------------------------------------------------------------------
    # Segment expansion
    # ------------------------------------------------------------------
    def toggle_expanded(self, segment_index: int) -> bool:
        if segment_index in self._expanded:
            self._expanded.discard(segment_index)
            return False
        self._expanded.add(segment_index)
        return True

    def is_expanded(self, segment_index: int) -> bool:
        return segment_index in self._expanded


__all__ = ["AnswerBook", "AnswerRecord", "OptionState", "Score", "option_states"]
