from __future__ import annotations

from lecture_quiz.services.answers import AnswerBook, OptionState, option_states
from lecture_quiz.services.records import Option, Question, QuestionKey, Snapshot, parse_questions, parse_transcript

from conftest import make_transcript


def _question(key: QuestionKey, correct: int = 0, count: int = 3) -> Question:
    options = tuple(Option(text=f"option {i}", is_correct=i == correct) for i in range(count))
    return Question(key=key, text="Which one?", options=options, explanation="Because.")


def test_first_answer_wins() -> None:
    book = AnswerBook("job")
    question = _question(QuestionKey("segment", 0, segment_index=0))

    assert book.answer_question(question, 1) is True
    assert book.answer_question(question, 0) is False
    assert book.chosen_option(question.key) == question.option_key(1)


def test_explanation_is_revealed_exactly_when_answered() -> None:
    book = AnswerBook("job")
    question = _question(QuestionKey("legacy", 0, backend_id="q"))

    assert not book.explanation_revealed(question.key)
    book.answer_question(question, 0)
    assert book.explanation_revealed(question.key)
    book.reset_legacy()
    assert not book.explanation_revealed(question.key)
    assert not book.is_answered(question.key)


def test_option_states_after_wrong_answer() -> None:
    question = _question(QuestionKey("legacy", 0), correct=2)

    assert option_states(question, None) == [OptionState.OPEN] * 3
    assert option_states(question, question.option_key(0)) == [
        OptionState.CHOSEN_INCORRECT,
        OptionState.UNCHOSEN_INCORRECT,
        OptionState.CORRECT_UNCHOSEN,
    ]
    assert option_states(question, question.option_key(2)) == [
        OptionState.UNCHOSEN_INCORRECT,
        OptionState.UNCHOSEN_INCORRECT,
        OptionState.CHOSEN_CORRECT,
    ]


def test_reset_segment_only_touches_that_segment() -> None:
    book = AnswerBook("job")
    first = _question(QuestionKey("segment", 0, segment_index=0))
    second = _question(QuestionKey("segment", 0, segment_index=1))
    legacy = _question(QuestionKey("legacy", 0))
    for question in (first, second, legacy):
        book.answer_question(question, 0)

    assert book.reset_segment(0) == 1
    assert not book.is_answered(first.key)
    assert book.is_answered(second.key)
    assert book.is_answered(legacy.key)


def test_binding_another_job_clears_answers_and_expansion() -> None:
    book = AnswerBook()
    book.bind("job-a")
    question = _question(QuestionKey("legacy", 0))
    book.answer_question(question, 0)
    book.toggle_expanded(3)

    assert book.bind("job-a") is False
    assert book.is_answered(question.key)

    assert book.bind("job-b") is True
    assert not book.is_answered(question.key)
    assert not book.is_expanded(3)


def test_answers_survive_a_refreshed_snapshot() -> None:
    book = AnswerBook("job")
    before = Snapshot(job_id="job", transcript=parse_transcript(make_transcript()))
    question = before.transcript.segments[0].questions[0]
    book.answer_question(question, 0)

    after = before.evolve(transcript=parse_transcript(make_transcript()), cycle=2)
    refreshed = after.transcript.segments[0].questions[0]

    assert refreshed is not question
    assert book.is_answered(refreshed.key)
    assert book.option_states(refreshed)[0] is OptionState.CHOSEN_CORRECT


def test_legacy_and_segment_questions_never_share_keys() -> None:
    transcript = parse_transcript(make_transcript())
    legacy = parse_questions([{"questionText": "Q", "options": []}, {"id": "0", "questionText": "Q", "options": []}])
    keys = [q.key for q in transcript.segment_questions] + [q.key for q in legacy]

    assert len(set(keys)) == len(keys)


def test_score_counts_answered_and_correct() -> None:
    book = AnswerBook("job")
    questions = [_question(QuestionKey("legacy", index)) for index in range(3)]
    book.answer_question(questions[0], 0)
    book.answer_question(questions[1], 1)

    score = book.score(questions)

    assert (score.answered, score.correct, score.total) == (2, 1, 3)


def test_toggle_expanded() -> None:
    book = AnswerBook("job")

    assert book.toggle_expanded(1) is True
    assert book.is_expanded(1)
    assert book.toggle_expanded(1) is False
    assert not book.is_expanded(1)
