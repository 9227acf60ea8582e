"""
Exam Platform - Scoring Engine
Pure, re-runnable scoring of recorded answers against question definitions.

Choice questions are all-or-nothing: the recorded selection, read as a set
of option indices, must equal the answer key exactly. Free-text questions
contribute nothing and flag the attempt for manual grading.
"""
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.schemas.exam import Question, QuestionType
from app.services.exceptions import InvalidAnswerError


@dataclass(frozen=True)
class ScoreResult:
    total: float
    manual_grading_needed: bool
    max_total: float


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def choice_set(value: Any) -> frozenset[int] | None:
    """Read a recorded choice answer as a set of option indices."""
    if _is_index(value):
        return frozenset({value})
    if isinstance(value, (list, tuple, set, frozenset)) and all(_is_index(v) for v in value):
        return frozenset(value)
    return None


def score_answers(questions: Sequence[Question], answers: Mapping[int, Any]) -> ScoreResult:
    """Score an answer sheet; unanswered or malformed answers score 0."""
    total = 0.0
    max_total = 0.0
    manual = False

    for index, question in enumerate(questions):
        if question.type == QuestionType.TEXT:
            manual = True
            continue

        max_total += question.points
        selected = choice_set(answers.get(index))
        if selected is not None and selected == frozenset(question.correct_answers):
            total += question.points

    return ScoreResult(total=total, manual_grading_needed=manual, max_total=max_total)


def normalize_answer(questions: Sequence[Question], index: int, value: Any) -> Any:
    """
    Validate a value against its question and return the stored form.

    Single-choice answers are kept as one index when exactly one option is
    chosen; any other selection is kept as a sorted list (and will score 0).
    """
    if index < 0 or index >= len(questions):
        raise InvalidAnswerError(f"Question index {index} is out of range")
    if value is None:
        return None

    question = questions[index]
    if question.type == QuestionType.TEXT:
        if not isinstance(value, str):
            raise InvalidAnswerError(f"Question {index} expects a text answer")
        return value

    selected = choice_set(value)
    if selected is None:
        raise InvalidAnswerError(f"Question {index} expects option indices")
    if any(i < 0 or i >= len(question.options) for i in selected):
        raise InvalidAnswerError(f"Option index out of range for question {index}")

    ordered = sorted(selected)
    if question.type == QuestionType.SINGLE and len(ordered) == 1:
        return ordered[0]
    return ordered
