"""
Exam Platform - Scoring Engine Tests
"""
import pytest

from app.schemas.exam import Question
from app.services.exceptions import InvalidAnswerError
from app.services.scoring import choice_set, normalize_answer, score_answers

from conftest import sample_questions


@pytest.fixture
def questions() -> list[Question]:
    return [Question.model_validate(q) for q in sample_questions()]


def test_all_correct(questions):
    result = score_answers(questions, {0: 1, 1: [0, 1, 3], 2: "A function calling itself"})
    assert result.total == 5
    assert result.max_total == 5
    assert result.manual_grading_needed is True


def test_multi_needs_exact_set(questions):
    # Missing one correct option
    assert score_answers(questions, {1: [0, 1]}).total == 0
    # One extra option
    assert score_answers(questions, {1: [0, 1, 2, 3]}).total == 0
    # Order does not matter
    assert score_answers(questions, {1: [3, 0, 1]}).total == 3


def test_single_answer_accepts_one_element_list(questions):
    assert score_answers(questions, {0: [1]}).total == 2
    assert score_answers(questions, {0: 0}).total == 0


def test_unanswered_scores_zero(questions):
    result = score_answers(questions, {})
    assert result.total == 0
    assert result.manual_grading_needed is True


def test_no_text_question_means_no_manual_grading(questions):
    result = score_answers(questions[:2], {0: 1})
    assert result.total == 2
    assert result.manual_grading_needed is False


def test_malformed_answers_score_zero(questions):
    assert score_answers(questions, {0: "1", 1: [0, "1", 3], 2: 7}).total == 0
    assert score_answers(questions, {0: True}).total == 0


def test_scoring_is_repeatable(questions):
    answers = {0: 1, 1: [0, 1]}
    assert score_answers(questions, answers) == score_answers(questions, answers)


def test_single_with_empty_answer_key_needs_empty_selection():
    question = Question.model_validate({"type": "single", "text": "Survey", "options": ["a", "b"]})
    assert score_answers([question], {0: 0}).total == 0
    assert score_answers([question], {0: []}).total == 1.0


def test_choice_set():
    assert choice_set(2) == frozenset({2})
    assert choice_set([2, 2, 0]) == frozenset({0, 2})
    assert choice_set(None) is None
    assert choice_set(False) is None
    assert choice_set("2") is None


def test_normalize_answer(questions):
    assert normalize_answer(questions, 0, [1]) == 1
    assert normalize_answer(questions, 1, [3, 0]) == [0, 3]
    assert normalize_answer(questions, 2, "text") == "text"
    assert normalize_answer(questions, 0, None) is None


@pytest.mark.parametrize(
    "index,value",
    [
        (3, 1),
        (-1, 1),
        (0, 5),
        (1, [0, 9]),
        (0, "1"),
        (2, 1),
    ],
)
def test_normalize_answer_rejects(questions, index, value):
    with pytest.raises(InvalidAnswerError):
        normalize_answer(questions, index, value)
