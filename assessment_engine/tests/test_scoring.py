"""
Tests for the scoring engine.
"""

import pytest

from assessment_engine.common.exceptions import TypeMismatchError
from assessment_engine.assessments.questions import (
    MultipleChoiceQuestion, MultipleResponseQuestion, ScaleQuestion, NumberQuestion,
    ShortResponseQuestion, QuestionOption, ScaleLabel, NumberRange, ScoringMethod
)
from assessment_engine.assessments.answers import (
    MultipleChoiceAnswer, MultipleResponseAnswer, ScaleAnswer, NumberAnswer, ShortResponseAnswer
)
from assessment_engine.assessments.scoring import (
    score_answer, max_score, questions_total_marks, is_scored
)


@pytest.fixture
def choice():
    return MultipleChoiceQuestion(
        text="Milestone met?",
        is_scored=True,
        options=[QuestionOption("Yes", 10), QuestionOption("Maybe", 0)],
    )


@pytest.fixture
def coverage():
    return NumberQuestion(
        text="Coverage",
        max_number=100,
        is_scored=True,
        scoring_method=ScoringMethod.RANGE,
        scoring_ranges=[
            NumberRange(75, 100, 10),
            NumberRange(0, 49, 0),
            NumberRange(50, 74, 5),
        ],
    )


def test_multiple_choice_scores_selected_option(choice):
    assert score_answer(choice, MultipleChoiceAnswer(question_id=choice.id, value="Yes")) == 10
    assert score_answer(choice, MultipleChoiceAnswer(question_id=choice.id, value="Maybe")) == 0
    assert score_answer(choice, MultipleChoiceAnswer(question_id=choice.id)) == 0


def test_unscored_multiple_choice(choice):
    choice.is_scored = False
    assert score_answer(choice, MultipleChoiceAnswer(question_id=choice.id, value="Yes")) == 0
    assert max_score(choice) == 0


def test_multiple_response_negative_points():
    question = MultipleResponseQuestion(
        text="Which practices were followed?",
        is_scored=True,
        options=[QuestionOption("Tests", 5), QuestionOption("Reviews", 3), QuestionOption("Force push", -2)],
    )
    answer = MultipleResponseAnswer(question_id=question.id, values=["Tests", "Force push"])

    assert score_answer(question, answer) == 5
    question.allow_negative = True
    assert score_answer(question, answer) == 3
    assert max_score(question) == 8


def test_scale_scores_exact_labels_only():
    question = ScaleQuestion(
        text="Teamwork",
        scale_max=5,
        is_scored=True,
        labels=[ScaleLabel(1, "Poor", 0), ScaleLabel(3, "Fair", 5), ScaleLabel(5, "Great", 10)],
    )
    assert score_answer(question, ScaleAnswer(question_id=question.id, value=5)) == 10
    assert score_answer(question, ScaleAnswer(question_id=question.id, value=3)) == 5
    assert score_answer(question, ScaleAnswer(question_id=question.id, value=4)) == 0
    assert max_score(question) == 10


def test_number_range_scoring(coverage):
    assert score_answer(coverage, NumberAnswer(question_id=coverage.id, value=75)) == 10
    assert score_answer(coverage, NumberAnswer(question_id=coverage.id, value=50)) == 5
    assert score_answer(coverage, NumberAnswer(question_id=coverage.id, value=74.5)) == 0
    assert max_score(coverage) == 10


def test_number_direct_scoring():
    question = NumberQuestion(text="Demo length", max_number=30, is_scored=True,
                              scoring_method=ScoringMethod.DIRECT, max_points=8)
    assert score_answer(question, NumberAnswer(question_id=question.id, value=12)) == 8
    assert score_answer(question, NumberAnswer(question_id=question.id, value=31)) == 0
    assert max_score(question) == 8


def test_free_text_is_never_scored():
    question = ShortResponseQuestion(text="Comments")
    assert score_answer(question, ShortResponseAnswer(question_id=question.id, value="Good job")) == 0
    assert not is_scored(question)


def test_mismatched_answer_raises(choice):
    with pytest.raises(TypeMismatchError):
        score_answer(choice, ScaleAnswer(question_id=choice.id, value=3))


def test_questions_total_marks(choice, coverage):
    comments = ShortResponseQuestion(text="Comments")
    assert questions_total_marks([choice, coverage, comments]) == 20
    assert questions_total_marks([]) == 0


def test_inclusive_range_boundaries():
    question = NumberQuestion(
        text="Coverage",
        max_number=100,
        is_scored=True,
        scoring_method=ScoringMethod.RANGE,
        scoring_ranges=[NumberRange(0, 50, 5), NumberRange(51, 100, 10)],
    )
    question.validate()

    assert score_answer(question, NumberAnswer(question_id=question.id, value=75)) == 10
    assert score_answer(question, NumberAnswer(question_id=question.id, value=50)) == 5
    matches = [
        value for value in range(0, 101)
        if sum(r.contains(value) for r in question.scoring_ranges) > 1
    ]
    assert matches == []
