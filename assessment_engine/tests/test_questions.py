"""
Tests for the question and answer models: payload parsing, configuration
rules and answer shape checks.
"""

import datetime

import pytest

from assessment_engine.common.exceptions import ValidationError, TypeMismatchError
from assessment_engine.assessments.questions import (
    QuestionType, MultipleChoiceQuestion, NumberQuestion, ScaleQuestion, DateQuestion,
    TeamMemberSelectionQuestion, ScoringMethod, question_from_dict, team_member_selection_question
)
from assessment_engine.assessments.answers import (
    MultipleChoiceAnswer, MultipleResponseAnswer, ScaleAnswer, NumberAnswer, DateAnswer,
    TeamMemberSelectionAnswer, UndecidedAnswer, ShortResponseAnswer,
    answer_from_dict, validate_answer
)
from assessment_engine.tests.conftest import choice_question_payload


def scale_payload(**overrides):
    payload = {
        "type": "Scale",
        "text": "Code quality",
        "scaleMax": 5,
        "isScored": True,
        "labels": [
            {"value": 1, "label": "Poor", "points": 0},
            {"value": 3, "label": "Fair", "points": 5},
            {"value": 5, "label": "Great", "points": 10},
        ],
    }
    payload.update(overrides)
    return payload


def range_payload(ranges):
    return {
        "type": "Number",
        "text": "Test coverage (%)",
        "maxNumber": 100,
        "isScored": True,
        "scoringMethod": "range",
        "scoringRanges": ranges,
    }


class TestQuestionParsing:
    def test_multiple_choice_from_payload(self):
        question = question_from_dict(choice_question_payload())

        assert isinstance(question, MultipleChoiceQuestion)
        assert question.id
        assert question.is_required is True
        assert [o.text for o in question.options] == ["Yes", "Maybe"]

        data = question.to_dict()
        assert data["type"] == "Multiple Choice"
        assert data["isScored"] is True
        assert data["options"][0] == {"text": "Yes", "points": 10}

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            question_from_dict({"type": "Essay", "text": "?"})

    def test_missing_type_is_rejected(self):
        with pytest.raises(ValidationError):
            question_from_dict({"text": "?"})

    def test_text_is_required(self):
        with pytest.raises(ValidationError):
            question_from_dict(choice_question_payload(text="   "))

    def test_multiple_choice_requires_options(self):
        with pytest.raises(ValidationError):
            question_from_dict(choice_question_payload(options=[]))

    def test_stored_questions_skip_validation(self):
        question = question_from_dict(choice_question_payload(options=[]), validate=False)
        assert question.options == []

    def test_reserved_questions_are_locked_and_required(self):
        question = TeamMemberSelectionQuestion(text="Pick", is_locked=False, is_required=False)
        assert question.is_locked is True
        assert question.is_required is True
        assert QuestionType.TEAM_MEMBER_SELECTION.is_reserved
        assert not QuestionType.SCALE.is_reserved

    def test_default_selection_question(self):
        question = team_member_selection_question()
        assert question.text == "Student Selection"
        assert question.position == 0
        assert question.is_locked


class TestScaleRules:
    def test_valid_scale(self):
        question = question_from_dict(scale_payload())
        assert isinstance(question, ScaleQuestion)
        assert [label.value for label in question.sorted_labels()] == [1, 3, 5]

    def test_scale_max_below_two(self):
        with pytest.raises(ValidationError):
            question_from_dict(scale_payload(scaleMax=1, labels=[{"value": 1, "points": 0}]))

    def test_single_label(self):
        with pytest.raises(ValidationError) as exc_info:
            question_from_dict(scale_payload(labels=[{"value": 1, "points": 0}]))
        assert exc_info.value.errors == {"labels": "at least 2"}

    def test_label_beyond_scale_max(self):
        labels = [{"value": 1, "points": 0}, {"value": 5, "points": 5}, {"value": 7, "points": 10}]
        with pytest.raises(ValidationError) as exc_info:
            question_from_dict(scale_payload(labels=labels))
        assert exc_info.value.errors == {"labels": [7]}

    def test_label_below_one(self):
        labels = [{"value": 0, "points": 0}, {"value": 1, "points": 0}, {"value": 5, "points": 5}]
        with pytest.raises(ValidationError) as exc_info:
            question_from_dict(scale_payload(labels=labels))
        assert exc_info.value.errors == {"labels": [0]}

    def test_endpoints_are_required(self):
        labels = [{"value": 1, "points": 0}, {"value": 4, "points": 5}]
        with pytest.raises(ValidationError):
            question_from_dict(scale_payload(labels=labels))

    def test_duplicate_values(self):
        labels = [{"value": 1, "points": 0}, {"value": 1, "points": 1}, {"value": 5, "points": 2}]
        with pytest.raises(ValidationError):
            question_from_dict(scale_payload(labels=labels))

    def test_points_may_not_decrease_when_scored(self):
        labels = [{"value": 1, "points": 10}, {"value": 5, "points": 0}]
        with pytest.raises(ValidationError):
            question_from_dict(scale_payload(labels=labels))

    def test_decreasing_points_allowed_when_unscored(self):
        labels = [{"value": 1, "points": 10}, {"value": 5, "points": 0}]
        question = question_from_dict(scale_payload(labels=labels, isScored=False))
        assert not question.is_scored


class TestNumberRules:
    def test_disjoint_ranges(self):
        question = question_from_dict(range_payload([
            {"minValue": 50, "maxValue": 100, "points": 10},
            {"minValue": 0, "maxValue": 49, "points": 5},
        ]))
        assert isinstance(question, NumberQuestion)
        assert question.scoring_method is ScoringMethod.RANGE
        assert [r.min_value for r in question.sorted_ranges()] == [0, 50]

    def test_touching_ranges_overlap(self):
        with pytest.raises(ValidationError):
            question_from_dict(range_payload([
                {"minValue": 0, "maxValue": 50, "points": 5},
                {"minValue": 50, "maxValue": 100, "points": 10},
            ]))

    def test_range_points_may_not_decrease(self):
        with pytest.raises(ValidationError):
            question_from_dict(range_payload([
                {"minValue": 0, "maxValue": 49, "points": 10},
                {"minValue": 50, "maxValue": 100, "points": 5},
            ]))

    def test_inverted_range(self):
        with pytest.raises(ValidationError):
            question_from_dict(range_payload([{"minValue": 60, "maxValue": 40, "points": 5}]))

    def test_scored_number_needs_method(self):
        with pytest.raises(ValidationError):
            question_from_dict({"type": "Number", "text": "Bugs", "maxNumber": 10, "isScored": True})

    def test_direct_scoring_needs_max_points(self):
        with pytest.raises(ValidationError):
            question_from_dict({"type": "Number", "text": "Bugs", "maxNumber": 10,
                                "isScored": True, "scoringMethod": "direct"})

    def test_negative_max_number(self):
        with pytest.raises(ValidationError):
            question_from_dict({"type": "Number", "text": "Bugs", "maxNumber": -1})


def test_date_bounds_must_be_ordered():
    with pytest.raises(ValidationError):
        question_from_dict({"type": "Date", "text": "Demo date",
                            "minDate": "2024-05-01T00:00:00Z", "maxDate": "2024-04-01T00:00:00Z"})


class TestAnswers:
    def test_answer_from_payload(self):
        answer = answer_from_dict({"question": "q1", "type": "Multiple Response Answer",
                                   "values": ["A", "B"], "score": "7"})
        assert isinstance(answer, MultipleResponseAnswer)
        assert answer.values == ["A", "B"]
        assert answer.score == 0

    def test_unknown_answer_type(self):
        with pytest.raises(ValidationError):
            answer_from_dict({"question": "q1", "type": "Essay Answer"})

    def test_answer_needs_question(self):
        with pytest.raises(ValidationError):
            answer_from_dict({"type": "Scale Answer", "value": 3})

    def test_emptiness(self):
        assert ShortResponseAnswer(question_id="q", value="  ").is_empty()
        assert ScaleAnswer(question_id="q").is_empty()
        assert TeamMemberSelectionAnswer(question_id="q").is_empty()
        assert not UndecidedAnswer(question_id="q").is_empty()

    def test_variant_must_match_question(self):
        question = question_from_dict(choice_question_payload())
        with pytest.raises(TypeMismatchError):
            validate_answer(question, ScaleAnswer(question_id=question.id, value=3))

    def test_choice_must_be_an_option(self):
        question = question_from_dict(choice_question_payload())
        validate_answer(question, MultipleChoiceAnswer(question_id=question.id, value="Yes"))
        with pytest.raises(ValidationError):
            validate_answer(question, MultipleChoiceAnswer(question_id=question.id, value="No"))

    def test_scale_answer_bounds(self):
        question = question_from_dict(scale_payload())
        validate_answer(question, ScaleAnswer(question_id=question.id, value=4))
        for value in (0, 6, 2.5):
            with pytest.raises(ValidationError):
                validate_answer(question, ScaleAnswer(question_id=question.id, value=value))

    def test_number_answer_bounds(self):
        question = question_from_dict(range_payload([{"minValue": 0, "maxValue": 100, "points": 1}]))
        with pytest.raises(ValidationError):
            validate_answer(question, NumberAnswer(question_id=question.id, value=101))

    def test_date_range_answer(self):
        question = DateQuestion(text="Sprint", is_range=True)
        start = datetime.datetime(2024, 3, 1)
        end = datetime.datetime(2024, 3, 14)
        validate_answer(question, DateAnswer(question_id=question.id, start_date=start, end_date=end))
        with pytest.raises(ValidationError):
            validate_answer(question, DateAnswer(question_id=question.id, start_date=end, end_date=start))

    def test_single_selection_for_individual_assessments(self):
        question = team_member_selection_question()
        answer = TeamMemberSelectionAnswer(question_id=question.id, selected_user_ids=["s1", "s2"])
        validate_answer(question, answer, individual_granularity=False)
        with pytest.raises(ValidationError):
            validate_answer(question, answer, individual_granularity=True)
