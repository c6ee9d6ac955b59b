"""
Scoring Engine

Pure functions computing the score of a single (question, answer) pair and
the maximum score a question can award. Scorers are registered per question
variant; variants without a scorer are unscored and always yield 0.
"""

from typing import Callable, Dict, Iterable

from assessment_engine.assessments.questions import (
    Question, QuestionType, MultipleChoiceQuestion, MultipleResponseQuestion,
    ScaleQuestion, NumberQuestion, ScoringMethod
)
from assessment_engine.assessments.answers import (
    Answer, MultipleChoiceAnswer, MultipleResponseAnswer, ScaleAnswer,
    NumberAnswer, ensure_matches
)

Scorer = Callable[[Question, Answer], float]

_SCORERS: Dict[QuestionType, Scorer] = {}
_MAX_SCORERS: Dict[QuestionType, Callable[[Question], float]] = {}


def scorer(question_type: QuestionType):
    def decorator(func: Scorer) -> Scorer:
        _SCORERS[question_type] = func
        return func
    return decorator


def max_scorer(question_type: QuestionType):
    def decorator(func: Callable[[Question], float]) -> Callable[[Question], float]:
        _MAX_SCORERS[question_type] = func
        return func
    return decorator


@scorer(QuestionType.MULTIPLE_CHOICE)
def _score_multiple_choice(question: MultipleChoiceQuestion, answer: MultipleChoiceAnswer) -> float:
    if not question.is_scored or answer.value is None:
        return 0
    for option in question.options:
        if option.text == answer.value:
            return option.points
    return 0


@scorer(QuestionType.MULTIPLE_RESPONSE)
def _score_multiple_response(question: MultipleResponseQuestion, answer: MultipleResponseAnswer) -> float:
    if not question.is_scored:
        return 0
    points_by_text = {}
    for option in question.options:
        points_by_text.setdefault(option.text, option.points)

    score = 0
    for value in set(answer.values):
        points = points_by_text.get(value)
        if points is None:
            continue
        if points < 0 and not question.allow_negative:
            continue
        score += points
    return score


@scorer(QuestionType.SCALE)
def _score_scale(question: ScaleQuestion, answer: ScaleAnswer) -> float:
    # Exact label match only; unlabelled values between labels score 0.
    if not question.is_scored or answer.value is None:
        return 0
    for label in question.labels:
        if label.value == answer.value:
            return label.points
    return 0


@scorer(QuestionType.NUMBER)
def _score_number(question: NumberQuestion, answer: NumberAnswer) -> float:
    if not question.is_scored or answer.value is None:
        return 0
    if question.scoring_method is ScoringMethod.DIRECT:
        return (question.max_points or 0) if answer.value <= question.max_number else 0
    if question.scoring_method is ScoringMethod.RANGE:
        for scoring_range in question.sorted_ranges():
            if scoring_range.contains(answer.value):
                return scoring_range.points
    return 0


def score_answer(question: Question, answer: Answer) -> float:
    """
    Compute the score of an answer to a question.

    Args:
        question: The answered question
        answer: The answer, which must be the question's counterpart variant

    Returns:
        The awarded points, 0 for unscored variants

    Raises:
        TypeMismatchError: If the answer variant does not match the question
    """
    ensure_matches(question, answer)
    func = _SCORERS.get(question.question_type)
    if func is None:
        return 0
    return func(question, answer)


@max_scorer(QuestionType.MULTIPLE_CHOICE)
def _max_multiple_choice(question: MultipleChoiceQuestion) -> float:
    return max([option.points for option in question.options] + [0])


@max_scorer(QuestionType.MULTIPLE_RESPONSE)
def _max_multiple_response(question: MultipleResponseQuestion) -> float:
    return sum(option.points for option in question.options if option.points > 0)


@max_scorer(QuestionType.SCALE)
def _max_scale(question: ScaleQuestion) -> float:
    labels = question.sorted_labels()
    return labels[-1].points if labels else 0


@max_scorer(QuestionType.NUMBER)
def _max_number(question: NumberQuestion) -> float:
    if question.scoring_method is ScoringMethod.DIRECT:
        return question.max_points or 0
    if question.scoring_method is ScoringMethod.RANGE:
        ranges = question.sorted_ranges()
        return ranges[-1].points if ranges else 0
    return 0


def max_score(question: Question) -> float:
    """Highest score the question can award; 0 when it is not scored."""
    if not getattr(question, "is_scored", False):
        return 0
    func = _MAX_SCORERS.get(question.question_type)
    return func(question) if func else 0


def questions_total_marks(questions: Iterable[Question]) -> float:
    """Sum of ``max_score`` over an assessment's questions."""
    return sum(max_score(question) for question in questions)


def is_scored(question: Question) -> bool:
    """Whether answers to the question contribute to a submission's score."""
    return question.question_type in _SCORERS and bool(getattr(question, "is_scored", False))
