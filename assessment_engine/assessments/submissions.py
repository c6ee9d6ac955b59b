"""
Submission Model

A submission is one marker's answer set for one respondent of an
assessment. It starts as a draft that can be overwritten or deleted, and
becomes final when saved with ``is_draft=False``. A final submission's
content is immutable; only ``adjusted_score`` may still change.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from assessment_engine.common.exceptions import (
    ValidationError, NotFoundError, MissingRequiredAnswersError
)
from assessment_engine.common.serialization import format_datetime
from assessment_engine.assessments.questions import Question
from assessment_engine.assessments.answers import Answer, validate_answer
from assessment_engine.assessments.scoring import score_answer


@dataclass
class Submission:
    """
    Answers a marker (TA) gave for a respondent (team or student).

    ``score`` is the sum of the answers' scores at the last save;
    ``adjusted_score`` overrides it for reporting when set.
    """

    assessment_id: str
    respondent_id: str
    marker_id: str
    answers: List[Answer] = field(default_factory=list)
    is_draft: bool = True
    score: float = 0
    adjusted_score: Optional[float] = None
    submission_release_number: int = 0
    id: Optional[str] = None
    created_at: datetime.datetime = field(default_factory=datetime.datetime.utcnow)
    updated_at: datetime.datetime = field(default_factory=datetime.datetime.utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

    @property
    def is_final(self) -> bool:
        return not self.is_draft

    @property
    def effective_score(self) -> float:
        return self.adjusted_score if self.adjusted_score is not None else self.score

    def is_outdated(self, current_release_number: int) -> bool:
        """Advisory flag: graded under a release other than the current one."""
        return self.submission_release_number != current_release_number

    def to_dict(self, current_release_number: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "respondentId": self.respondent_id,
            "markerId": self.marker_id,
            "answers": [answer.to_dict() for answer in self.answers],
            "isDraft": self.is_draft,
            "score": self.score,
            "adjustedScore": self.adjusted_score,
            "submissionReleaseNumber": self.submission_release_number,
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
        }
        if current_release_number is not None:
            data["isOutdated"] = self.is_outdated(current_release_number)
        return data


def check_answers(
    questions: Iterable[Question],
    answers: List[Answer],
    individual_granularity: bool = False,
) -> None:
    """
    Validate a full answer set against an assessment's questions.

    Raises:
        NotFoundError: If an answer references a question not in the assessment
        ValidationError: If a question is answered twice or a value is invalid
        TypeMismatchError: If an answer's variant does not match its question
    """
    questions_by_id = {question.id: question for question in questions}
    seen = set()
    for answer in answers:
        question = questions_by_id.get(answer.question_id)
        if question is None:
            raise NotFoundError("Question", answer.question_id)
        if answer.question_id in seen:
            raise ValidationError(f"Question {answer.question_id} is answered more than once",
                                  {"question": answer.question_id})
        seen.add(answer.question_id)
        validate_answer(question, answer, individual_granularity)


def missing_required_answers(questions: Iterable[Question], answers: List[Answer]) -> List[str]:
    """IDs of required questions, in question order, without a non-empty answer."""
    answered = {answer.question_id for answer in answers if not answer.is_empty()}
    ordered = sorted(questions, key=lambda q: q.position)
    return [q.id for q in ordered if q.is_required and q.id not in answered]


def ensure_complete(questions: Iterable[Question], answers: List[Answer]) -> None:
    """
    Raises:
        MissingRequiredAnswersError: If any required question is unanswered
    """
    missing = missing_required_answers(questions, answers)
    if missing:
        raise MissingRequiredAnswersError(missing)


def score_answers(questions: Iterable[Question], answers: List[Answer]) -> float:
    """Score every answer in place and return the total."""
    questions_by_id = {question.id: question for question in questions}
    total = 0
    for answer in answers:
        answer.score = score_answer(questions_by_id[answer.question_id], answer)
        total += answer.score
    return total
