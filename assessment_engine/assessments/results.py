"""
Assessment Results

Per-student roll-up of the marks every assigned TA gave. Results are
derived data: ``aggregate_marks`` rebuilds them from the assignment set and
the final submissions, so recomputing is idempotent.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from assessment_engine.common.serialization import format_datetime
from assessment_engine.assessments.assignment import Assignment
from assessment_engine.assessments.submissions import Submission


@dataclass
class MarkEntry:
    """One assigned TA's mark for a student; ``submission_id`` is None until they submit."""

    marker_id: str
    submission_id: Optional[str] = None
    score: float = 0
    is_outdated: bool = False

    @property
    def has_submission(self) -> bool:
        return self.submission_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marker": self.marker_id,
            "submission": self.submission_id,
            "score": self.score,
            "isOutdated": self.is_outdated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarkEntry':
        return cls(
            marker_id=data["marker"],
            submission_id=data.get("submission"),
            score=data.get("score") or 0,
            is_outdated=bool(data.get("isOutdated", False)),
        )


def average_score(marks: List[MarkEntry]) -> float:
    """Mean score over entries that have a submission; 0 when none do."""
    present = [mark.score for mark in marks if mark.has_submission]
    if not present:
        return 0
    return sum(present) / len(present)


@dataclass
class AssessmentResult:
    """The result of one student in one assessment."""

    assessment_id: str
    student_id: str
    marks: List[MarkEntry] = field(default_factory=list)
    average_score: float = 0
    id: Optional[str] = None
    updated_at: datetime.datetime = field(default_factory=datetime.datetime.utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

    def same_content(self, other: 'AssessmentResult') -> bool:
        return self.marks == other.marks and self.average_score == other.average_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "studentId": self.student_id,
            "marks": [mark.to_dict() for mark in self.marks],
            "averageScore": self.average_score,
            "updatedAt": format_datetime(self.updated_at),
        }


def aggregate_marks(
    assignment: Optional[Assignment],
    final_submissions: Dict[str, Submission],
    current_release_number: int,
) -> List[MarkEntry]:
    """
    Pair each assigned TA with their final submission for the respondent.

    Args:
        assignment: The student's assignment entry, or None when unassigned
        final_submissions: Final submissions for the respondent keyed by marker
        current_release_number: The assessment's release counter

    Returns:
        One entry per assigned TA, in assignment order
    """
    if assignment is None:
        return []

    marks = []
    for ta_id in assignment.ta_ids:
        submission = final_submissions.get(ta_id)
        if submission is None:
            marks.append(MarkEntry(marker_id=ta_id))
            continue
        marks.append(MarkEntry(
            marker_id=ta_id,
            submission_id=submission.id,
            score=submission.effective_score,
            is_outdated=submission.is_outdated(current_release_number),
        ))
    return marks
