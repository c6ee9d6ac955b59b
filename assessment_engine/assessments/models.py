"""
Assessment Models

This module defines the internal assessment itself: who it grades
(individuals or teams), when it accepts submissions, and its release state.
"""

import enum
import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from assessment_engine.common.exceptions import ValidationError
from assessment_engine.common.serialization import (
    parse_datetime, format_datetime, as_naive_utc, is_number
)


class Granularity(enum.Enum):
    """Whether an assessment grades individual students or whole teams."""
    INDIVIDUAL = "individual"
    TEAM = "team"


@dataclass
class Assessment:
    """
    An internal assessment of a course.

    ``current_release_number`` counts releases: it starts at 0 and every
    release increments it. Submissions are stamped with the value in force
    when they are saved.
    """

    course_id: str
    assessment_name: str
    start_date: datetime.datetime
    granularity: Granularity = Granularity.INDIVIDUAL
    id: Optional[str] = None
    description: str = ""
    end_date: Optional[datetime.datetime] = None
    max_marks: Optional[float] = None
    questions_total_marks: float = 0
    team_set_id: Optional[str] = None
    is_released: bool = False
    current_release_number: int = 0
    created_at: datetime.datetime = field(default_factory=datetime.datetime.utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

        if isinstance(self.granularity, str):
            try:
                self.granularity = Granularity(self.granularity)
            except ValueError:
                raise ValidationError(f"Invalid granularity: {self.granularity}",
                                      {"granularity": self.granularity})

    @property
    def is_team_based(self) -> bool:
        return self.granularity is Granularity.TEAM

    def validate(self) -> None:
        if not self.course_id:
            raise ValidationError("courseId is required", {"courseId": "required"})
        if not self.assessment_name or not self.assessment_name.strip():
            raise ValidationError("assessmentName is required", {"assessmentName": "required"})
        if self.start_date is None:
            raise ValidationError("startDate is required", {"startDate": "required"})
        if self.end_date and as_naive_utc(self.end_date) < as_naive_utc(self.start_date):
            raise ValidationError("endDate must not be before startDate",
                                  {"startDate": format_datetime(self.start_date),
                                   "endDate": format_datetime(self.end_date)})
        if self.max_marks is not None and (not is_number(self.max_marks) or self.max_marks < 0):
            raise ValidationError("maxMarks must be a non-negative number", {"maxMarks": self.max_marks})

    def accepts_submissions_at(self, moment: datetime.datetime) -> bool:
        """Whether ``moment`` lies in the ``[start_date, end_date]`` window."""
        moment = as_naive_utc(moment)
        if moment < as_naive_utc(self.start_date):
            return False
        if self.end_date is not None and moment > as_naive_utc(self.end_date):
            return False
        return True

    def release_state(self) -> Dict[str, Any]:
        return {"isReleased": self.is_released, "currentReleaseNumber": self.current_release_number}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "assessmentName": self.assessment_name,
            "description": self.description,
            "startDate": format_datetime(self.start_date),
            "endDate": format_datetime(self.end_date),
            "maxMarks": self.max_marks,
            "questionsTotalMarks": self.questions_total_marks,
            "granularity": self.granularity.value,
            "teamSetId": self.team_set_id,
            "isReleased": self.is_released,
            "currentReleaseNumber": self.current_release_number,
            "createdAt": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assessment':
        """
        Create and validate an assessment from a camelCase payload.

        Raises:
            ValidationError: If required fields are missing or inconsistent
        """
        try:
            start_date = parse_datetime(data.get("startDate"))
            end_date = parse_datetime(data.get("endDate"))
        except ValueError as e:
            raise ValidationError(str(e), {"startDate": data.get("startDate"),
                                           "endDate": data.get("endDate")})
        # Stored as naive UTC.
        start_date = as_naive_utc(start_date) if start_date else None
        end_date = as_naive_utc(end_date) if end_date else None

        assessment = cls(
            course_id=data.get("courseId") or "",
            assessment_name=data.get("assessmentName") or "",
            start_date=start_date,
            granularity=data.get("granularity") or Granularity.INDIVIDUAL.value,
            description=data.get("description") or "",
            end_date=end_date,
            max_marks=data.get("maxMarks"),
            team_set_id=data.get("teamSetId"),
        )
        assessment.validate()
        return assessment
