"""
Assignment-Set Builder

Decides which teaching assistants grade which team (team granularity) or
student (individual granularity) for one assessment.

The builder is deterministic: the same targets and TA pool always produce
the same set. Each target first keeps its own supervising TA when that TA is
in the pool; remaining slots are filled round-robin over the pool, starting
at ``index * tas_per_target`` so that load spreads evenly. A target for
which no TA is available is kept with an empty list and reported through
``unassigned_targets``.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from assessment_engine.common.exceptions import ValidationError
from assessment_engine.common.serialization import format_datetime
from assessment_engine.assessments.models import Granularity


@dataclass
class GradingTarget:
    """A team or student to be graded."""

    id: str
    member_ids: List[str] = field(default_factory=list)
    preferred_ta_id: Optional[str] = None


@dataclass
class Assignment:
    """The TAs responsible for one target, with a snapshot of its members."""

    target_id: str
    ta_ids: List[str] = field(default_factory=list)
    member_ids: List[str] = field(default_factory=list)

    def to_dict(self, granularity: Granularity) -> Dict[str, Any]:
        key = "team" if granularity is Granularity.TEAM else "user"
        return {key: self.target_id, "tas": list(self.ta_ids), "memberIds": list(self.member_ids)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assignment':
        if not isinstance(data, dict):
            raise ValidationError("Each assignment must be an object")
        target_id = data.get("team") or data.get("user")
        if not target_id:
            raise ValidationError("Each assignment must name a team or user", {"assignment": data})
        ta_ids = data.get("tas") or []
        if not isinstance(ta_ids, list):
            raise ValidationError("tas must be a list", {"tas": ta_ids})
        member_ids = data.get("memberIds") or ([] if data.get("team") else [target_id])
        return cls(target_id=target_id, ta_ids=list(ta_ids), member_ids=list(member_ids))


@dataclass
class AssessmentAssignmentSet:
    """Who grades whom for one assessment."""

    assessment_id: str
    granularity: Granularity
    assignments: List[Assignment] = field(default_factory=list)
    id: Optional[str] = None
    updated_at: datetime.datetime = field(default_factory=datetime.datetime.utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

    @property
    def unassigned_targets(self) -> List[str]:
        return [a.target_id for a in self.assignments if not a.ta_ids]

    def target_ids(self) -> List[str]:
        return [a.target_id for a in self.assignments]

    def student_ids(self) -> List[str]:
        students: List[str] = []
        for assignment in self.assignments:
            students.extend(m for m in assignment.member_ids if m not in students)
        return students

    def assignment_for_target(self, target_id: str) -> Optional[Assignment]:
        for assignment in self.assignments:
            if assignment.target_id == target_id:
                return assignment
        return None

    def assignment_for_student(self, student_id: str) -> Optional[Assignment]:
        for assignment in self.assignments:
            if student_id in assignment.member_ids:
                return assignment
            if self.granularity is Granularity.INDIVIDUAL and assignment.target_id == student_id:
                return assignment
        return None

    def assignments_for_ta(self, ta_id: str) -> List[Assignment]:
        return [a for a in self.assignments if ta_id in a.ta_ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "granularity": self.granularity.value,
            "assignments": [a.to_dict(self.granularity) for a in self.assignments],
            "unassignedTargets": self.unassigned_targets,
            "updatedAt": format_datetime(self.updated_at),
        }


def _unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def build_assignment_set(
    assessment_id: str,
    granularity: Granularity,
    targets: List[GradingTarget],
    available_tas: List[str],
    tas_per_target: int = 1,
) -> AssessmentAssignmentSet:
    """
    Build a fresh assignment set.

    Args:
        assessment_id: The assessment the set belongs to
        granularity: Whether targets are teams or students
        targets: Every team/student in scope, in a stable order
        available_tas: The grading pool, in a stable order
        tas_per_target: How many TAs should grade each target

    Returns:
        A set covering every target exactly once

    Raises:
        ValidationError: If ``tas_per_target`` is below 1 or a target repeats
    """
    if tas_per_target < 1:
        raise ValidationError("tasPerTeamOrUser must be at least 1",
                              {"tasPerTeamOrUser": tas_per_target})

    target_ids = [target.id for target in targets]
    if len(set(target_ids)) != len(target_ids):
        raise ValidationError("Grading targets must be unique", {"targets": target_ids})

    pool = _unique(available_tas)
    slots = min(tas_per_target, len(pool))

    assignments = []
    for index, target in enumerate(targets):
        chosen: List[str] = []
        if target.preferred_ta_id in pool and slots > 0:
            chosen.append(target.preferred_ta_id)

        offset = index * tas_per_target
        step = 0
        while len(chosen) < slots and step < len(pool):
            candidate = pool[(offset + step) % len(pool)]
            if candidate not in chosen:
                chosen.append(candidate)
            step += 1

        member_ids = list(target.member_ids)
        if not member_ids and granularity is Granularity.INDIVIDUAL:
            member_ids = [target.id]
        assignments.append(Assignment(target_id=target.id, ta_ids=chosen, member_ids=member_ids))

    return AssessmentAssignmentSet(
        assessment_id=assessment_id,
        granularity=granularity,
        assignments=assignments,
    )


def validate_manual_assignments(
    current: AssessmentAssignmentSet,
    assignments: List[Assignment],
    known_tas: List[str],
) -> List[Assignment]:
    """
    Check a hand-edited list of assignments against the current set.

    The edit may only change TAs: it must cover exactly the same targets,
    each once, and reference only TAs on the roster. Member snapshots are
    carried over from the current set.

    Raises:
        ValidationError: If coverage changes or an unknown TA is referenced
    """
    new_ids = [a.target_id for a in assignments]
    if len(set(new_ids)) != len(new_ids):
        raise ValidationError("Each team or user may appear only once", {"assignments": new_ids})

    expected = set(current.target_ids())
    if set(new_ids) != expected:
        raise ValidationError(
            "Assignments must cover exactly the teams or users in scope",
            {"missing": sorted(expected - set(new_ids)), "unexpected": sorted(set(new_ids) - expected)}
        )

    unknown = sorted({ta for a in assignments for ta in a.ta_ids} - set(known_tas))
    if unknown:
        raise ValidationError("Unknown teaching assistants", {"tas": unknown})

    updated = []
    for assignment in assignments:
        previous = current.assignment_for_target(assignment.target_id)
        updated.append(Assignment(
            target_id=assignment.target_id,
            ta_ids=_unique(assignment.ta_ids),
            member_ids=list(previous.member_ids),
        ))
    return updated
