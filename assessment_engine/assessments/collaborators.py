"""
External Collaborators

Interfaces to the parts of the dashboard the engine does not own: the course
roster (teams, students, teaching assistants) and outbound notifications.
Implementations are constructed by the process bootstrap and handed to the
application; the in-memory roster and the logging sender are the defaults.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from assessment_engine.common.logger import app_logger

logger = app_logger.getChild("assessments.collaborators")


@dataclass
class Team:
    """A team of students, optionally with the TA who supervises it."""

    id: str
    member_ids: List[str] = field(default_factory=list)
    name: Optional[str] = None
    ta_id: Optional[str] = None


class RosterProvider(ABC):
    """Read access to course membership."""

    @abstractmethod
    def get_teams(self, course_id: str, team_set_id: Optional[str] = None) -> List[Team]:
        """
        Get the teams of a course.

        Args:
            course_id: The course
            team_set_id: Restrict to one team set; all teams when None
        """
        pass

    @abstractmethod
    def get_students(self, course_id: str) -> List[str]:
        """Get the IDs of the students enrolled in a course."""
        pass

    @abstractmethod
    def get_tas(self, course_id: str) -> List[str]:
        """Get the IDs of the teaching assistants of a course."""
        pass


class InMemoryRoster(RosterProvider):
    """Roster held in process memory."""

    def __init__(self):
        self._students: Dict[str, List[str]] = {}
        self._tas: Dict[str, List[str]] = {}
        self._teams: Dict[str, List[Tuple[Optional[str], Team]]] = {}

    def add_students(self, course_id: str, student_ids: List[str]) -> 'InMemoryRoster':
        students = self._students.setdefault(course_id, [])
        students.extend(s for s in student_ids if s not in students)
        return self

    def add_tas(self, course_id: str, ta_ids: List[str]) -> 'InMemoryRoster':
        tas = self._tas.setdefault(course_id, [])
        tas.extend(t for t in ta_ids if t not in tas)
        return self

    def add_team(self, course_id: str, team: Team, team_set_id: Optional[str] = None) -> 'InMemoryRoster':
        self._teams.setdefault(course_id, []).append((team_set_id, team))
        self.add_students(course_id, team.member_ids)
        return self

    def get_teams(self, course_id: str, team_set_id: Optional[str] = None) -> List[Team]:
        return [
            team for set_id, team in self._teams.get(course_id, [])
            if team_set_id is None or set_id == team_set_id
        ]

    def get_students(self, course_id: str) -> List[str]:
        return list(self._students.get(course_id, []))

    def get_tas(self, course_id: str) -> List[str]:
        return list(self._tas.get(course_id, []))


class NotificationSender(ABC):
    """Outbound message channel (e-mail, chat bot...)."""

    @abstractmethod
    async def send(self, recipient_id: str, text: str) -> None:
        """Deliver ``text`` to the recipient."""
        pass


class LoggingNotificationSender(NotificationSender):
    """Sender that only records notifications in the application log."""

    async def send(self, recipient_id: str, text: str) -> None:
        logger.info(f"Notification to {recipient_id}: {text}")
