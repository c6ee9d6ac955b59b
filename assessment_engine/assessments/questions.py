"""
Question Model

This module defines the closed set of question variants an internal
assessment can contain. Each variant is a dataclass carrying the common
question attributes plus its own scoring or formatting configuration.

Payloads cross the JSON boundary in camelCase (``isRequired``,
``scaleMax``...) and are parsed into variants by ``question_from_dict``,
which dispatches on the ``type`` discriminator. Configuration rules are
checked by ``Question.validate``; violations raise ``ValidationError``
naming the rule that failed.
"""

import enum
import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type

from assessment_engine.common.exceptions import ValidationError
from assessment_engine.common.logger import app_logger
from assessment_engine.common.serialization import (
    parse_datetime, format_datetime, as_naive_utc, is_number
)

logger = app_logger.getChild("assessments.questions")


class QuestionType(enum.Enum):
    """Question variants. Values are the wire discriminators."""
    MULTIPLE_CHOICE = "Multiple Choice"
    MULTIPLE_RESPONSE = "Multiple Response"
    SCALE = "Scale"
    SHORT_RESPONSE = "Short Response"
    LONG_RESPONSE = "Long Response"
    DATE = "Date"
    NUMBER = "Number"
    NUSNET_ID = "NUSNET ID"
    NUSNET_EMAIL = "NUSNET Email"
    TEAM_MEMBER_SELECTION = "Team Member Selection"
    UNDECIDED = "Undecided"

    @property
    def answer_type(self) -> str:
        """Discriminator of the matching answer variant."""
        return f"{self.value} Answer"

    @property
    def is_reserved(self) -> bool:
        """Reserved variants are created by the system, always locked and required."""
        return self in RESERVED_QUESTION_TYPES


RESERVED_QUESTION_TYPES = frozenset({
    QuestionType.TEAM_MEMBER_SELECTION,
    QuestionType.NUSNET_ID,
    QuestionType.NUSNET_EMAIL,
})


class ScoringMethod(enum.Enum):
    """How a Number question converts the answer into points."""
    NONE = "None"
    DIRECT = "direct"
    RANGE = "range"


def _number(data: Dict[str, Any], key: str, default: Any = None, required: bool = False) -> Any:
    value = data.get(key, default)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required", {key: "required"})
        return default
    if not is_number(value):
        raise ValidationError(f"{key} must be a number", {key: value})
    return value


@dataclass
class QuestionOption:
    """An option of a Multiple Choice / Multiple Response question."""

    text: str = ""
    points: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "points": self.points}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuestionOption':
        if not isinstance(data, dict):
            raise ValidationError("Each option must be an object", {"options": data})
        return cls(text=str(data.get("text") or ""), points=_number(data, "points", 0))


@dataclass
class ScaleLabel:
    """A labelled point on a Scale question."""

    value: int
    label: str = ""
    points: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label, "points": self.points}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScaleLabel':
        if not isinstance(data, dict):
            raise ValidationError("Each label must be an object", {"labels": data})
        value = _number(data, "value", required=True)
        if int(value) != value:
            raise ValidationError("Scale label values must be integers", {"labels": value})
        return cls(value=int(value), label=str(data.get("label") or ""),
                   points=_number(data, "points", 0))


@dataclass
class NumberRange:
    """An inclusive ``[min_value, max_value]`` band of a range-scored Number question."""

    min_value: float
    max_value: float
    points: float = 0

    def contains(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value

    def to_dict(self) -> Dict[str, Any]:
        return {"minValue": self.min_value, "maxValue": self.max_value, "points": self.points}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NumberRange':
        if not isinstance(data, dict):
            raise ValidationError("Each scoring range must be an object", {"scoringRanges": data})
        return cls(
            min_value=_number(data, "minValue", required=True),
            max_value=_number(data, "maxValue", required=True),
            points=_number(data, "points", 0),
        )


QUESTION_CLASSES: Dict[QuestionType, Type['Question']] = {}


def register_question(cls: Type['Question']) -> Type['Question']:
    """Class decorator adding a variant to the ``type`` dispatch table."""
    QUESTION_CLASSES[cls.question_type] = cls
    return cls


@dataclass
class Question:
    """
    Base class for all question variants.

    Subclasses set ``question_type`` and implement ``_config_from_dict``,
    ``config_to_dict`` and, where they carry rules, ``_validate_config``.
    """

    text: str = ""
    id: Optional[str] = None
    is_required: bool = False
    is_locked: bool = False
    custom_instruction: Optional[str] = None
    position: int = 0

    question_type: ClassVar[QuestionType] = QuestionType.UNDECIDED

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())
        if self.question_type.is_reserved:
            self.is_locked = True
            self.is_required = True

    @property
    def type(self) -> str:
        return self.question_type.value

    def validate(self) -> None:
        """
        Check the question's configuration.

        Raises:
            ValidationError: If a configuration rule is violated
        """
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValidationError("Question text is required", {"text": "required"})
        self._validate_config()

    def _validate_config(self) -> None:
        pass

    def config_to_dict(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "isRequired": self.is_required,
            "isLocked": self.is_locked,
            "customInstruction": self.custom_instruction,
            "position": self.position,
        }
        data.update(self.config_to_dict())
        return data


def _validate_options(question: Question, options: List[QuestionOption]) -> None:
    if not options:
        raise ValidationError(f"Options are required for {question.type} questions",
                              {"options": "required"})
    for index, option in enumerate(options):
        if not option.text.strip():
            logger.warning(f"Question {question.id} has an option with empty text at index {index}")


def _options_from_dict(data: Dict[str, Any]) -> List[QuestionOption]:
    raw = data.get("options") or []
    if not isinstance(raw, list):
        raise ValidationError("options must be a list", {"options": raw})
    return [QuestionOption.from_dict(option) for option in raw]


@register_question
@dataclass
class MultipleChoiceQuestion(Question):
    """Single selection among options; scored by the selected option's points."""

    options: List[QuestionOption] = field(default_factory=list)
    is_scored: bool = False

    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE

    def _validate_config(self) -> None:
        _validate_options(self, self.options)

    def config_to_dict(self) -> Dict[str, Any]:
        return {"options": [o.to_dict() for o in self.options], "isScored": self.is_scored}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"options": _options_from_dict(data), "is_scored": bool(data.get("isScored", False))}


@register_question
@dataclass
class MultipleResponseQuestion(Question):
    """
    Any number of selections among options.

    Selected options add their points. Options with negative points only
    subtract when ``allow_negative`` is set; otherwise they count as 0.
    """

    options: List[QuestionOption] = field(default_factory=list)
    is_scored: bool = False
    allow_negative: bool = False

    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_RESPONSE

    def _validate_config(self) -> None:
        _validate_options(self, self.options)

    def config_to_dict(self) -> Dict[str, Any]:
        return {
            "options": [o.to_dict() for o in self.options],
            "isScored": self.is_scored,
            "allowNegative": self.allow_negative,
        }

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "options": _options_from_dict(data),
            "is_scored": bool(data.get("isScored", False)),
            "allow_negative": bool(data.get("allowNegative", False)),
        }


@register_question
@dataclass
class ScaleQuestion(Question):
    """A 1..scale_max scale with labelled points."""

    scale_max: int = 5
    labels: List[ScaleLabel] = field(default_factory=list)
    is_scored: bool = False

    question_type: ClassVar[QuestionType] = QuestionType.SCALE

    def sorted_labels(self) -> List[ScaleLabel]:
        return sorted(self.labels, key=lambda label: label.value)

    def _validate_config(self) -> None:
        if not is_number(self.scale_max) or int(self.scale_max) != self.scale_max or self.scale_max < 2:
            raise ValidationError("scaleMax must be an integer of at least 2",
                                  {"scaleMax": self.scale_max})
        if len(self.labels) < 2:
            raise ValidationError("At least two labels are required for Scale questions",
                                  {"labels": "at least 2"})

        values = [label.value for label in self.labels]
        if len(set(values)) != len(values):
            raise ValidationError("Scale labels must have distinct values", {"labels": values})

        out_of_range = [v for v in values if v < 1 or v > self.scale_max]
        if out_of_range:
            raise ValidationError(f"Scale label values must lie within [1, {self.scale_max}]",
                                  {"labels": out_of_range})

        if 1 not in values or self.scale_max not in values:
            raise ValidationError(f"Scale labels must include the endpoints 1 and {self.scale_max}",
                                  {"labels": values})

        if self.is_scored:
            ordered = self.sorted_labels()
            for previous, current in zip(ordered, ordered[1:]):
                if current.points < previous.points:
                    raise ValidationError(
                        "Scale label points must not decrease as the value increases",
                        {"labels": [previous.value, current.value]}
                    )

    def config_to_dict(self) -> Dict[str, Any]:
        return {
            "scaleMax": self.scale_max,
            "labels": [label.to_dict() for label in self.labels],
            "isScored": self.is_scored,
        }

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        raw_labels = data.get("labels") or []
        if not isinstance(raw_labels, list):
            raise ValidationError("labels must be a list", {"labels": raw_labels})
        return {
            "scale_max": _number(data, "scaleMax", required=True),
            "labels": [ScaleLabel.from_dict(label) for label in raw_labels],
            "is_scored": bool(data.get("isScored", False)),
        }


@register_question
@dataclass
class NumberQuestion(Question):
    """
    Numeric answer in ``[0, max_number]``.

    Scoring is either ``direct`` (flat ``max_points`` for any answer not above
    ``max_number``) or ``range`` (points of the inclusive range containing the
    answer). Ranges may not overlap and their points may not decrease.
    """

    max_number: float = 0
    is_scored: bool = False
    scoring_method: ScoringMethod = ScoringMethod.NONE
    max_points: Optional[float] = None
    scoring_ranges: List[NumberRange] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.NUMBER

    def sorted_ranges(self) -> List[NumberRange]:
        return sorted(self.scoring_ranges, key=lambda r: (r.min_value, r.max_value))

    def _validate_config(self) -> None:
        if not is_number(self.max_number) or self.max_number < 0:
            raise ValidationError("maxNumber must be a non-negative number",
                                  {"maxNumber": self.max_number})

        if self.is_scored and self.scoring_method is ScoringMethod.NONE:
            raise ValidationError("scoringMethod is required when scoring is enabled",
                                  {"scoringMethod": "required"})

        if self.scoring_method is ScoringMethod.DIRECT and self.is_scored:
            if not is_number(self.max_points) or self.max_points < 0:
                raise ValidationError("maxPoints is required for direct scoring method",
                                      {"maxPoints": self.max_points})

        if self.scoring_method is ScoringMethod.RANGE:
            self._validate_ranges()

    def _validate_ranges(self) -> None:
        if self.is_scored and not self.scoring_ranges:
            raise ValidationError("scoringRanges are required for range scoring method",
                                  {"scoringRanges": "required"})
        for scoring_range in self.scoring_ranges:
            if scoring_range.min_value > scoring_range.max_value:
                raise ValidationError("Scoring range minValue must not exceed maxValue",
                                      {"scoringRanges": scoring_range.to_dict()})

        ordered = self.sorted_ranges()
        for previous, current in zip(ordered, ordered[1:]):
            # Bounds are inclusive, so touching ranges overlap.
            if current.min_value <= previous.max_value:
                raise ValidationError(
                    "Scoring ranges must not overlap",
                    {"scoringRanges": [previous.to_dict(), current.to_dict()]}
                )
            if current.points < previous.points:
                raise ValidationError(
                    "Scoring range points must not decrease as ranges increase",
                    {"scoringRanges": [previous.to_dict(), current.to_dict()]}
                )

    def config_to_dict(self) -> Dict[str, Any]:
        return {
            "maxNumber": self.max_number,
            "isScored": self.is_scored,
            "scoringMethod": self.scoring_method.value,
            "maxPoints": self.max_points,
            "scoringRanges": [r.to_dict() for r in self.scoring_ranges],
        }

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        raw_method = data.get("scoringMethod") or ScoringMethod.NONE.value
        try:
            scoring_method = ScoringMethod(raw_method)
        except ValueError:
            raise ValidationError(f"Invalid scoringMethod: {raw_method}", {"scoringMethod": raw_method})

        raw_ranges = data.get("scoringRanges") or []
        if not isinstance(raw_ranges, list):
            raise ValidationError("scoringRanges must be a list", {"scoringRanges": raw_ranges})

        return {
            "max_number": _number(data, "maxNumber", required=True),
            "is_scored": bool(data.get("isScored", False)),
            "scoring_method": scoring_method,
            "max_points": _number(data, "maxPoints"),
            "scoring_ranges": [NumberRange.from_dict(r) for r in raw_ranges],
        }


@register_question
@dataclass
class ShortResponseQuestion(Question):
    short_response_placeholder: str = ""

    question_type: ClassVar[QuestionType] = QuestionType.SHORT_RESPONSE

    def config_to_dict(self) -> Dict[str, Any]:
        return {"shortResponsePlaceholder": self.short_response_placeholder}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"short_response_placeholder": str(data.get("shortResponsePlaceholder") or "")}


@register_question
@dataclass
class LongResponseQuestion(Question):
    long_response_placeholder: str = ""

    question_type: ClassVar[QuestionType] = QuestionType.LONG_RESPONSE

    def config_to_dict(self) -> Dict[str, Any]:
        return {"longResponsePlaceholder": self.long_response_placeholder}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"long_response_placeholder": str(data.get("longResponsePlaceholder") or "")}


@register_question
@dataclass
class DateQuestion(Question):
    """A single date or a date range, optionally bounded by min/max dates."""

    is_range: bool = False
    date_picker_placeholder: Optional[str] = None
    min_date: Optional[datetime.datetime] = None
    max_date: Optional[datetime.datetime] = None

    question_type: ClassVar[QuestionType] = QuestionType.DATE

    def _validate_config(self) -> None:
        if self.min_date and self.max_date and as_naive_utc(self.min_date) > as_naive_utc(self.max_date):
            raise ValidationError("minDate must not be after maxDate",
                                  {"minDate": format_datetime(self.min_date),
                                   "maxDate": format_datetime(self.max_date)})

    def config_to_dict(self) -> Dict[str, Any]:
        return {
            "isRange": self.is_range,
            "datePickerPlaceholder": self.date_picker_placeholder,
            "minDate": format_datetime(self.min_date),
            "maxDate": format_datetime(self.max_date),
        }

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            min_date = parse_datetime(data.get("minDate"))
            max_date = parse_datetime(data.get("maxDate"))
        except ValueError as e:
            raise ValidationError(str(e), {"minDate": data.get("minDate"), "maxDate": data.get("maxDate")})
        return {
            "is_range": bool(data.get("isRange", False)),
            "date_picker_placeholder": data.get("datePickerPlaceholder"),
            "min_date": min_date,
            "max_date": max_date,
        }


@register_question
@dataclass
class NUSNETIDQuestion(Question):
    short_response_placeholder: str = ""

    question_type: ClassVar[QuestionType] = QuestionType.NUSNET_ID

    def config_to_dict(self) -> Dict[str, Any]:
        return {"shortResponsePlaceholder": self.short_response_placeholder}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"short_response_placeholder": str(data.get("shortResponsePlaceholder") or "")}


@register_question
@dataclass
class NUSNETEmailQuestion(Question):
    short_response_placeholder: str = ""

    question_type: ClassVar[QuestionType] = QuestionType.NUSNET_EMAIL

    def config_to_dict(self) -> Dict[str, Any]:
        return {"shortResponsePlaceholder": self.short_response_placeholder}

    @classmethod
    def _config_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"short_response_placeholder": str(data.get("shortResponsePlaceholder") or "")}


@register_question
@dataclass
class TeamMemberSelectionQuestion(Question):
    """Selection of the students a submission grades."""

    question_type: ClassVar[QuestionType] = QuestionType.TEAM_MEMBER_SELECTION


@register_question
@dataclass
class UndecidedQuestion(Question):
    question_type: ClassVar[QuestionType] = QuestionType.UNDECIDED


def parse_question_type(raw_type: Any) -> QuestionType:
    """
    Resolve a wire discriminator to a ``QuestionType``.

    Raises:
        ValidationError: If the type is missing or unknown
    """
    if not raw_type:
        raise ValidationError("Question type is required", {"type": "required"})
    try:
        return QuestionType(raw_type)
    except ValueError:
        raise ValidationError(f"Unknown question type: {raw_type}", {"type": raw_type})


def question_from_dict(data: Dict[str, Any], validate: bool = True) -> Question:
    """
    Build a question variant from a camelCase payload.

    Args:
        data: Question payload, discriminated by ``type``
        validate: Run the configuration rules after parsing. Records loaded
            from storage were validated when written and skip this.

    Returns:
        The question variant instance

    Raises:
        ValidationError: If the payload is malformed or violates a rule
    """
    if not isinstance(data, dict):
        raise ValidationError("Question payload must be an object")

    question_type = parse_question_type(data.get("type"))
    question_class = QUESTION_CLASSES[question_type]

    position = data.get("position") or 0
    if not is_number(position):
        raise ValidationError("position must be a number", {"position": position})

    kwargs = {
        "id": data.get("id"),
        "text": data.get("text") or "",
        "is_required": bool(data.get("isRequired", False)),
        "is_locked": bool(data.get("isLocked", False)),
        "custom_instruction": data.get("customInstruction"),
        "position": int(position),
    }
    kwargs.update(question_class._config_from_dict(data))

    question = question_class(**kwargs)
    if validate:
        question.validate()
    return question


def team_member_selection_question() -> TeamMemberSelectionQuestion:
    """The reserved question every internal assessment starts with."""
    return TeamMemberSelectionQuestion(
        text="Student Selection",
        custom_instruction="Select students to evaluate.",
        position=0,
    )
