"""
Answer Model

One answer variant per question variant, discriminated by ``type``
(``"<question type> Answer"``). Answers only exist inside a submission and
are stored embedded in it.

``answer_from_dict`` parses wire payloads, ``ensure_matches`` enforces the
question/answer pairing and ``validate_answer`` applies the per-variant
shape rules against the answered question.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type

from assessment_engine.common.exceptions import TypeMismatchError, ValidationError
from assessment_engine.common.serialization import (
    parse_datetime, format_datetime, as_naive_utc, is_number
)
from assessment_engine.assessments.questions import (
    Question, QuestionType, MultipleChoiceQuestion, MultipleResponseQuestion,
    ScaleQuestion, NumberQuestion, DateQuestion
)

ANSWER_CLASSES: Dict[str, Type['Answer']] = {}


def register_answer(cls: Type['Answer']) -> Type['Answer']:
    ANSWER_CLASSES[cls.question_type.answer_type] = cls
    return cls


@dataclass
class Answer:
    """
    Base class for answer variants.

    ``score`` is filled in by the scoring engine when the owning submission
    is saved; it is never taken from the client.
    """

    question_id: str
    score: float = 0

    question_type: ClassVar[QuestionType] = QuestionType.UNDECIDED

    @property
    def type(self) -> str:
        return self.question_type.answer_type

    def is_empty(self) -> bool:
        raise NotImplementedError("Subclasses must implement is_empty")

    def value_to_dict(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"question": self.question_id, "type": self.type, "score": self.score}
        data.update(self.value_to_dict())
        return data


def _optional_text(data: Dict[str, Any]) -> Optional[str]:
    value = data.get("value")
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Answer value must be a string", {"value": value})
    return value


def _optional_number(data: Dict[str, Any]) -> Optional[float]:
    value = data.get("value")
    if value is None or value == "":
        return None
    if not is_number(value):
        raise ValidationError("Answer value must be a number", {"value": value})
    return value


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    values = data.get(key) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ValidationError(f"{key} must be a list of strings", {key: values})
    return list(values)


@dataclass
class TextAnswer(Answer):
    value: Optional[str] = None

    def is_empty(self) -> bool:
        return self.value is None or not self.value.strip()

    def value_to_dict(self) -> Dict[str, Any]:
        return {"value": self.value}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"value": _optional_text(data)}


@register_answer
@dataclass
class MultipleChoiceAnswer(TextAnswer):
    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE


@register_answer
@dataclass
class ShortResponseAnswer(TextAnswer):
    question_type: ClassVar[QuestionType] = QuestionType.SHORT_RESPONSE


@register_answer
@dataclass
class LongResponseAnswer(TextAnswer):
    question_type: ClassVar[QuestionType] = QuestionType.LONG_RESPONSE


@register_answer
@dataclass
class NUSNETIDAnswer(TextAnswer):
    question_type: ClassVar[QuestionType] = QuestionType.NUSNET_ID


@register_answer
@dataclass
class NUSNETEmailAnswer(TextAnswer):
    question_type: ClassVar[QuestionType] = QuestionType.NUSNET_EMAIL


@register_answer
@dataclass
class MultipleResponseAnswer(Answer):
    values: List[str] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_RESPONSE

    def is_empty(self) -> bool:
        return not self.values

    def value_to_dict(self) -> Dict[str, Any]:
        return {"values": list(self.values)}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"values": _string_list(data, "values")}


@register_answer
@dataclass
class ScaleAnswer(Answer):
    value: Optional[float] = None

    question_type: ClassVar[QuestionType] = QuestionType.SCALE

    def is_empty(self) -> bool:
        return self.value is None

    def value_to_dict(self) -> Dict[str, Any]:
        return {"value": self.value}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"value": _optional_number(data)}


@register_answer
@dataclass
class NumberAnswer(Answer):
    value: Optional[float] = None

    question_type: ClassVar[QuestionType] = QuestionType.NUMBER

    def is_empty(self) -> bool:
        return self.value is None

    def value_to_dict(self) -> Dict[str, Any]:
        return {"value": self.value}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"value": _optional_number(data)}


@register_answer
@dataclass
class DateAnswer(Answer):
    """A single date in ``value`` or a range in ``start_date``/``end_date``."""

    value: Optional[datetime.datetime] = None
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None

    question_type: ClassVar[QuestionType] = QuestionType.DATE

    def is_empty(self) -> bool:
        if self.start_date is not None or self.end_date is not None:
            return self.start_date is None or self.end_date is None
        return self.value is None

    def value_to_dict(self) -> Dict[str, Any]:
        return {
            "value": format_datetime(self.value),
            "startDate": format_datetime(self.start_date),
            "endDate": format_datetime(self.end_date),
        }

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return {
                "value": parse_datetime(data.get("value")),
                "start_date": parse_datetime(data.get("startDate")),
                "end_date": parse_datetime(data.get("endDate")),
            }
        except ValueError as e:
            raise ValidationError(str(e), {"question": data.get("question")})


@register_answer
@dataclass
class TeamMemberSelectionAnswer(Answer):
    selected_user_ids: List[str] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.TEAM_MEMBER_SELECTION

    def is_empty(self) -> bool:
        return not self.selected_user_ids

    def value_to_dict(self) -> Dict[str, Any]:
        return {"selectedUserIds": list(self.selected_user_ids)}

    @classmethod
    def _value_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"selected_user_ids": _string_list(data, "selectedUserIds")}


@register_answer
@dataclass
class UndecidedAnswer(Answer):
    """Carries no value; its presence is the answer."""

    question_type: ClassVar[QuestionType] = QuestionType.UNDECIDED

    def is_empty(self) -> bool:
        return False


def answer_from_dict(data: Dict[str, Any]) -> Answer:
    """
    Build an answer variant from its wire payload.

    The payload's ``score`` is kept only for stored answers; the submission
    service always overwrites it with a freshly computed value.

    Raises:
        ValidationError: If the payload is malformed or the type is unknown
    """
    if not isinstance(data, dict):
        raise ValidationError("Answer payload must be an object")

    question_id = data.get("question")
    if not question_id or not isinstance(question_id, str):
        raise ValidationError("Answer must reference a question", {"question": "required"})

    answer_type = data.get("type")
    answer_class = ANSWER_CLASSES.get(answer_type)
    if answer_class is None:
        raise ValidationError(f"Unknown answer type: {answer_type}",
                              {"question": question_id, "type": answer_type})

    score = data.get("score") or 0
    if not is_number(score):
        score = 0

    return answer_class(question_id=question_id, score=score, **answer_class._value_from_dict(data))


def ensure_matches(question: Question, answer: Answer) -> None:
    """
    Raises:
        TypeMismatchError: If the answer variant is not the question's counterpart
    """
    if answer.question_type is not question.question_type:
        raise TypeMismatchError(question.id, question.question_type.answer_type, answer.type)


def validate_answer(question: Question, answer: Answer, individual_granularity: bool = False) -> None:
    """
    Check an answer's value against its question's configuration.

    Empty answers pass; whether they are allowed is decided by the required
    question check at finalization.

    Args:
        question: The answered question
        answer: The answer, already known to match the question's variant
        individual_granularity: Whether the assessment grades individuals, in
            which case a team member selection may name at most one student

    Raises:
        ValidationError: If the value is outside what the question permits
    """
    ensure_matches(question, answer)
    if answer.is_empty():
        return

    def reject(message: str) -> None:
        raise ValidationError(message, {"question": question.id})

    if isinstance(question, MultipleChoiceQuestion):
        if answer.value not in {option.text for option in question.options}:
            reject(f"'{answer.value}' is not an option of question {question.id}")

    elif isinstance(question, MultipleResponseQuestion):
        option_texts = {option.text for option in question.options}
        unknown = [value for value in answer.values if value not in option_texts]
        if unknown:
            reject(f"{unknown} are not options of question {question.id}")
        if len(set(answer.values)) != len(answer.values):
            reject(f"Duplicate selections for question {question.id}")

    elif isinstance(question, ScaleQuestion):
        if int(answer.value) != answer.value or not 1 <= answer.value <= question.scale_max:
            reject(f"Scale answer must be an integer between 1 and {question.scale_max}")

    elif isinstance(question, NumberQuestion):
        if not 0 <= answer.value <= question.max_number:
            reject(f"Number answer must be between 0 and {question.max_number}")

    elif isinstance(question, DateQuestion):
        _validate_date_answer(question, answer, reject)

    elif question.question_type is QuestionType.TEAM_MEMBER_SELECTION:
        if individual_granularity and len(answer.selected_user_ids) > 1:
            reject("Only one student may be selected for individual assessments")


def _validate_date_answer(question: DateQuestion, answer: DateAnswer, reject) -> None:
    if question.is_range:
        if answer.start_date is None or answer.end_date is None:
            reject("Both startDate and endDate are required for date range answers")
        dates = [answer.start_date, answer.end_date]
        if as_naive_utc(answer.start_date) > as_naive_utc(answer.end_date):
            reject("startDate must not be after endDate")
    else:
        if answer.value is None:
            reject("A date value is required")
        dates = [answer.value]

    for value in dates:
        value = as_naive_utc(value)
        if question.min_date and value < as_naive_utc(question.min_date):
            reject(f"Date must not be before {format_datetime(question.min_date)}")
        if question.max_date and value > as_naive_utc(question.max_date):
            reject(f"Date must not be after {format_datetime(question.max_date)}")
