"""
Survey definition schema.

Surveys arrive as author-entered JSON (camelCase keys, as stored by the
builder) with no schema enforcement. Parsing here is deliberately
forgiving: missing options or settings become empty defaults, malformed
rules are dropped, and unknown question types are carried verbatim.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union
from enum import Enum

from ..errors import SurveyDefinitionError


class QuestionType(str, Enum):
    """Question type tags produced by the builder."""
    SINGLE_CHOICE = "singleChoice"
    MULTI_CHOICE = "multiChoice"
    DROPDOWN = "dropdown"
    SLIDER = "slider"
    RATING_STAR = "ratingStar"
    RATING_NUMBER = "ratingNumber"
    RATING_SMILEY = "ratingSmiley"
    TEXT_SHORT = "textShort"
    TEXT_LONG = "textLong"
    DATE = "date"
    FILE_UPLOAD = "fileUpload"
    EMAIL = "email"


CHOICE_TYPES = {QuestionType.SINGLE_CHOICE, QuestionType.MULTI_CHOICE, QuestionType.DROPDOWN}
RATING_TYPES = {QuestionType.RATING_STAR, QuestionType.RATING_NUMBER, QuestionType.RATING_SMILEY}
TEXT_TYPES = {QuestionType.TEXT_SHORT, QuestionType.TEXT_LONG, QuestionType.EMAIL}


class ActionType(str, Enum):
    """Navigation action attached to a branching rule."""
    SKIP_TO_PAGE = "skip_to_page"
    END_SURVEY = "end_survey"


class Logical(str, Enum):
    """How a rule combines with the rule after it."""
    AND = "AND"
    OR = "OR"


def parse_question_type(raw: Any) -> Union[QuestionType, str]:
    """Map a raw type tag to QuestionType, keeping unknown tags as strings."""
    try:
        return QuestionType(raw)
    except ValueError:
        return str(raw) if raw is not None else ""


def _as_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def _as_dict(raw: Any) -> Dict[str, Any]:
    return dict(raw) if isinstance(raw, dict) else {}


# =============================================================================
# RULES
# =============================================================================

@dataclass
class Condition:
    """Operator plus the author's expected value."""
    operator: str
    value: Any = None


@dataclass
class RuleAction:
    """Where to send the respondent when the owning rule fires."""
    type: ActionType
    target_page_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["RuleAction"]:
        if not isinstance(data, dict):
            return None
        try:
            action_type = ActionType(data.get("type"))
        except ValueError:
            return None
        return cls(type=action_type, target_page_index=_as_int(data.get("targetPageIndex")))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.target_page_index is not None:
            data["targetPageIndex"] = self.target_page_index
        return data


@dataclass
class BranchingRule:
    """
    A condition on another question's answer.

    Without an action the rule is a pure visibility predicate; with one it
    is a page-level branching trigger.
    """
    question_id: str                         # The question this rule reads
    condition: Condition
    logical: Logical = Logical.OR            # Relation to the next rule
    group_index: Optional[int] = None
    action: Optional[RuleAction] = None

    @property
    def group(self) -> int:
        """Group this rule belongs to for grouped evaluation."""
        return self.group_index if self.group_index is not None else 0

    @classmethod
    def from_dict(cls, data: Any) -> Optional["BranchingRule"]:
        """Parse one rule; returns None for entries that cannot be a rule."""
        if not isinstance(data, dict):
            return None
        question_id = data.get("questionId")
        if not question_id:
            return None

        raw_condition = _as_dict(data.get("condition"))
        condition = Condition(
            operator=str(raw_condition.get("operator", "")),
            value=raw_condition.get("value"),
        )

        raw_logical = str(data.get("logical") or "OR").upper()
        logical = Logical.AND if raw_logical == "AND" else Logical.OR

        return cls(
            question_id=str(question_id),
            condition=condition,
            logical=logical,
            group_index=_as_int(data.get("groupIndex")),
            action=RuleAction.from_dict(data.get("action")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "questionId": self.question_id,
            "condition": {"operator": self.condition.operator, "value": self.condition.value},
            "logical": self.logical.value,
        }
        if self.group_index is not None:
            data["groupIndex"] = self.group_index
        if self.action is not None:
            data["action"] = self.action.to_dict()
        return data


def parse_rules(raw: Any) -> List[BranchingRule]:
    """Parse a raw rule list, dropping malformed entries."""
    if not isinstance(raw, list):
        return []
    rules = [BranchingRule.from_dict(item) for item in raw]
    return [rule for rule in rules if rule is not None]


# =============================================================================
# TYPED SETTINGS
# =============================================================================

@dataclass
class ChoiceSettings:
    """singleChoice / multiChoice / dropdown."""
    pass


@dataclass
class RatingSettings:
    """ratingStar / ratingNumber / ratingSmiley."""
    max_rating: int = 5


@dataclass
class SliderSettings:
    scale_min: float = 0
    scale_max: float = 100
    scale_step: float = 1


@dataclass
class TextSettings:
    """textShort / textLong / email."""
    max_length: Optional[int] = None
    placeholder: str = ""


@dataclass
class GenericSettings:
    """Any other type; carries the raw bag untouched."""
    values: Dict[str, Any] = field(default_factory=dict)


QuestionSettings = Union[ChoiceSettings, RatingSettings, SliderSettings, TextSettings, GenericSettings]


def _number(raw: Any, default: float) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return default
    return raw


# =============================================================================
# SURVEY STRUCTURE
# =============================================================================

@dataclass
class Option:
    id: str
    text: str = ""
    value: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Option"]:
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        value = data.get("value")
        return cls(
            id=str(data["id"]),
            text=str(data.get("text") or ""),
            value=str(value) if value is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "text": self.text}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class Question:
    """A single survey question as authored in the builder."""
    id: str
    type: Union[QuestionType, str]
    title: str = ""
    description: str = ""
    required: bool = False
    options: List[Option] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)  # Opaque to the rule engine
    visibility_rules: List[BranchingRule] = field(default_factory=list)
    visible_when: List[BranchingRule] = field(default_factory=list)

    def typed_settings(self) -> QuestionSettings:
        """Return the settings variant for this question's type."""
        s = self.settings
        if self.type in CHOICE_TYPES:
            return ChoiceSettings()
        if self.type in RATING_TYPES:
            default_max = 10 if self.type == QuestionType.RATING_NUMBER else 5
            max_rating = _as_int(s.get("maxRating"))
            return RatingSettings(max_rating=max_rating if max_rating and max_rating > 0 else default_max)
        if self.type == QuestionType.SLIDER:
            return SliderSettings(
                scale_min=_number(s.get("scaleMin"), 0),
                scale_max=_number(s.get("scaleMax"), 100),
                scale_step=_number(s.get("scaleStep"), 1),
            )
        if self.type in TEXT_TYPES:
            return TextSettings(
                max_length=_as_int(s.get("maxLength")),
                placeholder=str(s.get("placeholder") or ""),
            )
        return GenericSettings(values=dict(s))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        options = [Option.from_dict(o) for o in data.get("options") or []] \
            if isinstance(data.get("options"), list) else []
        return cls(
            id=str(data.get("id", "")),
            type=parse_question_type(data.get("type")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            required=bool(data.get("required", False)),
            options=[o for o in options if o is not None],
            settings=_as_dict(data.get("settings")),
            visibility_rules=parse_rules(data.get("visibilityRules")),
            visible_when=parse_rules(data.get("visibleWhen")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value if isinstance(self.type, QuestionType) else self.type,
            "title": self.title,
            "description": self.description,
            "required": self.required,
            "options": [o.to_dict() for o in self.options],
            "settings": dict(self.settings),
        }
        if self.visibility_rules:
            data["visibilityRules"] = [r.to_dict() for r in self.visibility_rules]
        if self.visible_when:
            data["visibleWhen"] = [r.to_dict() for r in self.visible_when]
        return data


@dataclass
class Page:
    questions: List[Question] = field(default_factory=list)
    background_color: Optional[str] = None
    branching: List[BranchingRule] = field(default_factory=list)  # Legacy page-scoped rules

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "Page":
        data = _as_dict(data)
        raw_questions = data.get("questions")
        questions = [
            Question.from_dict(q) for q in raw_questions if isinstance(q, dict)
        ] if isinstance(raw_questions, list) else []
        return cls(
            questions=questions,
            background_color=data.get("backgroundColor"),
            branching=parse_rules(data.get("branching")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "questions": [q.to_dict() for q in self.questions],
            "branching": [r.to_dict() for r in self.branching],
        }
        if self.background_color:
            data["backgroundColor"] = self.background_color
        return data


@dataclass
class Survey:
    """An ordered list of pages plus presentation metadata."""
    id: str = ""
    title: str = ""
    pages: List[Page] = field(default_factory=list)
    status: str = "draft"
    theme: str = "default"
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    end_date: Optional[str] = None           # ISO-8601; closes submissions
    allowed_respondents: List[str] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def last_page_index(self) -> int:
        return max(len(self.pages) - 1, 0)

    def clamp_page_index(self, index: int) -> int:
        """Clamp any index into [0, last_page_index]."""
        return min(max(0, index), self.last_page_index)

    def iter_questions(self):
        """Yield (page_index, question) for every question in page order."""
        for page_index, page in enumerate(self.pages):
            for question in page.questions:
                yield page_index, question

    def locate_question(self, question_id: str) -> Optional[tuple]:
        """Return (page_index, question) for the first question with this id."""
        for page_index, question in self.iter_questions():
            if question.id == question_id:
                return page_index, question
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "Survey":
        """
        Build a Survey from author JSON.

        Raises:
            SurveyDefinitionError: if data is not a mapping
        """
        if not isinstance(data, dict):
            raise SurveyDefinitionError("Survey definition must be a JSON object")
        raw_pages = data.get("pages")
        pages = [Page.from_dict(p) for p in raw_pages] if isinstance(raw_pages, list) else []
        allowed = data.get("allowedRespondents")
        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            title=str(data.get("title") or ""),
            pages=pages,
            status=str(data.get("status") or "draft"),
            theme=str(data.get("theme") or "default"),
            background_color=data.get("backgroundColor"),
            text_color=data.get("textColor"),
            end_date=data.get("endDate"),
            allowed_respondents=[str(e).strip().lower() for e in allowed] if isinstance(allowed, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "theme": self.theme,
            "backgroundColor": self.background_color,
            "textColor": self.text_color,
            "endDate": self.end_date,
            "allowedRespondents": list(self.allowed_respondents),
            "pages": [p.to_dict() for p in self.pages],
        }
