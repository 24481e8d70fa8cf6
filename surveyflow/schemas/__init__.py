"""
Survey definition and response schemas.
"""

from .survey import (
    QuestionType,
    ActionType,
    Logical,
    Condition,
    RuleAction,
    BranchingRule,
    Option,
    Question,
    Page,
    Survey,
    ChoiceSettings,
    RatingSettings,
    SliderSettings,
    TextSettings,
    GenericSettings,
    parse_rules,
)

__all__ = [
    "QuestionType",
    "ActionType",
    "Logical",
    "Condition",
    "RuleAction",
    "BranchingRule",
    "Option",
    "Question",
    "Page",
    "Survey",
    "ChoiceSettings",
    "RatingSettings",
    "SliderSettings",
    "TextSettings",
    "GenericSettings",
    "parse_rules",
]
