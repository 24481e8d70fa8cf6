"""
Authoring-time checks for survey definitions.

Everything here is advisory: the engine evaluates surveys with broken
rules anyway (they simply never fire). Warnings are meant for the builder
to surface to the author.
"""

from typing import List, Union

from .branching.conditions import Operator
from .branching.visibility import collect_rules
from .schemas.survey import ActionType, CHOICE_TYPES, QuestionType, Survey

TEXT_OPERATORS = [Operator.EQUALS, Operator.NOT_EQUALS, Operator.CONTAINS, Operator.NOT_CONTAINS]
NUMBER_OPERATORS = [Operator.EQUALS, Operator.NOT_EQUALS, Operator.LESS_THAN, Operator.GREATER_THAN]
CHECKBOX_OPERATORS = [Operator.COUNT_EQ, Operator.COUNT_GT, Operator.COUNT_LT, Operator.HAS_SELECTED]
CHOICE_OPERATORS = [Operator.HAS_SELECTED]


def operators_for(question_type: Union[QuestionType, str]) -> List[Operator]:
    """Operators the rule editor offers for a dependency of this type."""
    if question_type in (QuestionType.SINGLE_CHOICE, QuestionType.DROPDOWN):
        return CHOICE_OPERATORS
    if question_type == QuestionType.MULTI_CHOICE:
        return CHECKBOX_OPERATORS
    if question_type in (
        QuestionType.RATING_NUMBER,
        QuestionType.RATING_STAR,
        QuestionType.RATING_SMILEY,
        QuestionType.SLIDER,
    ):
        return NUMBER_OPERATORS
    return TEXT_OPERATORS


def _type_name(question_type: Union[QuestionType, str]) -> str:
    return question_type.value if isinstance(question_type, QuestionType) else str(question_type)


def validate_survey(survey: Survey) -> List[str]:
    """Return a list of human-readable warnings; empty means nothing to flag."""
    warnings = []

    if not survey.pages:
        warnings.append("Survey has no pages")
        return warnings

    located = {}
    for page_index, question in survey.iter_questions():
        if question.id in located:
            warnings.append(f"Duplicate question id '{question.id}' on page {page_index + 1}")
            continue
        located[question.id] = (page_index, question)

    for page_index, question in survey.iter_questions():
        if question.type in CHOICE_TYPES and not question.options:
            warnings.append(f"Question '{question.id}' is a choice question without options")

        for rule in collect_rules(question):
            dependency = located.get(rule.question_id)
            if dependency is None:
                warnings.append(
                    f"Question '{question.id}' has a rule on unknown question '{rule.question_id}'"
                )
                continue

            dep_page, dep_question = dependency
            if dep_page > page_index:
                warnings.append(
                    f"Question '{question.id}' depends on '{rule.question_id}', "
                    f"which appears on a later page"
                )

            try:
                operator = Operator(rule.condition.operator)
            except ValueError:
                warnings.append(
                    f"Question '{question.id}' uses unknown operator '{rule.condition.operator}'"
                )
                continue
            if operator not in operators_for(dep_question.type) and operator != Operator.EQUALS:
                warnings.append(
                    f"Operator '{operator.value}' is unusual for {_type_name(dep_question.type)} "
                    f"question '{rule.question_id}'"
                )

            action = rule.action
            if action is None:
                continue
            if rule.question_id != question.id:
                warnings.append(
                    f"Branching action on '{question.id}' reads '{rule.question_id}' and will never fire"
                )
            if action.type == ActionType.SKIP_TO_PAGE:
                target = action.target_page_index
                if target is None or not 0 <= target < survey.page_count:
                    warnings.append(
                        f"Branching action on '{question.id}' targets page {target}, "
                        f"outside 0..{survey.page_count - 1}; it will be clamped"
                    )

    return warnings
