"""
Branching action resolution.

Runs on a single answer-change event rather than the full response map:
given the question just answered and its new value, find the first rule
on that question which reads the question itself, carries an action, and
whose condition holds. The action is turned into a clamped page target.

This is independent of visibility: the same rule list answers "where do
we go next" here and "what shows on this page" in the visibility module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..schemas.survey import ActionType, BranchingRule, Question, RuleAction, Survey
from .conditions import evaluate
from .visibility import collect_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavigationAction:
    """Resolved navigation for the UI to apply."""
    type: ActionType
    target_page_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "targetPageIndex": self.target_page_index}


def action_target(action: RuleAction, survey: Survey) -> NavigationAction:
    """Turn a rule action into a concrete, in-range page target."""
    if action.type == ActionType.END_SURVEY:
        return NavigationAction(ActionType.END_SURVEY, survey.last_page_index)
    target = action.target_page_index if action.target_page_index is not None else 0
    return NavigationAction(ActionType.SKIP_TO_PAGE, survey.clamp_page_index(target))


def find_triggered_rule(question: Question, question_id: str, new_value: Any) -> Optional[BranchingRule]:
    """First self-referencing rule with an action whose condition holds."""
    for rule in collect_rules(question):
        if rule.question_id != question_id or rule.action is None:
            continue
        if evaluate(rule.condition.operator, rule.condition.value, new_value):
            return rule
    return None


def _find_question(survey: Survey, question_id: str, page_index: Optional[int]) -> Optional[Question]:
    if page_index is not None:
        if 0 <= page_index < survey.page_count:
            return survey.pages[page_index].find_question(question_id)
        return None
    located = survey.locate_question(question_id)
    return located[1] if located else None


def resolve_action(
    survey: Survey,
    question_id: str,
    new_value: Any,
    page_index: Optional[int] = None,
) -> Optional[NavigationAction]:
    """
    Resolve the navigation triggered by answering a question.

    Args:
        survey: Survey definition
        question_id: The question just answered
        new_value: Its new answer; None (cleared) never triggers
        page_index: Restrict the lookup to this page, as the live
            renderers do; None searches the whole survey

    Returns:
        The action to apply, or None when no rule fires.
    """
    if new_value is None or survey.page_count == 0:
        return None

    question = _find_question(survey, question_id, page_index)
    if question is None:
        return None

    rule = find_triggered_rule(question, question_id, new_value)
    if rule is None:
        return None

    action = action_target(rule.action, survey)
    logger.debug(
        "Branching rule on %s fired: %s -> page %d",
        question_id, action.type.value, action.target_page_index,
    )
    return action
