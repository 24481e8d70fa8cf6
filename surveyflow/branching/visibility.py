"""
Question visibility resolution.

A question's visibility rules may live in one of several places, kept for
compatibility with surveys saved by older builder versions. Sources are
tried in a fixed order and the first non-empty one is used; they are
never merged.

Two evaluation strategies exist side by side:

- FLAT_SEQUENTIAL folds all rules left to right, combining each rule with
  the accumulator using the previous rule's logical operator.
- GROUPED_OR partitions rules by group index, folds each group the same
  way, and shows the question if any group holds.

Neither is canonical; callers choose one explicitly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Union

from ..schemas.survey import BranchingRule, Logical, Page, Question, parse_rules
from .conditions import evaluate


class EvaluationStrategy(str, Enum):
    """How a question's rule list is reduced to a single boolean."""
    FLAT_SEQUENTIAL = "flat_sequential"
    GROUPED_OR = "grouped_or"


@dataclass(frozen=True)
class RuleSource:
    """One place a question's rules may be stored."""
    name: str
    read: Callable[[Question], List[BranchingRule]]


def _settings_visibility_rules(question: Question) -> List[BranchingRule]:
    visibility = question.settings.get("visibility")
    if not isinstance(visibility, dict):
        return []
    return parse_rules(visibility.get("rules"))


# Precedence order; the first source yielding rules wins
RULE_SOURCES = (
    RuleSource("visibilityRules", lambda q: q.visibility_rules),
    RuleSource("visibleWhen", lambda q: q.visible_when),
    RuleSource("settings.visibleWhen", lambda q: parse_rules(q.settings.get("visibleWhen"))),
    RuleSource("settings.visibility.rules", _settings_visibility_rules),
)


def collect_rules(question: Question) -> List[BranchingRule]:
    """Return the rules from the first non-empty source, or an empty list."""
    for source in RULE_SOURCES:
        rules = source.read(question)
        if rules:
            return list(rules)
    return []


def visibility_predicates(question: Question) -> List[BranchingRule]:
    """
    Rules that decide visibility; rules carrying an action only navigate.

    The web renderer counted every rule from the chosen source, so a
    question whose only rule was its own branching trigger could never be
    shown. Action rules are left out here to avoid that.
    """
    return [rule for rule in collect_rules(question) if rule.action is None]


def is_answered(responses: Mapping[str, Any], question_id: str) -> bool:
    """A dependency counts as answered once its key carries a value."""
    return responses.get(question_id) is not None


def rule_holds(rule: BranchingRule, responses: Mapping[str, Any]) -> bool:
    """Evaluate a single rule; an unanswered dependency never holds."""
    if not is_answered(responses, rule.question_id):
        return False
    return evaluate(rule.condition.operator, rule.condition.value, responses[rule.question_id])


def fold_rules(rules: List[BranchingRule], responses: Mapping[str, Any]) -> bool:
    """
    Left-fold rules by the previous rule's logical operator.

    Every rule is evaluated; there is no short-circuiting. An empty list
    folds to False.
    """
    result = None
    for idx, rule in enumerate(rules):
        met = rule_holds(rule, responses)
        if idx == 0:
            result = met
        elif rules[idx - 1].logical == Logical.AND:
            result = result and met
        else:
            result = result or met
    return bool(result)


def group_rules(rules: List[BranchingRule]) -> Dict[int, List[BranchingRule]]:
    """Partition rules by group index, preserving order within each group."""
    groups: Dict[int, List[BranchingRule]] = {}
    for rule in rules:
        groups.setdefault(rule.group, []).append(rule)
    return groups


def evaluate_rules(
    rules: List[BranchingRule],
    responses: Mapping[str, Any],
    strategy: Union[EvaluationStrategy, str],
) -> bool:
    """Reduce a rule list to a boolean using the given strategy."""
    strategy = EvaluationStrategy(strategy)
    if strategy == EvaluationStrategy.FLAT_SEQUENTIAL:
        return fold_rules(rules, responses)

    groups = group_rules(rules)
    return any(fold_rules(groups[gi], responses) for gi in sorted(groups) if groups[gi])


def is_visible(
    question: Question,
    responses: Mapping[str, Any],
    strategy: Union[EvaluationStrategy, str],
) -> bool:
    """
    Decide whether a question should currently be shown.

    Questions without visibility rules are always visible. Questions with
    rules stay hidden until at least one of their dependencies has been
    answered.
    """
    rules = visibility_predicates(question)
    if not rules:
        return True

    if not any(is_answered(responses, rule.question_id) for rule in rules):
        return False

    return evaluate_rules(rules, responses, strategy)


def visible_questions(
    page: Page,
    responses: Mapping[str, Any],
    strategy: Union[EvaluationStrategy, str],
) -> List[Question]:
    """Questions on a page that are visible under the current responses."""
    return [q for q in page.questions if is_visible(q, responses, strategy)]
