"""
Branching logic for survey flow control.

This module provides:
- Condition evaluation with numeric and smiley coercion
- Question visibility resolution (flat or grouped strategies)
- Branching action resolution on answer change
- The page navigation state machine
"""

from .conditions import Operator, SMILEY_ORDER, evaluate, coerce_number
from .visibility import (
    EvaluationStrategy,
    RULE_SOURCES,
    collect_rules,
    visibility_predicates,
    evaluate_rules,
    is_visible,
    visible_questions,
)
from .actions import NavigationAction, resolve_action
from .engine import NavigationSession, NavigationState, has_answer

__all__ = [
    "Operator",
    "SMILEY_ORDER",
    "evaluate",
    "coerce_number",
    "EvaluationStrategy",
    "RULE_SOURCES",
    "collect_rules",
    "visibility_predicates",
    "evaluate_rules",
    "is_visible",
    "visible_questions",
    "NavigationAction",
    "resolve_action",
    "NavigationSession",
    "NavigationState",
    "has_answer",
]
