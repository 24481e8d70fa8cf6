"""
Condition evaluation for branching and visibility rules.

A condition compares the respondent's answer (``actual``) with the value
the author typed into the rule (``expected``). Answers come in many
shapes (strings, numbers, smiley tokens, multi-select lists), so values
are coerced to numbers where possible and otherwise compared as trimmed,
lower-cased strings. Evaluation never raises: anything that cannot be
compared evaluates to False.
"""

import math
from enum import Enum
from typing import Any, List, Optional, Union


class Operator(str, Enum):
    """Comparison operators offered by the rule editor."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    HAS_SELECTED = "has_selected"
    COUNT_EQ = "count_eq"
    COUNT_GT = "count_gt"
    COUNT_LT = "count_lt"


# Ordinal values for ratingSmiley answers
SMILEY_ORDER = {
    "very_sad": 1,
    "sad": 2,
    "neutral": 3,
    "happy": 4,
    "very_happy": 5,
}


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce an answer or expected value to a number.

    Returns None when the value has no numeric reading. Booleans, blank
    strings, NaN, infinities and digit-grouped literals
    such as "1_000" are not numbers.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in SMILEY_ORDER:
            return float(SMILEY_ORDER[text.lower()])
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def normalize(value: Any) -> str:
    """Trimmed, lower-cased string form used for equality and containment."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip().lower()


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _members(values: Union[list, tuple]) -> List[str]:
    return [normalize(v) for v in values]


def _scalar_equals(expected: Any, actual: Any) -> bool:
    expected_num = coerce_number(expected)
    actual_num = coerce_number(actual)
    if expected_num is not None and actual_num is not None:
        return actual_num == expected_num
    return normalize(actual) == normalize(expected)


def _equals(expected: Any, actual: Any) -> bool:
    if _is_list(actual):
        return normalize(expected) in _members(actual)
    return _scalar_equals(expected, actual)


def _contains(expected: Any, actual: Any) -> bool:
    if _is_list(actual):
        return normalize(expected) in _members(actual)
    return normalize(expected) in normalize(actual)


def _compare(expected: Any, actual: Any, greater: bool) -> bool:
    expected_num = coerce_number(expected)
    actual_num = coerce_number(actual)
    if expected_num is None or actual_num is None:
        return False
    # Operands in argument order: expected OP actual
    return expected_num > actual_num if greater else expected_num < actual_num


def _count(expected: Any, actual: Any, operator: Operator) -> bool:
    expected_num = coerce_number(expected)
    if expected_num is None:
        return False
    count = len(actual) if _is_list(actual) else 0
    if operator == Operator.COUNT_EQ:
        return count == expected_num
    if operator == Operator.COUNT_GT:
        return count > expected_num
    return count < expected_num


def evaluate(operator: Union[Operator, str], expected: Any, actual: Any) -> bool:
    """
    Evaluate one condition.

    Args:
        operator: Operator name (or Operator member)
        expected: Value stored in the rule
        actual: The respondent's answer

    Returns:
        True if the condition holds. Unknown operators and incomparable
        values yield False.
    """
    try:
        op = Operator(operator)
    except ValueError:
        return False

    if op in (Operator.EQUALS, Operator.HAS_SELECTED):
        return _equals(expected, actual)
    if op == Operator.NOT_EQUALS:
        return not _equals(expected, actual)
    if op == Operator.CONTAINS:
        return _contains(expected, actual)
    if op == Operator.NOT_CONTAINS:
        return not _contains(expected, actual)
    if op == Operator.GREATER_THAN:
        return _compare(expected, actual, greater=True)
    if op == Operator.LESS_THAN:
        return _compare(expected, actual, greater=False)
    return _count(expected, actual, op)
