"""
Tests for question visibility resolution.

Rule-source precedence, the default-hidden convention, and both
evaluation strategies (flat sequential and grouped OR-of-ANDs).
"""

import itertools
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from surveyflow.branching.visibility import (
    EvaluationStrategy,
    RULE_SOURCES,
    collect_rules,
    evaluate_rules,
    is_visible,
    visibility_predicates,
)
from surveyflow.schemas.survey import Question

FLAT = EvaluationStrategy.FLAT_SEQUENTIAL
GROUPED = EvaluationStrategy.GROUPED_OR
BOTH = [FLAT, GROUPED]


def rule(dep, operator, value, logical=None, group=None, action=None):
    data = {"questionId": dep, "condition": {"operator": operator, "value": value}}
    if logical:
        data["logical"] = logical
    if group is not None:
        data["groupIndex"] = group
    if action:
        data["action"] = action
    return data


def question(**fields):
    data = {"id": "target", "type": "textShort", "required": False}
    data.update(fields)
    return Question.from_dict(data)


# ═══════════════════════════════════════════════════════════════
# RULE SOURCES
# ═══════════════════════════════════════════════════════════════

class TestRuleSources:

    def test_precedence_order(self):
        assert [s.name for s in RULE_SOURCES] == [
            "visibilityRules",
            "visibleWhen",
            "settings.visibleWhen",
            "settings.visibility.rules",
        ]

    def test_first_source_wins(self):
        q = question(
            visibilityRules=[rule("q1", "equals", "A")],
            settings={"visibleWhen": [rule("q2", "equals", "B")]},
        )
        assert [r.question_id for r in collect_rules(q)] == ["q1"]

    def test_sources_are_never_merged(self):
        q = question(
            visibilityRules=[rule("q1", "equals", "A")],
            settings={"visibleWhen": [rule("q2", "equals", "B")]},
        )
        # Only the q1 rule counts, and it fails
        assert is_visible(q, {"q1": "X", "q2": "B"}, GROUPED) is False

    def test_empty_source_falls_through(self):
        q = question(visibilityRules=[], visibleWhen=[rule("q2", "equals", "B")])
        assert [r.question_id for r in collect_rules(q)] == ["q2"]

    def test_settings_visibility_rules(self):
        q = question(settings={"visibility": {"rules": [rule("q3", "equals", "C")]}})
        assert [r.question_id for r in collect_rules(q)] == ["q3"]
        assert is_visible(q, {"q3": "c"}, FLAT) is True

    def test_settings_visible_when_beats_settings_visibility(self):
        q = question(settings={
            "visibleWhen": [rule("q2", "equals", "B")],
            "visibility": {"rules": [rule("q3", "equals", "C")]},
        })
        assert [r.question_id for r in collect_rules(q)] == ["q2"]

    def test_malformed_sources(self):
        q = question(visibilityRules="nonsense", settings={"visibility": ["not", "a", "dict"]})
        assert collect_rules(q) == []

    def test_action_rules_do_not_affect_visibility(self):
        q = question(visibilityRules=[
            rule("target", "equals", "Yes", action={"type": "skip_to_page", "targetPageIndex": 2}),
        ])
        assert len(collect_rules(q)) == 1
        assert visibility_predicates(q) == []
        assert is_visible(q, {}, GROUPED) is True


# ═══════════════════════════════════════════════════════════════
# DEFAULT HIDDEN
# ═══════════════════════════════════════════════════════════════

class TestDefaultHidden:

    def test_no_rules_always_visible(self):
        assert is_visible(question(), {}, FLAT) is True
        assert is_visible(question(), {"anything": 1}, GROUPED) is True

    @pytest.mark.parametrize("strategy", BOTH)
    @pytest.mark.parametrize("operator,value", [
        ("equals", "A"),
        ("not_equals", "A"),
        ("not_contains", "A"),
        ("count_lt", 5),
        ("less_than", 100),
    ])
    def test_hidden_until_dependency_answered(self, strategy, operator, value):
        q = question(visibilityRules=[rule("dep", operator, value)])
        assert is_visible(q, {}, strategy) is False
        assert is_visible(q, {"unrelated": "A"}, strategy) is False

    def test_one_answered_dependency_is_enough(self):
        q = question(visibilityRules=[
            rule("dep1", "equals", "A"),
            rule("dep2", "equals", "B"),
        ])
        assert is_visible(q, {"dep2": "B"}, FLAT) is True
        assert is_visible(q, {"dep2": "B"}, GROUPED) is True

    def test_none_counts_as_unanswered(self):
        q = question(visibilityRules=[rule("dep", "not_equals", "A")])
        assert is_visible(q, {"dep": None}, FLAT) is False


# ═══════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════

class TestGroupedOrOfAnds:
    """(dep1 == A AND dep2 == B) OR dep3 == C"""

    RULES = [
        rule("dep1", "equals", "A", logical="AND", group=0),
        rule("dep2", "equals", "B", group=0),
        rule("dep3", "equals", "C", group=1),
    ]

    @pytest.mark.parametrize("a,b,c", list(itertools.product([True, False], repeat=3)))
    def test_truth_table(self, a, b, c):
        q = question(visibilityRules=self.RULES)
        responses = {
            "dep1": "A" if a else "x",
            "dep2": "B" if b else "x",
            "dep3": "C" if c else "x",
        }
        assert is_visible(q, responses, GROUPED) is ((a and b) or c)

    def test_group_order_independent_of_rule_order(self):
        rules = [self.RULES[2], self.RULES[0], self.RULES[1]]
        q = question(visibilityRules=rules)
        assert is_visible(q, {"dep1": "A", "dep2": "B", "dep3": "x"}, GROUPED) is True

    def test_logical_on_last_rule_of_group_is_ignored(self):
        q = question(visibilityRules=[
            rule("dep1", "equals", "A", group=0),
            rule("dep2", "equals", "B", logical="AND", group=0),
        ])
        # dep1 defaults to OR with the rule after it
        assert is_visible(q, {"dep1": "A", "dep2": "x"}, GROUPED) is True

    def test_missing_group_index_is_group_zero(self):
        q = question(visibilityRules=[
            rule("dep1", "equals", "A", logical="AND"),
            rule("dep2", "equals", "B", group=0),
        ])
        assert is_visible(q, {"dep1": "A", "dep2": "x"}, GROUPED) is False
        assert is_visible(q, {"dep1": "A", "dep2": "B"}, GROUPED) is True


class TestFlatSequential:

    def test_folds_by_previous_logical(self):
        q = question(visibilityRules=[
            rule("dep1", "equals", "A", logical="AND"),
            rule("dep2", "equals", "B", logical="OR"),
            rule("dep3", "equals", "C"),
        ])
        assert is_visible(q, {"dep1": "A", "dep2": "x", "dep3": "C"}, FLAT) is True
        assert is_visible(q, {"dep1": "A", "dep2": "x", "dep3": "x"}, FLAT) is False

    def test_no_precedence_between_and_or(self):
        # ((dep1 OR dep2) AND dep3), strictly left to right
        q = question(visibilityRules=[
            rule("dep1", "equals", "A", logical="OR"),
            rule("dep2", "equals", "B", logical="AND"),
            rule("dep3", "equals", "C"),
        ])
        assert is_visible(q, {"dep1": "A", "dep2": "x", "dep3": "x"}, FLAT) is False

    def test_strategies_diverge(self):
        rules = [
            rule("dep1", "equals", "A", logical="OR", group=0),
            rule("dep2", "equals", "B", logical="AND", group=1),
            rule("dep3", "equals", "C", group=1),
        ]
        q = question(visibilityRules=rules)
        responses = {"dep1": "A", "dep2": "x", "dep3": "x"}
        # flat: (A or B) and C; grouped: A or (B and C)
        assert is_visible(q, responses, FLAT) is False
        assert is_visible(q, responses, GROUPED) is True

    def test_strategy_accepts_string(self):
        q = question(visibilityRules=[rule("dep", "equals", "A")])
        assert is_visible(q, {"dep": "a"}, "flat_sequential") is True
        assert is_visible(q, {"dep": "a"}, "grouped_or") is True

    def test_unknown_strategy_rejected(self):
        q = question(visibilityRules=[rule("dep", "equals", "A")])
        with pytest.raises(ValueError):
            is_visible(q, {"dep": "a"}, "majority_vote")

    def test_empty_rule_list_evaluates_false(self):
        assert evaluate_rules([], {}, FLAT) is False
        assert evaluate_rules([], {}, GROUPED) is False


class TestPurity:

    def test_recomputed_from_current_responses(self):
        q = question(visibilityRules=[rule("dep", "equals", "show")])
        responses = {"dep": "show"}
        assert is_visible(q, responses, GROUPED) is True
        responses["dep"] = "hide"
        assert is_visible(q, responses, GROUPED) is False
        del responses["dep"]
        assert is_visible(q, responses, GROUPED) is False

    def test_responses_untouched(self):
        q = question(visibilityRules=[rule("dep", "equals", "A")])
        responses = {"dep": ["A", "B"]}
        is_visible(q, responses, FLAT)
        assert responses == {"dep": ["A", "B"]}
