"""
surveyflow - branching, visibility and page navigation for multi-page surveys.
"""

from .branching import (
    EvaluationStrategy,
    NavigationAction,
    NavigationSession,
    evaluate,
    is_visible,
    resolve_action,
)
from .schemas import Survey, Page, Question, BranchingRule
from .progress import project_progress, project_respondents, paginate

__all__ = [
    "EvaluationStrategy",
    "NavigationAction",
    "NavigationSession",
    "evaluate",
    "is_visible",
    "resolve_action",
    "Survey",
    "Page",
    "Question",
    "BranchingRule",
    "project_progress",
    "project_respondents",
    "paginate",
]
