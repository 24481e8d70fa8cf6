"""
Page navigation state machine.

A NavigationSession owns everything one respondent (or one builder
preview) mutates: the current page, the visited-page history, and the
collected answers. Visibility and the advance gate are recomputed from
those on every call, never cached, so an answer that hides a required
question takes effect immediately.

There is no terminal state: ending the survey parks navigation on the
last page and leaves it to the caller to stop accepting input.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union

from ..errors import SurveyDefinitionError
from ..schemas.survey import Page, Question, Survey
from .actions import NavigationAction, resolve_action
from .visibility import EvaluationStrategy, is_visible, visible_questions

logger = logging.getLogger(__name__)


def has_answer(value: Any) -> bool:
    """Whether a stored value satisfies a required question."""
    if value is None:
        return False
    if isinstance(value, str) and value == "":
        return False
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return False
    return True


@dataclass
class NavigationState:
    """Current position and visit history of one session."""
    current_page_index: int = 0
    visited_page_indices: List[int] = field(default_factory=lambda: [0])  # Duplicates allowed

    def move_to(self, index: int):
        """Set the current page and record the visit."""
        self.current_page_index = index
        self.visited_page_indices.append(index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPageIndex": self.current_page_index,
            "visitedPageIndices": list(self.visited_page_indices),
        }


class NavigationSession:
    """
    Navigation and answer state for a single respondent session.

    Usage:
        session = NavigationSession(survey, EvaluationStrategy.GROUPED_OR)
        action = session.answer("q1", "Yes")    # may jump pages
        if session.can_advance:
            session.go_next()

    The evaluation strategy must be chosen by the caller; see
    EvaluationStrategy for the two supported behaviours.
    """

    def __init__(
        self,
        survey: Survey,
        strategy: Union[EvaluationStrategy, str],
        start_page_index: int = 0,
        responses: Optional[Dict[str, Any]] = None,
    ):
        """
        Start a session.

        Args:
            survey: Survey definition; must have at least one page
            strategy: Visibility evaluation strategy
            start_page_index: Page to start on (clamped into range)
            responses: Answers to seed the session with (copied)

        Raises:
            SurveyDefinitionError: if the survey has no pages
        """
        if survey.page_count == 0:
            raise SurveyDefinitionError("Survey has no pages to navigate")
        self.survey = survey
        self.strategy = EvaluationStrategy(strategy)
        start = survey.clamp_page_index(start_page_index)
        self.state = NavigationState(current_page_index=start, visited_page_indices=[start])
        self.responses: Dict[str, Any] = dict(responses or {})

    # -------------------------------------------------------------------------
    # Position
    # -------------------------------------------------------------------------

    @property
    def current_page_index(self) -> int:
        return self.state.current_page_index

    @property
    def visited_page_indices(self) -> List[int]:
        return list(self.state.visited_page_indices)

    @property
    def last_page_index(self) -> int:
        return self.survey.last_page_index

    @property
    def current_page(self) -> Page:
        return self.survey.pages[self.state.current_page_index]

    @property
    def is_first_page(self) -> bool:
        return self.state.current_page_index == 0

    @property
    def is_last_page(self) -> bool:
        return self.state.current_page_index == self.last_page_index

    # -------------------------------------------------------------------------
    # Answers and visibility
    # -------------------------------------------------------------------------

    def answer(self, question_id: str, value: Any) -> Optional[NavigationAction]:
        """
        Record an answer and apply any branching action it triggers.

        A value of None clears the answer. Only rules on questions of the
        current page are consulted.

        Returns:
            The applied action, or None if navigation was untouched.
        """
        if value is None:
            self.responses.pop(question_id, None)
        else:
            self.responses[question_id] = value

        action = resolve_action(
            self.survey, question_id, value, page_index=self.state.current_page_index
        )
        if action is not None:
            self.jump_to(action.target_page_index)
        return action

    def is_visible(self, question: Question) -> bool:
        return is_visible(question, self.responses, self.strategy)

    def visible_questions(self) -> List[Question]:
        """Visible questions on the current page."""
        return visible_questions(self.current_page, self.responses, self.strategy)

    def missing_required(self) -> List[str]:
        """IDs of visible required questions on the current page without an answer."""
        return [
            q.id for q in self.visible_questions()
            if q.required and not has_answer(self.responses.get(q.id))
        ]

    @property
    def can_advance(self) -> bool:
        """True when every visible required question on this page is answered."""
        return not self.missing_required()

    @property
    def can_submit(self) -> bool:
        """True on the last page once its required questions are answered."""
        return self.is_last_page and self.can_advance

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def go_next(self) -> bool:
        """Advance one page if gated open and not on the last page."""
        if self.is_last_page or not self.can_advance:
            return False
        self.state.move_to(self.state.current_page_index + 1)
        logger.debug("Advanced to page %d", self.state.current_page_index)
        return True

    def go_previous(self) -> bool:
        """Go back one page unless already on the first."""
        if self.is_first_page:
            return False
        self.state.move_to(self.state.current_page_index - 1)
        logger.debug("Went back to page %d", self.state.current_page_index)
        return True

    def jump_to(self, target: int) -> int:
        """Jump to a page, clamping the target into range. Returns the page reached."""
        index = self.survey.clamp_page_index(target)
        self.state.move_to(index)
        logger.debug("Jumped to page %d (requested %d)", index, target)
        return index

    def end_survey(self) -> int:
        """Park navigation on the last page."""
        return self.jump_to(self.last_page_index)

    def reset(self, start_index: int = 0):
        """Start over from a page with no answers and a fresh history."""
        start = self.survey.clamp_page_index(start_index)
        self.state = NavigationState(current_page_index=start, visited_page_indices=[start])
        self.responses.clear()

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the session for renderers."""
        data = self.state.to_dict()
        data.update({
            "pageCount": self.survey.page_count,
            "isFirstPage": self.is_first_page,
            "isLastPage": self.is_last_page,
            "canAdvance": self.can_advance,
            "canSubmit": self.can_submit,
            "visibleQuestionIds": [q.id for q in self.visible_questions()],
            "missingRequired": self.missing_required(),
        })
        return data
