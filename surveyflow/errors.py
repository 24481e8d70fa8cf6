"""
Exceptions raised at the edges of surveyflow.

The rule engine itself never raises for malformed rule data; these cover
survey definitions that cannot back a session and submission conflicts.
"""


class SurveyFlowError(Exception):
    """Base class for all surveyflow errors."""


class SurveyDefinitionError(SurveyFlowError):
    """Survey definition cannot be used (not a mapping, or no pages)."""


class SubmissionError(SurveyFlowError):
    """A response write was rejected by the submission ledger."""


class InvalidSubmissionError(SubmissionError):
    """Payload is missing required fields or carries the wrong status."""


class SurveyClosedError(SubmissionError):
    """Survey is not accepting responses (unpublished or past its end date)."""


class AlreadySubmittedError(SubmissionError):
    """A final submission already exists for this survey and respondent."""
