"""
Submission ledger: auto-save and final submit for respondent answers.

At most one final submission is accepted per (survey, respondent). Once a
response is Completed, later auto-saves and submits are rejected rather
than overwriting it. The check happens under a lock before every write.

Also builds the payloads a runtime sends, which carry only the answers
of questions that are visible at the time of sending.
"""

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Callable, Tuple

from .branching.engine import NavigationSession
from .errors import AlreadySubmittedError, InvalidSubmissionError, SurveyClosedError
from .progress import ProgressStatus, ResponseRecord, parse_timestamp
from .schemas.survey import Survey

logger = logging.getLogger(__name__)

# Survey statuses that accept final submissions
OPEN_STATUSES = {"published", "live"}


def hash_email(email: str) -> str:
    """Short stable digest so logs never carry raw addresses."""
    return hashlib.sha256(email.encode("utf-8")).hexdigest()[:12]


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _check_shapes(payload: Dict[str, Any]) -> Optional[str]:
    if not isinstance(payload["responses"], list):
        return "responses must be a list"
    if not isinstance(payload["metadata"], dict):
        return "metadata must be an object"
    return None


# =============================================================================
# PAYLOADS
# =============================================================================

def visible_answers(session: NavigationSession) -> List[Dict[str, Any]]:
    """Answers of visible questions, each tagged with its page index."""
    answers = []
    for question_id, value in session.responses.items():
        located = session.survey.locate_question(question_id)
        if located is None:
            continue
        page_index, question = located
        if not session.is_visible(question):
            continue
        answers.append({"questionId": question_id, "value": value, "pageIndex": page_index})
    return answers


def build_submission_payload(session: NavigationSession, time_spent: int) -> Dict[str, Any]:
    """Body for a final submit."""
    pages_visited = list(dict.fromkeys(session.visited_page_indices + [session.current_page_index]))
    return {
        "responses": visible_answers(session),
        "metadata": {
            "lastPageIndex": session.current_page_index,
            "timeSpent": int(time_spent),
            "pagesVisited": pages_visited,
        },
    }


def build_autosave_payload(
    session: NavigationSession,
    time_spent: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Body for a periodic auto-save; same as submit plus status and timestamp."""
    payload = build_submission_payload(session, time_spent)
    payload["status"] = ProgressStatus.IN_PROGRESS.value
    payload["updatedAt"] = _utc(now or datetime.now(timezone.utc)).isoformat()
    return payload


# =============================================================================
# LEDGER
# =============================================================================

@dataclass
class StoredResponse:
    survey_id: str
    email: str
    status: str
    responses: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    def to_record(self) -> ResponseRecord:
        return ResponseRecord.from_dict({
            "respondentEmail": self.email,
            "status": self.status,
            "metadata": self.metadata,
            "startedAt": self.started_at,
            "updatedAt": self.updated_at,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "surveyId": self.survey_id,
            "respondentEmail": self.email,
            "status": self.status,
            "responses": list(self.responses),
            "metadata": dict(self.metadata),
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
        }


class SubmissionLedger:
    """
    In-memory store of response documents keyed by survey and email.

    Usage:
        ledger = SubmissionLedger()
        ledger.auto_save(survey.id, "a@b.c", build_autosave_payload(session, 42))
        ledger.submit(survey, "a@b.c", build_submission_payload(session, 60))
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], StoredResponse] = {}

    @staticmethod
    def _key(survey_id: str, email: str) -> Tuple[str, str]:
        return str(survey_id), email.strip().lower()

    def get(self, survey_id: str, email: str) -> Optional[StoredResponse]:
        with self._lock:
            return self._entries.get(self._key(survey_id, email))

    def records_for(self, survey_id: str) -> Dict[str, ResponseRecord]:
        """Progress records for every respondent of a survey, keyed by email."""
        with self._lock:
            return {
                email: entry.to_record()
                for (sid, email), entry in self._entries.items()
                if sid == str(survey_id)
            }

    def auto_save(self, survey_id: str, email: str, payload: Dict[str, Any]) -> StoredResponse:
        """
        Upsert in-progress answers.

        Raises:
            InvalidSubmissionError: missing fields or status other than InProgress
            AlreadySubmittedError: the response was already completed
        """
        digest = hash_email(email)
        missing = [k for k in ("responses", "metadata", "status", "updatedAt") if payload.get(k) is None]
        if missing:
            logger.warning("Auto-save rejected for %s/%s: missing %s", survey_id, digest, missing)
            raise InvalidSubmissionError(f"Missing required fields: {', '.join(missing)}")
        problem = _check_shapes(payload)
        if problem:
            logger.warning("Auto-save rejected for %s/%s: %s", survey_id, digest, problem)
            raise InvalidSubmissionError(problem)
        if payload["status"] != ProgressStatus.IN_PROGRESS.value:
            logger.warning("Auto-save rejected for %s/%s: status %s", survey_id, digest, payload["status"])
            raise InvalidSubmissionError("Invalid status for auto-save")

        now = self._clock()
        key = self._key(survey_id, email)
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and existing.status == ProgressStatus.COMPLETED.value:
                logger.warning("Auto-save blocked for %s/%s: already submitted", survey_id, digest)
                raise AlreadySubmittedError("Survey already submitted")

            entry = StoredResponse(
                survey_id=key[0],
                email=key[1],
                status=ProgressStatus.IN_PROGRESS.value,
                responses=list(payload["responses"]),
                metadata=dict(payload["metadata"]),
                started_at=existing.started_at if existing else now,
                updated_at=parse_timestamp(payload["updatedAt"]) or now,
            )
            self._entries[key] = entry

        logger.info(
            "Auto-saved progress for %s/%s (last page %s)",
            survey_id, digest, entry.metadata.get("lastPageIndex"),
        )
        return entry

    def submit(self, survey: Survey, email: str, payload: Dict[str, Any]) -> StoredResponse:
        """
        Accept the final submission for a respondent.

        Raises:
            InvalidSubmissionError: responses or metadata missing
            SurveyClosedError: survey unpublished or past its end date
            AlreadySubmittedError: a final submission already exists
        """
        digest = hash_email(email)
        if payload.get("responses") is None or payload.get("metadata") is None:
            logger.warning("Submit rejected for %s/%s: missing fields", survey.id, digest)
            raise InvalidSubmissionError("Missing required fields")
        problem = _check_shapes(payload)
        if problem:
            logger.warning("Submit rejected for %s/%s: %s", survey.id, digest, problem)
            raise InvalidSubmissionError(problem)
        if survey.status not in OPEN_STATUSES:
            logger.warning("Submit rejected for %s/%s: survey status %s", survey.id, digest, survey.status)
            raise SurveyClosedError("Survey is not available for responses")

        now = self._clock()
        end_date = parse_timestamp(survey.end_date)
        if end_date is not None and _utc(end_date) <= _utc(now):
            logger.warning("Submit rejected for %s/%s: survey closed %s", survey.id, digest, survey.end_date)
            raise SurveyClosedError("Survey has closed")

        key = self._key(survey.id, email)
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and existing.status == ProgressStatus.COMPLETED.value:
                logger.warning("Submit rejected for %s/%s: already submitted", survey.id, digest)
                raise AlreadySubmittedError("Survey already submitted")

            entry = StoredResponse(
                survey_id=key[0],
                email=key[1],
                status=ProgressStatus.COMPLETED.value,
                responses=list(payload["responses"]),
                metadata=dict(payload["metadata"]),
                started_at=existing.started_at if existing else now,
                updated_at=now,
                submitted_at=now,
            )
            self._entries[key] = entry

        logger.info("Survey response submitted for %s/%s", survey.id, digest)
        return entry
