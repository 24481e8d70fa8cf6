"""
Tests for the submission ledger and runtime payload builders.
"""

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from surveyflow.branching import EvaluationStrategy, NavigationSession
from surveyflow.errors import (
    AlreadySubmittedError,
    InvalidSubmissionError,
    SubmissionError,
    SurveyClosedError,
)
from surveyflow.schemas.survey import Survey
from surveyflow.submissions import (
    SubmissionLedger,
    build_autosave_payload,
    build_submission_payload,
    hash_email,
)

NOW = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


def make_survey(status="published", end_date=None):
    return Survey.from_dict({
        "id": "survey-1",
        "status": status,
        "endDate": end_date,
        "pages": [
            {"questions": [
                {"id": "q1", "type": "singleChoice", "required": True},
                {"id": "q2", "type": "textShort", "visibilityRules": [
                    {"questionId": "q1", "condition": {"operator": "equals", "value": "Other"}},
                ]},
            ]},
            {"questions": [{"id": "q3", "type": "textLong"}]},
        ],
    })


def autosave_body(last_page=0):
    return {
        "responses": [{"questionId": "q1", "value": "A", "pageIndex": 0}],
        "metadata": {"lastPageIndex": last_page, "timeSpent": 10, "pagesVisited": [0]},
        "status": "InProgress",
        "updatedAt": NOW.isoformat(),
    }


def submit_body():
    return {
        "responses": [{"questionId": "q1", "value": "A", "pageIndex": 0}],
        "metadata": {"lastPageIndex": 1, "timeSpent": 30, "pagesVisited": [0, 1]},
    }


@pytest.fixture
def ledger():
    return SubmissionLedger(clock=lambda: NOW)


# ═══════════════════════════════════════════════════════════════
# AUTO-SAVE
# ═══════════════════════════════════════════════════════════════

class TestAutoSave:

    def test_upserts_in_progress(self, ledger):
        first = ledger.auto_save("survey-1", "a@x.io", autosave_body(0))
        second = ledger.auto_save("survey-1", "a@x.io", autosave_body(1))
        assert second.status == "InProgress"
        assert second.metadata["lastPageIndex"] == 1
        assert second.started_at == first.started_at

    @pytest.mark.parametrize("field", ["responses", "metadata", "status", "updatedAt"])
    def test_missing_field_rejected(self, ledger, field):
        body = autosave_body()
        del body[field]
        with pytest.raises(InvalidSubmissionError, match=field):
            ledger.auto_save("survey-1", "a@x.io", body)

    @pytest.mark.parametrize("field,value", [
        ("metadata", "oops"),
        ("metadata", [["lastPageIndex", 0]]),
        ("responses", 42),
        ("responses", {"q1": "A"}),
    ])
    def test_wrong_shape_rejected(self, ledger, field, value):
        body = autosave_body()
        body[field] = value
        with pytest.raises(InvalidSubmissionError, match=field):
            ledger.auto_save("survey-1", "a@x.io", body)
        assert ledger.get("survey-1", "a@x.io") is None

    def test_wrong_status_rejected(self, ledger):
        body = autosave_body()
        body["status"] = "Completed"
        with pytest.raises(InvalidSubmissionError):
            ledger.auto_save("survey-1", "a@x.io", body)
        assert ledger.get("survey-1", "a@x.io") is None

    def test_blocked_after_submit(self, ledger):
        ledger.submit(make_survey(), "a@x.io", submit_body())
        with pytest.raises(AlreadySubmittedError):
            ledger.auto_save("survey-1", "a@x.io", autosave_body())
        assert ledger.get("survey-1", "a@x.io").status == "Completed"


# ═══════════════════════════════════════════════════════════════
# SUBMIT
# ═══════════════════════════════════════════════════════════════

class TestSubmit:

    def test_completes_response(self, ledger):
        ledger.auto_save("survey-1", "a@x.io", autosave_body())
        entry = ledger.submit(make_survey(), "a@x.io", submit_body())
        assert entry.status == "Completed"
        assert entry.submitted_at == NOW
        assert entry.started_at == NOW

    def test_second_submit_rejected(self, ledger):
        ledger.submit(make_survey(), "a@x.io", submit_body())
        with pytest.raises(AlreadySubmittedError):
            ledger.submit(make_survey(), "a@x.io", submit_body())

    def test_email_is_case_insensitive(self, ledger):
        ledger.submit(make_survey(), "Ada@X.io", submit_body())
        with pytest.raises(AlreadySubmittedError):
            ledger.submit(make_survey(), " ada@x.IO", submit_body())

    def test_other_respondent_unaffected(self, ledger):
        ledger.submit(make_survey(), "a@x.io", submit_body())
        assert ledger.submit(make_survey(), "b@x.io", submit_body()).status == "Completed"

    @pytest.mark.parametrize("field", ["responses", "metadata"])
    def test_missing_field_rejected(self, ledger, field):
        body = submit_body()
        del body[field]
        with pytest.raises(InvalidSubmissionError):
            ledger.submit(make_survey(), "a@x.io", body)

    @pytest.mark.parametrize("field,value", [("metadata", "oops"), ("responses", 7)])
    def test_wrong_shape_rejected(self, ledger, field, value):
        body = submit_body()
        body[field] = value
        with pytest.raises(InvalidSubmissionError, match=field):
            ledger.submit(make_survey(), "a@x.io", body)
        assert ledger.get("survey-1", "a@x.io") is None

    @pytest.mark.parametrize("status", ["draft", "closed", "archived"])
    def test_unpublished_survey_rejected(self, ledger, status):
        with pytest.raises(SurveyClosedError):
            ledger.submit(make_survey(status=status), "a@x.io", submit_body())

    def test_live_survey_accepted(self, ledger):
        assert ledger.submit(make_survey(status="live"), "a@x.io", submit_body()).status == "Completed"

    def test_past_end_date_rejected(self, ledger):
        past = (NOW - timedelta(days=1)).isoformat()
        with pytest.raises(SurveyClosedError):
            ledger.submit(make_survey(end_date=past), "a@x.io", submit_body())

    def test_future_end_date_accepted(self, ledger):
        future = (NOW + timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ")
        assert ledger.submit(make_survey(end_date=future), "a@x.io", submit_body())

    def test_error_hierarchy(self):
        assert issubclass(InvalidSubmissionError, SubmissionError)
        assert issubclass(SurveyClosedError, SubmissionError)
        assert issubclass(AlreadySubmittedError, SubmissionError)

    def test_concurrent_submits_accept_exactly_one(self, ledger):
        survey = make_survey()
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                ledger.submit(survey, "race@x.io", submit_body())
                results.append("ok")
            except AlreadySubmittedError:
                results.append("rejected")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("rejected") == 7


class TestRecords:

    def test_records_for_survey(self, ledger):
        ledger.auto_save("survey-1", "a@x.io", autosave_body(1))
        ledger.submit(make_survey(), "b@x.io", submit_body())
        ledger.auto_save("survey-2", "c@x.io", autosave_body())
        records = ledger.records_for("survey-1")
        assert set(records) == {"a@x.io", "b@x.io"}
        assert records["a@x.io"].last_page_index == 1
        assert records["b@x.io"].status == "Completed"

    def test_hash_email(self):
        digest = hash_email("a@x.io")
        assert len(digest) == 12
        assert digest == hash_email("a@x.io")
        assert "a@x.io" not in digest

    def test_stored_response_to_dict(self, ledger):
        data = ledger.submit(make_survey(), "a@x.io", submit_body()).to_dict()
        assert data["respondentEmail"] == "a@x.io"
        assert data["status"] == "Completed"
        assert data["submittedAt"] == NOW.isoformat()


# ═══════════════════════════════════════════════════════════════
# PAYLOADS
# ═══════════════════════════════════════════════════════════════

class TestPayloads:

    def test_hidden_answers_excluded(self):
        session = NavigationSession(make_survey(), EvaluationStrategy.GROUPED_OR)
        session.answer("q1", "Other")
        session.answer("q2", "free text")
        session.answer("q1", "A")  # hides q2 again
        payload = build_submission_payload(session, 12)
        assert [a["questionId"] for a in payload["responses"]] == ["q1"]
        assert payload["responses"][0]["pageIndex"] == 0

    def test_metadata(self):
        session = NavigationSession(make_survey(), EvaluationStrategy.GROUPED_OR)
        session.answer("q1", "A")
        session.go_next()
        session.go_previous()
        session.go_next()
        payload = build_submission_payload(session, 42.7)
        assert payload["metadata"] == {"lastPageIndex": 1, "timeSpent": 42, "pagesVisited": [0, 1]}

    def test_autosave_payload_accepted_by_ledger(self, ledger):
        session = NavigationSession(make_survey(), EvaluationStrategy.FLAT_SEQUENTIAL)
        session.answer("q1", "A")
        payload = build_autosave_payload(session, 5, now=NOW)
        assert payload["status"] == "InProgress"
        assert payload["updatedAt"] == NOW.isoformat()
        entry = ledger.auto_save("survey-1", "a@x.io", payload)
        assert entry.updated_at == NOW
