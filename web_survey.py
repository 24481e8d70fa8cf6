#!/usr/bin/env python3
"""
Survey Preview & Runtime API

JSON endpoints around the branching engine:
1. Sessions - start a respondent/preview session, answer, navigate
2. Responses - auto-save and final submit through the submission ledger
3. Progress - creator dashboard rows for a survey

Run:
    python3 web_survey.py

Then call: http://localhost:5002/api/...
"""

import logging
import secrets
import threading

from flask import Flask, request, jsonify

from surveyflow.branching.engine import NavigationSession
from surveyflow.config import SurveyFlowConfig
from surveyflow.errors import (
    AlreadySubmittedError,
    InvalidSubmissionError,
    SurveyClosedError,
    SurveyFlowError,
)
from surveyflow.progress import paginate, project_respondents
from surveyflow.schemas.survey import Survey
from surveyflow.submissions import SubmissionLedger
from surveyflow.validation import validate_survey

logger = logging.getLogger(__name__)

config = SurveyFlowConfig.from_env()

app = Flask(__name__)

# Global state
sessions = {}   # Navigation sessions by id
surveys = {}    # Survey definitions registered for responses/progress
sessions_lock = threading.Lock()
surveys_lock = threading.Lock()
ledger = SubmissionLedger()


def _error(message, status=400):
    return jsonify({'error': message}), status


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_session(session_id):
    with sessions_lock:
        return sessions.get(session_id)


def _get_survey(survey_id):
    with surveys_lock:
        return surveys.get(survey_id)


def _session_response(session_id, session, **extra):
    body = {'session_id': session_id, 'state': session.snapshot()}
    body.update(extra)
    return jsonify(body)


# =============================================================================
# SESSIONS
# =============================================================================

@app.route('/api/sessions', methods=['POST'])
def start_session():
    data = _json_body()
    strategy = data.get('strategy') or config.default_strategy.value

    try:
        survey = Survey.from_dict(data.get('survey'))
        session = NavigationSession(
            survey,
            strategy,
            start_page_index=int(data.get('startPageIndex', 0)),
        )
    except (SurveyFlowError, ValueError, TypeError) as exc:
        return _error(str(exc))

    session_id = secrets.token_hex(8)
    with sessions_lock:
        sessions[session_id] = session

    logger.info("Started session %s on survey '%s' (%s)", session_id, survey.id, session.strategy.value)
    return _session_response(
        session_id,
        session,
        warnings=validate_survey(survey),
        autosave_interval_seconds=config.autosave_interval_seconds,
    )


@app.route('/api/sessions/<session_id>', methods=['GET'])
def get_session(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)
    return _session_response(session_id, session)


@app.route('/api/sessions/<session_id>/answer', methods=['POST'])
def answer(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)

    data = _json_body()
    question_id = data.get('questionId')
    if not question_id:
        return _error('questionId is required')

    action = session.answer(str(question_id), data.get('value'))
    return _session_response(session_id, session, action=action.to_dict() if action else None)


@app.route('/api/sessions/<session_id>/next', methods=['POST'])
def next_page(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)
    moved = session.go_next()
    return _session_response(session_id, session, moved=moved)


@app.route('/api/sessions/<session_id>/previous', methods=['POST'])
def previous_page(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)
    moved = session.go_previous()
    return _session_response(session_id, session, moved=moved)


@app.route('/api/sessions/<session_id>/jump', methods=['POST'])
def jump(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)

    data = _json_body()
    try:
        target = int(data.get('targetPageIndex'))
    except (TypeError, ValueError):
        return _error('targetPageIndex must be an integer')

    session.jump_to(target)
    return _session_response(session_id, session)


@app.route('/api/sessions/<session_id>/reset', methods=['POST'])
def reset(session_id):
    session = _get_session(session_id)
    if session is None:
        return _error('Invalid session', 404)

    data = _json_body()
    try:
        start = int(data.get('startPageIndex', 0))
    except (TypeError, ValueError):
        return _error('startPageIndex must be an integer')

    session.reset(start)
    return _session_response(session_id, session)


# =============================================================================
# RESPONSES & PROGRESS
# =============================================================================

@app.route('/api/surveys/<survey_id>', methods=['PUT'])
def register_survey(survey_id):
    data = _json_body()
    try:
        survey = Survey.from_dict(data)
    except SurveyFlowError as exc:
        return _error(str(exc))
    survey.id = survey_id

    with surveys_lock:
        surveys[survey_id] = survey
    return jsonify({'survey_id': survey_id, 'warnings': validate_survey(survey)})


def _respondent_email(data):
    email = str(data.get('email') or '').strip().lower()
    return email or None


@app.route('/api/surveys/<survey_id>/responses/autosave', methods=['POST'])
def autosave(survey_id):
    if _get_survey(survey_id) is None:
        return _error('Survey not found', 404)

    data = _json_body()
    email = _respondent_email(data)
    if email is None:
        return _error('email is required')

    try:
        ledger.auto_save(survey_id, email, data)
    except AlreadySubmittedError as exc:
        return _error(str(exc), 409)
    except InvalidSubmissionError as exc:
        return _error(str(exc))
    return jsonify({'message': 'Progress auto-saved'})


@app.route('/api/surveys/<survey_id>/responses/submit', methods=['POST'])
def submit(survey_id):
    survey = _get_survey(survey_id)
    if survey is None:
        return _error('Survey not found', 404)

    data = _json_body()
    email = _respondent_email(data)
    if email is None:
        return _error('email is required')

    try:
        entry = ledger.submit(survey, email, data)
    except AlreadySubmittedError as exc:
        return _error(str(exc), 409)
    except SurveyClosedError as exc:
        return _error(str(exc), 403)
    except InvalidSubmissionError as exc:
        return _error(str(exc))
    return jsonify({'message': 'Survey submitted', 'response': entry.to_dict()})


@app.route('/api/surveys/<survey_id>/progress', methods=['GET'])
def progress(survey_id):
    survey = _get_survey(survey_id)
    if survey is None:
        return _error('Survey not found', 404)

    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', config.progress_page_size, type=int)

    records = ledger.records_for(survey_id)
    emails = survey.allowed_respondents or sorted(records)
    rows = project_respondents(emails, survey.page_count, records)
    body = paginate(rows, page, limit).to_dict()
    body['survey'] = {
        'id': survey.id,
        'title': survey.title,
        'totalPages': survey.page_count,
        'totalRespondents': len(rows),
    }
    return jsonify(body)


if __name__ == '__main__':
    logging.basicConfig(level=config.log_level)
    print("""
╔═══════════════════════════════════════════════════════════════╗
║     SURVEY PREVIEW & RUNTIME API                               ║
╠═══════════════════════════════════════════════════════════════╣
║  Sessions: POST /api/sessions, /answer, /next, /previous       ║
║  Responses: /api/surveys/<id>/responses/autosave | submit      ║
║  Progress: GET /api/surveys/<id>/progress                      ║
╚═══════════════════════════════════════════════════════════════╝

Starting web server on http://localhost:5002
    """)

    app.run(debug=True, host='0.0.0.0', port=5002)
