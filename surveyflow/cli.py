"""CLI for replaying answers through a survey and printing respondent progress."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .branching.engine import NavigationSession
from .config import SurveyFlowConfig
from .errors import SurveyFlowError
from .progress import ResponseRecord, project_respondents
from .schemas.survey import Survey
from .validation import validate_survey


def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _parse_event(event: Any) -> dict:
    """Events are {"questionId": ..., "value": ...} or an {"action": "next"} style step."""
    if not isinstance(event, dict):
        raise SurveyFlowError(f"Answer event must be an object, got {event!r}")
    return event


def _page_index(event: dict, key: str) -> int:
    raw = event.get(key, 0)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise SurveyFlowError(f"{key} must be an integer, got {raw!r}") from None


def walk(survey: Survey, events: list, strategy: str, out=None) -> NavigationSession:
    """Replay answer and navigation events, printing one line per step."""
    out = out or sys.stdout
    session = NavigationSession(survey, strategy)
    print(f"start  page={session.current_page_index} visible={[q.id for q in session.visible_questions()]}", file=out)

    for raw in events:
        event = _parse_event(raw)
        step = event.get("action")
        if step == "next":
            moved = session.go_next()
            detail = "moved" if moved else f"blocked missing={session.missing_required()}"
            print(f"next   page={session.current_page_index} {detail}", file=out)
        elif step == "previous":
            session.go_previous()
            print(f"prev   page={session.current_page_index}", file=out)
        elif step == "jump":
            session.jump_to(_page_index(event, "targetPageIndex"))
            print(f"jump   page={session.current_page_index}", file=out)
        elif step == "reset":
            session.reset(_page_index(event, "startIndex"))
            print(f"reset  page={session.current_page_index}", file=out)
        else:
            question_id = str(event.get("questionId", ""))
            action = session.answer(question_id, event.get("value"))
            fired = f" action={action.to_dict()}" if action else ""
            print(f"answer {question_id}={event.get('value')!r} page={session.current_page_index}{fired}", file=out)

    print(json.dumps(session.snapshot(), indent=2), file=out)
    return session


def main(argv: list[str] | None = None) -> int:
    config = SurveyFlowConfig.from_env()
    parser = argparse.ArgumentParser(
        description="Survey branching and progress tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m surveyflow.cli walk --survey survey.json --answers events.json
  python -m surveyflow.cli walk --survey survey.json --answers events.json --strategy flat_sequential
  python -m surveyflow.cli progress --survey survey.json --responses responses.json
        """,
    )
    parser.add_argument("--log-level", default=config.log_level, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    walk_parser = sub.add_parser("walk", help="Replay answer events through a session")
    walk_parser.add_argument("--survey", "-s", required=True, help="Survey definition JSON")
    walk_parser.add_argument("--answers", "-a", required=True, help="JSON list of answer/navigation events")
    walk_parser.add_argument(
        "--strategy",
        default=config.default_strategy.value,
        choices=["flat_sequential", "grouped_or"],
        help="Visibility evaluation strategy",
    )

    progress_parser = sub.add_parser("progress", help="Print dashboard progress rows")
    progress_parser.add_argument("--survey", "-s", required=True, help="Survey definition JSON")
    progress_parser.add_argument("--responses", "-r", required=True, help="JSON list of response records")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    try:
        survey = Survey.from_dict(_load_json(args.survey))
        for warning in validate_survey(survey):
            print(f"warning: {warning}", file=sys.stderr)

        if args.command == "walk":
            events = _load_json(args.answers)
            if not isinstance(events, list):
                raise SurveyFlowError("Answers file must contain a JSON list")
            walk(survey, events, args.strategy)
        else:
            raw_records = _load_json(args.responses)
            records = {}
            if not isinstance(raw_records, list):
                raise SurveyFlowError("Responses file must contain a JSON list")
            for raw in raw_records:
                if not isinstance(raw, dict):
                    raise SurveyFlowError(f"Response record must be an object, got {raw!r}")
                record = ResponseRecord.from_dict(raw)
                records[record.email] = record
            emails = survey.allowed_respondents or list(records)
            rows = project_respondents(emails, survey.page_count, records)
            print(json.dumps([r.to_dict() for r in rows], indent=2))
    except (OSError, json.JSONDecodeError, SurveyFlowError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
