"""
Respondent progress projection for creator dashboards.

Projects persisted response records onto a per-respondent progress row
(how many pages in, what percentage) and orders the rows for display.
This is read-only: records are never modified.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Mapping


class ProgressStatus(str, Enum):
    COMPLETED = "Completed"
    IN_PROGRESS = "InProgress"
    PENDING = "Pending"
    NOT_STARTED = "Not Started"


# Dashboard ordering; higher sorts first, unknown statuses rank 0
STATUS_RANK = {
    ProgressStatus.COMPLETED: 3,
    ProgressStatus.IN_PROGRESS: 2,
    ProgressStatus.NOT_STARTED: 1,
}


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Accept datetimes or ISO-8601 strings (with or without a trailing Z)."""
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _int(raw: Any, default: int = 0) -> int:
    if isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)) and math.isfinite(raw):
        return int(raw)
    return default


@dataclass
class ResponseRecord:
    """Persisted response document, as far as progress is concerned."""
    email: str
    status: str = ProgressStatus.PENDING.value
    last_page_index: int = 0
    time_spent: int = 0                      # Seconds
    pages_visited: List[int] = field(default_factory=list)
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def last_activity(self) -> Optional[datetime]:
        return self.updated_at or self.started_at

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResponseRecord":
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        visited = metadata.get("pagesVisited")
        return cls(
            email=str(data.get("respondentEmail") or data.get("email") or "").strip().lower(),
            status=str(data.get("status") or ProgressStatus.PENDING.value),
            last_page_index=_int(metadata.get("lastPageIndex")),
            time_spent=_int(metadata.get("timeSpent")),
            pages_visited=[_int(p) for p in visited] if isinstance(visited, list) else [],
            started_at=parse_timestamp(data.get("startedAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class ProgressRow:
    """One respondent's progress as shown on the dashboard."""
    email: str
    status: str
    progress: int
    total_pages: int
    completion_percentage: int
    time_spent: int = 0
    pages_visited: List[int] = field(default_factory=list)
    started_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @property
    def rank(self) -> int:
        try:
            return STATUS_RANK.get(ProgressStatus(self.status), 0)
        except ValueError:
            return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "status": self.status,
            "progress": self.progress,
            "totalPages": self.total_pages,
            "completionPercentage": self.completion_percentage,
            "timeSpent": self.time_spent,
            "pagesVisited": list(self.pages_visited),
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


def percentage(progress: int, total_pages: int) -> int:
    """Whole-number percentage, rounding halves up."""
    if total_pages <= 0:
        return 0
    return int(math.floor(progress / total_pages * 100 + 0.5))


def project_progress(email: str, total_pages: int, record: Optional[ResponseRecord]) -> ProgressRow:
    """
    Project one respondent's record onto a progress row.

    Completed records report every page done; in-progress records count
    pages up to and including the last one saved (never beyond the
    survey length); missing records are "Not Started".
    """
    total_pages = max(total_pages, 0)
    if record is None:
        return ProgressRow(
            email=email,
            status=ProgressStatus.NOT_STARTED.value,
            progress=0,
            total_pages=total_pages,
            completion_percentage=0,
        )

    progress = 0
    completion = 0
    if record.status == ProgressStatus.COMPLETED.value:
        progress = total_pages
        completion = 100
    elif record.status == ProgressStatus.IN_PROGRESS.value:
        progress = min(max(record.last_page_index, 0) + 1, total_pages)
        completion = percentage(progress, total_pages)

    return ProgressRow(
        email=email,
        status=record.status,
        progress=progress,
        total_pages=total_pages,
        completion_percentage=completion,
        time_spent=record.time_spent,
        pages_visited=list(record.pages_visited),
        started_at=record.started_at,
        last_updated=record.last_activity,
    )


def _sort_key(row: ProgressRow):
    has_activity = row.last_updated is not None
    stamp = row.last_updated.timestamp() if has_activity else 0.0
    return (-row.rank, 0 if has_activity else 1, -stamp)


def sort_rows(rows: Iterable[ProgressRow]) -> List[ProgressRow]:
    """Order by status rank, then most recent activity; inactive rows last."""
    return sorted(rows, key=_sort_key)


def project_respondents(
    emails: Iterable[str],
    total_pages: int,
    records: Mapping[str, ResponseRecord],
) -> List[ProgressRow]:
    """Build and order progress rows for every invited respondent."""
    rows = []
    for email in emails:
        key = email.strip().lower()
        rows.append(project_progress(key, total_pages, records.get(key)))
    return sort_rows(rows)


@dataclass
class ProgressPage:
    rows: List[ProgressRow]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "respondentProgress": [r.to_dict() for r in self.rows],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
                "hasNext": self.has_next,
                "hasPrev": self.has_prev,
            },
        }


def paginate(rows: List[ProgressRow], page: int = 1, limit: int = 20) -> ProgressPage:
    """Slice sorted rows for one dashboard page (1-based)."""
    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    total = len(rows)
    return ProgressPage(
        rows=rows[start:start + limit],
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        has_next=page * limit < total,
        has_prev=page > 1,
    )
