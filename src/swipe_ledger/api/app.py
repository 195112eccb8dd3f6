"""
FastAPI application for swipe-log reconciliation reports.

Endpoints:
- GET /tickets - Clean and errored tickets per subject
- GET /occupancy - Subjects currently inside and for how long
- GET /sessions - Completed entry/exit sessions with durations
- GET /campus-week/{day} - Campus week number of a date
- GET /campus-week/range/{week_number} - Date range of a campus week

Rows are read from the configured events CSV on every request; nothing is
cached between requests.
"""

from datetime import date, datetime
from typing import Dict, List, Optional
import os
import logging

from fastapi import FastAPI, HTTPException, Path, status
from pydantic import BaseModel

from swipe_ledger import config
from swipe_ledger.academic.campus_week import AcademicCalendar
from swipe_ledger.enrichment.names import NameDirectory, enrich_partition, enrich_records
from swipe_ledger.etl.loader import load_events
from swipe_ledger.models.tickets import EventRow, SessionLogConfig, parse_timestamp
from swipe_ledger.rules.aggregator import classify_and_partition
from swipe_ledger.rules.occupancy import resolve_current_occupancy
from swipe_ledger.rules.sessions import extract_completed_sessions
from swipe_ledger.rules.ticket_engine import summarize_errors

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Swipe Ledger API",
    description="Reconciliation reports over entry/exit swipe logs",
    version="1.0.0"
)


class Ticket(BaseModel):
    """Classified ticket model."""
    id: str
    occurred_at: str
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    action: Optional[str] = None
    category: Optional[str] = None
    error: Optional[str] = None
    paired_entry_at: Optional[str] = None


class SubjectSummary(BaseModel):
    """Per-subject ticket counts."""
    subject_id: str
    subject_name: Optional[str] = None
    clean_count: int
    errored_count: int


class TicketReport(BaseModel):
    """Clean/errored ticket report model."""
    total_clean: int
    total_errored: int
    unattributed: int
    errors_by_kind: Dict[str, int]
    subjects: List[SubjectSummary]
    clean: List[Ticket]
    errored: List[Ticket]


class Occupancy(BaseModel):
    """Subject currently inside."""
    subject_id: str
    subject_name: Optional[str] = None
    entry_id: str
    entry_at: str
    elapsed_ms: int
    category: Optional[str] = None


class CompletedSession(BaseModel):
    """Completed entry/exit session model."""
    subject_id: str
    subject_name: Optional[str] = None
    entry_id: str
    exit_id: str
    entry_at: str
    exit_at: str
    duration_ms: int
    category: Optional[str] = None


class CampusWeek(BaseModel):
    """Campus week of a date."""
    day: str
    week_number: Optional[int] = None


class CampusWeekRange(BaseModel):
    """Inclusive date range of a campus week."""
    week_number: int
    start_date: str
    end_date: str


def _parse_optional_timestamp(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} must be an ISO 8601 timestamp"
        ) from exc


def _resolve_category(category: Optional[str]) -> Optional[str]:
    """Fall back to the configured default; "all" selects every category."""
    if category and category.strip().lower() == config.ALL_CATEGORIES:
        return None
    return category or config.DEFAULT_CATEGORY or None


def _session_config() -> SessionLogConfig:
    return SessionLogConfig(config.ENTRY_ACTION, config.EXIT_ACTION)


def load_rows(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None
) -> List[EventRow]:
    """Load event rows from the configured events file."""
    path = config.EVENTS_PATH
    if not os.path.exists(path):
        logger.warning(f"Events file not found: {path}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Swipe-log data is not available"
        )
    try:
        return load_events(path, start=start, end=end, category=category)
    except ValueError as exc:
        logger.error(f"Could not load events from {path}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Swipe-log data could not be read"
        ) from exc


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Swipe Ledger API",
        "version": "1.0.0",
        "endpoints": {
            "tickets": "/tickets",
            "occupancy": "/occupancy",
            "sessions": "/sessions",
            "campus_week": "/campus-week/{day}",
            "campus_week_range": "/campus-week/range/{week_number}"
        }
    }


@app.get("/tickets", response_model=TicketReport)
async def get_tickets(
    category: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    closed_period: bool = False
):
    """
    Get clean and errored tickets.

    Args:
        category: Filter by category (e.g. "Study Session"); "all" ignores
            the configured default category
        start: Only rows at or after this timestamp
        end: Only rows at or before this timestamp
        closed_period: Treat entries without an exit as errors

    Returns:
        Ticket report with per-subject counts
    """
    category = _resolve_category(category)
    rows = load_rows(
        _parse_optional_timestamp(start, "start"),
        _parse_optional_timestamp(end, "end"),
        category
    )

    partition = classify_and_partition(
        rows,
        _session_config(),
        treat_unclosed_entry_as_error=closed_period,
        category=category
    )

    directory = NameDirectory.from_optional_path(config.DIRECTORY_PATH)
    if directory is not None:
        partition = await enrich_partition(partition, directory)

    subjects = []
    clean = []
    errored = []
    for subject_id, result in partition.by_subject.items():
        subjects.append(SubjectSummary(
            subject_id=subject_id,
            subject_name=result.subject_name,
            clean_count=len(result.clean),
            errored_count=len(result.errored)
        ))
        clean.extend(Ticket(**p.to_dict()) for p in result.clean)
        errored.extend(Ticket(**p.to_dict()) for p in result.errored)

    return TicketReport(
        total_clean=len(partition.all_clean),
        total_errored=len(partition.all_errored),
        unattributed=partition.unattributed_count,
        errors_by_kind=summarize_errors(partition.all_errored),
        subjects=subjects,
        clean=clean,
        errored=errored
    )


@app.get("/occupancy", response_model=List[Occupancy])
async def get_occupancy(
    category: Optional[str] = None,
    as_of: Optional[str] = None
):
    """
    Get subjects currently inside (valid entry, no exit yet).

    Args:
        category: Filter by category
        as_of: Reference timestamp (default: now), for historical queries

    Returns:
        List of occupancy records, longest stay first
    """
    category = _resolve_category(category)
    reference_instant = _parse_optional_timestamp(as_of, "as_of")
    rows = load_rows(category=category)

    records = resolve_current_occupancy(
        rows, _session_config(), category=category, reference_instant=reference_instant
    )

    directory = NameDirectory.from_optional_path(config.DIRECTORY_PATH)
    if directory is not None:
        records = await enrich_records(records, directory)

    records.sort(key=lambda r: r.elapsed, reverse=True)
    return [Occupancy(**r.to_dict()) for r in records]


@app.get("/sessions", response_model=List[CompletedSession])
async def get_sessions(
    category: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    limit: int = 500
):
    """
    Get completed entry/exit sessions and their duration.

    Args:
        category: Filter by category
        start: Only rows at or after this timestamp
        end: Only rows at or before this timestamp
        limit: Maximum number of sessions to return

    Returns:
        List of completed sessions, most recent first
    """
    category = _resolve_category(category)
    rows = load_rows(
        _parse_optional_timestamp(start, "start"),
        _parse_optional_timestamp(end, "end"),
        category
    )

    sessions = extract_completed_sessions(rows, _session_config(), category=category)

    directory = NameDirectory.from_optional_path(config.DIRECTORY_PATH)
    if directory is not None:
        sessions = await enrich_records(sessions, directory)

    sessions.sort(key=lambda s: s.exit_at, reverse=True)
    return [CompletedSession(**s.to_dict()) for s in sessions[:limit]]


@app.get("/campus-week/range/{week_number}", response_model=CampusWeekRange)
async def get_campus_week_range(
    week_number: int = Path(..., description="Campus week number")
):
    """Get the inclusive date range of a campus week."""
    try:
        week = AcademicCalendar().campus_week_to_date_range(week_number)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc)
        ) from exc

    return CampusWeekRange(
        week_number=week.week_number,
        start_date=week.start_date.isoformat(),
        end_date=week.end_date.isoformat()
    )


@app.get("/campus-week/{day}", response_model=CampusWeek)
async def get_campus_week(
    day: str = Path(..., description="Date in YYYY-MM-DD format")
):
    """Get the campus week number of a date (null before week 1)."""
    try:
        parsed = date.fromisoformat(day)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="day must be in YYYY-MM-DD format"
        ) from exc

    return CampusWeek(
        day=parsed.isoformat(),
        week_number=AcademicCalendar().date_to_campus_week(parsed)
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
