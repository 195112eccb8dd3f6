"""
Load swipe-log rows from a CSV export.

Stands in for the row store: reads the table, optionally renames source
columns to the canonical ones, filters by time range and category and
returns EventRow objects ordered by timestamp.
"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

import pandas as pd

from swipe_ledger.models.tickets import (
    ACTION_FIELD,
    ID_FIELD,
    OCCURRED_AT_FIELD,
    SUBJECT_ID_FIELD,
    EventRow,
    align_timezone,
)
from swipe_ledger.rules.aggregator import filter_by_category

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [ID_FIELD, OCCURRED_AT_FIELD, SUBJECT_ID_FIELD, ACTION_FIELD]

# Column names of the study_session_logs / front_desk_logs exports
SESSION_LOG_COLUMNS = {
    "created_at": OCCURRED_AT_FIELD,
    "scholar_uid": SUBJECT_ID_FIELD,
    "scholar_name": "subject_name",
    "action_type": ACTION_FIELD,
    "session_type": "category",
}


def load_events(
    path: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    columns: Optional[Dict[str, str]] = None
) -> List[EventRow]:
    """
    Load event rows from a CSV file.

    Args:
        path: CSV file path
        start: Keep rows at or after this instant
        end: Keep rows at or before this instant
        category: Keep only rows tagged with this category
        columns: Source column -> canonical column renames

    Returns:
        List of EventRow sorted by occurred_at

    Raises:
        ValueError: if a required column is missing or a row is malformed
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    if columns:
        df = df.rename(columns=columns)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing required columns: {', '.join(missing)}")

    rows = [EventRow.from_record(record) for record in df.to_dict("records")]
    logger.info(f"Loaded {len(rows)} events from {path}")

    if start is not None:
        rows = [r for r in rows if r.occurred_at >= align_timezone(start, r.occurred_at)]
    if end is not None:
        rows = [r for r in rows if r.occurred_at <= align_timezone(end, r.occurred_at)]
    rows = filter_by_category(rows, category)

    return sorted(rows, key=lambda r: r.occurred_at)
