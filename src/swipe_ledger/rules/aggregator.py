"""
Group swipe rows by subject and classify every subject's tickets.

Rows are filtered by category once, grouped by subject id, sorted by
timestamp and handed to the TicketEngine one subject at a time.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging

from swipe_ledger.models.tickets import (
    EventRow,
    ProcessedTicket,
    SessionLogConfig,
    SubjectTickets,
    TicketPartition,
)
from swipe_ledger.rules.ticket_engine import TicketEngine

logger = logging.getLogger(__name__)

RowLike = Union[EventRow, Mapping[str, Any]]


def to_event_rows(rows: Iterable[RowLike]) -> List[EventRow]:
    """Convert dict-like records to EventRow, passing EventRow through."""
    return [row if isinstance(row, EventRow) else EventRow.from_record(row) for row in rows]


def filter_by_category(rows: Iterable[EventRow], category: Optional[str] = None) -> List[EventRow]:
    """
    Keep only rows tagged with the given category.

    Args:
        rows: Event rows
        category: Category label; None or "" keeps every row

    Returns:
        Filtered list of rows, input order preserved
    """
    if not category:
        return list(rows)
    return [row for row in rows if (row.category or "").strip() == category]


def group_by_subject(rows: Iterable[EventRow]) -> Tuple[Dict[str, List[EventRow]], int]:
    """
    Group rows by subject id in first-seen order.

    Returns:
        Tuple of (rows by subject id, number of rows without a subject id)
    """
    by_subject: Dict[str, List[EventRow]] = {}
    unattributed = 0

    for row in rows:
        if not row.subject_id:
            unattributed += 1
            continue
        by_subject.setdefault(row.subject_id, []).append(row)

    return by_subject, unattributed


def classify_and_partition(
    rows: Iterable[RowLike],
    config: Optional[SessionLogConfig] = None,
    treat_unclosed_entry_as_error: bool = False,
    category: Optional[str] = None
) -> TicketPartition:
    """
    Categorize all tickets by subject as clean or errored.

    Args:
        rows: Event rows or dict-like records, in any order
        config: Entry/exit action labels (default: "Entry"/"Exit")
        treat_unclosed_entry_as_error: Closed-period semantics, for data
            whose day is over (an entry left open becomes errored)
        category: Only process rows tagged with this category

    Returns:
        TicketPartition with per-subject results and flattened totals
    """
    engine = TicketEngine(config)
    filtered = filter_by_category(to_event_rows(rows), category)
    grouped, unattributed = group_by_subject(filtered)

    if unattributed:
        logger.debug(f"Dropped {unattributed} rows without a subject id")

    by_subject: Dict[str, SubjectTickets] = {}
    all_clean: List[ProcessedTicket] = []
    all_errored: List[ProcessedTicket] = []

    for subject_id, tickets in grouped.items():
        # sorted() is stable: equal timestamps keep their input order
        ordered = sorted(tickets, key=lambda row: row.occurred_at)
        clean, errored = engine.classify(ordered, treat_unclosed_entry_as_error)

        by_subject[subject_id] = SubjectTickets(
            clean=tuple(clean),
            errored=tuple(errored),
            subject_name=ordered[0].subject_name
        )
        all_clean.extend(clean)
        all_errored.extend(errored)

    logger.debug(
        f"Classified {len(all_clean) + len(all_errored)} tickets for {len(by_subject)} subjects: "
        f"{len(all_clean)} clean, {len(all_errored)} errored"
    )

    return TicketPartition(
        by_subject=by_subject,
        all_clean=tuple(all_clean),
        all_errored=tuple(all_errored),
        unattributed_count=unattributed
    )
