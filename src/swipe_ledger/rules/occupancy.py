"""
Resolve who is currently inside from the clean tickets.

Clean tickets are properly nested by construction: per subject, every exit
closes an entry at or before it and at most one trailing entry is left
open. A greedy walk over the sorted entries, consuming the next exit at or
after each one, finds that dangling entry without pairing everything. An
exit at the same instant as its entry closes it.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
import logging

from swipe_ledger.models.tickets import (
    DEFAULT_SESSION_CONFIG,
    OccupancyRecord,
    ProcessedTicket,
    SessionLogConfig,
    align_timezone,
)
from swipe_ledger.rules.aggregator import RowLike, classify_and_partition

logger = logging.getLogger(__name__)


def find_unmatched_entry(
    clean: Iterable[ProcessedTicket],
    config: SessionLogConfig = DEFAULT_SESSION_CONFIG
) -> Optional[ProcessedTicket]:
    """
    Find the entry that has no exit after it, if any.

    Args:
        clean: One subject's clean tickets
        config: Entry/exit action labels

    Returns:
        The open entry ticket, or None when every entry is matched
    """
    clean = list(clean)
    entries = sorted(
        (p for p in clean if config.is_entry(p.ticket)),
        key=lambda p: p.ticket.occurred_at
    )
    exits = sorted(
        (p for p in clean if config.is_exit(p.ticket)),
        key=lambda p: p.ticket.occurred_at
    )

    exit_idx = 0
    last_unmatched = None

    for entry in entries:
        entry_time = entry.ticket.occurred_at
        while exit_idx < len(exits) and exits[exit_idx].ticket.occurred_at < entry_time:
            exit_idx += 1
        if exit_idx < len(exits):
            exit_idx += 1  # consumed by this entry
            last_unmatched = None
        else:
            last_unmatched = entry

    return last_unmatched


def resolve_current_occupancy(
    rows: Iterable[RowLike],
    config: Optional[SessionLogConfig] = None,
    category: Optional[str] = None,
    reference_instant: Optional[datetime] = None
) -> List[OccupancyRecord]:
    """
    Get subjects currently inside (valid entry, no exit yet) and for how long.

    Args:
        rows: Event rows or dict-like records, in any order
        config: Entry/exit action labels (default: "Entry"/"Exit")
        category: Only consider rows tagged with this category
        reference_instant: The "current" time (default: now). Pass a past
            instant to replay history. Naive row timestamps are read as UTC
            against an aware reference instant and vice versa.

    Returns:
        One OccupancyRecord per subject with an open entry, in first-seen order
    """
    config = config or DEFAULT_SESSION_CONFIG
    partition = classify_and_partition(rows, config, category=category)

    # Computed once so every record in this call shares the same "now"
    now_local = datetime.now()
    now_utc = datetime.now(timezone.utc)

    records = []
    for subject_id, result in partition.by_subject.items():
        open_entry = find_unmatched_entry(result.clean, config)
        if open_entry is None:
            continue

        entry_at = open_entry.ticket.occurred_at
        if reference_instant is not None:
            as_of = align_timezone(reference_instant, entry_at)
        elif entry_at.tzinfo is not None:
            as_of = now_utc
        else:
            as_of = now_local

        records.append(OccupancyRecord(
            subject_id=subject_id,
            subject_name=result.subject_name,
            entry_ticket=open_entry.ticket,
            entry_at=entry_at,
            elapsed=max(timedelta(0), as_of - entry_at),
            category=open_entry.ticket.category
        ))

    logger.debug(f"{len(records)} subjects currently inside")
    return records
