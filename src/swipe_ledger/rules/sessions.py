"""
Extract completed visits (matched entry/exit pairs) from the clean tickets.
"""

from typing import Iterable, List, Optional
import logging

from swipe_ledger.models.tickets import (
    DEFAULT_SESSION_CONFIG,
    CompletedSession,
    SessionLogConfig,
)
from swipe_ledger.rules.aggregator import RowLike, classify_and_partition

logger = logging.getLogger(__name__)


def extract_completed_sessions(
    rows: Iterable[RowLike],
    config: Optional[SessionLogConfig] = None,
    category: Optional[str] = None
) -> List[CompletedSession]:
    """
    Get subjects with valid entry-exit pairs and their session duration.

    A session is emitted for every clean exit that falls strictly after its
    paired entry, when that entry timestamp matches a clean entry of the
    same subject.
    Duration is the exact difference between the two timestamps.

    Args:
        rows: Event rows or dict-like records, in any order
        config: Entry/exit action labels (default: "Entry"/"Exit")
        category: Only consider rows tagged with this category

    Returns:
        List of CompletedSession, subject by subject in first-seen order
    """
    config = config or DEFAULT_SESSION_CONFIG
    partition = classify_and_partition(rows, config, category=category)

    sessions = []
    for subject_id, result in partition.by_subject.items():
        entries = sorted(
            (p for p in result.clean if config.is_entry(p.ticket)),
            key=lambda p: p.ticket.occurred_at
        )
        exits = sorted(
            (p for p in result.clean if config.is_exit(p.ticket)),
            key=lambda p: p.ticket.occurred_at
        )

        for exit_ticket in exits:
            paired_entry_at = exit_ticket.paired_entry_at
            if paired_entry_at is None:
                continue

            entry = next((e for e in entries if e.ticket.occurred_at == paired_entry_at), None)
            if entry is None:
                continue

            exit_at = exit_ticket.ticket.occurred_at
            # Same-instant pairs close the visit but are not sessions
            if exit_at <= paired_entry_at:
                continue

            sessions.append(CompletedSession(
                subject_id=subject_id,
                subject_name=result.subject_name,
                entry_ticket=entry.ticket,
                exit_ticket=exit_ticket.ticket,
                entry_at=paired_entry_at,
                exit_at=exit_at,
                duration=exit_at - paired_entry_at,
                category=entry.ticket.category
            ))

    logger.debug(f"Extracted {len(sessions)} completed sessions")
    return sessions
