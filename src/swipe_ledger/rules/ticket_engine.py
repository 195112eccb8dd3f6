"""
Deterministic state machine that classifies one subject's swipe tickets.

Walks the subject's rows in chronological order tracking whether the
subject is inside. Each row comes out either clean or errored:

- DOUBLE_ENTER: entry while already inside
- EXIT_BEFORE_ENTER: first exit with no entry before it
- DOUBLE_EXIT: exit right after another exit
- ENTRY_WITHOUT_SAME_DAY_EXIT: entry still open when a closed period ends
  (only when closed-period semantics are requested)

Rows whose action is neither the entry nor the exit label are always clean
and leave the state untouched. That includes a run of exits, so Exit,
Note, Exit ends in DOUBLE_EXIT rather than EXIT_BEFORE_ENTER.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple
import logging

from swipe_ledger.models.tickets import (
    DEFAULT_SESSION_CONFIG,
    EventRow,
    ProcessedTicket,
    SessionLogConfig,
    TicketError,
)

logger = logging.getLogger(__name__)


class TicketEngine:
    """Rule engine for classifying a subject's entry/exit tickets."""

    def __init__(self, config: Optional[SessionLogConfig] = None):
        """Initialize the engine with the entry/exit action labels."""
        self.config = config or DEFAULT_SESSION_CONFIG

    def classify(
        self,
        tickets: Sequence[EventRow],
        treat_unclosed_entry_as_error: bool = False
    ) -> Tuple[List[ProcessedTicket], List[ProcessedTicket]]:
        """
        Classify one subject's tickets.

        Args:
            tickets: The subject's rows, already sorted by occurred_at
            treat_unclosed_entry_as_error: Closed-period semantics; an entry
                still open at the end is moved to the errored list

        Returns:
            Tuple of (clean, errored) ticket lists, each in input order
        """
        clean: List[ProcessedTicket] = []
        errored: List[ProcessedTicket] = []

        open_entry: Optional[EventRow] = None
        open_entry_index = -1
        last_entry_at: Optional[datetime] = None
        previous_action_was_exit = False

        for ticket in tickets:
            if self.config.is_entry(ticket):
                previous_action_was_exit = False
                if open_entry is not None:
                    errored.append(ProcessedTicket(ticket, error=TicketError.DOUBLE_ENTER))
                else:
                    open_entry = ticket
                    open_entry_index = len(clean)
                    last_entry_at = ticket.occurred_at
                    clean.append(ProcessedTicket(ticket))

            elif self.config.is_exit(ticket):
                if open_entry is not None:
                    clean.append(ProcessedTicket(ticket, paired_entry_at=open_entry.occurred_at))
                    open_entry = None
                elif previous_action_was_exit:
                    errored.append(ProcessedTicket(
                        ticket,
                        error=TicketError.DOUBLE_EXIT,
                        paired_entry_at=last_entry_at
                    ))
                else:
                    errored.append(ProcessedTicket(ticket, error=TicketError.EXIT_BEFORE_ENTER))
                previous_action_was_exit = True

            else:
                clean.append(ProcessedTicket(ticket))

        if treat_unclosed_entry_as_error and open_entry is not None:
            del clean[open_entry_index]
            errored.append(ProcessedTicket(
                open_entry,
                error=TicketError.ENTRY_WITHOUT_SAME_DAY_EXIT
            ))

        return clean, errored


def summarize_errors(errored: Sequence[ProcessedTicket]) -> dict:
    """
    Count errored tickets by error kind.

    Args:
        errored: Errored tickets

    Returns:
        Dictionary mapping error code to count, in TicketError order
    """
    counts = {kind.value: 0 for kind in TicketError}
    for processed in errored:
        counts[processed.error.value] += 1
    return counts
