"""Data models for swipe-log reconciliation.

Defines the canonical event row, the configuration that decides which
action labels count as entries and exits, and the result shapes produced
by the rule engine:

- EventRow: one observed swipe
- ProcessedTicket: a row annotated with its classification outcome
- SubjectTickets / TicketPartition: classifier output per subject and in total
- OccupancyRecord: a subject who is currently present
- CompletedSession: a matched entry/exit pair with its duration

All result classes are frozen; they are built once per call and never
updated in place.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from swipe_ledger.config import ENTRY_ACTION, EXIT_ACTION

# Canonical column names of an event record
ID_FIELD = "id"
OCCURRED_AT_FIELD = "occurred_at"
SUBJECT_ID_FIELD = "subject_id"
SUBJECT_NAME_FIELD = "subject_name"
ACTION_FIELD = "action"
CATEGORY_FIELD = "category"

CORE_FIELDS = (
    ID_FIELD,
    OCCURRED_AT_FIELD,
    SUBJECT_ID_FIELD,
    SUBJECT_NAME_FIELD,
    ACTION_FIELD,
    CATEGORY_FIELD,
)

_TIMESTAMP_FORMATS = ['%Y-%m-%d %H:%M:%S', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M']


class TicketError(str, Enum):
    """Why a ticket could not be part of a valid visit.

    DOUBLE_EXIT: second consecutive exit with no entry in between
    DOUBLE_ENTER: entry while the subject is already inside
    EXIT_BEFORE_ENTER: first exit with no entry recorded before it
    EXIT_WITHOUT_ENTER: exit with no matching entry
    ENTRY_WITHOUT_SAME_DAY_EXIT: entry still open at the end of a closed period
    """

    DOUBLE_EXIT = "DOUBLE_EXIT"
    DOUBLE_ENTER = "DOUBLE_ENTER"
    EXIT_BEFORE_ENTER = "EXIT_BEFORE_ENTER"
    EXIT_WITHOUT_ENTER = "EXIT_WITHOUT_ENTER"
    ENTRY_WITHOUT_SAME_DAY_EXIT = "ENTRY_WITHOUT_SAME_DAY_EXIT"


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp from a datetime, pandas Timestamp or string.

    Raises:
        ValueError: if the value is missing or not a recognizable timestamp
    """
    if value is pd.NaT:
        raise ValueError("Timestamp is missing")

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()

    if isinstance(value, datetime):
        return value

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in _TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise ValueError(f"Unrecognized timestamp: {value!r}")

    raise ValueError(f"Timestamp is missing or not a string/datetime: {value!r}")


def _clean_text(value: Any) -> Optional[str]:
    """Normalize an optional text cell; blanks and NaN become None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def align_timezone(instant: datetime, reference: datetime) -> datetime:
    """
    Match an instant to the timezone awareness of a reference timestamp.

    Naive timestamps are read as UTC, so a naive instant compared with an
    aware reference gains UTC, and an aware instant compared with a naive
    reference is converted to naive UTC.
    """
    if instant.tzinfo is None and reference.tzinfo is not None:
        return instant.replace(tzinfo=timezone.utc)
    if instant.tzinfo is not None and reference.tzinfo is None:
        return instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant


@dataclass(frozen=True)
class SessionLogConfig:
    """Action labels that mark entries and exits.

    Override when a log table uses different action values.

    Attributes:
        entry_action: Label of an entry swipe (default: "Entry").
        exit_action: Label of an exit swipe (default: "Exit").
    """

    entry_action: str = ENTRY_ACTION
    exit_action: str = EXIT_ACTION

    def __post_init__(self):
        if not (self.entry_action or "").strip() or not (self.exit_action or "").strip():
            raise ValueError("entry_action and exit_action must be non-empty")
        if self.entry_action.strip() == self.exit_action.strip():
            raise ValueError(
                f"entry_action and exit_action must differ (both {self.entry_action!r})"
            )

    def is_entry(self, row: "EventRow") -> bool:
        return (row.action or "").strip() == self.entry_action.strip()

    def is_exit(self, row: "EventRow") -> bool:
        return (row.action or "").strip() == self.exit_action.strip()


DEFAULT_SESSION_CONFIG = SessionLogConfig()


@dataclass(frozen=True)
class EventRow:
    """One observed swipe.

    Attributes:
        id: Unique record identifier.
        occurred_at: When the swipe happened.
        subject_id: Who swiped; rows without one are never grouped.
        subject_name: Display name recorded with the row, if any.
        action: Free-text action label (e.g. "Entry", "Exit").
        category: Optional category tag (e.g. "Study Session").
        extra: Any further columns, carried through untouched.
    """

    id: str
    occurred_at: datetime
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    action: Optional[str] = None
    category: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "EventRow":
        """
        Build an event row from a dict-like record.

        Args:
            record: Mapping with the canonical keys; unknown keys land in `extra`

        Returns:
            EventRow

        Raises:
            ValueError: if `id` is missing or `occurred_at` is not a timestamp
        """
        record_id = _clean_text(record.get(ID_FIELD))
        if record_id is None:
            raise ValueError(f"Event record has no id: {dict(record)!r}")

        try:
            occurred_at = parse_timestamp(record.get(OCCURRED_AT_FIELD))
        except ValueError as exc:
            raise ValueError(f"Event {record_id}: {exc}") from exc

        extra = {k: v for k, v in record.items() if k not in CORE_FIELDS}

        return cls(
            id=record_id,
            occurred_at=occurred_at,
            subject_id=_clean_text(record.get(SUBJECT_ID_FIELD)),
            subject_name=_clean_text(record.get(SUBJECT_NAME_FIELD)),
            action=_clean_text(record.get(ACTION_FIELD)),
            category=_clean_text(record.get(CATEGORY_FIELD)),
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            ID_FIELD: self.id,
            OCCURRED_AT_FIELD: format_timestamp(self.occurred_at),
            SUBJECT_ID_FIELD: self.subject_id,
            SUBJECT_NAME_FIELD: self.subject_name,
            ACTION_FIELD: self.action,
            CATEGORY_FIELD: self.category,
        })
        return data


@dataclass(frozen=True)
class ProcessedTicket:
    """A row with its processing result, either clean or errored.

    Attributes:
        ticket: The original row.
        error: Error kind, None for clean tickets.
        paired_entry_at: For clean exits, when the matching entry occurred.
            For errored exits, the last entry seen before the anomaly.
    """

    ticket: EventRow
    error: Optional[TicketError] = None
    paired_entry_at: Optional[datetime] = None

    @property
    def is_errored(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data = self.ticket.to_dict()
        data["error"] = self.error.value if self.error else None
        data["paired_entry_at"] = format_timestamp(self.paired_entry_at)
        return data


@dataclass(frozen=True)
class SubjectTickets:
    """Classifier output for one subject."""

    clean: Tuple[ProcessedTicket, ...]
    errored: Tuple[ProcessedTicket, ...]
    subject_name: Optional[str] = None


@dataclass(frozen=True)
class TicketPartition:
    """Clean and errored tickets for every subject.

    Attributes:
        by_subject: Per-subject results, in first-seen subject order.
        all_clean: Every clean ticket, concatenated subject by subject.
        all_errored: Every errored ticket, concatenated subject by subject.
        unattributed_count: Rows dropped because they had no subject id.
    """

    by_subject: Dict[str, SubjectTickets]
    all_clean: Tuple[ProcessedTicket, ...]
    all_errored: Tuple[ProcessedTicket, ...]
    unattributed_count: int = 0


def _milliseconds(delta: timedelta) -> int:
    return delta // timedelta(milliseconds=1)


@dataclass(frozen=True)
class OccupancyRecord:
    """A subject currently inside (valid entry, no exit yet)."""

    subject_id: str
    subject_name: Optional[str]
    entry_ticket: EventRow
    entry_at: datetime
    elapsed: timedelta
    category: Optional[str] = None

    @property
    def elapsed_ms(self) -> int:
        return _milliseconds(self.elapsed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "entry_id": self.entry_ticket.id,
            "entry_at": format_timestamp(self.entry_at),
            "elapsed_ms": self.elapsed_ms,
            "category": self.category,
        }


@dataclass(frozen=True)
class CompletedSession:
    """A matched entry/exit pair and how long the visit lasted."""

    subject_id: str
    subject_name: Optional[str]
    entry_ticket: EventRow
    exit_ticket: EventRow
    entry_at: datetime
    exit_at: datetime
    duration: timedelta
    category: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return _milliseconds(self.duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "entry_id": self.entry_ticket.id,
            "exit_id": self.exit_ticket.id,
            "entry_at": format_timestamp(self.entry_at),
            "exit_at": format_timestamp(self.exit_at),
            "duration_ms": self.duration_ms,
            "category": self.category,
        }
