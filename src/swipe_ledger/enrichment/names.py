"""
Resolve subject display names from a uid directory.

Enrichment is a post-processing pass applied to any of the engine's
outputs; the rule engine itself only ever sees the name recorded on the
rows. The directory is a CSV export of the users table
(uid, first_name, last_name).
"""

import asyncio
import os
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, TypeVar
import logging

import pandas as pd

from swipe_ledger.models.tickets import SubjectTickets, TicketPartition

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DIRECTORY_COLUMNS = ["uid", "first_name", "last_name"]


class NameDirectory:
    """Lookup from subject uid to "First Last" display name."""

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self._names = dict(names or {})

    @classmethod
    def from_csv(cls, path: str) -> "NameDirectory":
        """
        Load a directory from a users CSV export.

        Rows without a uid or without any name part are skipped.

        Raises:
            ValueError: if a required column is missing
        """
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        missing = [c for c in _DIRECTORY_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Directory {path} is missing columns: {', '.join(missing)}")

        names = {}
        for _, row in df.iterrows():
            uid = row["uid"].strip()
            name = " ".join(part.strip() for part in (row["first_name"], row["last_name"]) if part.strip())
            if uid and name:
                names[uid] = name

        logger.info(f"Loaded {len(names)} names from {path}")
        return cls(names)

    @classmethod
    def from_optional_path(cls, path: Optional[str]) -> Optional["NameDirectory"]:
        """Load a directory if a path is configured and exists, else None."""
        if not path:
            return None
        if not os.path.exists(path):
            logger.warning(f"Name directory not found: {path}")
            return None
        return cls.from_csv(path)

    def lookup(self, subject_ids: Iterable[str]) -> Dict[str, str]:
        return {uid: self._names[uid] for uid in subject_ids if uid in self._names}

    def __len__(self) -> int:
        return len(self._names)


async def fetch_names_by_ids(subject_ids: Iterable[str], directory: NameDirectory) -> Dict[str, str]:
    """
    Fetch display names for the given subject ids.

    Args:
        subject_ids: Subject ids; duplicates and blanks are ignored
        directory: Name source

    Returns:
        Dictionary of uid -> name; ids without a name are not included
    """
    unique_ids = list(dict.fromkeys(uid for uid in subject_ids if uid))
    if not unique_ids:
        return {}
    # Lookup runs off the event loop
    return await asyncio.to_thread(directory.lookup, unique_ids)


async def enrich_partition(partition: TicketPartition, directory: NameDirectory) -> TicketPartition:
    """
    Replace each subject's name with the directory name.

    Subjects missing from the directory end up with no name.
    """
    names = await fetch_names_by_ids(partition.by_subject.keys(), directory)

    by_subject: Dict[str, SubjectTickets] = {
        uid: replace(result, subject_name=names.get(uid))
        for uid, result in partition.by_subject.items()
    }
    return replace(partition, by_subject=by_subject)


async def enrich_records(records: List[T], directory: NameDirectory) -> List[T]:
    """
    Replace subject_name on occupancy or session records.

    Args:
        records: OccupancyRecord or CompletedSession items

    Returns:
        New list of records with directory names (None when unknown)
    """
    if not records:
        return records

    names = await fetch_names_by_ids((r.subject_id for r in records), directory)
    return [replace(r, subject_name=names.get(r.subject_id)) for r in records]
