"""
Batch pipeline that reconciles a swipe-log export into reports.

Handles:
- Loading and filtering raw swipe rows (time range, category)
- Clean/errored ticket classification per subject
- Current occupancy as of a reference instant
- Completed sessions with durations
- Optional name enrichment from a uid directory

Writes clean_tickets.csv, errored_tickets.csv, completed_sessions.csv and
occupancy.csv into the output directory.
"""

import argparse
import asyncio
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from swipe_ledger import config
from swipe_ledger.enrichment.names import NameDirectory, enrich_partition, enrich_records
from swipe_ledger.etl.loader import SESSION_LOG_COLUMNS, load_events
from swipe_ledger.models.tickets import (
    CORE_FIELDS,
    EventRow,
    SessionLogConfig,
    TicketPartition,
    parse_timestamp,
)
from swipe_ledger.rules.aggregator import classify_and_partition
from swipe_ledger.rules.occupancy import resolve_current_occupancy
from swipe_ledger.rules.sessions import extract_completed_sessions
from swipe_ledger.rules.ticket_engine import summarize_errors

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TICKET_COLUMNS = list(CORE_FIELDS) + ["resolved_name", "error", "paired_entry_at"]
OCCUPANCY_COLUMNS = ["subject_id", "subject_name", "entry_id", "entry_at", "elapsed_ms", "category"]
SESSION_COLUMNS = [
    "subject_id", "subject_name", "entry_id", "exit_id",
    "entry_at", "exit_at", "duration_ms", "category"
]


def _ticket_frame(partition: TicketPartition, errored: bool) -> pd.DataFrame:
    """Flatten clean or errored tickets, tagging each with the subject's resolved name."""
    records = []
    for result in partition.by_subject.values():
        for processed in (result.errored if errored else result.clean):
            record = processed.to_dict()
            record["resolved_name"] = result.subject_name
            records.append(record)

    df = pd.DataFrame(records)
    # Extra source columns follow the canonical ones
    extras = [c for c in df.columns if c not in TICKET_COLUMNS]
    return df.reindex(columns=TICKET_COLUMNS + extras)


class SwipeLogPipeline:
    """Pipeline for swipe-log reconciliation."""

    def __init__(
        self,
        session_config: Optional[SessionLogConfig] = None,
        columns: Optional[Dict[str, str]] = None
    ):
        """Initialize the pipeline with action labels and source column renames."""
        self.session_config = session_config or SessionLogConfig()
        self.columns = columns

    def load_data(
        self,
        input_path: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category: Optional[str] = None
    ) -> List[EventRow]:
        """Load raw swipe rows filtered by time range and category."""
        logger.info(f"Loading data from {input_path}")
        return load_events(
            input_path, start=start, end=end, category=category, columns=self.columns
        )

    def process(
        self,
        input_path: str,
        output_path: str,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        closed_period: bool = False,
        as_of: Optional[datetime] = None,
        directory_path: Optional[str] = None
    ) -> Dict:
        """
        Run the complete pipeline.

        Args:
            input_path: Swipe-log CSV
            output_path: Directory for the report CSVs
            category: Only reconcile rows tagged with this category
            start: Keep rows at or after this instant
            end: Keep rows at or before this instant
            closed_period: Treat entries still open at the end as errors
            as_of: Reference instant for occupancy (default: now)
            directory_path: Optional uid -> name directory CSV

        Returns:
            Summary dictionary with counts
        """
        logger.info("Starting swipe-log pipeline")

        rows = self.load_data(input_path, start=start, end=end, category=category)

        partition = classify_and_partition(
            rows,
            self.session_config,
            treat_unclosed_entry_as_error=closed_period,
            category=category
        )
        logger.info(
            f"Classified {len(partition.all_clean)} clean and {len(partition.all_errored)} errored tickets "
            f"for {len(partition.by_subject)} subjects"
        )
        if partition.unattributed_count:
            logger.warning(f"{partition.unattributed_count} rows had no subject id and were skipped")

        occupancy = resolve_current_occupancy(
            rows, self.session_config, category=category, reference_instant=as_of
        )
        sessions = extract_completed_sessions(rows, self.session_config, category=category)
        logger.info(f"Found {len(occupancy)} subjects inside and {len(sessions)} completed sessions")

        directory = NameDirectory.from_optional_path(directory_path)
        if directory is not None:
            partition, occupancy, sessions = asyncio.run(
                self._enrich(partition, occupancy, sessions, directory)
            )

        os.makedirs(output_path, exist_ok=True)
        _ticket_frame(partition, errored=False).to_csv(
            os.path.join(output_path, "clean_tickets.csv"), index=False
        )
        _ticket_frame(partition, errored=True).to_csv(
            os.path.join(output_path, "errored_tickets.csv"), index=False
        )
        pd.DataFrame([s.to_dict() for s in sessions], columns=SESSION_COLUMNS).to_csv(
            os.path.join(output_path, "completed_sessions.csv"), index=False
        )
        pd.DataFrame([o.to_dict() for o in occupancy], columns=OCCUPANCY_COLUMNS).to_csv(
            os.path.join(output_path, "occupancy.csv"), index=False
        )
        logger.info(f"Pipeline complete. Output: {output_path}")

        return {
            "subjects": len(partition.by_subject),
            "clean": len(partition.all_clean),
            "errored": len(partition.all_errored),
            "unattributed": partition.unattributed_count,
            "errors_by_kind": summarize_errors(partition.all_errored),
            "occupancy": len(occupancy),
            "sessions": len(sessions),
        }

    @staticmethod
    async def _enrich(partition, occupancy, sessions, directory):
        return await asyncio.gather(
            enrich_partition(partition, directory),
            enrich_records(occupancy, directory),
            enrich_records(sessions, directory),
        )


def main(argv=None):
    """Main entry point for the swipe-log pipeline."""
    parser = argparse.ArgumentParser(description='Reconcile a swipe-log export')
    parser.add_argument('--input', type=str, default=config.EVENTS_PATH,
                        help='Input swipe-log CSV file path')
    parser.add_argument('--output', type=str, required=True,
                        help='Output directory for report CSVs')
    parser.add_argument('--category', type=str, default=config.DEFAULT_CATEGORY,
                        help='Only reconcile rows with this category (e.g. "Study Session"); "all" for every category')
    parser.add_argument('--start', type=parse_timestamp, default=None,
                        help='Keep rows at or after this timestamp')
    parser.add_argument('--end', type=parse_timestamp, default=None,
                        help='Keep rows at or before this timestamp')
    parser.add_argument('--closed-period', action='store_true',
                        help='Treat entries without an exit as errors (finished days)')
    parser.add_argument('--as-of', type=parse_timestamp, default=None,
                        help='Reference timestamp for occupancy (default: now)')
    parser.add_argument('--directory', type=str, default=config.DIRECTORY_PATH,
                        help='Optional uid,first_name,last_name CSV for names')
    parser.add_argument('--entry-action', type=str, default=config.ENTRY_ACTION,
                        help='Action label of entry swipes')
    parser.add_argument('--exit-action', type=str, default=config.EXIT_ACTION,
                        help='Action label of exit swipes')
    parser.add_argument('--session-log-columns', action='store_true',
                        help='Input uses created_at/scholar_uid/action_type/session_type columns')

    args = parser.parse_args(argv)

    pipeline = SwipeLogPipeline(
        SessionLogConfig(args.entry_action, args.exit_action),
        columns=SESSION_LOG_COLUMNS if args.session_log_columns else None
    )
    category = args.category or None
    if category and category.strip().lower() == config.ALL_CATEGORIES:
        category = None

    summary = pipeline.process(
        args.input,
        args.output,
        category=category,
        start=args.start,
        end=args.end,
        closed_period=args.closed_period,
        as_of=args.as_of,
        directory_path=args.directory
    )
    logger.info(f"Summary: {summary}")
    return summary


if __name__ == '__main__':
    main()
