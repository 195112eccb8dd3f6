"""
Synthetic data generator for entry/exit swipe logs.

Generates realistic swipe events with edge cases:
- Multiple visits per day (breaks)
- Forgotten exits (entry never closed)
- Double badge-in and double badge-out
- Stray exits with no entry before them
- Rows with no subject id
- Actions that are neither Entry nor Exit
- Two categories (Study Session, Front Desk); front desk rows carry no name
"""

import argparse
import csv
import os
import random
from datetime import datetime, timedelta
from typing import Dict, List
import logging

from swipe_ledger.config import CATEGORIES, CATEGORY_FRONT_DESK, ENTRY_ACTION, EXIT_ACTION

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FIRST_NAMES = ['Ava', 'Ben', 'Chloe', 'Diego', 'Elena', 'Farah', 'Gabe', 'Hana', 'Ivan', 'Jada']
LAST_NAMES = ['Nguyen', 'Okafor', 'Patel', 'Quinn', 'Rossi', 'Silva', 'Tanaka', 'Usman', 'Vance', 'Wong']
REP_NAMES = ['Front Desk A', 'Front Desk B', 'Front Desk C']

EVENT_FIELDNAMES = [
    'id', 'occurred_at', 'subject_id', 'subject_name', 'action', 'category', 'rep_name'
]
DIRECTORY_FIELDNAMES = ['uid', 'first_name', 'last_name']


class SyntheticDataGenerator:
    """Generate synthetic swipe logs with realistic reconciliation edge cases."""

    def __init__(self, seed: int = 42):
        """Initialize generator with seed for reproducibility."""
        random.seed(seed)
        self.subjects = []

    def generate_subjects(self, count: int = 50) -> List[Dict]:
        """Generate subject directory records."""
        subjects = []
        for i in range(1, count + 1):
            subject = {
                'uid': f"S{i:04d}",
                'first_name': random.choice(FIRST_NAMES),
                'last_name': random.choice(LAST_NAMES),
            }
            subjects.append(subject)
            self.subjects.append(subject)

        return subjects

    def _event(self, subject: Dict, action: str, when: datetime, category: str) -> Dict:
        name = f"{subject['first_name']} {subject['last_name']}"
        return {
            'id': '',
            'occurred_at': when.strftime('%Y-%m-%d %H:%M:%S'),
            'subject_id': subject['uid'],
            # front desk exports do not record the name
            'subject_name': '' if category == CATEGORY_FRONT_DESK else name,
            'action': action,
            'category': category,
            'rep_name': random.choice(REP_NAMES),
        }

    def generate_swipe_events(
        self,
        subjects: List[Dict],
        start_date: datetime,
        days: int = 14,
        rows: int = 2000
    ) -> List[Dict]:
        """Generate swipe events with edge cases."""
        events = []
        current_date = start_date.replace(hour=0, minute=0, second=0, microsecond=0)
        end_date = current_date + timedelta(days=days)

        while len(events) < rows and current_date < end_date:
            for subject in subjects:
                if len(events) >= rows:
                    break

                # Most subjects visit on a given day, not all
                if random.random() < 0.35:
                    continue

                category = random.choice(CATEGORIES)
                visit_start = current_date + timedelta(
                    hours=random.randint(8, 16), minutes=random.randint(0, 59)
                )

                # Edge case: stray exit before the first entry of the day
                if random.random() < 0.02:
                    events.append(self._event(
                        subject, EXIT_ACTION, visit_start - timedelta(minutes=random.randint(5, 30)), category
                    ))

                for _ in range(random.choice([1, 1, 1, 2])):
                    entry_time = visit_start
                    exit_time = entry_time + timedelta(minutes=random.randint(20, 180))
                    events.append(self._event(subject, ENTRY_ACTION, entry_time, category))

                    # Edge case: double badge-in
                    if random.random() < 0.03:
                        events.append(self._event(
                            subject, ENTRY_ACTION, entry_time + timedelta(minutes=random.randint(1, 3)), category
                        ))

                    # Edge case: action that is neither entry nor exit
                    if random.random() < 0.02:
                        events.append(self._event(
                            subject, 'Note', entry_time + timedelta(minutes=5), category
                        ))

                    # Edge case: forgotten exit
                    if random.random() < 0.1:
                        break

                    events.append(self._event(subject, EXIT_ACTION, exit_time, category))

                    # Edge case: double badge-out
                    if random.random() < 0.03:
                        events.append(self._event(
                            subject, EXIT_ACTION, exit_time + timedelta(minutes=random.randint(1, 3)), category
                        ))

                    # Break before the next visit
                    visit_start = exit_time + timedelta(minutes=random.randint(15, 90))

                # Edge case: row with no subject id
                if random.random() < 0.01:
                    orphan = self._event(subject, ENTRY_ACTION, visit_start, category)
                    orphan['subject_id'] = ''
                    orphan['subject_name'] = ''
                    events.append(orphan)

            current_date += timedelta(days=1)

        # Sort events by timestamp
        events.sort(key=lambda x: x['occurred_at'])

        # Number event ids
        for i, event in enumerate(events, 1):
            event['id'] = f"EVT-{i:06d}"

        return events

    def write_csv(self, filename: str, data: List[Dict], fieldnames: List[str] = None):
        """Write data to CSV file."""
        if not data:
            return

        if fieldnames is None:
            fieldnames = list(data[0].keys())

        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filename, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(data)

        logger.info(f"Wrote {len(data)} rows to {filename}")


def main(argv=None):
    """Main entry point for synthetic data generation."""
    parser = argparse.ArgumentParser(description='Generate synthetic swipe-log data')
    parser.add_argument('--out', type=str, default='data/raw/swipe_events.csv',
                        help='Output CSV file path')
    parser.add_argument('--directory-out', type=str, default='data/raw/users.csv',
                        help='Output CSV path for the uid -> name directory')
    parser.add_argument('--rows', type=int, default=2000,
                        help='Target number of swipe events')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for reproducibility')
    parser.add_argument('--subjects', type=int, default=50,
                        help='Number of subjects')
    parser.add_argument('--days', type=int, default=14,
                        help='Number of days to generate data for')

    args = parser.parse_args(argv)

    logger.info(f"Generating synthetic data with seed={args.seed}")

    generator = SyntheticDataGenerator(seed=args.seed)

    subjects = generator.generate_subjects(count=args.subjects)
    logger.info(f"Generated {len(subjects)} subjects")

    start_date = datetime.now() - timedelta(days=args.days)
    events = generator.generate_swipe_events(
        subjects, start_date, days=args.days, rows=args.rows
    )
    logger.info(f"Generated {len(events)} swipe events")

    generator.write_csv(args.out, events, EVENT_FIELDNAMES)
    generator.write_csv(args.directory_out, subjects, DIRECTORY_FIELDNAMES)

    logger.info("Data generation complete. Output files:")
    logger.info(f"  - {args.out}")
    logger.info(f"  - {args.directory_out}")


if __name__ == '__main__':
    main()
