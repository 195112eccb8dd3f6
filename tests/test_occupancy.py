"""Unit tests for current occupancy resolution."""

from datetime import datetime, timedelta, timezone
from swipe_ledger.models.tickets import EventRow, ProcessedTicket
from swipe_ledger.rules.occupancy import find_unmatched_entry, resolve_current_occupancy


def _row(row_id, hour, minute, action, subject_id='123', category=None, name=None):
    return EventRow(
        id=row_id,
        occurred_at=datetime(2025, 9, 15, hour, minute),
        subject_id=subject_id,
        subject_name=name,
        action=action,
        category=category,
    )


def test_end_to_end_occupancy():
    """Test the reference scenario reports the 10:00 entry after 30 minutes."""
    rows = [
        _row('1', 9, 0, 'Entry', name='Ava Nguyen'),
        _row('2', 9, 5, 'Exit'),
        _row('3', 9, 5, 'Exit'),
        _row('4', 10, 0, 'Entry'),
    ]

    records = resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 10, 30))

    assert len(records) == 1
    record = records[0]
    assert record.subject_id == '123'
    assert record.subject_name == 'Ava Nguyen'
    assert record.entry_ticket.id == '4'
    assert record.entry_at == datetime(2025, 9, 15, 10, 0)
    assert record.elapsed == timedelta(minutes=30)
    assert record.elapsed_ms == 30 * 60 * 1000


def test_earlier_entry_matched_to_exit():
    """Test entries 09:00 and 11:00 with exit 10:00 leave 11:00 open."""
    clean = [
        ProcessedTicket(_row('1', 9, 0, 'Entry')),
        ProcessedTicket(_row('2', 10, 0, 'Exit')),
        ProcessedTicket(_row('3', 11, 0, 'Entry')),
    ]

    open_entry = find_unmatched_entry(clean)

    assert open_entry.ticket.id == '3'


def test_all_entries_matched_gives_no_record():
    """Test subjects whose entries are all closed are not reported."""
    rows = [
        _row('1', 9, 0, 'Entry'),
        _row('2', 10, 0, 'Exit'),
        _row('3', 11, 0, 'Entry'),
        _row('4', 12, 0, 'Exit'),
    ]

    assert resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 13, 0)) == []


def test_errored_tickets_are_ignored():
    """Test a double entry does not create a second occupancy."""
    rows = [
        _row('1', 9, 0, 'Entry'),
        _row('2', 9, 30, 'Entry'),
    ]

    records = resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 10, 0))

    assert [r.entry_ticket.id for r in records] == ['1']
    assert records[0].elapsed == timedelta(hours=1)


def test_elapsed_never_negative():
    """Test a reference instant before the entry clamps elapsed to zero."""
    rows = [_row('1', 9, 0, 'Entry')]

    records = resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 8, 0))

    assert records[0].elapsed == timedelta(0)


def test_default_reference_instant_is_now():
    """Test elapsed is measured against the current time when not given."""
    entry_at = datetime.now(timezone.utc) - timedelta(hours=2)
    rows = [EventRow(id='1', occurred_at=entry_at, subject_id='123', action='Entry')]

    records = resolve_current_occupancy(rows)

    assert timedelta(hours=2) <= records[0].elapsed < timedelta(hours=2, minutes=5)


def test_one_record_per_subject_with_category():
    """Test each subject with an open entry gets one record carrying the category."""
    rows = [
        _row('1', 9, 0, 'Entry', subject_id='A', category='Study Session'),
        _row('2', 9, 10, 'Entry', subject_id='B', category='Front Desk'),
        _row('3', 9, 20, 'Exit', subject_id='B', category='Front Desk'),
        _row('4', 9, 30, 'Entry', subject_id='C', category='Front Desk'),
    ]
    as_of = datetime(2025, 9, 15, 10, 0)

    everyone = resolve_current_occupancy(rows, reference_instant=as_of)
    desk = resolve_current_occupancy(rows, category='Front Desk', reference_instant=as_of)

    assert [(r.subject_id, r.category) for r in everyone] == [
        ('A', 'Study Session'),
        ('C', 'Front Desk'),
    ]
    assert [r.subject_id for r in desk] == ['C']


def test_occupancy_to_dict():
    """Test occupancy records serialize with ISO timestamps and milliseconds."""
    rows = [_row('1', 9, 0, 'Entry')]

    records = resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 9, 45))

    assert records[0].to_dict() == {
        'subject_id': '123',
        'subject_name': None,
        'entry_id': '1',
        'entry_at': '2025-09-15T09:00:00',
        'elapsed_ms': 45 * 60 * 1000,
        'category': None,
    }


def test_idempotent_with_fixed_reference():
    """Test repeated calls with the same reference instant agree."""
    rows = [_row('1', 9, 0, 'Entry'), _row('2', 9, 10, 'Exit'), _row('3', 9, 20, 'Entry')]
    as_of = datetime(2025, 9, 15, 12, 0)

    assert resolve_current_occupancy(rows, reference_instant=as_of) == \
        resolve_current_occupancy(rows, reference_instant=as_of)


def test_aware_reference_instant_with_naive_rows():
    """Test an aware reference instant is compared with naive rows as UTC."""
    rows = [_row('1', 10, 0, 'Entry')]
    as_of = datetime(2025, 9, 15, 10, 30, tzinfo=timezone.utc)

    records = resolve_current_occupancy(rows, reference_instant=as_of)

    assert records[0].elapsed == timedelta(minutes=30)


def test_naive_reference_instant_with_aware_rows():
    """Test a naive reference instant is read as UTC against aware rows."""
    entry_at = datetime(2025, 9, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    rows = [EventRow(id='1', occurred_at=entry_at, subject_id='123', action='Entry')]

    records = resolve_current_occupancy(rows, reference_instant=datetime(2025, 9, 15, 10, 45))

    assert records[0].elapsed == timedelta(minutes=45)
