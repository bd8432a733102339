"""Mapping of timesheet store rows to pending time entries."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import pytz

from common.logging import get_logger

logger = get_logger(__name__)

# Sheets checkboxes arrive as JSON booleans or as the text TRUE/FALSE
TRUE_VALUES = {'TRUE', 'true'}


@dataclass(frozen=True)
class PendingRecord:
    """A completed time entry waiting to be added to QuickBooks."""
    record_id: str
    employee_name: str
    clock_in: datetime
    total_hours: Decimal
    clock_out: Optional[datetime] = None
    customer_name: str = ''
    job_name: str = ''
    notes: str = ''
    requires_billing: bool = False


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def parse_timestamp(value: Any, timezone: str = 'UTC') -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp from the store.

    Aware timestamps are converted to the given timezone; naive ones are taken
    to already be local to it.

    Returns:
        datetime or None when the value is empty or unparseable
    """
    text = _text(value)
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        return None

    tz = pytz.timezone(timezone)
    if parsed.tzinfo is None:
        return tz.localize(parsed)
    return parsed.astimezone(tz)


def parse_hours(value: Any) -> Optional[Decimal]:
    """Parse decimal hours; None for empty, unparseable or negative values"""
    text = _text(value)
    if not text:
        return None
    try:
        hours = Decimal(text)
    except InvalidOperation:
        return None
    if not hours.is_finite() or hours < 0:
        return None
    return hours


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value) in TRUE_VALUES


def normalize_entry(entry: Dict[str, Any], timezone: str = 'UTC') -> Optional[PendingRecord]:
    """
    Convert one raw store row into a PendingRecord.

    Rows without an employee name, total hours or a readable clock-in time
    cannot be rendered and are dropped (None).
    """
    record_id = _text(entry.get('ID'))
    employee_name = _text(entry.get('EmployeeName'))
    total_hours = parse_hours(entry.get('TotalHours'))
    clock_in = parse_timestamp(entry.get('ClockIn'), timezone)

    if not record_id or not employee_name or total_hours is None or clock_in is None:
        logger.debug(f"Skipping incomplete time entry: {record_id or '<no id>'}")
        return None

    return PendingRecord(
        record_id=record_id,
        employee_name=employee_name,
        clock_in=clock_in,
        total_hours=total_hours,
        clock_out=parse_timestamp(entry.get('ClockOut'), timezone),
        customer_name=_text(entry.get('CustomerName')),
        job_name=_text(entry.get('JobName')),
        notes=_text(entry.get('Notes')),
        requires_billing=parse_flag(entry.get('RequiresTicket')),
    )


def normalize_entries(entries: List[Dict[str, Any]], timezone: str = 'UTC') -> List[PendingRecord]:
    """Normalize store rows, keeping their order and dropping invalid ones"""
    records = []
    for entry in entries:
        record = normalize_entry(entry, timezone)
        if record is not None:
            records.append(record)

    skipped = len(entries) - len(records)
    if skipped:
        logger.info(f"Excluded {skipped} incomplete time entries")

    return records
