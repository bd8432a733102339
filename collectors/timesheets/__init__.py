"""Timesheet store adapter: pending time entries in, synced markers out."""

from .api import TimesheetStoreAPI, TimesheetAPIError
from .mapping import PendingRecord, normalize_entry, normalize_entries

__all__ = [
    'TimesheetStoreAPI',
    'TimesheetAPIError',
    'PendingRecord',
    'normalize_entry',
    'normalize_entries',
]
