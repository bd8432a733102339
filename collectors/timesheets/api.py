"""Timesheet store API client (Google Apps Script web app)."""

import json
from typing import Any, Dict, Iterable, List, Optional

import requests

from common.config import config, TimesheetStoreConfig
from common.logging import get_logger
from .mapping import PendingRecord, normalize_entries


class TimesheetAPIError(Exception):
    """Raised when the timesheet store cannot be read or updated."""


class TimesheetStoreAPI:
    """
    Client for the two timesheet store actions the bridge needs.

    The store is an Apps Script web app exposing:
      ?action=qbpending   - completed entries not yet synced to QuickBooks
      ?action=qbmarksync  - mark entries synced (ids comma separated)
    Every call is authenticated with a shared secret query parameter.
    """

    def __init__(self, store_config: Optional[TimesheetStoreConfig] = None,
                 timezone: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.logger = get_logger(__name__)
        self.config = store_config or config.timesheets
        self.timezone = timezone or config.app.timezone
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _call(self, action: str, **params: str) -> Dict[str, Any]:
        if not self.config.url:
            raise TimesheetAPIError("APPS_SCRIPT_URL environment variable not set")

        query = {"action": action, "secret": self.config.api_secret}
        query.update(params)

        try:
            response = self.session.get(self.config.url, params=query, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise TimesheetAPIError(f"Timesheet store request failed: {e}") from e

        self.logger.debug(f"Timesheet store {action} returned {response.status_code}")

        if not response.ok:
            raise TimesheetAPIError(
                f"Timesheet store returned {response.status_code}: {response.reason}"
            )

        try:
            result = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise TimesheetAPIError(
                f"Invalid JSON response from timesheet store: {e}. Response: {response.text[:200]}"
            ) from e

        if not isinstance(result, dict) or not result.get("ok"):
            error = result.get("error") if isinstance(result, dict) else None
            raise TimesheetAPIError(error or f"Timesheet store rejected {action}")

        return result

    def fetch_pending(self) -> List[PendingRecord]:
        """
        Fetch completed time entries that still need to go to QuickBooks.

        Returns:
            list: PendingRecord objects in store order, incomplete rows excluded
        """
        self.logger.info("Fetching pending time entries from timesheet store")
        result = self._call("qbpending")

        entries = result.get("entries") or []
        records = normalize_entries(entries, self.timezone)
        self.logger.info(f"Timesheet store returned {len(entries)} entries, {len(records)} ready to sync")
        return records

    def mark_synced(self, record_ids: Iterable[str]) -> int:
        """
        Mark time entries as synced to QuickBooks.

        Marking an entry that is already synced is a no-op on the store side.

        Returns:
            int: number of entries the store reports as updated
        """
        ids = sorted({str(record_id) for record_id in record_ids if record_id})
        if not ids:
            return 0

        self.logger.info(f"Marking {len(ids)} entries as synced")
        result = self._call("qbmarksync", ids=",".join(ids))

        count = int(result.get("count") or 0)
        self.logger.info(f"Timesheet store marked {count} entries as QB synced")
        return count
