"""
Tests for the timesheet store collector
"""
import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock

import requests

from collectors.timesheets.api import TimesheetAPIError, TimesheetStoreAPI
from collectors.timesheets.mapping import (
    normalize_entries, normalize_entry, parse_flag, parse_hours, parse_timestamp,
)
from common.config import TimesheetStoreConfig


def store_row(**overrides):
    row = {
        'ID': 'row-7',
        'EmployeeName': 'Dana Cruz',
        'ClockIn': '2024-03-04T14:00:00Z',
        'ClockOut': '2024-03-04T15:30:00Z',
        'TotalHours': 1.5,
        'CustomerName': 'Acme Marine',
        'JobName': 'Hull repair',
        'Notes': 'Sanded',
        'RequiresTicket': True,
    }
    row.update(overrides)
    return row


def json_response(payload, status_code=200):
    response = Mock()
    response.ok = status_code < 400
    response.status_code = status_code
    response.reason = 'OK' if response.ok else 'Server Error'
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def http():
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def store_api(http):
    cfg = TimesheetStoreConfig(url='https://script.example.com/exec', api_secret='s3cret', timeout=10)
    return TimesheetStoreAPI(cfg, timezone='America/Chicago', session=http)


class TestMapping:
    """Test store row normalization"""

    def test_normalize_entry(self):
        record = normalize_entry(store_row(), 'America/Chicago')

        assert record.record_id == 'row-7'
        assert record.employee_name == 'Dana Cruz'
        assert record.total_hours == Decimal('1.5')
        assert record.clock_in.strftime('%Y-%m-%d %H:%M') == '2024-03-04 08:00'
        assert record.customer_name == 'Acme Marine'
        assert record.requires_billing is True

    @pytest.mark.parametrize('field', ['ID', 'EmployeeName', 'TotalHours', 'ClockIn'])
    def test_incomplete_rows_dropped(self, field):
        assert normalize_entry(store_row(**{field: ''})) is None

    def test_normalize_entries_keeps_order(self):
        rows = [store_row(ID='a'), store_row(ID='b', TotalHours='n/a'), store_row(ID='c')]

        assert [r.record_id for r in normalize_entries(rows)] == ['a', 'c']

    def test_parse_hours(self):
        assert parse_hours('2.25') == Decimal('2.25')
        assert parse_hours(0) == Decimal('0')
        assert parse_hours('-1') is None
        assert parse_hours('NaN') is None
        assert parse_hours(None) is None

    def test_parse_timestamp_naive_is_local(self):
        parsed = parse_timestamp('2024-03-04T08:00:00', 'America/Chicago')

        assert parsed.tzinfo is not None
        assert parsed.replace(tzinfo=None) == datetime(2024, 3, 4, 8, 0)

    def test_parse_timestamp_invalid(self):
        assert parse_timestamp('yesterday') is None
        assert parse_timestamp('') is None

    def test_parse_flag(self):
        assert parse_flag(True) is True
        assert parse_flag('TRUE') is True
        assert parse_flag('true') is True
        assert parse_flag('FALSE') is False
        assert parse_flag('yes') is False
        assert parse_flag('1') is False
        assert parse_flag(None) is False


class TestTimesheetStoreAPI:
    """Test the Apps Script client"""

    def test_fetch_pending(self, store_api, http):
        http.get.return_value = json_response({'ok': True, 'entries': [store_row(), store_row(ID='x', EmployeeName='')]})

        records = store_api.fetch_pending()

        assert [r.record_id for r in records] == ['row-7']
        http.get.assert_called_once_with(
            'https://script.example.com/exec',
            params={'action': 'qbpending', 'secret': 's3cret'},
            timeout=10,
        )

    def test_fetch_pending_empty(self, store_api, http):
        http.get.return_value = json_response({'ok': True, 'entries': []})
        assert store_api.fetch_pending() == []

    def test_mark_synced(self, store_api, http):
        http.get.return_value = json_response({'ok': True, 'count': 2})

        assert store_api.mark_synced(['b', 'a', 'b']) == 2
        http.get.assert_called_once_with(
            'https://script.example.com/exec',
            params={'action': 'qbmarksync', 'secret': 's3cret', 'ids': 'a,b'},
            timeout=10,
        )

    def test_mark_synced_nothing_to_do(self, store_api, http):
        assert store_api.mark_synced([]) == 0
        http.get.assert_not_called()

    def test_store_rejects_call(self, store_api, http):
        http.get.return_value = json_response({'ok': False, 'error': 'Unauthorized'})

        with pytest.raises(TimesheetAPIError, match='Unauthorized'):
            store_api.fetch_pending()

    def test_http_error(self, store_api, http):
        http.get.return_value = json_response({}, status_code=502)

        with pytest.raises(TimesheetAPIError, match='502'):
            store_api.fetch_pending()

    def test_network_error(self, store_api, http):
        http.get.side_effect = requests.ConnectionError('refused')

        with pytest.raises(TimesheetAPIError, match='refused'):
            store_api.mark_synced(['a'])

    def test_invalid_json(self, store_api, http):
        response = json_response(None)
        response.json.side_effect = ValueError('Expecting value')
        http.get.return_value = response

        with pytest.raises(TimesheetAPIError, match='Invalid JSON'):
            store_api.fetch_pending()

    def test_missing_url(self, http):
        api = TimesheetStoreAPI(TimesheetStoreConfig(url='', api_secret='x'), session=http)

        with pytest.raises(TimesheetAPIError, match='APPS_SCRIPT_URL'):
            api.fetch_pending()
