"""
Shared fixtures for the QBWC bridge tests
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from api.api_server import create_app
from api.qbwc_service import QBWCService, RecordStore
from api.sessions import SessionRegistry
from collectors.timesheets.mapping import PendingRecord
from common.config import QBWCConfig
from common.db import create_db_engine, create_session_factory, init_db
from storage.audit import SyncAuditLog

USERNAME = 'trippinqb'
PASSWORD = 'correct-horse'


def make_record(record_id='T-1', hours='1.5', **overrides):
    values = dict(
        record_id=record_id,
        employee_name='Dana Cruz',
        clock_in=datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc),
        total_hours=Decimal(hours),
        customer_name='Acme Marine',
        job_name='Hull repair',
        notes='',
        requires_billing=True,
    )
    values.update(overrides)
    return PendingRecord(**values)


def qb_response(status_code='0', status_message='Status OK'):
    return f'''<?xml version="1.0" ?>
<QBXML>
  <QBXMLMsgsRs>
    <TimeTrackingAddRs requestID="1" statusCode="{status_code}" statusSeverity="Info" statusMessage="{status_message}">
      <TimeTrackingRet><TxnID>ABC-123</TxnID></TimeTrackingRet>
    </TimeTrackingAddRs>
  </QBXMLMsgsRs>
</QBXML>'''


class FakeRecordStore(RecordStore):
    """In-memory record store that remembers every call"""

    def __init__(self, records=None, fetch_error=None, mark_error=None):
        self.records = list(records or [])
        self.fetch_error = fetch_error
        self.mark_error = mark_error
        self.fetch_calls = 0
        self.mark_calls = []

    def fetch_pending(self):
        self.fetch_calls += 1
        if self.fetch_error:
            raise self.fetch_error
        return list(self.records)

    def mark_synced(self, record_ids):
        ids = list(record_ids)
        self.mark_calls.append(ids)
        if self.mark_error:
            raise self.mark_error
        return len(ids)


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def qbwc_config():
    return QBWCConfig(username=USERNAME, password=PASSWORD)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SessionRegistry(idle_timeout=timedelta(minutes=30), clock=clock)


@pytest.fixture
def store():
    return FakeRecordStore([make_record('T-1'), make_record('T-2', '2.0'), make_record('T-3', '0.25')])


@pytest.fixture
def audit():
    engine = create_db_engine('sqlite://', echo=False)
    init_db(engine)
    return SyncAuditLog(create_session_factory(engine))


@pytest.fixture
def service(qbwc_config, registry, store):
    return QBWCService(qbwc_config, registry, store)


@pytest.fixture
def ticket(service):
    ticket, status = service.authenticate(USERNAME, PASSWORD)
    assert status == ''
    return ticket


@pytest.fixture
def app(registry, store):
    from common.config import Config
    cfg = Config()
    cfg.qbwc = QBWCConfig(username=USERNAME, password=PASSWORD, app_name='Tripp In Time Sync')
    cfg.database.url = ''
    application = create_app(cfg, record_store=store, registry=registry)
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    """Create a test client for the Flask app"""
    with app.test_client() as client:
        yield client
