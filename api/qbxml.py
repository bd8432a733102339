"""
QBXML builder and parser for QuickBooks time tracking.

Builds the TimeTrackingAdd request handed to the Web Connector for one time
entry, and reads the status QuickBooks reports back for it.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from lxml import etree

from collectors.timesheets.mapping import PendingRecord

QBXML_VERSION = '13.0'
DEFAULT_CUSTOMER = 'Shop'
NOTES_SEPARATOR = ' | '

_XML_ESCAPES = (
    ('&', '&amp;'),
    ('<', '&lt;'),
    ('>', '&gt;'),
    ('"', '&quot;'),
    ("'", '&apos;'),
)


def escape_xml(value) -> str:
    """Escape the five XML special characters"""
    if not value:
        return ''
    text = str(value)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def format_txn_date(moment: datetime) -> str:
    """Format the calendar date of a timestamp as YYYY-MM-DD"""
    return moment.strftime('%Y-%m-%d')


def duration_parts(hours: Decimal) -> Tuple[int, int]:
    """Split decimal hours into whole hours and minutes, rounding half away from zero"""
    total_minutes = int((Decimal(hours) * 60).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return divmod(total_minutes, 60)


def format_duration(hours: Decimal) -> str:
    """Format decimal hours as an ISO 8601 duration (PT#H#M)"""
    h, m = duration_parts(hours)
    if m == 0:
        return f'PT{h}H'
    return f'PT{h}H{m}M'


def is_billable(record: PendingRecord, default_customer: str = DEFAULT_CUSTOMER) -> bool:
    """A time entry is billable only for a real customer that requires billing"""
    return bool(record.customer_name) and record.customer_name != default_customer \
        and record.requires_billing


def build_notes(record: PendingRecord, default_customer: str = DEFAULT_CUSTOMER) -> str:
    notes = []
    if record.customer_name and record.customer_name != default_customer:
        notes.append(f'Customer: {record.customer_name}')
    if record.job_name:
        notes.append(f'Job: {record.job_name}')
    if record.notes:
        notes.append(f'Notes: {record.notes}')
    return NOTES_SEPARATOR.join(notes)


def build_time_tracking_add(record: PendingRecord, default_customer: str = DEFAULT_CUSTOMER) -> str:
    """
    Build the QBXML TimeTrackingAdd request for one time entry.

    The employee name must match the QuickBooks employee list exactly; a
    mismatch comes back as a QuickBooks status error, not a protocol error.
    """
    employee_name = escape_xml(record.employee_name or 'Unknown')
    notes_text = escape_xml(build_notes(record, default_customer))

    qbxml = f'''<?xml version="1.0" encoding="utf-8"?>
<?qbxml version="{QBXML_VERSION}"?>
<QBXML>
  <QBXMLMsgsRq onError="stopOnError">
    <TimeTrackingAddRq>
      <TimeTrackingAdd>
        <TxnDate>{format_txn_date(record.clock_in)}</TxnDate>
        <EntityRef>
          <FullName>{employee_name}</FullName>
        </EntityRef>
        <Duration>{format_duration(record.total_hours)}</Duration>'''

    if is_billable(record, default_customer):
        qbxml += f'''
        <CustomerRef>
          <FullName>{escape_xml(record.customer_name)}</FullName>
        </CustomerRef>
        <BillableStatus>Billable</BillableStatus>'''
    else:
        qbxml += '''
        <BillableStatus>NotBillable</BillableStatus>'''

    if notes_text:
        qbxml += f'''
        <Notes>{notes_text}</Notes>'''

    qbxml += '''
      </TimeTrackingAdd>
    </TimeTrackingAddRq>
  </QBXMLMsgsRq>
</QBXML>'''

    return qbxml


@dataclass(frozen=True)
class TimeTrackingResult:
    """Status QuickBooks reported for one TimeTrackingAdd request"""
    status_code: str
    status_message: str = ''
    status_severity: str = ''
    txn_id: str = ''

    @property
    def success(self) -> bool:
        return self.status_code == '0'


def parse_time_tracking_response(qbxml_response: str) -> Optional[TimeTrackingResult]:
    """
    Parse the TimeTrackingAddRs status out of a QBXML response.

    Returns:
        TimeTrackingResult, or None when the response carries no
        TimeTrackingAddRs element

    Raises:
        etree.XMLSyntaxError: the response is not well-formed XML
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    root = etree.fromstring(qbxml_response.strip().encode('utf-8'), parser)

    rs = root.find('.//TimeTrackingAddRs')
    if rs is None:
        return None

    txn_id = rs.findtext('TimeTrackingRet/TxnID') or ''

    return TimeTrackingResult(
        status_code=rs.get('statusCode', ''),
        status_message=rs.get('statusMessage', ''),
        status_severity=rs.get('statusSeverity', ''),
        txn_id=txn_id,
    )
