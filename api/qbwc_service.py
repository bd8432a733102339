#!/usr/bin/env python3
"""
QuickBooks Web Connector (QBWC) SOAP Service

Implements the QBWC protocol to push completed time entries from the
timesheet store into QuickBooks Desktop. The Web Connector polls this service
periodically.

Protocol Flow:
1. authenticate() - Validates credentials, returns session ticket
2. sendRequestXML() - Returns one TimeTrackingAdd request per call
3. receiveResponseXML() - Reads QB status, marks the entry synced, reports progress
4. closeConnection() - Cleans up session

The cursor only moves in receiveResponseXML(), once QuickBooks has said what
happened to the entry handed out by the previous sendRequestXML().
"""

import hmac
from typing import Callable, Iterable, List, Optional, Tuple, Union

import bcrypt

from api.qbxml import build_time_tracking_add, parse_time_tracking_response
from api.sessions import QBWCSession, SessionRegistry, SessionState
from api.soap import (
    Procedure, SoapCall, SoapDecodeError, build_soap_fault, build_soap_response,
    decode_soap_request,
)
from collectors.timesheets.mapping import PendingRecord
from common.config import QBWCConfig
from common.logging import get_logger
from storage.audit import SyncAuditLog

logger = get_logger(__name__)

# authenticate() status values understood by the Web Connector
AUTH_WORK_AVAILABLE = ''
AUTH_NO_WORK = 'none'
AUTH_INVALID_USER = 'nvu'

PROGRESS_ERROR = -1


class RecordStore:
    """Interface of the store the pending time entries come from."""

    def fetch_pending(self) -> List[PendingRecord]:
        raise NotImplementedError

    def mark_synced(self, record_ids: Iterable[str]) -> int:
        raise NotImplementedError


def verify_password(plain_password: str, qbwc_config: QBWCConfig) -> bool:
    """Verify the Web Connector password against the configured hash or secret"""
    if qbwc_config.password_hash:
        try:
            return bcrypt.checkpw(plain_password.encode('utf-8'),
                                  qbwc_config.password_hash.encode('utf-8'))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    if not qbwc_config.password:
        logger.warning("No password configured for QBWC")
        return False

    return hmac.compare_digest(plain_password.encode('utf-8'),
                               qbwc_config.password.encode('utf-8'))


class QBWCService:
    """Dispatches the eight Web Connector procedures against a session registry."""

    def __init__(self, qbwc_config: QBWCConfig, registry: SessionRegistry,
                 record_store: RecordStore,
                 renderer: Optional[Callable[[PendingRecord], str]] = None,
                 audit: Optional[SyncAuditLog] = None):
        self.config = qbwc_config
        self.registry = registry
        self.record_store = record_store
        self.renderer = renderer or (
            lambda record: build_time_tracking_add(record, qbwc_config.default_customer)
        )
        self.audit = audit

    # ==========================================================================
    # QBWC Protocol Methods
    # ==========================================================================

    def server_version(self) -> str:
        return self.config.server_version

    def client_version(self, version: str) -> str:
        """Accept every Web Connector version (empty string = no warning)"""
        logger.info(f"Client version: {version}")
        return ''

    def authenticate(self, username: str, password: str) -> List[str]:
        """
        Handle authenticate SOAP method.

        Returns:
            [ticket, ""] on success. The empty status means "work available"
            even when the store turns out to be empty; sendRequestXML() then
            ends the session with an empty request. ["", "nvu"] on bad
            credentials, with no session created.
        """
        logger.info(f"QBWC authenticate called for user: {username}")
        self.registry.sweep()

        if username != self.config.username or not verify_password(password, self.config):
            logger.warning(f"Invalid QBWC credentials for user: {username}")
            self._audit_event('qbwc_auth', False, username=username or 'unknown',
                              failure_reason='invalid_credentials')
            return ['', AUTH_INVALID_USER]

        ticket = self.registry.create()
        self._audit_event('qbwc_auth', True, username=username, ticket=ticket)
        return [ticket, AUTH_WORK_AVAILABLE]

    def send_request_xml(self, ticket: str, company_file_name: str = '') -> str:
        """
        Handle sendRequestXML SOAP method.

        Returns the QBXML request for the entry under the cursor, or an empty
        string when there is nothing (more) to do.
        """
        session = self.registry.get(ticket)
        if session is None or not session.authenticated:
            logger.warning(f"sendRequestXML with invalid session ticket: {ticket}")
            return ''

        if company_file_name:
            logger.debug(f"Company file for session {ticket}: {company_file_name}")

        with session.lock:
            self.registry.touch(session)

            if session.needs_fetch and not self._fetch_records(session):
                return ''

            while True:
                record = session.current_record()
                if record is None:
                    logger.info(f"No more entries to sync for session {ticket}")
                    return ''

                logger.info(
                    f"Building QBXML for entry {session.cursor + 1}/{len(session.pending_records)}: "
                    f"{record.record_id}"
                )
                try:
                    return self.renderer(record)
                except Exception as e:
                    logger.error(f"Could not build QBXML for entry {record.record_id}: {e}",
                                 exc_info=True)
                    session.last_error = f"Entry {record.record_id}: {e}"
                    self._audit_outcome(session, record, False, status_message=str(e))
                    session.advance()

    def receive_response_xml(self, ticket: str, response: str, hresult: str = '',
                             message: str = '') -> int:
        """
        Handle receiveResponseXML SOAP method.

        Returns:
            percent complete (0-100), or -1 when the ticket is unknown or the
            response could not be processed
        """
        session = self.registry.get(ticket)
        if session is None:
            logger.error(f"receiveResponseXML with invalid session ticket: {ticket}")
            return PROGRESS_ERROR

        with session.lock:
            self.registry.touch(session)

            record = session.current_record()
            if record is None:
                logger.error(f"receiveResponseXML without an outstanding request: {ticket}")
                session.last_error = 'No outstanding request for this session'
                return PROGRESS_ERROR

            if hresult and not (response or '').strip():
                logger.error(f"QuickBooks returned error: {hresult} - {message}")
                session.last_error = f"{hresult}: {message}"
                self._audit_outcome(session, record, False, status_code=hresult,
                                    status_message=message)
                session.advance()
                return PROGRESS_ERROR

            try:
                result = parse_time_tracking_response(response or '')

                if result is None:
                    logger.warning(f"No TimeTrackingAddRs in response for entry {record.record_id}")
                elif result.success:
                    self.record_store.mark_synced([record.record_id])
                    logger.info(f"Successfully synced entry: {record.record_id}")
                    self._audit_outcome(session, record, True, status_code=result.status_code,
                                        status_message=result.status_message)
                else:
                    logger.error(
                        f"QB Error for entry {record.record_id}: "
                        f"{result.status_code} - {result.status_message}"
                    )
                    session.last_error = (result.status_message
                                          or f"QuickBooks status {result.status_code}")
                    self._audit_outcome(session, record, False, status_code=result.status_code,
                                        status_message=result.status_message)
            except Exception as e:
                logger.error(f"Error processing QB response for entry {record.record_id}: {e}",
                             exc_info=True)
                session.last_error = str(e)
                if session.state == SessionState.STREAMING:
                    session.advance()
                return PROGRESS_ERROR

            if session.state != SessionState.STREAMING:
                logger.warning(f"Session {ticket} closed while processing entry {record.record_id}")
                return PROGRESS_ERROR

            progress = session.advance()
            logger.info(f"Sync progress: {progress}%")
            return progress

    def connection_error(self, ticket: str, hresult: str = '', message: str = '') -> str:
        """Handle connectionError SOAP method; the session stays open"""
        logger.error(f"Connection error for {ticket}: {hresult} {message}")

        session = self.registry.get(ticket)
        if session is not None:
            with session.lock:
                session.last_error = message
            self._audit_event('qbwc_connection_error', False, ticket=ticket,
                              details={'hresult': hresult}, failure_reason=message)

        return 'done'

    def get_last_error(self, ticket: str) -> str:
        """Handle getLastError SOAP method."""
        session = self.registry.get(ticket)
        if session is None:
            return ''
        with session.lock:
            return session.last_error or ''

    def close_connection(self, ticket: str) -> str:
        """Handle closeConnection SOAP method."""
        logger.info(f"Closing connection for ticket: {ticket}")

        session = self.registry.get(ticket)
        self.registry.destroy(ticket)

        if session is not None:
            self._audit_event('qbwc_sync', not session.last_error, ticket=ticket, details={
                'entries_total': len(session.pending_records),
                'entries_processed': session.cursor,
            }, failure_reason=session.last_error or None)

        return 'OK'

    # ==========================================================================
    # SOAP Request/Response Handling
    # ==========================================================================

    def dispatch(self, call: SoapCall) -> Union[str, int, List[str]]:
        """Run a decoded procedure call and return its result value"""
        params = call.params
        procedure = call.procedure

        if procedure == Procedure.SERVER_VERSION:
            return self.server_version()
        if procedure == Procedure.CLIENT_VERSION:
            return self.client_version(params.version)
        if procedure == Procedure.AUTHENTICATE:
            return self.authenticate(params.username, params.password)
        if procedure == Procedure.SEND_REQUEST_XML:
            return self.send_request_xml(params.ticket, params.company_file_name)
        if procedure == Procedure.RECEIVE_RESPONSE_XML:
            return self.receive_response_xml(params.ticket, params.response,
                                             params.hresult, params.message)
        if procedure == Procedure.CONNECTION_ERROR:
            return self.connection_error(params.ticket, params.hresult, params.message)
        if procedure == Procedure.GET_LAST_ERROR:
            return self.get_last_error(params.ticket)
        if procedure == Procedure.CLOSE_CONNECTION:
            return self.close_connection(params.ticket)

        raise ValueError(f"Unhandled procedure: {procedure}")

    def process_request(self, soap_request: bytes) -> Tuple[bytes, int]:
        """
        Process a QBWC SOAP request and return the response.

        Args:
            soap_request: Raw SOAP XML request bytes

        Returns:
            (SOAP XML response bytes, HTTP status code)
        """
        try:
            call = decode_soap_request(soap_request)
        except SoapDecodeError as e:
            logger.warning(f"Rejected SOAP request: {e}")
            return build_soap_fault('soap:Client', str(e)), 500

        logger.info(f"Processing QBWC method: {call.procedure.value}")

        try:
            result = self.dispatch(call)
            return build_soap_response(call.procedure, result), 200
        except Exception as e:
            logger.error(f"Error processing QBWC request: {e}", exc_info=True)
            return build_soap_fault('soap:Server', f'Internal error: {str(e)}'), 500

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _fetch_records(self, session: QBWCSession) -> bool:
        """Fix the session worklist; on failure record the error and report no work"""
        logger.info("Fetching pending entries from timesheet store...")
        session.begin_fetch()
        try:
            records = self.record_store.fetch_pending()
        except Exception as e:
            logger.error(f"Error fetching pending entries: {e}", exc_info=True)
            session.fail_fetch(str(e))
            return False

        session.load_records(records)
        logger.info(f"Found {len(session.pending_records)} entries to sync")
        return True

    def _audit_event(self, action: str, success: bool, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log_event(action, success, **kwargs)

    def _audit_outcome(self, session: QBWCSession, record: PendingRecord, synced: bool,
                       status_code: Optional[str] = None,
                       status_message: Optional[str] = None) -> None:
        if self.audit is not None:
            self.audit.log_outcome(session.ticket, record.record_id, synced,
                                   status_code=status_code, status_message=status_message)


__all__ = ['QBWCService', 'RecordStore', 'verify_password',
           'AUTH_WORK_AVAILABLE', 'AUTH_NO_WORK', 'AUTH_INVALID_USER', 'PROGRESS_ERROR']
