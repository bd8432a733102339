"""
Audit trail for Web Connector sessions.

Writes are best-effort: a failing audit database is logged and never changes
what the Web Connector sees.
"""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from common.db import session_scope
from common.logging import get_logger
from storage.schema import QBWCAuditLog, QBWCSyncHistory

logger = get_logger(__name__)


class SyncAuditLog:
    """Records authentication attempts, session events and record outcomes."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def log_event(self, action: str, success: bool, username: Optional[str] = None,
                  ticket: Optional[str] = None, details: Optional[dict] = None,
                  failure_reason: Optional[str] = None) -> None:
        """Log a session event for compliance"""
        try:
            with session_scope(self.session_factory) as session:
                session.add(QBWCAuditLog(
                    action=action,
                    username=username,
                    ticket=ticket,
                    success=success,
                    details=details,
                    failure_reason=failure_reason,
                ))
        except Exception as e:
            logger.error(f"Failed to write audit log: {e}")

    def log_outcome(self, ticket: str, record_id: str, synced: bool,
                    status_code: Optional[str] = None,
                    status_message: Optional[str] = None) -> None:
        """Log what QuickBooks said about one time entry"""
        try:
            with session_scope(self.session_factory) as session:
                session.add(QBWCSyncHistory(
                    ticket=ticket,
                    record_id=record_id,
                    synced=synced,
                    status_code=status_code,
                    status_message=status_message,
                ))
        except Exception as e:
            logger.error(f"Failed to write sync history for {record_id}: {e}")
