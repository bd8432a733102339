from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, JSON, Index
)
from datetime import datetime

# Create the base class for all models
Base = declarative_base()

# Create metadata instance
metadata = Base.metadata


class QBWCAuditLog(Base):
    """Audit log - one row per authentication attempt or session event"""
    __tablename__ = 'qbwc_audit_log'

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False)
    username = Column(String(255))
    ticket = Column(String(64))
    success = Column(Boolean, nullable=False)
    details = Column(JSON)
    failure_reason = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_qbwc_audit_log_action', 'action'),
        Index('idx_qbwc_audit_log_created_at', 'created_at'),
    )


class QBWCSyncHistory(Base):
    """Sync history - outcome of each time entry handed to the Web Connector"""
    __tablename__ = 'qbwc_sync_history'

    id = Column(Integer, primary_key=True)
    ticket = Column(String(64), nullable=False)
    record_id = Column(String(255), nullable=False)
    synced = Column(Boolean, nullable=False)
    status_code = Column(String(20))
    status_message = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_qbwc_sync_history_ticket', 'ticket'),
        Index('idx_qbwc_sync_history_record_id', 'record_id'),
    )
