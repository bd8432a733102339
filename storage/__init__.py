"""
Audit storage for the QBWC time bridge
"""

from .schema import Base, QBWCAuditLog, QBWCSyncHistory

__all__ = [
    'Base',
    'QBWCAuditLog',
    'QBWCSyncHistory',
]
