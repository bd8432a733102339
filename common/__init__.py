"""
Common utilities for the QBWC time bridge
"""

from .config import config
from .db import create_db_engine, create_session_factory, session_scope, init_db, check_db_connection
from .logging import setup_logging, get_logger

__all__ = [
    'config',
    'create_db_engine',
    'create_session_factory',
    'session_scope',
    'init_db',
    'check_db_connection',
    'setup_logging',
    'get_logger',
]
