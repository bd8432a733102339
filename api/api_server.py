#!/usr/bin/env python3
"""
QBWC Time Bridge API Server

Serves the QuickBooks Web Connector SOAP endpoint and its WSDL, plus support
and health pages.

Usage:
    python3 -m api.api_server
    # Server runs on http://0.0.0.0:3000 (HOST / PORT)
"""

from datetime import timedelta
from typing import Optional

from flask import Flask

from api.qbwc_api import qbwc_api, SERVICE_KEY
from api.qbwc_service import QBWCService, RecordStore
from api.sessions import SessionRegistry
from collectors.timesheets.api import TimesheetStoreAPI
from common.config import Config, config as default_config
from common.db import check_db_connection, create_db_engine, create_session_factory, init_db
from common.logging import setup_logging, get_logger
from storage.audit import SyncAuditLog

logger = get_logger(__name__)


def build_audit_log(cfg: Config) -> Optional[SyncAuditLog]:
    """Create the audit log when an audit database is configured"""
    if not cfg.database.enabled:
        return None

    engine = create_db_engine(cfg.database.url, echo=cfg.app.debug)
    if not check_db_connection(engine):
        logger.error("QBWC audit database unreachable, audit trail disabled")
        return None

    init_db(engine)
    logger.info("QBWC audit trail enabled")
    return SyncAuditLog(create_session_factory(engine))


def create_app(cfg: Optional[Config] = None,
               record_store: Optional[RecordStore] = None,
               registry: Optional[SessionRegistry] = None,
               audit: Optional[SyncAuditLog] = None) -> Flask:
    """Build the Flask app with one QBWC service for the process lifetime"""
    cfg = cfg or default_config

    app = Flask(__name__)
    app.config.update(
        DEBUG=cfg.app.debug,
        QBWC_APP_NAME=cfg.qbwc.app_name,
        QBWC_APP_DESCRIPTION=cfg.qbwc.app_description,
        QBWC_SOAP_ADDRESS=cfg.qbwc.soap_address,
    )

    registry = registry or SessionRegistry(
        idle_timeout=timedelta(minutes=cfg.qbwc.session_timeout_minutes)
    )
    record_store = record_store or TimesheetStoreAPI(cfg.timesheets, timezone=cfg.app.timezone)
    if audit is None:
        audit = build_audit_log(cfg)

    app.extensions[SERVICE_KEY] = QBWCService(
        cfg.qbwc, registry, record_store, audit=audit
    )
    app.register_blueprint(qbwc_api)

    return app


def main():
    setup_logging()
    default_config.validate()

    app = create_app()
    logger.info(f"QBWC Bridge server running on port {default_config.app.port}")
    app.run(host=default_config.app.host, port=default_config.app.port,
            debug=default_config.app.debug, threaded=True)


if __name__ == '__main__':
    main()
