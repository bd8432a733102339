#!/usr/bin/env python3
"""
Generate the QuickBooks Web Connector (.qwc) file for this bridge.

The Web Connector imports this file to learn where the SOAP endpoint lives,
which user to authenticate as and how often to poll.

Usage:
    python3 scripts/generate_qwc.py --app-url https://bridge.example.com/qbwc [--output time_sync.qwc]
"""

import argparse
import sys
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit
from xml.sax.saxutils import escape

from common.config import config, QBWCConfig

DEFAULT_OWNER_ID = '{57F3B9B1-86F1-4fcc-B1EE-566DE1813D20}'


def build_qwc(qbwc_config: QBWCConfig, app_url: str, run_every_minutes: int = 15,
              owner_id: str = DEFAULT_OWNER_ID, file_id: Optional[str] = None,
              support_url: Optional[str] = None) -> str:
    """Build the .qwc XML for the given endpoint URL"""
    parsed = urlsplit(app_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("App URL must be a valid absolute URL")

    cert_url = f"{parsed.scheme}://{parsed.netloc}"
    support_url = support_url or f"{cert_url}/support"
    file_id = file_id or f"{{{uuid.uuid4()}}}"

    return (
        '<?xml version="1.0"?>\n'
        '<QBWCXML>\n'
        f'  <AppName>{escape(qbwc_config.app_name)}</AppName>\n'
        '  <AppID></AppID>\n'
        f'  <AppURL>{escape(app_url)}</AppURL>\n'
        f'  <CertURL>{escape(cert_url)}</CertURL>\n'
        f'  <AppDescription>{escape(qbwc_config.app_description)}</AppDescription>\n'
        f'  <AppSupport>{escape(support_url)}</AppSupport>\n'
        f'  <UserName>{escape(qbwc_config.username)}</UserName>\n'
        f'  <OwnerID>{escape(owner_id)}</OwnerID>\n'
        f'  <FileID>{escape(file_id)}</FileID>\n'
        '  <QBType>QBFS</QBType>\n'
        '  <Scheduler>\n'
        f'    <RunEveryNMinutes>{run_every_minutes}</RunEveryNMinutes>\n'
        '  </Scheduler>\n'
        '  <IsReadOnly>false</IsReadOnly>\n'
        '</QBWCXML>\n'
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate the Web Connector .qwc file')
    parser.add_argument('--app-url', default=config.qbwc.soap_address,
                        help='Public HTTPS URL of the SOAP endpoint (default: QBWC_SOAP_ADDRESS)')
    parser.add_argument('--output', default='qbwc_time_sync.qwc', help='Output file path')
    parser.add_argument('--run-every', type=int, default=15, help='Polling interval in minutes')
    parser.add_argument('--owner-id', default=DEFAULT_OWNER_ID, help='OwnerID GUID')
    parser.add_argument('--file-id', help='FileID GUID (random when omitted)')
    args = parser.parse_args(argv)

    if not args.app_url:
        parser.error('--app-url is required when QBWC_SOAP_ADDRESS is not set')

    try:
        qwc = build_qwc(config.qbwc, args.app_url, run_every_minutes=args.run_every,
                        owner_id=args.owner_id, file_id=args.file_id)
    except ValueError as e:
        parser.error(str(e))

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(qwc, encoding='utf-8')
    print(f"Wrote QWC file to {output_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
