#!/usr/bin/env python3
"""
QuickBooks Web Connector API Blueprint

Provides Flask integration for the QBWC SOAP service: the SOAP endpoint, the
WSDL, and the plain pages the Web Connector and its users look at.
"""

from flask import Blueprint, current_app, request, jsonify, Response
from markupsafe import escape

from api.soap import get_wsdl
from common.logging import get_logger

logger = get_logger(__name__)

# Create Blueprint
qbwc_api = Blueprint('qbwc_api', __name__)

SERVICE_KEY = 'qbwc_service'


def get_service():
    return current_app.extensions[SERVICE_KEY]


def get_client_ip():
    """Get the client IP address from the request"""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    return request.remote_addr


def wsdl_response() -> Response:
    """Return WSDL; the SOAP address defaults to the endpoint being queried"""
    soap_address = current_app.config.get('QBWC_SOAP_ADDRESS') or request.base_url
    return Response(get_wsdl(soap_address), content_type='text/xml; charset=utf-8')


# ==============================================================================
# SOAP Endpoint - QuickBooks Web Connector
# ==============================================================================

@qbwc_api.route('/', methods=['POST'])
@qbwc_api.route('/qbwc', methods=['POST'])
@qbwc_api.route('/qbwc/', methods=['POST'])
def qbwc_soap_endpoint():
    """
    SOAP endpoint for QuickBooks Web Connector.

    This endpoint receives SOAP requests from the QBWC and processes them.
    """
    logger.info(f"QBWC SOAP request received from {get_client_ip()}")

    soap_response, status = get_service().process_request(request.get_data())

    return Response(
        soap_response,
        status=status,
        content_type='text/xml; charset=utf-8'
    )


@qbwc_api.route('/qbwc', methods=['GET'])
@qbwc_api.route('/qbwc/', methods=['GET'])
def qbwc_get():
    """WSDL when asked with ?wsdl, otherwise a quick liveness answer"""
    if 'wsdl' in request.args:
        return wsdl_response()
    return Response('OK', content_type='text/plain')


@qbwc_api.route('/', methods=['GET'])
def root_page():
    """Root page, also used by the Web Connector to verify the certificate"""
    if 'wsdl' in request.args:
        return wsdl_response()

    app_name = escape(current_app.config.get('QBWC_APP_NAME', 'QBWC Bridge'))
    return Response(f'''<!DOCTYPE html>
<html><head><title>QBWC Bridge</title></head>
<body><h1>QBWC Bridge Active</h1><p>QuickBooks Web Connector endpoint for {app_name}.</p></body></html>''',
                    content_type='text/html')


@qbwc_api.route('/support', methods=['GET'])
def support_page():
    """Support page referenced by the .qwc file"""
    app_name = escape(current_app.config.get('QBWC_APP_NAME', 'QBWC Bridge'))
    description = escape(current_app.config.get('QBWC_APP_DESCRIPTION', ''))
    return Response(f'''<!DOCTYPE html>
<html><head><title>{app_name} - Support</title></head>
<body style="font-family:sans-serif;padding:40px;max-width:600px;margin:0 auto;">
<h1>{app_name}</h1>
<p>{description}</p>
<p>For support, contact your administrator.</p>
</body></html>''', content_type='text/html')


@qbwc_api.route('/health', methods=['GET'])
def health_check():
    """Health check with the number of live Web Connector sessions"""
    registry = get_service().registry
    registry.sweep()
    return jsonify({
        'status': 'healthy',
        'active_sessions': len(registry),
    })


# Export blueprint
__all__ = ['qbwc_api', 'SERVICE_KEY']
