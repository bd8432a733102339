"""
SOAP envelope handling for the QuickBooks Web Connector contract.

Requests are decoded into a SoapCall (procedure + typed parameters) before
dispatch; responses and faults are built with lxml.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Union
from xml.sax.saxutils import escape

from lxml import etree

# SOAP Namespaces
SOAP_NS = 'http://schemas.xmlsoap.org/soap/envelope/'
QBWC_NS = 'http://developer.intuit.com/'


class SoapDecodeError(ValueError):
    """Raised when a request envelope cannot be turned into a procedure call."""


class Procedure(str, Enum):
    SERVER_VERSION = 'serverVersion'
    CLIENT_VERSION = 'clientVersion'
    AUTHENTICATE = 'authenticate'
    SEND_REQUEST_XML = 'sendRequestXML'
    RECEIVE_RESPONSE_XML = 'receiveResponseXML'
    CONNECTION_ERROR = 'connectionError'
    GET_LAST_ERROR = 'getLastError'
    CLOSE_CONNECTION = 'closeConnection'


@dataclass(frozen=True)
class ServerVersionParams:
    pass


@dataclass(frozen=True)
class ClientVersionParams:
    version: str = ''


@dataclass(frozen=True)
class AuthenticateParams:
    username: str = ''
    password: str = ''

    def __repr__(self) -> str:
        return f"AuthenticateParams(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class SendRequestXMLParams:
    ticket: str = ''
    hcp_response: str = ''
    company_file_name: str = ''
    qbxml_country: str = ''
    qbxml_major_vers: int = 0
    qbxml_minor_vers: int = 0


@dataclass(frozen=True)
class ReceiveResponseXMLParams:
    ticket: str = ''
    response: str = ''
    hresult: str = ''
    message: str = ''


@dataclass(frozen=True)
class ConnectionErrorParams:
    ticket: str = ''
    hresult: str = ''
    message: str = ''


@dataclass(frozen=True)
class TicketParams:
    ticket: str = ''


Params = Union[
    ServerVersionParams, ClientVersionParams, AuthenticateParams, SendRequestXMLParams,
    ReceiveResponseXMLParams, ConnectionErrorParams, TicketParams,
]


@dataclass(frozen=True)
class SoapCall:
    procedure: Procedure
    params: Params


# Wire parameters per procedure: (element name, attribute name, XSD type)
PROCEDURE_PARAMS: Dict[Procedure, List[Tuple[str, str, str]]] = {
    Procedure.SERVER_VERSION: [],
    Procedure.CLIENT_VERSION: [('strVersion', 'version', 'string')],
    Procedure.AUTHENTICATE: [
        ('strUserName', 'username', 'string'),
        ('strPassword', 'password', 'string'),
    ],
    Procedure.SEND_REQUEST_XML: [
        ('ticket', 'ticket', 'string'),
        ('strHCPResponse', 'hcp_response', 'string'),
        ('strCompanyFileName', 'company_file_name', 'string'),
        ('qbXMLCountry', 'qbxml_country', 'string'),
        ('qbXMLMajorVers', 'qbxml_major_vers', 'int'),
        ('qbXMLMinorVers', 'qbxml_minor_vers', 'int'),
    ],
    Procedure.RECEIVE_RESPONSE_XML: [
        ('ticket', 'ticket', 'string'),
        ('response', 'response', 'string'),
        ('hresult', 'hresult', 'string'),
        ('message', 'message', 'string'),
    ],
    Procedure.CONNECTION_ERROR: [
        ('ticket', 'ticket', 'string'),
        ('hresult', 'hresult', 'string'),
        ('message', 'message', 'string'),
    ],
    Procedure.GET_LAST_ERROR: [('ticket', 'ticket', 'string')],
    Procedure.CLOSE_CONNECTION: [('ticket', 'ticket', 'string')],
}

PROCEDURE_RESULT_TYPES = {
    Procedure.SERVER_VERSION: 'string',
    Procedure.CLIENT_VERSION: 'string',
    Procedure.AUTHENTICATE: 'ArrayOfString',
    Procedure.SEND_REQUEST_XML: 'string',
    Procedure.RECEIVE_RESPONSE_XML: 'int',
    Procedure.CONNECTION_ERROR: 'string',
    Procedure.GET_LAST_ERROR: 'string',
    Procedure.CLOSE_CONNECTION: 'string',
}

PARAM_CLASSES = {
    Procedure.SERVER_VERSION: ServerVersionParams,
    Procedure.CLIENT_VERSION: ClientVersionParams,
    Procedure.AUTHENTICATE: AuthenticateParams,
    Procedure.SEND_REQUEST_XML: SendRequestXMLParams,
    Procedure.RECEIVE_RESPONSE_XML: ReceiveResponseXMLParams,
    Procedure.CONNECTION_ERROR: ConnectionErrorParams,
    Procedure.GET_LAST_ERROR: TicketParams,
    Procedure.CLOSE_CONNECTION: TicketParams,
}


def _parse_int(name: str, value: str) -> int:
    if not value.strip():
        return 0
    try:
        return int(value.strip())
    except ValueError:
        raise SoapDecodeError(f"Parameter {name} must be an integer, got {value!r}")


def decode_soap_request(soap_xml: bytes) -> SoapCall:
    """
    Decode a SOAP request into the procedure call it carries.

    Raises:
        SoapDecodeError: malformed envelope, missing body or unknown procedure
    """
    if not soap_xml or not soap_xml.strip():
        raise SoapDecodeError("Empty SOAP request")

    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.fromstring(soap_xml, parser)
    except etree.XMLSyntaxError as e:
        raise SoapDecodeError(f"Could not parse SOAP request: {e}")

    body = root.find('{%s}Body' % SOAP_NS)
    if body is None:
        raise SoapDecodeError("SOAP request has no Body")

    # The first element child of Body is the method element
    method = next((child for child in body if isinstance(child.tag, str)), None)
    if method is None:
        raise SoapDecodeError("SOAP Body does not name a method")

    method_name = etree.QName(method).localname
    try:
        procedure = Procedure(method_name)
    except ValueError:
        raise SoapDecodeError(f"Unknown method: {method_name}")

    # Extract parameters
    raw = {}
    for param in method:
        if isinstance(param.tag, str):
            raw[etree.QName(param).localname] = param.text or ''

    values = {}
    for wire_name, attr, xsd_type in PROCEDURE_PARAMS[procedure]:
        value = raw.get(wire_name, '')
        values[attr] = _parse_int(wire_name, value) if xsd_type == 'int' else value

    return SoapCall(procedure=procedure, params=PARAM_CLASSES[procedure](**values))


def build_soap_response(procedure: Procedure, result: Union[str, int, List[str]]) -> bytes:
    """
    Build SOAP response XML for a QBWC procedure.

    Args:
        procedure: the procedure being answered
        result: list of strings for authenticate, otherwise a single value

    Returns:
        SOAP response XML as bytes
    """
    method_name = procedure.value
    envelope = etree.Element('{%s}Envelope' % SOAP_NS, nsmap={'soap': SOAP_NS})
    body = etree.SubElement(envelope, '{%s}Body' % SOAP_NS)

    response_elem = etree.SubElement(body, '{%s}%sResponse' % (QBWC_NS, method_name),
                                     nsmap={None: QBWC_NS})
    result_elem = etree.SubElement(response_elem, '{%s}%sResult' % (QBWC_NS, method_name))

    if procedure == Procedure.AUTHENTICATE:
        # authenticate returns an array of strings
        for value in result:
            string_elem = etree.SubElement(result_elem, '{%s}string' % QBWC_NS)
            string_elem.text = value
    else:
        result_elem.text = str(result)

    return etree.tostring(envelope, xml_declaration=True, encoding='utf-8')


def build_soap_fault(fault_code: str, fault_string: str) -> bytes:
    """Build a SOAP Fault response"""
    envelope = etree.Element('{%s}Envelope' % SOAP_NS, nsmap={'soap': SOAP_NS})
    body = etree.SubElement(envelope, '{%s}Body' % SOAP_NS)
    fault = etree.SubElement(body, '{%s}Fault' % SOAP_NS)

    faultcode = etree.SubElement(fault, 'faultcode')
    faultcode.text = fault_code

    faultstring = etree.SubElement(fault, 'faultstring')
    faultstring.text = fault_string

    return etree.tostring(envelope, xml_declaration=True, encoding='utf-8')


def _occurs(xsd_type: str) -> str:
    # ints are value types in the .NET client and may not be omitted
    return '' if xsd_type == 'int' else ' minOccurs="0"'


def _schema_elements(procedure: Procedure) -> str:
    name = procedure.value
    params = ''.join(
        f'\n            <s:element name="{wire}" type="s:{xsd}"{_occurs(xsd)}/>'
        for wire, _, xsd in PROCEDURE_PARAMS[procedure]
    )
    request = (
        f'      <s:element name="{name}">\n'
        f'        <s:complexType>\n'
        f'          <s:sequence>{params}\n'
        f'          </s:sequence>\n'
        f'        </s:complexType>\n'
        f'      </s:element>\n'
    ) if params else f'      <s:element name="{name}">\n        <s:complexType/>\n      </s:element>\n'

    result_type = PROCEDURE_RESULT_TYPES[procedure]
    xsd_result = 'tns:ArrayOfString' if result_type == 'ArrayOfString' else f's:{result_type}'
    occurs = _occurs(result_type)
    response = (
        f'      <s:element name="{name}Response">\n'
        f'        <s:complexType>\n'
        f'          <s:sequence>\n'
        f'            <s:element name="{name}Result" type="{xsd_result}"{occurs}/>\n'
        f'          </s:sequence>\n'
        f'        </s:complexType>\n'
        f'      </s:element>\n'
    )
    return request + response


def get_wsdl(soap_address: str) -> bytes:
    """
    Generate WSDL for the QBWC service.

    The WSDL defines the SOAP interface that the QuickBooks Web Connector expects.
    """
    address = escape(soap_address, {'"': '&quot;'})
    schema = ''.join(_schema_elements(p) for p in Procedure)
    messages = ''.join(
        f'  <message name="{p.value}SoapIn"><part name="parameters" element="tns:{p.value}"/></message>\n'
        f'  <message name="{p.value}SoapOut"><part name="parameters" element="tns:{p.value}Response"/></message>\n'
        for p in Procedure
    )
    port_ops = ''.join(
        f'    <operation name="{p.value}">'
        f'<input message="tns:{p.value}SoapIn"/><output message="tns:{p.value}SoapOut"/></operation>\n'
        for p in Procedure
    )
    binding_ops = ''.join(
        f'    <operation name="{p.value}">\n'
        f'      <soap:operation soapAction="{QBWC_NS}{p.value}" style="document"/>\n'
        f'      <input><soap:body use="literal"/></input>\n'
        f'      <output><soap:body use="literal"/></output>\n'
        f'    </operation>\n'
        for p in Procedure
    )

    wsdl = f'''<?xml version="1.0" encoding="utf-8"?>
<definitions xmlns="http://schemas.xmlsoap.org/wsdl/"
             xmlns:soap="http://schemas.xmlsoap.org/wsdl/soap/"
             xmlns:tns="{QBWC_NS}"
             xmlns:s="http://www.w3.org/2001/XMLSchema"
             targetNamespace="{QBWC_NS}"
             name="QBWebConnectorSvc">

  <types>
    <s:schema elementFormDefault="qualified" targetNamespace="{QBWC_NS}">
{schema}      <s:complexType name="ArrayOfString">
        <s:sequence>
          <s:element name="string" type="s:string" nillable="true" minOccurs="0" maxOccurs="unbounded"/>
        </s:sequence>
      </s:complexType>
    </s:schema>
  </types>

{messages}
  <portType name="QBWebConnectorSvcSoap">
{port_ops}  </portType>

  <binding name="QBWebConnectorSvcSoap" type="tns:QBWebConnectorSvcSoap">
    <soap:binding transport="http://schemas.xmlsoap.org/soap/http"/>
{binding_ops}  </binding>

  <service name="QBWebConnectorSvc">
    <port name="QBWebConnectorSvcSoap" binding="tns:QBWebConnectorSvcSoap">
      <soap:address location="{address}"/>
    </port>
  </service>
</definitions>'''

    return wsdl.encode('utf-8')
