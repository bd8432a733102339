"""
QuickBooks Web Connector endpoint: SOAP codec, sessions, dispatcher, Flask app
"""
