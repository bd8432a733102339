"""
Clients for the external systems the bridge reads from
"""
