"""
extipam - external IPAM adapter.

Delegates IPv4 address bookkeeping for a provisioning host to an external
IP Address Management product, coordinating concurrent "next free address"
requests so the same address is never handed out twice.
"""

__version__ = "0.1.0"
