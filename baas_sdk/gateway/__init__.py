"""
Gateway module for the BaaS SDK.

This module provides the transport to the BaaS JSON-RPC gateway: endpoint
address caching with failover, request authentication and retrying HTTP
transport.
"""
from .auth import AuthSigner, compute_signature
from .endpoint import EndpointCache
from .retry import RetryPolicy
from .transport import GatewayTransport, HTTPTransport

__all__ = ['AuthSigner', 'compute_signature', 'EndpointCache', 'RetryPolicy',
           'GatewayTransport', 'HTTPTransport']
