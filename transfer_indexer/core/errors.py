# transfer_indexer/core/errors.py
"""
Exception taxonomy for the transfer indexer.

Business conflicts (a conditional update that matches no row) are not
exceptions; they are reported through return values.
"""

from typing import Optional


class IndexerError(Exception):
    """Base class for all transfer indexer errors"""


class ConfigurationError(IndexerError):
    """Invalid or missing configuration. Fatal, never retried."""


class RpcError(IndexerError):
    """Chain RPC call failed"""
    
    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class EndpointsExhaustedError(RpcError):
    """Failover was requested but no backup endpoint is left"""


class StoreError(IndexerError):
    """Persistence store failure (lost connection, failed statement)"""
