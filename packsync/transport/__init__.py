"""
Transport Layer.

This package fetches pack locations over http(s) or from the local filesystem,
sharing one connection pool and retrying transient failures.
"""

from .fetcher import Fetcher, close_connection_pool, get_connection_pool

__all__ = ["Fetcher", "close_connection_pool", "get_connection_pool"]
