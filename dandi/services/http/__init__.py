"""HTTP client service package.

Provides a shared HTTP client with connection pooling for outbound calls.
"""

from dandi.services.http.client import HTTPClientManager, http_client_manager

__all__ = [
    "HTTPClientManager",
    "http_client_manager",
]
