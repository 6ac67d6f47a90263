"""
Web Layer.

Remote document retrieval and host-based authentication routing.
"""

from .auth import HostKind, auth_headers, classify_host
from .manifest_fetcher import ManifestFetcher

__all__ = ["HostKind", "ManifestFetcher", "auth_headers", "classify_host"]
