"""
Document catalog API client.

Provides:
- OTP login passthrough
- Tag suggestions
- Document upload
- Document search mapped into DocumentRecord

Tokens are passed per call; the client keeps no session credentials.
"""

from .client import (
    ApiError,
    ApiErrorKind,
    AuthSession,
    CatalogClient,
    build_search_query,
)

__all__ = [
    "ApiError",
    "ApiErrorKind",
    "AuthSession",
    "CatalogClient",
    "build_search_query",
]
