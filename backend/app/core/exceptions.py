"""
Error taxonomy for the sync platform

Services raise these; routers translate them into HTTP responses.
"""
from typing import Optional


class SyncPlatformError(Exception):
    """Base exception for all sync platform errors."""
    pass


class ConfigError(SyncPlatformError):
    """Raised when required credentials or secrets are not configured."""
    pass


class AuthError(SyncPlatformError):
    """Raised when a token refresh or code exchange is rejected."""
    pass


class UpstreamAuthError(AuthError):
    """Raised when bearer auth still fails after one refresh-and-retry cycle."""
    pass


class UpstreamError(SyncPlatformError):
    """Raised on a non-auth, non-2xx response from the marketplace API."""

    def __init__(self, status: int, body: str, message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"Marketplace API error ({status}): {body[:500]}")


class SignatureError(SyncPlatformError):
    """Raised when an inbound webhook signature does not match."""
    pass


class MalformedPayloadError(SyncPlatformError):
    """Raised when a webhook body is unparseable or incomplete."""
    pass


class NotFoundError(SyncPlatformError):
    """Raised when a referenced order or SKU does not exist."""
    pass


class SyncAlreadyRunningError(SyncPlatformError):
    """Raised when a sync is requested while another one is in flight."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"A sync is already running (run {run_id})")


class OAuthStateError(SyncPlatformError):
    """Raised when an OAuth callback carries an invalid, expired or reused state."""
    pass
