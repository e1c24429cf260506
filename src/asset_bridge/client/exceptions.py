"""Custom exceptions for Asset Bridge.

This module defines exception classes for the error conditions that can
occur while importing assets: configuration problems, source-system
authentication, single network calls, field mapping and encrypted
configuration handling.
"""


class BridgeError(Exception):
    """Base exception for all Asset Bridge errors."""

    pass


class ConfigurationError(BridgeError):
    """Raised when configuration is invalid or missing.

    Fatal: aborts the run before any source fetch.
    """

    pass


class UnsupportedSourceError(ConfigurationError):
    """Raised when a source type has no registered adapter."""

    def __init__(self, source_type: str, supported: list[str]):
        """Initialize unsupported source error.

        Args:
            source_type: The requested source type identifier
            supported: All identifiers (canonical and aliases) that are accepted
        """
        self.source_type = source_type
        self.supported = sorted(supported)
        super().__init__(
            f"Unsupported source type: '{source_type}'. "
            f"Supported types: {', '.join(self.supported)}"
        )


class SourceAuthenticationError(BridgeError):
    """Raised when a source adapter fails to authenticate."""

    pass


class NotAuthenticatedError(BridgeError):
    """Raised when data is requested before a successful authentication."""

    pass


class TransportError(BridgeError):
    """Base class for failures of a single network call."""

    pass


class NetworkError(TransportError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class APIError(TransportError):
    """Raised when a remote API answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class AssetNotFoundError(BridgeError):
    """Raised when a source system has no asset for the requested identifier."""

    def __init__(self, asset_id: str, source: str | None = None):
        self.asset_id = asset_id
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Asset not found{where}: {asset_id}")


class MappingResolutionError(BridgeError):
    """Raised when a single field mapping cannot be resolved."""

    def __init__(self, target_field: str, reason: str):
        self.target_field = target_field
        self.reason = reason
        super().__init__(f"Cannot resolve field '{target_field}': {reason}")


class DecryptionError(BridgeError):
    """Raised when an encrypted configuration blob cannot be used."""

    pass


class BlobFormatError(DecryptionError):
    """Raised when an encrypted blob is malformed."""

    pass


class BlobAuthenticationError(DecryptionError):
    """Raised when an encrypted blob fails its integrity check.

    Covers a wrong secret, a wrong nonce and any tampering with the blob.
    """

    pass
