"""
Error types for the WQL query client.

Every failure surfaced by the client derives from ``QueryClientError`` so the
batch runner can isolate one failing unit of work from the rest.
"""

from __future__ import annotations

from typing import Optional


class QueryClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(QueryClientError):
    """Missing or malformed configuration."""


class IoError(QueryClientError):
    """Local file-system operation failed."""


class NetworkError(QueryClientError):
    """Connect, handshake, write or read on the wire failed."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        """
        Initialize error.

        Args:
            message: Error description
            last_error: Underlying cause of the final failed attempt
        """
        super().__init__(message)
        self.last_error = last_error


class TransportSpentError(NetworkError):
    """A transport was offered for a second exchange."""

    def __init__(self):
        super().__init__("Transport already used for an exchange; open a new connection")


class ConnectionClosedEarly(QueryClientError):
    """Peer closed the connection before sending a single byte."""

    def __init__(self):
        super().__init__("Connection closed by server")


class ReadLimitExceeded(QueryClientError):
    """Response exceeded the configured size or duration bound."""

    def __init__(self, limit: str, received: int):
        """
        Initialize error.

        Args:
            limit: Which bound was hit, e.g. "max_bytes=1048576"
            received: Bytes received before giving up
        """
        super().__init__(f"Response read limit exceeded ({limit}) after {received} bytes")
        self.limit = limit
        self.received = received


class ParseError(QueryClientError):
    """Inbound payload is not a well-formed response."""


class SignatureError(QueryClientError):
    """Response signature did not match; the response is untrusted."""

    def __init__(self, message: str = "Invalid response signature"):
        super().__init__(message)


class ExhaustedRetries(QueryClientError):
    """A retried collaborator call failed on every attempt."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[object] = None):
        """
        Initialize error.

        Args:
            operation: Human-readable name of the retried call
            attempts: Number of attempts made
            last_error: Exception or description of the final failure
        """
        message = f"Failed to {operation} after {attempts} attempts"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class AuthError(QueryClientError):
    """Collaborator login rejected or no token available."""


__all__ = [
    "QueryClientError",
    "ConfigError",
    "IoError",
    "NetworkError",
    "TransportSpentError",
    "ConnectionClosedEarly",
    "ReadLimitExceeded",
    "ParseError",
    "SignatureError",
    "ExhaustedRetries",
    "AuthError",
]
