"""Errors raised by the Vantage API client."""

from typing import Optional


class VantageError(Exception):
    """Base class for upstream failures."""


class VantageTransportError(VantageError):
    """Network failure or timeout while talking to Vantage."""


class VantageStatusError(VantageError):
    """Vantage answered with a non-200 status."""

    def __init__(self, status_code: int, body: str, endpoint: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"API returned status {status_code}: {body}")


class VantageDecodeError(VantageError):
    """Response body could not be decoded into the expected shape."""
