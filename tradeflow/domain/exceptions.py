"""
Domain exceptions for the TradeFlow journal engine.

Implements a hierarchy distinguishing between recoverable runtime errors
(network glitches, missing log entries, a revoked mirror file) and fatal
errors (bad configuration, rejected credentials) that end the current
sync cycle and need operator attention.
"""

from __future__ import annotations

from typing import Optional


class TradeflowError(Exception):
    """Base class for all TradeFlow domain exceptions."""
    pass


class RecoverableError(TradeflowError):
    """
    Errors that the engine can recover from without user intervention.

    Examples:
    - Temporary network disconnection
    - A transaction id that no longer resolves
    - A stop-loss candidate on the wrong side of entry
    """
    pass


class FatalError(TradeflowError):
    """
    Errors that abort the current cycle and must be surfaced to the user.

    Examples:
    - Invalid configuration
    - Broker authentication failure (wrong token or environment)
    """
    pass


class ConfigurationError(FatalError):
    """Invalid system configuration."""
    pass


class AuthError(FatalError):
    """Broker rejected the credentials (HTTP 401/403)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(RecoverableError):
    """Transport failure or non-success response from the broker API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(NetworkError):
    """Broker returned 404: no data for this lookup."""
    pass


class StopLossRejected(RecoverableError):
    """A stop-loss candidate lies on the wrong side of the entry price."""

    def __init__(self, candidate: float, entry_price: float, direction: str):
        super().__init__(
            f"Stop {candidate} invalid for {direction} entry at {entry_price}"
        )
        self.candidate = candidate
        self.entry_price = entry_price
        self.direction = direction


class PermissionRevoked(RecoverableError):
    """Write access to the external sync file was lost."""
    pass


class MalformedBackup(RecoverableError):
    """A backup bundle could not be parsed or validated."""
    pass


def classify_http_error(status_code: int, message: str = "") -> TradeflowError:
    """
    Map an HTTP error status from the broker into a typed exception.

    Args:
        status_code: HTTP status code of the failed response.
        message: Broker-supplied error message (``errorMessage``), if any.

    Returns:
        AuthError for 401/403, NotFoundError for 404, NetworkError otherwise.
    """
    detail = message or f"HTTP {status_code}"
    if status_code == 401:
        return AuthError(f"Unauthorized: {detail}", status_code)
    if status_code == 403:
        return AuthError(
            f"Insufficient authorization (check token, account and environment): {detail}",
            status_code,
        )
    if status_code == 404:
        return NotFoundError(f"Not found: {detail}", status_code)
    return NetworkError(f"Broker error ({status_code}): {detail}", status_code)
