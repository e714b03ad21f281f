"""
Exception hierarchy for the Kollider client.

Transport and authentication errors abort a session. Business errors
(rejected orders, failed cancellations) and timeouts are scoped to the
single call that raised them; the session stays usable afterwards.
"""

from typing import Any, Optional


class KolliderError(Exception):
    """Base exception for all client errors."""
    pass


class KolliderConnectionError(KolliderError):
    """Raised when the WebSocket cannot be established or is already closed."""
    pass


class AuthenticationError(KolliderError):
    """Raised when the authentication handshake fails."""
    pass


class CredentialsError(AuthenticationError, ValueError):
    """Raised when API credentials cannot be used to build a signer."""
    pass


class DecodeError(KolliderError):
    """Raised when an inbound frame cannot be decoded."""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class NoResponseError(KolliderError):
    """Raised when no matching reply arrives before the deadline or the stream ends."""

    def __init__(self, message: str = "There is no response from the server"):
        super().__init__(message)


class OrderRejectedError(KolliderError):
    """Raised when the exchange rejects a new order."""

    def __init__(self, order_id: Optional[int], reason: Any):
        super().__init__(f"Order {order_id} rejected, reason: {reason}")
        self.order_id = order_id
        self.reason = reason


class CancelFailedError(KolliderError):
    """Raised when the exchange refuses to cancel an order."""

    def __init__(self, order_id: int, symbol: str, reason: str):
        super().__init__(f"Cannot cancel order {order_id} ({symbol}), reason: {reason}")
        self.order_id = order_id
        self.symbol = symbol
        self.reason = reason
