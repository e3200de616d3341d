"""Exception taxonomy for broker messaging."""

from __future__ import annotations


class MessagingError(RuntimeError):
    """Base class for messaging gateway failures."""


class BrokerTransportError(MessagingError):
    """Raised when a message cannot be sent at all (no connection, channel failure)."""


class BrokerRequestTimeout(MessagingError):
    """Raised when a request was sent but no correlated reply arrived in time."""

    def __init__(self, correlation_id: str, timeout_ms: float) -> None:
        super().__init__(f"No reply for request {correlation_id} within {timeout_ms:g}ms")
        self.correlation_id = correlation_id
        self.timeout_ms = timeout_ms


class EnvelopeDecodeError(MessagingError):
    """Raised when a broker payload is not a valid message envelope."""


__all__ = [
    "BrokerRequestTimeout",
    "BrokerTransportError",
    "EnvelopeDecodeError",
    "MessagingError",
]
