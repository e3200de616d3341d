"""
Canonical broker connection states.

The messaging gateway is the only writer; every other component reads the
value through the gateway's ``state`` property or ``get_status()``.
"""

from enum import Enum


class ConnectionState(Enum):
    """Connection states for the messaging gateway state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
