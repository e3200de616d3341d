"""Building blocks used by the messaging gateway."""

from .pending_replies import PendingReply, PendingReplyTable
from .reconnection import ReconnectionHandler, ReconnectionPolicy
from .streams import decode_stream_response, ensure_consumer_group, stream_publish, trim_expired

__all__ = [
    "PendingReply",
    "PendingReplyTable",
    "ReconnectionHandler",
    "ReconnectionPolicy",
    "decode_stream_response",
    "ensure_consumer_group",
    "stream_publish",
    "trim_expired",
]
