"""
Broker message envelope.

Every event and every request/reply travels as the same JSON object::

    {"id", "timestamp", "source", "type", "data" | "query",
     "correlationId"?, "replyTo"?, "severity"?}

Replies may carry their ``{status, data | error}`` body at the top level
instead of under ``data``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import orjson

from .errors import EnvelopeDecodeError

_REPLY_BODY_KEYS = ("status", "data", "error")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        return _utcnow()
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:  # policy_guard: allow-silent-handler
        return _utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class BrokerMessage:
    """One envelope, used uniformly for events, requests and replies."""

    source: str
    message_type: str
    payload: Dict[str, Any]
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    severity: Optional[str] = None
    payload_key: str = "data"

    @classmethod
    def event(cls, source: str, message_type: str, data: Dict[str, Any], *, severity: Optional[str] = None) -> "BrokerMessage":
        return cls(source=source, message_type=message_type, payload=data, severity=severity)

    @classmethod
    def request(
        cls,
        source: str,
        message_type: str,
        query: Dict[str, Any],
        *,
        correlation_id: str,
        reply_to: str,
    ) -> "BrokerMessage":
        return cls(
            source=source,
            message_type=message_type,
            payload=query,
            correlation_id=correlation_id,
            reply_to=reply_to,
            payload_key="query",
        )

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "id": self.message_id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "type": self.message_type,
            self.payload_key: self.payload,
        }
        if self.correlation_id is not None:
            document["correlationId"] = self.correlation_id
        if self.reply_to is not None:
            document["replyTo"] = self.reply_to
        if self.severity is not None:
            document["severity"] = self.severity
        return document

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict()).decode()

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "BrokerMessage":
        try:
            document = orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            raise EnvelopeDecodeError("Envelope is not valid JSON") from exc
        if not isinstance(document, dict):
            raise EnvelopeDecodeError("Envelope must be a JSON object")
        return cls.from_dict(document)

    @classmethod
    def from_dict(cls, document: Dict[str, Any]) -> "BrokerMessage":
        message_id = document.get("id")
        if not message_id:
            raise EnvelopeDecodeError("Envelope is missing 'id'")

        if "status" in document:
            payload_key = "data"
            payload = {key: document[key] for key in _REPLY_BODY_KEYS if key in document}
        elif "query" in document:
            payload_key = "query"
            payload = document["query"]
        else:
            payload_key = "data"
            payload = document.get("data", {})
        if not isinstance(payload, dict):
            payload = {"value": payload}

        return cls(
            source=str(document.get("source", "")),
            message_type=str(document.get("type", "")),
            payload=payload,
            message_id=str(message_id),
            timestamp=_parse_timestamp(document.get("timestamp")),
            correlation_id=document.get("correlationId"),
            reply_to=document.get("replyTo"),
            severity=document.get("severity"),
            payload_key=payload_key,
        )


__all__ = ["BrokerMessage"]
