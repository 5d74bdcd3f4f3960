"""JSON envelope for fanout events: {"event": <type>, "data": {...}}."""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any
from uuid import UUID


def _default(o: object) -> Any:
    if isinstance(o, UUID):
        return str(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    raise TypeError(f"{type(o).__name__} is not JSON serializable")


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"event": str(event_type), "data": payload}, default=_default)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Raises ValueError for anything that is not an event envelope."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
        raise ValueError("Not an event envelope")
    data = envelope.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Event data must be an object")
    return envelope["event"], data
