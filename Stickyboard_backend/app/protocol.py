"""JSON frame codec for the room websocket."""

import json
import logging

from pydantic import TypeAdapter, ValidationError

from app.config import settings
from schemas.events import INBOUND_EVENT_TYPES, InboundEvent, OutboundEvent

logger = logging.getLogger("stickyboard.protocol")

_inbound_adapter = TypeAdapter(InboundEvent)


class DecodeError(Exception):
    """Raised for frames that cannot be turned into an inbound event."""


def decode_event(raw: str | bytes, *, max_bytes: int | None = None) -> InboundEvent | None:
    """Parse one inbound frame.

    Returns ``None`` for well-formed messages whose tag is not handled by the
    room; raises :class:`DecodeError` for anything malformed.
    """
    limit = max_bytes if max_bytes is not None else settings.MAX_MESSAGE_BYTES
    if raw is None:
        raise DecodeError("empty frame")
    if isinstance(raw, str):
        data = raw.encode("utf-8")
    else:
        data = bytes(raw)
    if len(data) > limit:
        raise DecodeError(f"frame exceeds {limit} bytes")
    try:
        message = json.loads(data.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError("frame is not valid utf-8") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"bad json: {exc}") from exc
    if not isinstance(message, dict):
        raise DecodeError("message must be object")

    tag = message.get("type")
    if not isinstance(tag, str) or not tag:
        raise DecodeError("missing type")
    if tag not in INBOUND_EVENT_TYPES:
        logger.info("EVENT_IGNORED type=%s", tag[:64])
        return None
    try:
        return _inbound_adapter.validate_python(message)
    except ValidationError as exc:
        fields = ",".join(".".join(str(p) for p in err["loc"][1:]) or "-" for err in exc.errors())
        raise DecodeError(f"invalid {tag}: {fields}") from exc


def encode_event(event: OutboundEvent) -> str:
    return event.model_dump_json()
