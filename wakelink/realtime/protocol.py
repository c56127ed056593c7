"""Message shapes for the realtime duplex protocol."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional, Sequence, Union

from wakelink.core.events import Complete, PartialResult, ProtocolError, RemoteEvent

logger = logging.getLogger(__name__)

ITEM_ADDED = "response.output_item.added"
RESPONSE_DONE = "response.done"
ERROR = "error"


def response_create(instructions: str, modalities: Sequence[str]) -> Dict[str, Any]:
    return {
        "type": "response.create",
        "response": {
            "modalities": list(modalities),
            "instructions": instructions,
        },
    }


def audio_item(pcm: bytes) -> Dict[str, Any]:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": "user",
            "content": [
                {
                    "type": "input_audio",
                    "audio": base64.b64encode(pcm).decode("ascii"),
                }
            ],
        },
    }


def _item_text(message: Dict[str, Any]) -> Optional[str]:
    item = message.get("item")
    if not isinstance(item, dict):
        return None
    content = item.get("content")
    if not isinstance(content, list) or not content or not isinstance(content[0], dict):
        return None
    text = content[0].get("text")
    return text if isinstance(text, str) and text else None


def _error_detail(message: Dict[str, Any]) -> str:
    error = message.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if error:
        return json.dumps(error) if not isinstance(error, str) else error
    return "unspecified error"


def decode_server_message(raw: Union[str, bytes]) -> Optional[RemoteEvent]:
    """Map one inbound message to a remote event, or None when it is not consumed."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError, UnicodeDecodeError):
        logger.warning("Ignoring undecodable message (%d bytes)", len(raw or b""))
        return None
    if not isinstance(message, dict):
        return None

    kind = message.get("type")
    if kind == ITEM_ADDED:
        text = _item_text(message)
        return PartialResult(text) if text is not None else None
    if kind == RESPONSE_DONE:
        return Complete()
    if kind == ERROR:
        return ProtocolError(_error_detail(message))
    return None
