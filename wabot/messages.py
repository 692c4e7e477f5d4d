"""
Inbound Messages
================

Filtering and text extraction for raw ``messages.upsert`` entries.

Raw messages use the WAMessage shape::

    {
        "key": {"remoteJid": "...", "fromMe": False, "id": "..."},
        "message": {"conversation": "!ping"},
        "pushName": "Alice",
    }
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

STATUS_BROADCAST_JID = "status@broadcast"

CONVERSATION = "conversation"
EXTENDED_TEXT = "extendedTextMessage"

# Protocol bookkeeping keys that ride along with the real content
_IGNORED_CONTENT_KEYS = ("messageContextInfo", "senderKeyDistributionMessage")


@dataclass
class InboundMessage:
    """Text message accepted for command processing."""

    chat: str
    message_type: str
    text: str
    message_id: Optional[str] = None
    sender: Optional[str] = None
    push_name: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return self.chat.endswith("@g.us")


def skip_reason(raw: Dict[str, Any]) -> Optional[str]:
    """
    Return why a raw message should be ignored, or None to process it.

    Checks run in order: missing content, status broadcast, own message.
    """
    if not raw or not raw.get("message"):
        return "No message content"

    key = raw.get("key") or {}
    if key.get("remoteJid") == STATUS_BROADCAST_JID:
        return "Status message"

    if key.get("fromMe"):
        return "Message from self"

    return None


def get_message_type(content: Dict[str, Any]) -> Optional[str]:
    """Return the content type key of a message payload."""
    for key in content:
        if key not in _IGNORED_CONTENT_KEYS:
            return key
    return None


def extract_text(content: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull the text out of a message payload.

    Returns:
        (message_type, text). text is None for unsupported types.
    """
    message_type = get_message_type(content)

    if message_type == CONVERSATION:
        return message_type, content.get(CONVERSATION) or ""
    if message_type == EXTENDED_TEXT:
        extended = content.get(EXTENDED_TEXT) or {}
        return message_type, extended.get("text") or ""

    return message_type, None


def parse_message(raw: Dict[str, Any]) -> Optional[InboundMessage]:
    """Build an InboundMessage from a raw entry, or None if it carries no text."""
    message_type, text = extract_text(raw["message"])
    if text is None:
        return None

    key = raw.get("key") or {}
    return InboundMessage(
        chat=key.get("remoteJid", ""),
        message_type=message_type,
        text=text,
        message_id=key.get("id"),
        sender=key.get("participant") or key.get("remoteJid"),
        push_name=raw.get("pushName"),
        raw_data=raw,
    )
