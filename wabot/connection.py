"""
WhatsApp Connection
===================

Socket contract used by the bot, disconnect helpers, and the
adapter around the pyaileys multi-device client.

The bot only talks to objects shaped like ``WhatsAppSocket``:

- ``on(event, handler)`` for ``connection.update``, ``creds.update``
  and ``messages.upsert`` (one message per event for pyaileys)
- ``connect()``, ``send_message(jid, {"text": ...})``, ``save_creds()``
  and ``close()``

Payloads handed to handlers are plain dicts in the WAMessage shape,
whatever the underlying library emits.
"""

import dataclasses
import inspect
import logging
import re
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Protocol

if TYPE_CHECKING:
    from .config import BotConfig

logger = logging.getLogger(__name__)

CONNECTION_UPDATE = "connection.update"
CREDS_UPDATE = "creds.update"
MESSAGES_UPSERT = "messages.upsert"

# pyaileys event names
MESSAGE_DECRYPTED = "message.decrypted"
FAILURE_STANZA = "stanza.failure"

_STREAM_ERROR_CODE = re.compile(r"stream error (\d+)")

Handler = Callable[[Any], Any]


class DisconnectReason(IntEnum):
    """Status codes reported when the WhatsApp connection closes."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    TIMED_OUT = 408
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


class WhatsAppSocket(Protocol):
    """What the bot needs from a connected WhatsApp client."""

    def on(self, event: str, handler: Handler) -> Any: ...

    async def connect(self) -> Any: ...

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any: ...

    async def save_creds(self) -> Any: ...

    async def close(self) -> Any: ...


SocketFactory = Callable[["BotConfig"], Awaitable[WhatsAppSocket]]


def _field(obj: Any, *names: str) -> Any:
    """Read the first present key or attribute from a dict or object."""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, dict):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


def disconnect_status_code(last_disconnect: Any) -> Optional[int]:
    """
    Extract the HTTP-like status code from a ``lastDisconnect`` record.

    Accepts Boom-style errors (``error.output.statusCode``), errors with
    a ``status_code``/``statusCode`` field, or a code on the record itself.
    """
    error = _field(last_disconnect, "error")
    output = _field(error, "output")

    for candidate in (
        _field(output, "statusCode", "status_code"),
        _field(error, "statusCode", "status_code"),
        _field(last_disconnect, "statusCode", "status_code"),
    ):
        if candidate is None:
            continue
        try:
            return int(candidate)
        except (TypeError, ValueError):
            continue
    return None


def should_reconnect(last_disconnect: Any) -> bool:
    """Reconnect after every close except an explicit logout."""
    return disconnect_status_code(last_disconnect) != DisconnectReason.LOGGED_OUT


def disconnect_message(last_disconnect: Any) -> str:
    """Human readable reason for a closed connection."""
    error = _field(last_disconnect, "error")
    if error is None:
        return "unknown"
    message = _field(error, "message")
    if message:
        return str(message)
    return str(error) or type(error).__name__


def to_plain(payload: Any) -> Any:
    """Convert library payloads (protobuf, dataclasses, objects) into dicts."""
    if payload is None or isinstance(payload, (str, bytes, int, float, bool)):
        return payload
    if isinstance(payload, dict):
        return {key: to_plain(value) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [to_plain(item) for item in payload]
    if hasattr(payload, "DESCRIPTOR"):
        from google.protobuf.json_format import MessageToDict

        return MessageToDict(payload)
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        return to_plain(dataclasses.asdict(payload))
    if hasattr(payload, "to_dict"):
        return to_plain(payload.to_dict())
    if hasattr(payload, "__dict__"):
        return {
            key: to_plain(value)
            for key, value in vars(payload).items()
            if not key.startswith("_")
        }
    return payload


def disconnect_record(error: Any, status_code: Optional[int] = None) -> Any:
    """
    Wrap a bare exception into a ``{"error": {...}}`` disconnect record.

    pyaileys reports drops as plain exceptions such as
    ``TransportError("WhatsApp stream error 401: ...")``. The status code is
    taken from that text, or from ``status_code`` when the caller knows it.
    Records that are already dicts or objects pass through unchanged.
    """
    if not isinstance(error, BaseException):
        return error

    record: Dict[str, Any] = {"message": str(error) or type(error).__name__}
    match = _STREAM_ERROR_CODE.search(str(error))
    if match:
        status_code = int(match.group(1))
    if status_code is not None:
        record["output"] = {"statusCode": status_code}
    return {"error": record}


def normalize_connection_update(update: Any, status_code: Optional[int] = None) -> Dict[str, Any]:
    """Map a connection update onto ``{"connection", "lastDisconnect", "qr"}``."""
    last_disconnect = _field(update, "lastDisconnect", "last_disconnect")
    connection = _field(update, "connection")
    if connection == "close" and last_disconnect is None and status_code is not None:
        last_disconnect = {
            "error": {"message": "Connection Failure", "output": {"statusCode": status_code}}
        }
    return {
        "connection": connection,
        "lastDisconnect": disconnect_record(last_disconnect, status_code),
        "qr": _field(update, "qr"),
    }


def normalize_decrypted_message(payload: Any, from_me: bool = False) -> Dict[str, Any]:
    """
    Map a pyaileys ``message.decrypted`` payload onto a one-message upsert.

    The payload carries ``id``, ``chat_jid``, ``sender_jid`` and the decrypted
    protobuf ``message``; the result is ``{"messages": [WAMessage], "type": "notify"}``.
    """
    key = {
        "remoteJid": _field(payload, "chat_jid"),
        "fromMe": bool(from_me),
        "id": _field(payload, "id"),
        "participant": _field(payload, "sender_jid"),
    }
    message = {"key": key, "message": to_plain(_field(payload, "message"))}
    timestamp = _field(payload, "timestamp_s")
    if timestamp:
        message["messageTimestamp"] = timestamp
    return {"messages": [message], "type": "notify"}


class PyaileysSocket:
    """
    Adapter from ``pyaileys.WhatsAppClient`` to the bot's socket contract.

    pyaileys names its inbound event ``message.decrypted``; handlers
    registered for ``messages.upsert`` are attached to it. A ``<failure>``
    stanza from the server is remembered so the following close carries
    its reason code (401 when the device was logged out).

    Usage:
        sock = await open_pyaileys_socket(config)
        sock.on("messages.upsert", handler)
        await sock.connect()
    """

    def __init__(self, client: Any, auth_state: Any):
        self._client = client
        self._auth_state = auth_state
        self._failure_code: Optional[int] = None
        self._client.on(FAILURE_STANZA, self._on_failure)

    @property
    def client(self) -> Any:
        return self._client

    def on(self, event: str, handler: Handler) -> None:
        """Register a handler that receives normalized payloads."""
        if event == MESSAGES_UPSERT:
            library_event, normalize = MESSAGE_DECRYPTED, self._normalize_decrypted
        elif event == CONNECTION_UPDATE:
            library_event, normalize = event, self._normalize_connection_update
        else:
            library_event, normalize = event, lambda payload: payload

        async def _forward(payload: Any) -> None:
            result = handler(normalize(payload))
            if inspect.isawaitable(result):
                await result

        self._client.on(library_event, _forward)

    async def _on_failure(self, stanza: Any) -> None:
        attrs = _field(stanza, "attrs") or {}
        reason = str(attrs.get("reason") or "")
        if reason.isdigit():
            self._failure_code = int(reason)
            logger.warning(f"WhatsApp refused the connection (reason {reason})")

    def _normalize_connection_update(self, update: Any) -> Dict[str, Any]:
        status_code = None
        if _field(update, "connection") == "close":
            status_code, self._failure_code = self._failure_code, None
        return normalize_connection_update(update, status_code)

    def _normalize_decrypted(self, payload: Any) -> Dict[str, Any]:
        return normalize_decrypted_message(payload, self._is_own_jid(_field(payload, "sender_jid")))

    def _is_own_jid(self, jid: Optional[str]) -> bool:
        """True when ``jid`` is this account's phone number or LID, any device."""
        from pyaileys.wabinary.jid import jid_normalized_user

        me = _field(_field(self._auth_state, "creds"), "me")
        if not jid or me is None:
            return False
        own = {jid_normalized_user(_field(me, name)) for name in ("id", "lid") if _field(me, name)}
        return jid_normalized_user(jid) in own

    async def connect(self) -> None:
        await self._client.connect()

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any:
        """Send a text message (``{"text": ...}``) to a chat."""
        text = content.get("text")
        if text is None:
            raise ValueError("Only text messages are supported")
        return await self._client.send_text(jid, text)

    async def save_creds(self) -> None:
        await self._auth_state.save_creds()

    async def close(self) -> None:
        await self._client.disconnect()


async def open_pyaileys_socket(config: "BotConfig") -> PyaileysSocket:
    """
    Build a pyaileys client backed by the multi-file auth folder.

    The library's own auto-reconnect is switched off; the bot decides
    when to reconnect.

    Raises:
        ImportError: pyaileys is not installed
    """
    try:
        from pyaileys import WhatsAppClient
        from pyaileys.socket_config import SocketConfig
    except ImportError as e:
        raise ImportError(
            f"{e}. Install the WhatsApp client with: pip install 'wa-command-bot[whatsapp]'"
        ) from e

    auth_dir = Path(config.auth_dir).expanduser().resolve()
    auth_dir.mkdir(parents=True, exist_ok=True)

    has_creds = (auth_dir / "creds.json").is_file()
    if has_creds:
        logger.info(f"Restoring WhatsApp session from {auth_dir}")
    else:
        logger.info(f"No saved session in {auth_dir}, a QR code will be shown")

    client, auth_state = await WhatsAppClient.from_auth_folder(
        str(auth_dir), socket=SocketConfig(auto_reconnect=False)
    )
    return PyaileysSocket(client, auth_state)
