"""
Pytest configuration and shared fixtures for wabot tests.

Provides an in-memory socket that records handlers and sent
messages, so the bot can be driven without a WhatsApp connection.
"""
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from wabot.bot import WhatsAppBot
from wabot.config import BotConfig

USER_JID = "15551234567@s.whatsapp.net"


class FakeSocket:
    """Socket double with the same surface and close behaviour as the real adapter."""

    def __init__(self):
        self.handlers: Dict[str, List[Any]] = {}
        self.sent: List[tuple] = []
        self.send_errors: List[Exception] = []
        self.connect_error: Optional[Exception] = None
        self.connected = False
        self.closed = False
        self.creds_saved = 0

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    async def emit(self, event, payload=None):
        for handler in self.handlers.get(event, []):
            await handler(payload)

    async def connect(self):
        if self.connect_error:
            raise self.connect_error
        self.connected = True

    async def send_message(self, jid, content):
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append((jid, content))

    async def save_creds(self):
        self.creds_saved += 1

    async def close(self):
        # pyaileys emits the close update from inside close()
        self.closed = True
        await self.emit("connection.update", {"connection": "close", "lastDisconnect": None})

    @property
    def sent_texts(self) -> List[str]:
        return [content["text"] for _, content in self.sent]


class FakeSocketFactory:
    """Builds FakeSockets and can be told to fail the next calls."""

    def __init__(self):
        self.sockets: List[FakeSocket] = []
        self.failures: List[Exception] = []
        self.configs: List[BotConfig] = []

    async def __call__(self, config):
        self.configs.append(config)
        if self.failures:
            raise self.failures.pop(0)
        sock = FakeSocket()
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def bot_config(tmp_path):
    """Config with instant reconnects and a temp auth folder."""
    return BotConfig(auth_dir=str(tmp_path / "auth_info"), reconnect_delay=0)


@pytest.fixture
def socket_factory():
    return FakeSocketFactory()


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 17, 15, 4, 5)


@pytest.fixture
def qr_calls():
    return []


@pytest.fixture
def bot(bot_config, socket_factory, fixed_now, qr_calls):
    """Bot wired to the fake socket factory, a fixed clock and a QR recorder."""
    return WhatsAppBot(
        bot_config,
        socket_factory=socket_factory,
        clock=lambda: fixed_now,
        qr_printer=qr_calls.append,
    )


@pytest.fixture
def make_message():
    """Build a raw WAMessage dict."""

    def _make(
        text: Optional[str] = None,
        chat: str = USER_JID,
        from_me: bool = False,
        content: Optional[Dict[str, Any]] = None,
        msg_id: str = "3EB0C767D82B",
    ) -> Dict[str, Any]:
        if content is None:
            content = {"conversation": text}
        return {
            "key": {"remoteJid": chat, "fromMe": from_me, "id": msg_id},
            "message": content,
            "pushName": "Alice",
        }

    return _make
