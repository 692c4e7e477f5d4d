"""
WhatsApp Bot
============

Event-handler glue between a WhatsApp socket and the command table.

Handles:
- connection lifecycle (QR display, open/close, reconnect)
- credential persistence
- inbound message filtering and command replies
"""

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .commands import CommandContext, CommandTable, build_default_commands
from .config import BotConfig
from .connection import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    SocketFactory,
    WhatsAppSocket,
    disconnect_message,
    open_pyaileys_socket,
    should_reconnect,
)
from .log import describe
from .messages import get_message_type, parse_message, skip_reason
from .qr import print_qr

logger = logging.getLogger(__name__)

ERROR_REPLY = "⚠️ Sorry, there was an error processing your command."


class WhatsAppBot:
    """
    Command bot on top of a WhatsApp socket.

    Usage:
        bot = WhatsAppBot(BotConfig())
        await bot.run()
    """

    def __init__(
        self,
        config: Optional[BotConfig] = None,
        socket_factory: Optional[SocketFactory] = None,
        commands: Optional[CommandTable] = None,
        clock: Callable[[], datetime] = datetime.now,
        qr_printer: Callable[[str], Any] = print_qr,
    ):
        """
        Initialize the bot.

        Args:
            config: Bot configuration (defaults if not provided)
            socket_factory: Async callable building a socket from the config
            commands: Command table (built-in commands if not provided)
            clock: Source of the current time for !time
            qr_printer: Callable that displays a pairing QR string
        """
        self.config = config or BotConfig.default()
        self.commands = commands or build_default_commands()
        self._socket_factory = socket_factory or open_pyaileys_socket
        self._clock = clock
        self._qr_printer = qr_printer

        self._socket: Optional[WhatsAppSocket] = None
        self._connected = False
        self._reconnect_attempts = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def socket(self) -> Optional[WhatsAppSocket]:
        return self._socket

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def stopped(self) -> bool:
        return self._stopped is not None and self._stopped.is_set()

    def _stop_event(self) -> asyncio.Event:
        if self._stopped is None:
            self._stopped = asyncio.Event()
        return self._stopped

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> Optional[WhatsAppSocket]:
        """
        Open a new socket and register the event handlers on it.

        Returns:
            The socket, or None when connecting failed (a reconnect is scheduled)
        """
        self._stop_event()
        try:
            sock = await self._socket_factory(self.config)

            sock.on(CONNECTION_UPDATE, self._bind(sock, self.handle_connection_update))
            sock.on(CREDS_UPDATE, self._bind(sock, self.handle_creds_update))
            sock.on(MESSAGES_UPSERT, self._bind(sock, self.handle_messages_upsert))

            self._socket = sock
            await sock.connect()
            return sock

        except ImportError:
            raise
        except Exception as e:
            logger.error(f"Error in main loop: {e}")
            self._schedule_reconnect()
            return None

    async def run(self):
        """Connect and block until the bot is stopped or logged out."""
        stopped = self._stop_event()
        await self.connect()
        try:
            await stopped.wait()
        finally:
            await self._close_socket()

    async def stop(self):
        """Stop reconnecting and close the current socket."""
        stopped = self._stop_event()
        stopped.set()

        task = self._reconnect_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._reconnect_task = None

        await self._close_socket()
        logger.info("Bot stopped")

    def _bind(self, sock: WhatsAppSocket, handler: Callable[[Any], Awaitable[Any]]):
        """Wrap ``handler`` so it only sees events from the current socket."""

        async def _handler(payload: Any = None):
            if sock is not self._socket:
                logger.debug("Ignoring event from a replaced socket")
                return
            await handler(payload)

        return _handler

    async def _close_socket(self):
        # Detach first: the close event the socket emits must not look current.
        sock, self._socket = self._socket, None
        self._connected = False
        if sock is None:
            return
        try:
            await sock.close()
        except Exception as e:
            logger.debug(f"Error closing socket: {e}")

    def _schedule_reconnect(self):
        """Start a reconnect attempt, or stop when the policy forbids it."""
        if self.stopped:
            return

        pending = self._reconnect_task
        if pending and not pending.done() and pending is not asyncio.current_task():
            logger.debug("Reconnect already pending")
            return

        if not self.config.reconnect:
            logger.warning("Reconnect disabled, stopping bot")
            self._stop_event().set()
            return

        limit = self.config.max_reconnect_attempts
        if limit is not None and self._reconnect_attempts >= limit:
            logger.error(f"Giving up after {self._reconnect_attempts} reconnect attempts")
            self._stop_event().set()
            return

        self._reconnect_attempts += 1
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self):
        if self.config.reconnect_delay:
            await asyncio.sleep(self.config.reconnect_delay)
        if self.stopped:
            return
        await self._close_socket()
        await self.connect()

    # =========================================================================
    # Event handlers
    # =========================================================================

    async def handle_connection_update(self, update: Dict[str, Any]):
        """Handle ``connection.update`` events."""
        try:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Connection update: {describe(update)}")
            connection = update.get("connection")
            last_disconnect = update.get("lastDisconnect")
            qr = update.get("qr")

            if qr:
                logger.info("Scan QR code below to login:")
                if self.config.print_qr:
                    self._qr_printer(qr)

            if connection == "close":
                self._connected = False
                logger.error(f"Connection closed due to: {disconnect_message(last_disconnect)}")

                if should_reconnect(last_disconnect):
                    logger.info("Reconnecting...")
                    self._schedule_reconnect()
                else:
                    logger.warning(
                        "Logged out from WhatsApp. Delete "
                        f"{self.config.auth_dir} and scan a new QR code to log in again."
                    )
                    self._stop_event().set()

            elif connection == "open":
                self._connected = True
                self._reconnect_attempts = 0
                logger.info("Bot is now connected and ready!")

        except Exception as e:
            logger.error(f"Error handling connection update: {e}", exc_info=True)

    async def handle_creds_update(self, _creds: Any = None):
        """Persist credentials whenever the library updates them."""
        if self._socket is None:
            return
        try:
            await self._socket.save_creds()
        except Exception as e:
            logger.error(f"Error saving credentials: {e}")

    async def handle_messages_upsert(self, upsert: Dict[str, Any]):
        """Handle every message in a ``messages.upsert`` batch."""
        for raw in upsert.get("messages") or []:
            try:
                await self.handle_message(raw)
            except Exception as e:
                logger.error(f"Error handling message: {e}")

    async def handle_message(self, raw: Dict[str, Any]):
        """Filter one raw message and answer it if it is a known command."""
        reason = skip_reason(raw)
        if reason:
            logger.debug(f"Skipping: {reason}")
            return

        message = parse_message(raw)
        if message is None:
            message_type = get_message_type(raw["message"])
            logger.debug(f"Skipping: Unsupported message type: {message_type}")
            return

        logger.debug("===== New Message =====")
        logger.debug(f"Type: {message.message_type}")
        logger.debug(f"Content: {message.text}")
        logger.debug(f"From: {message.chat}")
        logger.debug("=====================")

        if not message.text or not message.text.startswith("!"):
            return

        ctx = CommandContext(
            text=message.text,
            chat=message.chat,
            now=self._clock(),
            about_text=self.config.about_text,
            table=self.commands,
        )

        try:
            reply = self.commands.dispatch(ctx)
            if reply is None:
                return
            await self._socket.send_message(message.chat, {"text": reply.text})
            logger.info(reply.log_message)
        except Exception as e:
            logger.error(f"Error sending response: {e}")
            with contextlib.suppress(Exception):
                await self._socket.send_message(message.chat, {"text": ERROR_REPLY})
