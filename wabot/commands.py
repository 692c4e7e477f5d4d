"""
Command Table
=============

Fixed "!"-prefixed commands the bot answers.

Commands are looked up by their lowercased literal trigger
(``!ping``, ``!help``, ...). Prefix commands such as ``!echo``
are only tried when no literal trigger matches.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "!"

DEFAULT_ABOUT_TEXT = "*WhatsApp Bot*\nA simple bot created with pyaileys"


@dataclass
class CommandContext:
    """Everything a command handler needs to build its reply."""

    text: str
    chat: str
    now: datetime = field(default_factory=datetime.now)
    about_text: str = DEFAULT_ABOUT_TEXT
    table: Optional["CommandTable"] = None


@dataclass
class CommandReply:
    """Reply produced by a matched command."""

    command: str
    text: str
    log_message: str


@dataclass
class Command:
    """A single bot command."""

    name: str
    description: str
    handler: Callable[[CommandContext], Optional[str]]
    usage: Optional[str] = None
    prefix: bool = False
    log_label: str = ""

    @property
    def trigger(self) -> str:
        return f"{COMMAND_PREFIX}{self.name}"

    def help_line(self) -> str:
        return f"{self.usage or self.trigger} - {self.description}"

    def matches(self, command: str) -> bool:
        """Check a lowercased message against this command's trigger."""
        if self.prefix:
            return command.startswith(self.trigger + " ")
        return command == self.trigger


class CommandTable:
    """
    Ordered registry of bot commands.

    Registration order is the order used by the help text.
    """

    def __init__(self, commands: Optional[List[Command]] = None):
        self._commands: Dict[str, Command] = {}
        for command in commands or []:
            self.register(command)

    def register(self, command: Command) -> Command:
        """Add a command. Names must be unique."""
        if command.name in self._commands:
            raise ValueError(f"Command already registered: {command.trigger}")
        self._commands[command.name] = command
        return command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name.lstrip(COMMAND_PREFIX).lower())

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __iter__(self):
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def help_text(self) -> str:
        """Build the help message listing every command."""
        lines = [command.help_line() for command in self]
        return "*Available Commands:*\n\n" + "\n".join(lines)

    def dispatch(self, ctx: CommandContext) -> Optional[CommandReply]:
        """
        Find the command for a message and run it.

        Args:
            ctx: Context holding the original message text

        Returns:
            CommandReply, or None when nothing should be sent back
        """
        text = ctx.text or ""
        if not text.startswith(COMMAND_PREFIX):
            return None

        if ctx.table is None:
            ctx.table = self

        command = text.lower()
        matched = self._commands.get(command[len(COMMAND_PREFIX):])
        if matched is None or matched.prefix:
            matched = next(
                (c for c in self if c.prefix and c.matches(command)),
                None,
            )

        if matched is None:
            logger.debug(f"No command matches: {command}")
            return None

        reply = matched.handler(ctx)
        if not reply:
            return None

        log_message = matched.log_label.format(text=reply)
        return CommandReply(command=matched.name, text=reply, log_message=log_message)


def format_time(now: datetime) -> str:
    """Render a datetime like an en-US locale string (10/17/2026, 3:04:05 PM)."""
    hour = now.hour % 12 or 12
    meridiem = "AM" if now.hour < 12 else "PM"
    return f"{now.month}/{now.day}/{now.year}, {hour}:{now:%M:%S} {meridiem}"


def _ping(ctx: CommandContext) -> str:
    return "Pong! 🏓"


def _help(ctx: CommandContext) -> str:
    return ctx.table.help_text()


def _time(ctx: CommandContext) -> str:
    return f"Current time: {format_time(ctx.now)}"


def _about(ctx: CommandContext) -> str:
    return ctx.about_text


def _echo(ctx: CommandContext) -> Optional[str]:
    # Slice the original text so the echo keeps its casing
    echo = ctx.text[len("!echo "):].strip()
    return echo or None


def build_default_commands() -> CommandTable:
    """Create the table with the built-in commands."""
    return CommandTable(
        [
            Command("ping", "Check if bot is online", _ping, log_label="Sent: Pong response"),
            Command("help", "Show this help message", _help, log_label="Sent: Help message"),
            Command("time", "Show current time", _time, log_label="Sent: Current time"),
            Command("about", "About this bot", _about, log_label="Sent: About message"),
            Command(
                "echo",
                "Repeat your message",
                _echo,
                usage="!echo [text]",
                prefix=True,
                log_label="Sent: Echo message: {text}",
            ),
        ]
    )
