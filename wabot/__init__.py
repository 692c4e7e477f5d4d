"""
wabot
=====

Minimal WhatsApp command bot.

Connects a personal WhatsApp account through the pyaileys
multi-device client and answers a fixed set of "!" commands.
"""

__version__ = "1.0.0"

from .bot import WhatsAppBot
from .commands import Command, CommandTable, build_default_commands
from .config import BotConfig, ConfigLoader

__all__ = [
    "WhatsAppBot",
    "BotConfig",
    "ConfigLoader",
    "Command",
    "CommandTable",
    "build_default_commands",
]
