"""
Logging Helpers
===============

Console log formatting for the bot and a safe object dumper
for debug output.
"""

import json
import logging
import sys
from typing import Any, Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)-5s %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(debug: bool = False, level: Optional[str] = None):
    """
    Configure root logging for the bot.

    Args:
        debug: Force DEBUG level (overrides ``level``)
        level: Level name such as "INFO" or "WARNING"
    """
    if debug:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "INFO").upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def describe(obj: Any) -> str:
    """Pretty-print an object as JSON for debug logs."""
    try:
        return json.dumps(obj, indent=2, default=str, ensure_ascii=False)
    except ValueError:
        return "[Circular Object]"
    except TypeError:
        return repr(obj)
