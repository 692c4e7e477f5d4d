"""
WhatsApp Bot Entry Point
========================

Usage:
    python -m wabot
    python -m wabot --debug
    python -m wabot --config ~/.wabot/config.yaml --auth-dir auth_info
"""

import argparse
import asyncio
import logging
import sys

from .log import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the WhatsApp command bot")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", "-c", help="Path to a YAML config file")
    parser.add_argument("--auth-dir", help="Folder holding the saved WhatsApp session")
    parser.add_argument("--no-qr", action="store_true", help="Do not print the pairing QR code")
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    from .bot import WhatsAppBot
    from .config import ConfigLoader

    try:
        config = ConfigLoader(args.config).load()
    except ValueError as e:
        setup_logging(args.debug)
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return 1

    if args.debug:
        config.debug = True
    if args.auth_dir:
        config.auth_dir = args.auth_dir
    if args.no_qr:
        config.print_qr = False

    setup_logging(config.debug, config.log_level)
    logger = logging.getLogger(__name__)

    try:
        bot = WhatsAppBot(config)
        logger.info("Starting WhatsApp bot...")
        asyncio.run(bot.run())

    except KeyboardInterrupt:
        logger.info("Bot stopped by user.")
        return 0
    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        return 1
    except Exception as e:
        logger.error(f"Failed to start bot: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
