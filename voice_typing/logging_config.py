"""Logging configuration for voice-typing."""

import logging
import sys

from voice_typing.config import DATA_DIR

LOG_DIR = DATA_DIR / "logs"
LOG_FILE = LOG_DIR / "voice_typing.log"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Set up logging for the ``voice_typing`` package.

    Args:
        level: Console logging level (default: INFO)

    Returns:
        Configured package logger
    """
    logger = logging.getLogger("voice_typing")
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
    except OSError as e:
        # OSError: log directory or file could not be created (PermissionError included)
        logger.warning(f"Could not set up file logging: {e}")

    return logger
