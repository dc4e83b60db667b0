"""Process-wide logging configuration."""

import logging

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single console handler on the root logger.

    Safe to call more than once (existing handlers are replaced). Chatty SDK
    loggers are capped at WARNING so per-request HTTP traces stay out of the
    service log.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(root_level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, "%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(console_handler)

    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
