"""
Logging Setup Module

Central logging configuration for the shared expense ledger.

Library modules never attach handlers themselves; they call
``get_logger("shared_expense_ledger.<module>")`` and rely on the entrypoint
(``main.py``) calling ``configure_logging()`` once at startup.

Functions:
    configure_logging: Attach a single StreamHandler to the package logger.
    get_logger: Acquire a logger, installing a NullHandler until configured.
"""

import logging
import os
import sys
from typing import IO, Optional, Union


PKG_LOGGER_NAME = "shared_expense_ledger"
_CONFIGURED = False


def _parse_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    if level is None:
        # Env override only when no explicit level was given
        env_val = os.getenv("LEDGER_LOG_LEVEL")
        if env_val:
            return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    fmt: Optional[str] = None,
    stream: IO[str] = sys.stderr
) -> None:
    """
    Configure the package root logger exactly once.

    Args:
        level: Level as int or name. Defaults to LEDGER_LOG_LEVEL, then INFO.
        fmt: Optional format string.
        stream: Output stream for the handler (default: stderr).
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(PKG_LOGGER_NAME)

    # Drop the NullHandler installed by get_logger() before configuration
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until configure_logging() runs."""
    pkg_logger = logging.getLogger(PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
