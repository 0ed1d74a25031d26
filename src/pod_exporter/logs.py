"""Logging setup and helpers."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process."""
    numeric = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)


def log_failure(logger: logging.Logger, message: str, exc: BaseException, **fields) -> None:
    """
    Log ``exc`` at ERROR together with the exception that caused it.

    Extra keyword arguments are appended as ``key=value`` pairs so the failing
    category (pid, iface, ...) shows up on the same line.
    """
    parts = [message, f"error={exc}"]
    cause = exc.__cause__ or exc.__context__
    if cause is not None:
        parts.append(f"caused_by={cause}")
    parts.extend(f"{key}={value}" for key, value in fields.items())
    logger.error(" ".join(parts))
