"""Logger configuration for shiftswap.

Engine code logs with keyword or bound context (schedule_id, trade_id,
user_id). The console sink prints that context as key=value pairs after the
message; the optional file sink can write one JSON record per line instead.
"""

import sys
from pathlib import Path

from loguru import logger

from shiftswap.config.settings import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def format_context(extra: dict) -> str:
    """Render bound context as sorted key=value pairs ("" when there is none)."""
    return " ".join(f"{key}={extra[key]}" for key in sorted(extra))


def _with_context(base: str):
    def _format(record) -> str:
        context = format_context(record["extra"])
        # The returned template goes through color markup and str.format: escape both
        escaped = context.replace("<", "\\<").replace("{", "{{").replace("}", "}}")
        suffix = " | " + escaped if context else ""
        return base + suffix + "\n{exception}"

    return _format


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> None:
    """Configure loguru with a console sink and an optional rotating file sink.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If None, only console logging.
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days", "1 month")
        serialize: Write the file sink as JSON lines (context under record.extra)
    """
    logger.remove()

    logger.add(sys.stderr, format=_with_context(_CONSOLE_FORMAT), level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=_FILE_FORMAT if serialize else _with_context(_FILE_FORMAT),
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
            backtrace=True,
            diagnose=False,
        )

    logger.bind(log_file=log_file or "-", serialize=serialize).info(f"Logger initialized with level={level}")


setup_logger(level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)
