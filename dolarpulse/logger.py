"""Process-wide logging on loguru.

``configure_logging`` installs two sinks:

* stderr, colorized and human-readable, for whoever runs the process
* ``log_dir/dolarpulse_<date>.json``, one JSON object per line, rotated and
  retained per config, for log aggregation

Uvicorn and asyncio log through the stdlib ``logging`` module; an
``InterceptHandler`` forwards those records so every line ends up in the
same two sinks.
"""

import inspect
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from dolarpulse.exceptions import LoggingInitializationError

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

JSON_FILE_NAME = "dolarpulse_{time:YYYY-MM-DD}.json"

STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "asyncio")


def _record_to_json(record: dict[str, Any]) -> str:
    """Render one loguru record as a JSON line.

    Bound extras (``module`` plus any keyword passed to the log call) go
    under ``context``.
    """
    entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(timespec="milliseconds"),
        "level": record["level"].name,
        "message": record["message"],
        "source": f"{record['name']}:{record['function']}:{record['line']}",
    }

    exception = record["exception"]
    if exception is not None and exception.type is not None:
        entry["error"] = {"type": exception.type.__name__, "detail": str(exception.value)}

    context = {key: value for key, value in record["extra"].items() if key != "json"}
    if context:
        entry["context"] = context

    return json.dumps(entry, default=str)


def _json_format(record: dict[str, Any]) -> str:
    # one object per line; callable formats get no traceback suffix
    record["extra"]["json"] = _record_to_json(record)
    return "{extra[json]}\n"


def _ensure_writable(log_dir: Path) -> None:
    """Create ``log_dir`` and prove a file can be written there.

    Raises:
        LoggingInitializationError: If the directory cannot be used.
    """
    probe = log_dir / ".probe"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        probe.write_text("ok")
        probe.unlink()
    except OSError as exc:
        raise LoggingInitializationError(log_dir=str(log_dir), reason=str(exc)) from exc


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (uvicorn, asyncio) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the stdlib call
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.bind(module=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def intercept_stdlib_logging(level: str = "INFO") -> None:
    """Route the root logger, uvicorn and asyncio into loguru."""
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in STDLIB_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Install the console and JSON sinks.

    Call once at startup, before the scheduler or the server log anything.

    Raises:
        LoggingInitializationError: If ``log_dir`` is not writable.
    """
    config = config or get_config()

    _ensure_writable(config.log_dir)

    logger.remove()
    logger.configure(extra={"module": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )
    logger.add(
        str(config.log_dir / JSON_FILE_NAME),
        format=_json_format,
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
    )

    intercept_stdlib_logging(config.log_level)

    get_logger(__name__).info(
        "Logging ready",
        app=config.app_name,
        environment=config.environment,
        level=config.log_level,
        log_dir=str(config.log_dir),
    )


def get_logger(name: str) -> "logger":
    """Logger bound to ``name`` (usually ``__name__``).

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Sampling cycle started", timestamp=ts)
    """
    return logger.bind(module=name)
