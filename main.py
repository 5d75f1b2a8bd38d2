"""DolarPulse process entry point.

Loads config, installs logging, then serves the dashboard surface while the
scheduler samples quotes in the background. No sampling logic lives here.

Usage:
    python main.py
    PORT=8080 REFRESH_MS=60000 python main.py

Exit codes:
    0   clean shutdown
    1   bad configuration, unusable log directory or fatal error
    130 interrupted (Ctrl+C)
"""

import sys

import uvicorn
from loguru import logger

from config.settings import GlobalConfig, get_config
from dolarpulse.exceptions import DolarPulseError, LoggingInitializationError
from dolarpulse.logger import configure_logging
from dolarpulse.server import create_app

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def _fatal(reason: object) -> int:
    # logging may not be up yet
    print(f"FATAL: {reason}", file=sys.stderr)
    return EXIT_FATAL


def run_server(config: GlobalConfig) -> None:
    """Build the app and block in uvicorn until shutdown."""
    app = create_app(config)
    logger.info(
        "Dashboard listening",
        url=f"http://localhost:{config.port}",
        refresh_ms=config.refresh_ms,
        environment=config.environment,
    )
    # log_config=None: uvicorn keeps the loguru intercept
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


def main() -> int:
    try:
        config = get_config()
    except Exception as exc:
        return _fatal(f"invalid configuration: {exc}")

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        return _fatal(exc)

    try:
        run_server(config)
    except KeyboardInterrupt:
        logger.warning("Interrupted, shutting down")
        return EXIT_INTERRUPTED
    except DolarPulseError as exc:
        logger.critical(
            "Fatal error",
            error_type=type(exc).__name__,
            error=exc.message,
            context=exc.context,
        )
        return EXIT_FATAL
    except Exception as exc:
        logger.exception("Unexpected fatal error", error=str(exc))
        return EXIT_FATAL

    logger.info("Server stopped")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
