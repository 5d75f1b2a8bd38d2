"""Integration tests for process bootstrap.

Validates main.py orchestration including:
- Configuration and logging initialization order
- Exit codes for clean shutdown, Ctrl+C and fatal errors
- Structured JSON log output

Testing Philosophy:
    uvicorn and Playwright are mocked; the internal wiring from config to
    app factory is exercised for real.
"""

import json
import logging
from pathlib import Path

import pytest
from loguru import logger
from pytest_mock import MockerFixture

from config.settings import GlobalConfig
from dolarpulse.exceptions import BrowserInitializationError, LoggingInitializationError
from dolarpulse.logger import configure_logging, get_logger


@pytest.fixture
def reset_loguru() -> None:
    yield
    logger.remove()
    logging.basicConfig(handlers=[], force=True)


class TestMain:
    """Test suite for main() exit codes."""

    @pytest.mark.integration
    def test_serves_app_and_exits_cleanly(
        self, mock_config: GlobalConfig, mocker: MockerFixture, reset_loguru: None
    ) -> None:
        run = mocker.patch("main.uvicorn.run")

        from main import main

        assert main() == 0

        app = run.call_args.args[0]
        assert run.call_args.kwargs == {"host": mock_config.host, "port": 3999, "log_config": None}
        assert app.state.history.max_length == mock_config.history_max_length
        assert app.state.start_scheduler is True

    @pytest.mark.integration
    def test_keyboard_interrupt_exits_130(
        self, mock_config: GlobalConfig, mocker: MockerFixture, reset_loguru: None
    ) -> None:
        mocker.patch("main.uvicorn.run", side_effect=KeyboardInterrupt())

        from main import main

        # 128 + SIGINT
        assert main() == 130

    @pytest.mark.integration
    def test_domain_error_exits_1(
        self, mock_config: GlobalConfig, mocker: MockerFixture, reset_loguru: None
    ) -> None:
        mocker.patch("main.uvicorn.run", side_effect=BrowserInitializationError(reason="no chromium"))

        from main import main

        assert main() == 1

    def test_invalid_config_exits_1(self, monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture) -> None:
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("REFRESH_MS", "10")
        run = mocker.patch("main.uvicorn.run")

        from main import main

        assert main() == 1
        run.assert_not_called()
        get_config.cache_clear()

    def test_logging_failure_exits_1(self, mock_config: GlobalConfig, mocker: MockerFixture) -> None:
        mocker.patch(
            "main.configure_logging",
            side_effect=LoggingInitializationError(log_dir="/nope", reason="read-only"),
        )
        run = mocker.patch("main.uvicorn.run")

        from main import main

        assert main() == 1
        run.assert_not_called()


class TestLoggingInfrastructure:
    """Test suite for structured logging setup."""

    def test_log_file_contains_valid_json(self, mock_config: GlobalConfig, reset_loguru: None) -> None:
        configure_logging(mock_config)

        get_logger(__name__).info("Sampling cycle complete", history_size=3)
        logging.getLogger("uvicorn.error").warning("Started server process")
        logger.remove()

        log_files = list(mock_config.log_dir.glob("dolarpulse_*.json"))
        assert len(log_files) == 1

        entries = [json.loads(line) for line in log_files[0].read_text().splitlines() if line]
        messages = [entry["message"] for entry in entries]

        assert "Sampling cycle complete" in messages
        assert "Started server process" in messages
        cycle_entry = entries[messages.index("Sampling cycle complete")]
        assert cycle_entry["level"] == "INFO"
        assert cycle_entry["context"]["history_size"] == 3
        assert cycle_entry["context"]["module"] == __name__

    def test_logging_fails_fast_with_invalid_directory(self, tmp_path: Path, mock_config: GlobalConfig) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        config = mock_config.model_copy(update={"log_dir": blocker / "logs"})

        with pytest.raises(LoggingInitializationError) as exc_info:
            configure_logging(config)

        assert str(blocker / "logs") in str(exc_info.value)
