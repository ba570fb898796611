"""Tests for planner logging configuration."""

import logging
from pathlib import Path

import pytest
import yaml

from ioc_planner.logging import (
    CONFIG_DIR,
    LoggingError,
    get_config_path,
    load_config,
    setup_logging,
)


def _write_config(tmp_path: Path, handler_level: str, logger_level: str) -> Path:
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": handler_level}
        },
        "loggers": {
            "ioc_planner": {
                "level": logger_level,
                "handlers": ["console"],
                "propagate": False,
            }
        },
    }
    path = tmp_path / "logging.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


class TestConfigPaths:
    """Tests for logging configuration file selection."""

    def test_default_config_is_packaged(self) -> None:
        config_path = get_config_path()

        assert config_path == CONFIG_DIR / "logging.yaml"
        assert config_path.exists()

    def test_unknown_environment_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("IOC_PLANNER_ENV", "staging")

        assert get_config_path().name == "logging.yaml"

    def test_explicit_environment_falls_back_to_default(self) -> None:
        assert get_config_path(environment="dev").name == "logging.yaml"


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_packaged_config(self) -> None:
        config = load_config(get_config_path())

        assert config["version"] == 1
        assert "ioc_planner" in config["loggers"]

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("handlers: [\n  console: {")

        with pytest.raises(LoggingError, match="Failed to parse"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- version\n")

        with pytest.raises(LoggingError, match="Invalid configuration format"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(LoggingError, match="Failed to read"):
            load_config(tmp_path / "missing.yaml")


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_default_configuration(self) -> None:
        setup_logging()

        assert logging.getLogger("ioc_planner").level == logging.INFO

    def test_level_override_updates_loggers(self, tmp_path: Path) -> None:
        setup_logging(
            config_path=_write_config(tmp_path, "INFO", "INFO"), level="debug"
        )

        planner_logger = logging.getLogger("ioc_planner")
        assert planner_logger.level == logging.DEBUG
        assert planner_logger.handlers[0].level == logging.DEBUG

    def test_handler_level_is_not_raised(self, tmp_path: Path) -> None:
        setup_logging(
            config_path=_write_config(tmp_path, "DEBUG", "DEBUG"), level="WARNING"
        )

        planner_logger = logging.getLogger("ioc_planner")
        assert planner_logger.level == logging.WARNING
        assert planner_logger.handlers[0].level == logging.DEBUG

    def test_invalid_level_falls_back(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(level="LOUD")

        captured = capsys.readouterr()
        assert "Failed to configure logging" in captured.err

    def test_missing_config_falls_back(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config_path="/nonexistent/logging.yaml", level="INFO")

        captured = capsys.readouterr()
        assert "basic console logging" in captured.err

    def test_force_basic_mode(self) -> None:
        root_logger = logging.getLogger()
        original_handlers = root_logger.handlers[:]
        original_level = root_logger.level

        try:
            setup_logging(force_basic=True, level="DEBUG")

            assert logging.getLogger("ioc_planner.engine").isEnabledFor(logging.DEBUG)
        finally:
            root_logger.handlers = original_handlers
            root_logger.setLevel(original_level)
