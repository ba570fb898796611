"""Shared pytest fixtures for ioc-planner tests."""

import logging
from pathlib import Path

import pytest
import yaml

from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.engine import AnalysisEngine
from ioc_planner.models import DeclarationSnapshot, Lifetime

from test_helpers import declare, snapshot

# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clear_planner_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep IOC_PLANNER_* variables from the host out of every test."""
    for variable in (
        "IOC_PLANNER_IMPLICIT_LIFETIME",
        "IOC_PLANNER_LIFETIME_VALIDATION",
        "IOC_PLANNER_DIAGNOSTICS",
        "IOC_PLANNER_MAX_INHERITANCE_DEPTH",
        "IOC_PLANNER_DISABLED_DIAGNOSTICS",
        "IOC_PLANNER_ENV",
    ):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture(autouse=True)
def reset_planner_logging():
    """Detach handlers that CLI and logging tests install on the package logger."""
    yield
    planner_logger = logging.getLogger("ioc_planner")
    for handler in planner_logger.handlers[:]:
        planner_logger.removeHandler(handler)
    planner_logger.setLevel(logging.NOTSET)
    planner_logger.propagate = True


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def configuration() -> AnalysisConfiguration:
    return AnalysisConfiguration()


@pytest.fixture
def engine(configuration: AnalysisConfiguration) -> AnalysisEngine:
    return AnalysisEngine(configuration)


# =============================================================================
# Snapshot Fixtures
# =============================================================================


@pytest.fixture
def captive_snapshot() -> DeclarationSnapshot:
    """Singleton CacheService capturing Scoped DatabaseContext."""
    return snapshot(
        declare(
            "CacheService",
            Lifetime.SINGLETON,
            interfaces=["ICacheService"],
            depends_on=["DatabaseContext"],
        ),
        declare("DatabaseContext", Lifetime.SCOPED),
    )


@pytest.fixture
def write_snapshot(tmp_path: Path):
    """Write a snapshot dictionary to a YAML file and return its path."""

    def _write(data: dict, name: str = "snapshot.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
