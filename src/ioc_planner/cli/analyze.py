"""CLI command implementations for snapshot analysis."""

from __future__ import annotations

import logging
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer

from ioc_planner.cli.errors import CLIError, cli_error_handler
from ioc_planner.cli.formatting import OutputFormatter
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.engine import AnalysisEngine, AnalysisResult
from ioc_planner.logging import setup_logging

logger = logging.getLogger(__name__)


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"


def build_configuration(
    lifetime_validation: bool | None = None,
    disabled_diagnostics: list[str] | None = None,
) -> AnalysisConfiguration:
    """Build analysis configuration from CLI options and the environment.

    Options left unset fall back to ``IOC_PLANNER_*`` environment variables.
    """
    properties: dict[str, Any] = {}
    if lifetime_validation is not None:
        properties["lifetime_validation_enabled"] = lifetime_validation
    if disabled_diagnostics:
        properties["disabled_diagnostics"] = tuple(disabled_diagnostics)
    return AnalysisConfiguration.from_properties(properties)


def analyze_command(
    snapshot_path: Path,
    output_format: OutputFormat = OutputFormat.TABLE,
    output: Path | None = None,
    log_level: str = "INFO",
    lifetime_validation: bool | None = None,
    disabled_diagnostics: list[str] | None = None,
) -> None:
    """CLI command implementation for analysing a declaration snapshot.

    Args:
        snapshot_path: Path to the snapshot YAML or JSON file
        output_format: Console output format
        output: Optional file receiving the JSON result
        log_level: Logging level
        lifetime_validation: Override lifetime validation; None keeps the
            configured value
        disabled_diagnostics: Diagnostic codes to suppress

    Raises:
        typer.Exit: With code 1 when the analysis reports errors.

    """
    setup_logging(level=log_level)

    result: AnalysisResult | None = None
    with cli_error_handler("analyze", "Snapshot analysis failed"):
        configuration = build_configuration(lifetime_validation, disabled_diagnostics)
        result = AnalysisEngine(configuration).analyze_file(snapshot_path)

        formatter = OutputFormatter()
        if output_format is OutputFormat.JSON:
            typer.echo(formatter.to_json(result))
        else:
            formatter.format_analysis(result)

        if output is not None:
            _write_output(output, formatter.to_json(result))

    if result is not None and result.has_errors:
        raise typer.Exit(1)


def _write_output(output: Path, content: str) -> None:
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content + "\n", encoding="utf-8")
    except OSError as e:
        raise CLIError(f"Cannot write results to {output}: {e}", "analyze", e) from e
    logger.info("Analysis results saved to %s", output)
