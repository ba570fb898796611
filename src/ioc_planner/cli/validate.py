"""CLI command implementations for snapshot validation and schema generation."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console

from ioc_planner.cli.analyze import build_configuration
from ioc_planner.cli.errors import cli_error_handler
from ioc_planner.cli.formatting import OutputFormatter
from ioc_planner.engine import AnalysisEngine, AnalysisResult
from ioc_planner.logging import setup_logging
from ioc_planner.schema import SnapshotSchemaGenerator

logger = logging.getLogger(__name__)
console = Console()


def validate_snapshot_command(snapshot_path: Path, log_level: str = "INFO") -> None:
    """CLI command implementation for validating a snapshot.

    Prints diagnostics only and exits with code 1 when any is an error.

    Args:
        snapshot_path: Path to the snapshot YAML or JSON file
        log_level: Logging level

    """
    setup_logging(level=log_level)

    result: AnalysisResult | None = None
    with cli_error_handler("validate", "Snapshot validation failed"):
        result = AnalysisEngine(build_configuration()).analyze_file(snapshot_path)
        OutputFormatter().format_diagnostics(result.diagnostics)

    if result is not None and result.has_errors:
        count = len(result.errors)
        console.print(f"[red]❌ {count} error(s) in {snapshot_path}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ Snapshot is valid: {snapshot_path}[/green]")


def generate_schema_command(output_path: Path, log_level: str = "INFO") -> None:
    """CLI command implementation for generating the snapshot JSON schema.

    Args:
        output_path: Path to save the generated schema
        log_level: Logging level

    """
    setup_logging(level=log_level)

    with cli_error_handler("generate-schema", "Schema generation failed"):
        SnapshotSchemaGenerator.save_schema(output_path)
        console.print(f"[green]✅ Schema generated: {output_path}[/green]")
        logger.info("Schema saved to %s", output_path)
