"""Main entry point for the IoC planner.

This module provides the command-line interface, including commands for:
- Analysing a declaration snapshot into diagnostics and emission plans
- Validating a snapshot (diagnostics only)
- Generating the snapshot JSON schema
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from ioc_planner.cli import (
    OutputFormat,
    analyze_command,
    generate_schema_command,
    validate_snapshot_command,
)

# Load IOC_PLANNER_* settings from a .env file in the working directory
load_dotenv()

app = typer.Typer(name="ioc-planner")


@app.command()
def analyze(
    snapshot: Annotated[
        Path,
        typer.Argument(
            help="Path to the declaration snapshot (YAML or JSON)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Console output format",
            case_sensitive=False,
            rich_help_panel="Output",
        ),
    ] = OutputFormat.TABLE,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Also save the full result as JSON to this file",
            file_okay=True,
            dir_okay=False,
            writable=True,
            rich_help_panel="Output",
        ),
    ] = None,
    lifetime_validation: Annotated[
        bool | None,
        typer.Option(
            "--lifetime-validation/--no-lifetime-validation",
            help="Run or skip lifetime validation (default from environment)",
            show_default=False,
        ),
    ] = None,
    disable: Annotated[
        list[str] | None,
        typer.Option(
            "--disable",
            "-d",
            help="Diagnostic code to suppress (repeatable)",
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
            case_sensitive=False,
        ),
    ] = "INFO",
) -> None:
    """Analyse a snapshot: diagnostics, constructor plans and registrations.

    Exits with code 1 when any Error diagnostic is reported.

    Example:
        ioc-planner analyze declarations.yaml --format json -o plan.json

    """
    analyze_command(
        snapshot, output_format, output, log_level, lifetime_validation, disable
    )


@app.command()
def validate(
    snapshot: Annotated[
        Path,
        typer.Argument(
            help="Path to the declaration snapshot (YAML or JSON)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
            case_sensitive=False,
        ),
    ] = "INFO",
) -> None:
    """Validate a snapshot and print its diagnostics."""
    validate_snapshot_command(snapshot, log_level)


@app.command(name="generate-schema")
def generate_schema(
    output: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Output path for the JSON schema file",
            file_okay=True,
            dir_okay=False,
            writable=True,
        ),
    ] = Path("ioc-snapshot.schema.json"),
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
            case_sensitive=False,
        ),
    ] = "INFO",
) -> None:
    """Generate the JSON schema of the declaration snapshot format."""
    generate_schema_command(output, log_level)


if __name__ == "__main__":
    app()
