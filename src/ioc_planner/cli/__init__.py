"""CLI command implementations for the planner."""

from ioc_planner.cli.analyze import OutputFormat, analyze_command
from ioc_planner.cli.errors import CLIError
from ioc_planner.cli.validate import generate_schema_command, validate_snapshot_command

__all__ = [
    "CLIError",
    "OutputFormat",
    "analyze_command",
    "generate_schema_command",
    "validate_snapshot_command",
]
