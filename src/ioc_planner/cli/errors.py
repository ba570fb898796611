"""CLI error handling for the planner.

Every command body runs inside :func:`cli_error_handler`. Planner exceptions
are shown as a red panel with a remediation hint for the failure category,
then the command exits with code 1.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import override

import typer
from rich.console import Console
from rich.panel import Panel

from ioc_planner.errors import (
    AnalysisCancelledError,
    ConfigurationError,
    SnapshotParseError,
    SnapshotValidationError,
)

logger = logging.getLogger(__name__)
console = Console(stderr=True)

_HINTS: dict[type[Exception], str] = {
    SnapshotParseError: "Check that the snapshot is readable YAML or JSON and "
    "that every ${VAR} reference is set or has a default.",
    SnapshotValidationError: "Run 'ioc-planner generate-schema' and compare the "
    "snapshot against the generated schema.",
    ConfigurationError: "Check the IOC_PLANNER_* environment variables and the "
    ".env file in the working directory.",
    AnalysisCancelledError: "The analysis pass was cancelled before it finished.",
}


class CLIError(Exception):
    """A failed planner command, carrying the command name and a hint."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        original_error: Exception | None = None,
        hint: str | None = None,
    ) -> None:
        """Initialise CLI error with context.

        Args:
            message: What went wrong
            command: Planner command that failed (e.g., "analyze")
            original_error: The underlying exception, if any
            hint: Remediation hint; derived from ``original_error`` if omitted

        """
        super().__init__(message)
        self.command = command
        self.original_error = original_error
        self.hint = hint if hint is not None else hint_for(original_error)

    @override
    def __str__(self) -> str:
        base_message = super().__str__()
        if self.command:
            return f"CLI command '{self.command}' failed: {base_message}"
        return base_message

    def render(self) -> str:
        """Rich markup for the error panel body."""
        body = f"[red]{self}[/red]"
        if self.hint:
            body += f"\n\n[dim]{self.hint}[/dim]"
        return body


def hint_for(error: BaseException | None) -> str | None:
    """Remediation hint for a planner exception, or None when there is none."""
    if error is None:
        return None
    for error_type, hint in _HINTS.items():
        if isinstance(error, error_type):
            return hint
    return None


@contextmanager
def cli_error_handler(command: str, title: str) -> Generator[None]:
    """Report any failure of a command body and exit with code 1.

    Args:
        command: Planner command name for error context.
        title: Panel title for the error display.

    """
    try:
        yield
    except Exception as e:
        cli_error = (
            e
            if isinstance(e, CLIError)
            else CLIError(str(e), command=command, original_error=e)
        )
        logger.error("%s: %s", title, cli_error)
        console.print(
            Panel(cli_error.render(), title=f"❌ {title}", border_style="red")
        )
        raise typer.Exit(1) from cli_error
