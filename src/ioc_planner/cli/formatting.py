"""Output formatting for planner CLI commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ioc_planner.constructors import ConstructorPlan
from ioc_planner.diagnostics import Diagnostic, Severity
from ioc_planner.engine import AnalysisResult
from ioc_planner.registrations import RegistrationPlan, registration_summary

logger = logging.getLogger(__name__)
console = Console()


class OutputFormatter:
    """Handles formatting CLI output for different commands."""

    SEVERITY_STYLES = {
        Severity.ERROR: "[red]Error[/red]",
        Severity.WARNING: "[yellow]Warning[/yellow]",
        Severity.INFO: "[blue]Info[/blue]",
    }

    def format_analysis(self, result: AnalysisResult) -> None:
        """Print diagnostics, constructor plans and registrations."""
        self.format_diagnostics(result.diagnostics)
        self.format_constructor_plans(result.constructor_plans)
        self.format_registration_plan(result.registration_plan)
        self.format_summary(result)

    def format_diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        """Print diagnostics as a table, or a success panel when there are none.

        Args:
            diagnostics: Diagnostics in report order.

        """
        if not diagnostics:
            console.print(
                Panel(
                    "[green]No diagnostics reported[/green]",
                    title="✅ Diagnostics",
                    border_style="green",
                )
            )
            return

        table = Table(
            title="🩺 Diagnostics",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Code", style="cyan", no_wrap=True)
        table.add_column("Severity")
        table.add_column("Type", style="white")
        table.add_column("Message", style="white")

        for diagnostic in diagnostics:
            table.add_row(
                diagnostic.code,
                self.SEVERITY_STYLES[diagnostic.severity],
                diagnostic.type_name,
                diagnostic.message,
            )
        console.print(table)

    def format_constructor_plans(self, plans: Sequence[ConstructorPlan]) -> None:
        """Print one tree per constructor plan."""
        if not plans:
            return
        console.print("\n[bold]🏗️  Constructor Plans[/bold]")
        for plan in plans:
            signature = ", ".join(f"{p.type} {p.name}" for p in plan.signature)
            tree = Tree(f"[bold cyan]{plan.type_name}[/bold cyan]({signature})")
            if plan.base_call is not None:
                arguments = ", ".join(plan.base_call.arguments)
                tree.add(f"base: [dim]{plan.base_call.base_type}({arguments})[/dim]")
            for assignment in plan.assignments:
                tree.add(f"{assignment.member} = {assignment.parameter}")
            for binding in plan.configuration_assignments:
                tree.add(
                    f"{binding.member} ← [yellow]{binding.key or '(root)'}[/yellow] "
                    f"[dim]({binding.kind.value})[/dim]"
                )
            console.print(tree)

    def format_registration_plan(self, plan: RegistrationPlan) -> None:
        """Print the registration plan as a table."""
        if not plan.entries:
            return
        table = Table(
            title="📋 Registration Plan",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Service", style="cyan")
        table.add_column("Implementation", style="white")
        table.add_column("Lifetime", style="blue")
        table.add_column("Shape")
        table.add_column("Guard", style="yellow")

        for entry in plan.entries:
            guard = ""
            if entry.guard is not None and entry.chain is not None:
                branch = "else if" if entry.chain.is_else else "if"
                guard = f"{branch} {entry.guard.render()}"
            table.add_row(
                entry.service_type or "-",
                entry.implementation_type,
                entry.lifetime.value,
                entry.shape.value,
                guard,
            )
        console.print(table)

    def format_summary(self, result: AnalysisResult) -> None:
        errors = len(result.errors)
        style = "red" if errors else "green"
        shapes = ", ".join(
            f"{shape} {count}"
            for shape, count in registration_summary(result.registration_plan).items()
            if count
        )
        console.print(
            Panel(
                f"Types: [cyan]{len(result.catalog)}[/cyan]  "
                f"Errors: [red]{errors}[/red]  "
                f"Warnings: [yellow]{len(result.warnings)}[/yellow]  "
                f"Registrations: [blue]{len(result.registration_plan.entries)}[/blue]"
                + (f" [dim]({shapes})[/dim]" if shapes else ""),
                title="📊 Analysis Summary",
                border_style=style,
            )
        )
        logger.debug("Analysis content hash: %s", result.content_hash)

    @staticmethod
    def to_json(result: AnalysisResult) -> str:
        """Serialise the analysis result as indented JSON."""
        return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
