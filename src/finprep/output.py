"""Rich-based output formatting for the CLI."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

import finprep.pipeline as pipeline
import finprep.quality as quality

# Global console instance
console = Console()


def render_stage_counts(counts: list[pipeline.StageCount]) -> None:
    """Render row counts per pipeline stage."""
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Stage")
    table.add_column("Rows", justify="right")

    for count in counts:
        table.add_row(count.stage, f"{count.rows:,}")

    console.print(table)
    console.print()


def render_source_counts(row_counts: dict[str, int]) -> None:
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Source")
    table.add_column("Rows", justify="right")

    for name, rows in row_counts.items():
        table.add_row(name, f"{rows:,}")

    console.print(table)
    console.print()


def render_missing_columns(missing: dict[str, list[str]]) -> None:
    """Render optional columns that were absent from the sources."""
    if not missing:
        console.print("[green]✓[/green] All expected columns present")
        return
    for source, columns in missing.items():
        console.print(
            f"[yellow]![/yellow] {source}: missing {', '.join(columns)} "
            "[dim](transforms skipped)[/dim]"
        )


def render_validations(validations: list[quality.TableValidationResult]) -> None:
    """Render constraint results, one row per check."""
    if not validations:
        console.print("[dim]Quality checks skipped.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("", width=2)
    table.add_column("Table", style="dim")
    table.add_column("Column")
    table.add_column("Check")
    table.add_column("Result")

    for validation in validations:
        for result in validation.results:
            symbol = "[green]✓[/green]" if result.passed else "[red]✗[/red]"
            style = "green" if result.passed else "red"
            table.add_row(
                symbol,
                validation.table_name,
                result.field_name,
                result.constraint,
                f"[{style}]{result.actual}[/{style}]",
            )

    console.print(table)
    console.print()


def render_result(result: pipeline.PipelineResult) -> None:
    """Render the summary of a finished run."""
    render_stage_counts(result.stage_counts)
    render_validations(result.validations)
    if result.validations and not result.validation_passed:
        console.print("[yellow]![/yellow] Constraint failures were downgraded to warnings")

    rate = result.fraud_rate
    if rate is not None:
        console.print(f"[bold]Fraud rate:[/bold] {rate * 100:.2f}%")

    if result.written:
        console.print("[bold green]Written:[/bold green]")
        for path in result.written:
            console.print(f"  {path}")
    else:
        console.print("[dim]Dry run, nothing written.[/dim]")
