"""finprep CLI -- clean raw financial exports into modeling datasets.

Running ``finprep`` with no arguments runs the whole pipeline with the
default layout: inputs from ./Financial, outputs to ./CleanedDataSet.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Annotated

import cyclopts
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

import finprep.errors as errors
import finprep.output as output
import finprep.pipeline as pipeline
import finprep.settings as settings

# Version is defined here and in pyproject.toml
__version__ = "0.1.0"

console = Console()

app = cyclopts.App(
    name="finprep",
    help="Clean users, cards, transactions and fraud labels into fraud-detection and credit-limit datasets.",
    version=__version__,
)


def _handle_error(e: errors.FinprepError) -> None:
    """Display a structured error message."""
    console.print(f"[bold red]Error:[/bold red] {e.context}\n")
    console.print(f"[yellow]Cause:[/yellow] {e.cause}\n")
    console.print(f"[green]Fix:[/green] {e.fix}")


def _configure_logging(verbose: bool) -> None:
    """Route library logging through Rich; stage counts only with --verbose."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_settings(
    config: Path | None,
    input_dir: str | None,
    output_dir: str | None = None,
) -> settings.FinprepSettings:
    return settings.load_settings(config).with_directories(
        input_dir=input_dir, output_dir=output_dir
    )


@app.command
def run(
    config: Annotated[
        Path | None,
        cyclopts.Parameter(name="--config", help="Path to finprep.yaml"),
    ] = None,
    input_dir: Annotated[
        str | None,
        cyclopts.Parameter(name="--input-dir", help="Directory holding the raw exports"),
    ] = None,
    output_dir: Annotated[
        str | None,
        cyclopts.Parameter(name="--output-dir", help="Directory for the cleaned datasets"),
    ] = None,
    skip_quality: Annotated[
        bool,
        cyclopts.Parameter(name="--skip-quality", help="Skip output constraint checks"),
    ] = False,
    dry_run: Annotated[
        bool,
        cyclopts.Parameter(name="--dry-run", help="Compute and validate without writing"),
    ] = False,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(name="--verbose", help="Log row counts after every stage"),
    ] = False,
):
    """Run the cleaning pipeline and write both datasets."""
    _configure_logging(verbose)
    try:
        run_settings = _load_settings(config, input_dir, output_dir)
        if skip_quality:
            run_settings = run_settings.without_quality()

        console.print(
            f"[bold]Cleaning sources from {run_settings.sources.directory}[/bold]"
        )
        console.print()

        t0 = time.perf_counter()
        result = pipeline.Pipeline(settings=run_settings).run(write=not dry_run)
        logger.debug(f"Pipeline: {(time.perf_counter() - t0) * 1000:.1f}ms")

        output.render_result(result)

    except errors.FinprepError as e:
        _handle_error(e)
        raise SystemExit(1)


app.default(run)


@app.command
def check(
    config: Annotated[
        Path | None,
        cyclopts.Parameter(name="--config", help="Path to finprep.yaml"),
    ] = None,
    input_dir: Annotated[
        str | None,
        cyclopts.Parameter(name="--input-dir", help="Directory holding the raw exports"),
    ] = None,
):
    """Load the sources only and report row counts and missing columns.

    Checks:
    - Every input file exists and parses
    - Key columns are present (missing keys fail the check)
    - Optional expected columns are present (missing ones are reported)
    """
    _configure_logging(verbose=False)
    try:
        check_settings = _load_settings(config, input_dir)

        t0 = time.perf_counter()
        raw = pipeline.Pipeline(settings=check_settings).check()
        logger.debug(f"Load: {(time.perf_counter() - t0) * 1000:.1f}ms")

        output.render_source_counts(raw.row_counts())
        output.render_missing_columns(raw.missing_columns)
        console.print()
        console.print("[bold green]✓ Sources loaded[/bold green]")

    except errors.FinprepError as e:
        _handle_error(e)
        raise SystemExit(1)
