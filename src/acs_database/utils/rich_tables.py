# ABOUTME: Rich table utilities for phase summaries, run options and logging configuration
# ABOUTME: Provides pre-configured table generators shared by the CLI commands

from typing import Any

from rich.box import ROUNDED, SIMPLE
from rich.console import Console
from rich.table import Table

from acs_database.core.models import PhaseSummary

PHASE_LABELS = {
    "getnames": "📛 Names",
    "backlinks": "🔗 Backlinks",
    "scrape": "🔍 Scrape",
    "cross": "🔄 Cross-reference",
}


def create_key_value_table(
    title: str,
    data: dict[str, str],
    title_style: str = "bold cyan",
    key_style: str = "bold blue",
    value_style: str = "green",
    box_style=ROUNDED,
) -> Table:
    """Create a two-column key-value table.

    Args:
        title: Table title with emoji/styling
        data: Dictionary of key-value pairs to display
        title_style: Style for the table title
        key_style: Style for the key column
        value_style: Style for the value column
        box_style: Border style for the table

    Returns:
        Formatted Rich table ready for printing
    """
    table = Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        box=box_style,
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
        title_justify="left",
        expand=False,
    )

    table.add_column("Field", style=key_style, no_wrap=False)
    table.add_column("Value", style=value_style, no_wrap=False)

    for key, value in data.items():
        table.add_row(key, str(value))

    return table


def create_phase_summary_table(summaries: list[PhaseSummary]) -> Table:
    """One row per finished phase with its fetched/classified/skipped/failed counters."""
    table = Table(
        title="[bold green]📊 Phase Summary[/bold green]",
        box=ROUNDED,
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
        title_justify="left",
        row_styles=["", "dim"],
    )

    table.add_column("Phase", style="bold blue")
    table.add_column("Fetched", style="white", justify="right")
    table.add_column("Classified", style="green", justify="right")
    table.add_column("Skipped", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")

    for summary in summaries:
        table.add_row(
            PHASE_LABELS.get(summary.phase, summary.phase),
            str(summary.fetched),
            str(summary.classified),
            str(summary.skipped),
            str(summary.failed),
        )

    return table


def create_run_options_table(options: Any) -> Table:
    """Describe the options a run was started with."""
    phases = [phase for phase in PHASE_LABELS if phase in options.phases]
    run_data = {
        "🔢 Range": f"{options.start} - {options.end}",
        "🚦 Concurrency": str(options.limit),
        "🔁 Retries": str(options.retries),
        "🧩 Phases": ", ".join(phases) or "None",
        "📁 Output": str(options.output_dir),
    }

    return create_key_value_table(
        title="🚀 ACS Database Run",
        data=run_data,
        title_style="bold green",
        key_style="cyan",
        value_style="white",
        box_style=SIMPLE,
    )


def create_logging_status_table(status: dict[str, Any]) -> Table:
    """Create a logging configuration status table.

    Args:
        status: Logging status dictionary

    Returns:
        Styled logging configuration table
    """
    logging_data = {
        "🔧 Mode": status["mode"].title(),
        "📁 Log Directory": status["log_directory"] or "N/A (production mode)",
        "🔇 Suppressed Libraries": ", ".join(status["third_party_suppressed"]),
    }

    # Add log files if they exist
    if status["log_files"]["main"]:
        logging_data["📝 Main Log"] = status["log_files"]["main"]
    if status["log_files"]["json"]:
        logging_data["📊 JSON Log"] = status["log_files"]["json"]
    if status["log_files"]["errors"]:
        logging_data["🚨 Error Log"] = status["log_files"]["errors"]

    return create_key_value_table(
        title="🔍 Logging Configuration",
        data=logging_data,
        title_style="bold green",
        key_style="blue",
        value_style="white",
    )


def print_rich_table(console: Console, table: Table) -> None:
    """Print a rich table with consistent spacing."""
    console.print()
    console.print(table)
    console.print()
