# ABOUTME: Main CLI application entry point using asyncclick for native async support
# ABOUTME: Provides commands to build the ACS database, re-sort output files and inspect logging

from pathlib import Path

import asyncclick as click
from rich.console import Console

from acs_database.config import get_config
from acs_database.core.pipeline import AcsPipeline, PipelineOptions
from acs_database.extraction.base import PersistenceError
from acs_database.persistence.store import sort_records
from acs_database.utils.logging import (
    LoggingMode,
    configure_logging,
    get_logger,
    get_logging_status,
)
from acs_database.utils.rich_tables import (
    create_logging_status_table,
    create_phase_summary_table,
    create_run_options_table,
    print_rich_table,
)

console = Console()


@click.command()
@click.option("--start", type=int, default=None, help="First SCP number to scrape")
@click.option("--end", type=int, default=None, help="Last SCP number to scrape (inclusive)")
@click.option("--limit", "-l", type=int, default=None, help="Maximum number of simultaneous requests")
@click.option("--retries", "-r", type=int, default=None, help="Retries per request after the first attempt")
@click.option("--scraper", "-s", is_flag=True, help="Scrape the numbered pages in range for ACS data")
@click.option("--getnames", "-g", is_flag=True, help="Harvest page names from the series index pages")
@click.option("--backlinks", "-b", is_flag=True, help="Harvest pages linking to the ACS components")
@click.option("--cross", "-c", is_flag=True, help="Classify backlinked pages missing from the database")
@click.option("--output-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Output directory")
@click.pass_context
async def run(
    ctx,
    start: int | None,
    end: int | None,
    limit: int | None,
    retries: int | None,
    scraper: bool,
    getnames: bool,
    backlinks: bool,
    cross: bool,
    output_dir: Path | None,
):
    """
    🔍 Build the ACS database.

    Phases run in a fixed order: names, backlinks, scrape, cross-reference.
    Pages that fail after all retries are reported and skipped.
    """
    phases = {
        phase
        for phase, enabled in (("getnames", getnames), ("backlinks", backlinks), ("scrape", scraper), ("cross", cross))
        if enabled
    }
    if not phases:
        raise click.UsageError("Select at least one phase: -s, -g, -b or -c")

    try:
        options = PipelineOptions.from_config(
            start=start, end=end, limit=limit, retries=retries, phases=frozenset(phases), output_dir=output_dir
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    await _run_async(options, ctx.obj["json_output"])


async def _run_async(options: PipelineOptions, json_output: bool):
    """Run the pipeline and report the phase summaries."""
    logger = get_logger(__name__)
    logger.info(
        "Starting run",
        start=options.start,
        end=options.end,
        limit=options.limit,
        retries=options.retries,
        phases=sorted(options.phases),
    )

    if not json_output:
        print_rich_table(console, create_run_options_table(options))

    pipeline = AcsPipeline(options, console=console, show_progress=not json_output)
    try:
        summaries = await pipeline.run()
    except PersistenceError as e:
        logger.error("Run aborted", error=str(e))
        raise click.ClickException(str(e)) from e

    logger.info("Run finished", phases={s.phase: s.as_dict() for s in summaries})
    if not json_output:
        print_rich_table(console, create_phase_summary_table(summaries))


@click.command(name="sort")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--field", default="actual_number", show_default=True, help="Entry field to sort by")
def sort_file(file: Path, field: str):
    """
    🔢 Re-sort an output file by one of its fields.

    SCP-numbered values are ordered numerically ahead of everything else.
    """
    try:
        count = sort_records(file, field)
    except PersistenceError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]Sorted {count} entries in {file} by {field}.[/green]")


def _initialize_logging(json_output: bool, log_level: str | None = None, log_file: str | None = None) -> None:
    """Initialize logging configuration."""
    config = get_config()
    # --json forces production output; otherwise the configured mode applies
    mode = LoggingMode.PRODUCTION if json_output else config.log_mode

    # Use config defaults when CLI parameters are not provided
    final_log_level = log_level or config.log_level
    final_log_file = log_file or (str(config.log_file) if config.log_file else None)

    configure_logging(mode=mode, log_level=final_log_level, log_file=final_log_file)


@click.command(name="logging-status")
def logging_status():
    """
    📊 Show current logging configuration and status.
    """
    status = get_logging_status()
    logging_table = create_logging_status_table(status)
    print_rich_table(console, logging_table)


@click.group(invoke_without_command=True)
@click.option("--json", is_flag=True, help="Output structured JSON logs instead of rich interface")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", help="Custom log file path")
@click.pass_context
def app(ctx, json: bool, log_level: str | None, log_file: str | None):
    """
    🗂️ ACS Database - Anomaly Classification System scraper for the SCP wiki

    Collects containment, disruption and risk classes from SCP articles into
    a JSON database.
    """
    # Store global options in context for commands to access
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json

    # Initialize logging once here instead of in each command
    _initialize_logging(json, log_level, log_file)

    # Show help if no command provided
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Add commands to the main group
app.add_command(run)
app.add_command(sort_file)
app.add_command(logging_status)


if __name__ == "__main__":
    app()
