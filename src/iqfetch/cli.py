"""iqfetch CLI - export the latest IQ Server policy violations as CSV."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from iqfetch import __version__
from iqfetch.client.iq_client import IQClient
from iqfetch.config import DEFAULT_ENV_FILE, ConfigError, load_config
from iqfetch.errors import IQFetchError
from iqfetch.obs.logs import DEFAULT_LOG_FILE, configure_logging
from iqfetch.services.policy_report import PolicyReportService

REPORT_FILENAME_FORMAT = "%Y-%m-%d_%H-%M-%S"

cli = typer.Typer(
    name="iqfetch",
    help="iqfetch - Latest IQ Server policy violation reports as CSV",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def default_report_filename(now: datetime | None = None) -> str:
    """Timestamped CSV name, e.g. ``2024-05-01_13-45-00.csv``."""
    return (now or datetime.now()).strftime(REPORT_FILENAME_FORMAT) + ".csv"


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show iqfetch version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Fetch IQ Server reports."""
    _ = version


@cli.command()
def fetch(
    org_id: str | None = typer.Option(
        None, "--org-id", help="Only include applications of this organization (overrides ORGANIZATION_ID)."
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", help="Directory for the CSV report (overrides IQ_OUTPUT_DIR)."
    ),
    filename: str | None = typer.Option(
        None, "--filename", help="Report file name. Defaults to a timestamp."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", min=0.001, help="Overall deadline in seconds (overrides IQ_TIMEOUT_SECONDS)."
    ),
    env_file: Path = typer.Option(DEFAULT_ENV_FILE, "--env-file", help="dotenv file with IQ_* settings."),
    log_file: Path = typer.Option(DEFAULT_LOG_FILE, "--log-file", help="Append log records to this file."),
    stable_order: bool = typer.Option(
        False, "--stable-order", help="Keep rows in application order instead of completion order."
    ),
) -> None:
    """Write the latest policy violations of every application to a CSV file."""
    try:
        config = load_config(env_file)
    except ConfigError as exc:
        err_console.print(f"[bold red]Error:[/bold red] failed to load config: {escape(str(exc))}")
        raise typer.Exit(1) from exc

    logger = configure_logging(log_file)
    logger.info(
        "Loaded configuration",
        extra={"server_url": config.server_url, "organization_id": config.organization_id},
    )

    try:
        client = IQClient(
            config.server_url,
            config.username,
            config.password,
            timeout=config.timeout_seconds,
            logger=logging.getLogger("iqfetch.client"),
        )
    except ValueError as exc:
        logger.error("Failed to create client", extra={"error": str(exc)})
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    service = PolicyReportService(
        client,
        output_dir or config.output_dir,
        logger=logging.getLogger("iqfetch.report"),
    )
    report_name = filename or default_report_filename()
    logger.info("Report filename set", extra={"report_filename": report_name})

    try:
        path = service.generate_latest_policy_report(
            org_id or config.organization_id,
            report_name,
            timeout=timeout if timeout is not None else config.timeout_seconds,
            stable_order=stable_order,
        )
    except IQFetchError as exc:
        logger.error("Report generation failed", extra={"error": str(exc)})
        err_console.print(f"[bold red]Error:[/bold red] report generation failed: {escape(str(exc))}")
        raise typer.Exit(1) from exc

    logger.info("Report generation completed", extra={"path": str(path)})
    console.print(f"[green]Wrote report:[/green] {escape(str(path))}", highlight=False, soft_wrap=True)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
