"""Command-line interface for snipcheck."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Tuple

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from snipcheck import __version__
from snipcheck.config import Config, find_config_file
from snipcheck.container import DependencyContainer
from snipcheck.exceptions import ConfigurationError
from snipcheck.observability import configure_logging, write_metrics
from snipcheck.pipeline import Pipeline
from snipcheck.report import Report
from snipcheck.utils import atomic_write_json, atomic_write_text

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

err_console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def load_config(
    config_path: Optional[Path],
    tags: Tuple[str, ...] = (),
    timeout: Optional[float] = None,
    run_timeout: Optional[float] = None,
    jobs: Optional[int] = None,
    log_level: Optional[str] = None,
    metrics_file: Optional[Path] = None,
) -> Config:
    """Load the configuration file (explicit or discovered) and apply CLI overrides."""
    path = config_path or find_config_file()
    if path:
        config = Config.from_yaml(path)
    else:
        try:
            config = Config()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in environment: {e}") from e
    return config.with_overrides(
        tags=list(tags) or None,
        timeout=timeout,
        run_timeout=run_timeout,
        max_concurrency=jobs,
        log_level=log_level,
        metrics_file=str(metrics_file) if metrics_file else None,
    )


def write_output(report: Report, output: Path, output_format: str, verbose: bool) -> None:
    if output_format == "json":
        atomic_write_json(output, report.to_dict())
    else:
        atomic_write_text(output, report.render_text(verbose=verbose))


@click.command(name="validate-docs")
@click.version_option(version=__version__, prog_name="snipcheck")
@click.argument("root", type=click.Path(path_type=Path))
@click.option(
    "--tag",
    "tags",
    multiple=True,
    metavar="LANG",
    help="Language tag to validate (repeatable). Defaults to the configured executable tags.",
)
@click.option("--timeout", type=float, default=None, help="Per-snippet checker timeout in seconds.")
@click.option("--run-timeout", type=float, default=None, help="Timeout for the whole run in seconds.")
@click.option("--jobs", "-j", type=int, default=None, help="Number of concurrent checker workers.")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Configuration file path.")
@click.option(
    "--format",
    "output_format",
    default="text",
    type=click.Choice(["text", "json"]),
    help="Report format.",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Also write the report to this file.")
@click.option("--metrics-file", type=click.Path(path_type=Path), help="Write Prometheus metrics to this file.")
@click.option("--verbose", "-v", is_flag=True, help="List skipped snippets in the text report.")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    root: Path,
    tags: Tuple[str, ...],
    timeout: Optional[float],
    run_timeout: Optional[float],
    jobs: Optional[int],
    config_path: Optional[Path],
    output_format: str,
    output: Optional[Path],
    metrics_file: Optional[Path],
    verbose: bool,
    log_level: Optional[str],
) -> None:
    """Validate the fenced code snippets of the documentation under ROOT."""
    try:
        if not root.exists():
            raise ConfigurationError(f"root directory does not exist: {root}")
        config = load_config(config_path, tags, timeout, run_timeout, jobs, log_level, metrics_file)
    except ConfigurationError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False, soft_wrap=True)
        ctx.exit(EXIT_USAGE)

    configure_logging(config.monitoring)

    container = DependencyContainer(config_path, config=config)
    pipeline = Pipeline(container)

    with err_console.status(f"Validating snippets under {escape(str(root))}..."):
        report = asyncio.run(pipeline.run(root))

    if output_format == "json":
        click.echo(report.render_json(), nl=False)
    else:
        click.echo(report.render_text(verbose=verbose), nl=False)

    if output:
        write_output(report, output, output_format, verbose)
    if config.monitoring.metrics_file:
        write_metrics(Path(config.monitoring.metrics_file))

    logger.debug("Stage timings", stages=pipeline.get_performance_stats())
    ctx.exit(report.exit_code)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
