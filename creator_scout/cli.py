"""Command-line interface for Creator Scout."""

import asyncio
import json
import logging
import logging.config
import os
import sys
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from creator_scout.analysis.classifier import GuardedClassifier, KeywordClassifier
from creator_scout.collector.error_handler import ConsecutiveErrorTracker
from creator_scout.collector.http_client import HttpClient
from creator_scout.collector.selector import get_stats
from creator_scout.config import Config
from creator_scout.factory import build_queue, build_selector, default_options
from creator_scout.models.options import ScrapingOptions, parse_subreddit
from creator_scout.models.post import ScrapingResult
from creator_scout.monitoring.metrics import PrometheusExporter
from creator_scout.pipeline import DiscoveryPipeline, DiscoveryReport
from creator_scout.storage.csv_sink import CsvSink
from creator_scout.storage.json_sink import JsonSink
from creator_scout.storage.sqlalchemy_store import SQLAlchemyCreatorStore

app = typer.Typer(help="Creator Scout - discover and rank AI/ML creators on Reddit")

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "standard",
                "filename": "logs/creator_scout.log",
                "maxBytes": 10485760,  # 10 MB
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "file"],
                "level": log_level,
                "propagate": True
            },
            "asyncio": {
                "level": "WARNING",
            },
            "aiohttp": {
                "level": "WARNING",
            },
        }
    }

    logging.config.dictConfig(log_config)


def load_config(config_path: str) -> Config:
    """Load and validate configuration, exiting on validation errors."""
    config = Config.from_files(config_path)
    errors = config.validate()
    if errors:
        for error in errors:
            typer.echo(f"Config error: {error}", err=True)
        raise typer.Exit(code=2)
    return config


def start_metrics(config: Config) -> Optional[PrometheusExporter]:
    if not config.monitoring.enable_prometheus:
        return None
    exporter = PrometheusExporter(port=config.monitoring.prometheus_port)
    exporter.start_server()
    return exporter


def export_result(result: ScrapingResult, output_file: str, output_format: str) -> None:
    if output_format == "csv":
        CsvSink(output_file).write(result.posts)
    else:
        JsonSink(output_file).write(result)


async def run_scrape(config: Config, options: ScrapingOptions) -> ScrapingResult:
    exporter = start_metrics(config)
    async with HttpClient(user_agent=config.user_agent) as http:
        selector = build_selector(config, http, prometheus_exporter=exporter)
        return await selector.scrape_subreddit(options)


async def run_batch(config: Config, subreddits: List[str], base_options: ScrapingOptions) -> List[ScrapingResult]:
    exporter = start_metrics(config)
    async with HttpClient(user_agent=config.user_agent) as http:
        selector = build_selector(config, http, prometheus_exporter=exporter)
        tracker = ConsecutiveErrorTracker(config.failure_threshold, prometheus_exporter=exporter)
        return await selector.scrape_multiple(
            subreddits, base_options, delay=config.batch_delay_sec, error_tracker=tracker
        )


async def run_discover(config: Config, subreddit: str, priority: str) -> DiscoveryReport:
    exporter = start_metrics(config)
    store = SQLAlchemyCreatorStore(config.database_url)
    store.ensure_subreddits(config.subreddits)

    async with HttpClient(user_agent=config.user_agent) as http:
        selector = build_selector(config, http, prometheus_exporter=exporter)
        queue = build_queue(config, selector, prometheus_exporter=exporter)

        official = selector.get_strategy("reddit_api")
        profile_lookup = official.get_user_profile if official and config.client_id else None

        pipeline = DiscoveryPipeline(
            queue,
            GuardedClassifier(KeywordClassifier(), max_samples=config.creators.classify_sample_posts),
            store=store,
            profile_lookup=profile_lookup,
            settings=config.creators,
        )
        return await pipeline.discover(subreddit, priority)


def _summary(result: ScrapingResult) -> dict:
    return {
        "subreddit": result.subreddit,
        "source": result.source,
        "total_found": result.total_found,
        "errors": result.errors,
        "rate_limited": result.rate_limited,
        "execution_time": round(result.execution_time, 2),
    }


@app.command()
def scrape(
    subreddit: Annotated[str, typer.Argument(help="Subreddit name, r/name or URL")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum number of posts")] = 100,
    sort: Annotated[str, typer.Option("--sort", help="hot, new, top or rising")] = "hot",
    timeframe: Annotated[str, typer.Option("--timeframe", "-t", help="hour, day, week, month, year or all")] = "week",
    flair: Annotated[Optional[List[str]], typer.Option("--flair", help="Keep posts whose flair contains this")] = None,
    keyword: Annotated[Optional[List[str]], typer.Option("--keyword", "-k", help="Keep posts mentioning this")] = None,
    min_score: Annotated[Optional[int], typer.Option("--min-score", help="Minimum post score")] = None,
    max_age: Annotated[Optional[float], typer.Option("--max-age", help="Maximum post age in days")] = None,
    no_archive: Annotated[bool, typer.Option("--no-archive", help="Never fall back to the archive")] = False,
    retries: Annotated[Optional[int], typer.Option("--retries", help="Attempts per upstream request")] = None,
    delay: Annotated[Optional[float], typer.Option("--delay", help="Base retry delay in seconds")] = None,
    output: Annotated[Optional[str], typer.Option("--output", "-o", help="Write results to this file")] = None,
    output_format: Annotated[str, typer.Option("--format", "-f", help="json or csv")] = "json",
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
) -> None:
    """
    Scrape one subreddit through the strategy fallback chain.
    """
    setup_logging("DEBUG" if verbose else loglevel)
    config_obj = load_config(config)

    overrides = {}
    if retries is not None:
        overrides["max_retries"] = retries
    if delay is not None:
        overrides["retry_delay"] = delay
    try:
        options = default_options(
            config_obj,
            subreddit,
            limit=limit,
            sort=sort,
            timeframe=timeframe,
            flair_filter=flair or [],
            keyword_filter=keyword or [],
            min_score=min_score,
            max_age_days=max_age,
            use_archive=not no_archive,
            verbose=verbose,
            output_format=output_format,
            output_file=output,
            **overrides,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    result = asyncio.run(run_scrape(config_obj, options))
    if output:
        export_result(result, output, output_format)
    typer.echo(json.dumps(_summary(result), indent=2))


@app.command()
def batch(
    subreddits: Annotated[Optional[List[str]], typer.Argument(help="Subreddits (defaults to the configured list)")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum posts per subreddit")] = 50,
    sort: Annotated[str, typer.Option("--sort", help="hot, new, top or rising")] = "hot",
    output_dir: Annotated[Optional[str], typer.Option("--output-dir", help="Write one JSON file per subreddit (defaults to the configured output_dir)")] = None,
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """
    Scrape several subreddits with a fixed delay between them and print batch statistics.
    """
    setup_logging(loglevel)
    config_obj = load_config(config)
    names = list(subreddits or config_obj.subreddits)
    if not names:
        typer.echo("Error: no subreddits given or configured", err=True)
        raise typer.Exit(code=2)

    invalid = [name for name in names if parse_subreddit(name) is None]
    if invalid:
        typer.echo(f"Error: invalid subreddit names: {', '.join(invalid)}", err=True)
        raise typer.Exit(code=2)

    try:
        base_options = default_options(config_obj, names[0], limit=limit, sort=sort)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    results = asyncio.run(run_batch(config_obj, names, base_options))
    target_dir = output_dir or config_obj.output_dir
    if target_dir:
        for result in results:
            JsonSink(os.path.join(target_dir, f"{result.subreddit}.json")).write(result)
    typer.echo(json.dumps(get_stats(results), indent=2))


@app.command()
def discover(
    subreddit: Annotated[str, typer.Argument(help="Subreddit to discover creators in")],
    priority: Annotated[str, typer.Option("--priority", "-p", help="high, medium or low")] = "medium",
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """
    Discover, rank, tag and store the top creators of a subreddit.
    """
    setup_logging(loglevel)
    config_obj = load_config(config)

    try:
        report = asyncio.run(run_discover(config_obj, subreddit, priority))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    except Exception as e:
        logger.critical(f"Unhandled exception: {str(e)}", exc_info=True)
        sys.exit(1)

    typer.echo(json.dumps(report.to_dict(), indent=2, default=str))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
