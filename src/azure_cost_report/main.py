"""
Main CLI interface for the Azure cost report function.

Runs a one-off cost report from the command line or serves the report
endpoint locally.
"""

import asyncio
import json
import logging
import sys

import click

from .api.service import handle_cost_request
from .config.settings import get_config

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity settings."""
    # Default is quiet (only show results)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.ERROR)

    # Configure Azure SDK and HTTP loggers to reduce noise
    noisy_loggers = [
        "azure.core.pipeline.policies.http_logging_policy",
        "azure.identity",
        "httpx",
        "httpcore",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.INFO if verbose else logging.ERROR)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging and debug output")
@click.pass_context
def cli(ctx, verbose):
    """Azure Cost Report - summarized and itemized Azure costs for a date range."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = get_config()


@cli.command()
@click.option("--start-date", "-s", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end-date", "-e", required=True, help="End date (YYYY-MM-DD)")
@click.option("--start-time", default=None, help="Start time (HH:MM:SS)")
@click.option("--end-time", default=None, help="End time (HH:MM:SS)")
@click.option("--subscription-id", default=None, help="Azure subscription id")
@click.option(
    "--granularity",
    "-g",
    type=click.Choice(["Daily", "Monthly"]),
    default="Daily",
    help="Cost granularity",
)
@click.option("--no-tags", is_flag=True, help="Skip the resource tag lookup")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write JSON to this file")
@click.pass_context
def report(
    ctx, start_date, end_date, start_time, end_time, subscription_id, granularity, no_tags, output
):
    """Generate a cost report for a date range."""
    request = {
        "start_date": start_date,
        "end_date": end_date,
        "start_time": start_time,
        "end_time": end_time,
        "subscription_id": subscription_id,
        "granularity": granularity,
        "include_tags": not no_tags,
    }
    body = {key: value for key, value in request.items() if value is not None}

    status_code, payload = asyncio.run(
        handle_cost_request("POST", body, {}, config=ctx.obj["config"])
    )

    if status_code != 200:
        message = payload.get("message") or payload.get("error")
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)

    rendered = json.dumps(payload, indent=2)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(rendered)
        summary = payload["summary"]
        click.echo(
            f"Wrote {payload['metadata']['total_records']} records "
            f"({summary['total_cost']:.2f} {summary['currency']}) to {output}"
        )
    else:
        click.echo(rendered)


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on")
@click.pass_context
def serve(ctx, host, port):
    """Serve the cost report endpoint over HTTP."""
    import uvicorn

    config = ctx.obj["config"]
    config.override_from_cli({"host": host, "port": port})
    server = config.server

    click.echo(f"Serving cost reports on http://{server['host']}:{server['port']}/api/costs")
    uvicorn.run(
        "azure_cost_report.api.app:app",
        host=server["host"],
        port=int(server["port"]),
        log_level="info",
    )


if __name__ == "__main__":
    cli()
