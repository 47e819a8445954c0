"""Command line interface for comms-observability.

\b
Examples:
  comms-obs probe https://api.example.com/functions/scanReadiness
  comms-obs probe -f json --verbose https://api.example.com/health
  comms-obs sanitize "https://api.example.com/getLiveKitRoomStatus?token=abc"
"""

import json
import logging
import sys
from typing import Optional, Tuple

import click
import httpx

from . import config
from .collector import ObservabilityCollector
from .privacy import sanitize_url
from .report import format_diagnostics, health_label
from .types import HealthStatus
from .version import __version__


def _make_transport() -> httpx.BaseTransport:
    return httpx.HTTPTransport(retries=0)


def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else getattr(logging, config.LOG_LEVEL, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("comms_observability").setLevel(level)


@click.group()
@click.help_option("-h", "--help")
@click.version_option(__version__, prog_name="comms-obs")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """Client-side diagnostics for comms and voice connectivity."""
    _setup_logging(debug)


@cli.command()
@click.help_option("-h", "--help")
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["terminal", "json"]),
    default="terminal",
    help="Output format",
)
@click.option(
    "--verbose/--no-verbose", "verbose", default=None,
    help="Record every request, not only comms endpoints (default: from COMMS_OBS_VERBOSE_REQUESTS)",
)
@click.option("--timeout", type=float, default=10.0, show_default=True, help="Request timeout in seconds")
@click.option("--strict", is_flag=True, help="Exit with status 1 unless health is GREEN")
@click.pass_context
def probe(
    ctx: click.Context,
    urls: Tuple[str, ...],
    output_format: str,
    verbose: Optional[bool],
    timeout: float,
    strict: bool,
):
    """Request each URL through the interceptor and report diagnostics.

    \b
    Examples:
      comms-obs probe https://api.example.com/functions/getLiveKitRoomStatus
      comms-obs probe --verbose -f json https://a.example.com https://b.example.com
    """
    collector = ObservabilityCollector(verbose_requests=verbose)

    with collector.network.create_client(transport=_make_transport(), timeout=timeout) as client:
        for url in urls:
            try:
                response = client.get(url)
                outcome = str(response.status_code)
            except httpx.HTTPError as e:
                outcome = f"failed ({type(e).__name__})"
            if output_format == "terminal":
                click.echo(f"{sanitize_url(url)} -> {outcome}")

    snapshot = collector.get_diagnostics_summary()
    if output_format == "json":
        click.echo(json.dumps(snapshot.to_dict(), indent=2, default=str))
    else:
        click.echo("")
        click.echo(format_diagnostics(snapshot))

    if strict and snapshot.health_status != HealthStatus.GREEN:
        click.echo(f"Health is {health_label(snapshot.health_status)}", err=True)
        ctx.exit(1)


@cli.command()
@click.help_option("-h", "--help")
@click.argument("url")
@click.option("--base-url", default=None, help="Origin for resolving relative URLs")
def sanitize(url: str, base_url: Optional[str]):
    """Print URL without query string, fragment or credentials."""
    click.echo(sanitize_url(url, base_url=base_url))


def main() -> None:
    cli(prog_name="comms-obs")


if __name__ == "__main__":
    sys.exit(main())
