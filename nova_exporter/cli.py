"""CLI entry-point for the nova-exporter."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, NoReturn

import click
from prometheus_client import CollectorRegistry, generate_latest, start_http_server
from rich.console import Console
from rich.table import Table

from nova_exporter import __version__
from nova_exporter.classifier import classify
from nova_exporter.collector import NovaCollector
from nova_exporter.config import DEFAULT_LISTEN_ADDRESS, DEFAULT_PORT, DEFAULT_PREFIX, Settings
from nova_exporter.keystone import KeystoneClient
from nova_exporter.metrics import MetricSet
from nova_exporter.models import Aggregate
from nova_exporter.nova import NovaClient
from nova_exporter.topology import build_topology

console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _fail(message: str) -> NoReturn:
    console.print(f"[red bold]Error:[/red bold] {message}")
    sys.exit(1)


def _build_settings(
    cloud: str,
    clouds_file: str,
    overrides: dict[str, Any],
) -> Settings:
    overrides = {k: v for k, v in overrides.items() if v not in (None, "", ())}
    if cloud or clouds_file:
        return Settings.from_clouds_yaml(cloud or "default", clouds_file or None, **overrides)
    return Settings(**overrides)


def _build_collector(settings: Settings) -> tuple[NovaCollector, KeystoneClient, NovaClient]:
    keystone = KeystoneClient(settings)
    nova = NovaClient(settings, keystone)
    metric_set = MetricSet(prefix=settings.prefix, disabled=frozenset(settings.disabled_metrics))
    return NovaCollector(nova, keystone, metric_set), keystone, nova


def _connection_options(fn: Any) -> Any:
    options = [
        click.option("--os-cloud", "cloud", default="", help="Cloud name in clouds.yaml."),
        click.option(
            "--os-client-config", "clouds_file", default="", help="Path to clouds.yaml."
        ),
        click.option(
            "--prefix", default=DEFAULT_PREFIX, show_default=True, help="Metric name prefix."
        ),
        click.option(
            "--disable-metric",
            "disabled_metrics",
            multiple=True,
            help="Short metric name to skip (repeatable), e.g. limits_vcpus_max.",
        ),
        click.option(
            "--compute-api-version", default="", help="Nova microversion header (default: 2.1)."
        ),
        click.option("--insecure", is_flag=True, help="Skip TLS certificate verification."),
        click.option("--verbose", "-v", is_flag=True, help="Enable debug logging."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.version_option(version=__version__, prog_name="nova-exporter")
def main() -> None:
    """Prometheus exporter for OpenStack Nova."""


@main.command()
@_connection_options
@click.option("--listen-address", default=DEFAULT_LISTEN_ADDRESS, show_default=True)
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int)
def serve(
    cloud: str,
    clouds_file: str,
    prefix: str,
    disabled_metrics: tuple[str, ...],
    compute_api_version: str,
    insecure: bool,
    verbose: bool,
    listen_address: str,
    port: int,
) -> None:
    """Serve metrics over HTTP; Nova is polled on every scrape."""
    _configure_logging(verbose)
    try:
        settings = _build_settings(
            cloud,
            clouds_file,
            {
                "prefix": prefix,
                "disabled_metrics": list(disabled_metrics),
                "compute_api_version": compute_api_version,
                "insecure": insecure or None,
                "listen_address": listen_address,
                "port": port,
                "verbose": verbose,
            },
        )
        settings.validate_credentials()
    except (ValueError, FileNotFoundError) as exc:
        _fail(str(exc))

    collector, keystone, nova = _build_collector(settings)
    registry = CollectorRegistry()
    registry.register(collector)

    start_http_server(settings.port, addr=settings.listen_address, registry=registry)
    console.print(
        f"Serving metrics on [green]http://{settings.listen_address}:{settings.port}/metrics[/green]"
    )
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("[dim]Shutting down.[/dim]")
    finally:
        nova.close()
        keystone.close()


@main.command()
@_connection_options
def collect(
    cloud: str,
    clouds_file: str,
    prefix: str,
    disabled_metrics: tuple[str, ...],
    compute_api_version: str,
    insecure: bool,
    verbose: bool,
) -> None:
    """Run one scrape and print it in the Prometheus text format."""
    _configure_logging(verbose)
    try:
        settings = _build_settings(
            cloud,
            clouds_file,
            {
                "prefix": prefix,
                "disabled_metrics": list(disabled_metrics),
                "compute_api_version": compute_api_version,
                "insecure": insecure or None,
                "verbose": verbose,
            },
        )
        settings.validate_credentials()
    except (ValueError, FileNotFoundError) as exc:
        _fail(str(exc))

    collector, keystone, nova = _build_collector(settings)
    registry = CollectorRegistry()
    registry.register(collector)
    try:
        click.echo(generate_latest(registry).decode("utf-8"), nl=False)
    finally:
        nova.close()
        keystone.close()


def _load_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        _fail(f"Could not read {path}: {exc}")


@main.command(name="classify")
@click.argument("diagnostics_file", type=click.Path(exists=True, dir_okay=False))
def classify_cmd(diagnostics_file: str) -> None:
    """Classify a saved diagnostics JSON record and print the result.

    DIAGNOSTICS_FILE holds the body of GET /servers/{id}/diagnostics.
    """
    record = _load_json(diagnostics_file)
    if not isinstance(record, dict):
        _fail("Diagnostics file must contain a JSON object.")

    observations = classify(record)
    table = Table(title="Classified diagnostics")
    table.add_column("Category", style="bold")
    table.add_column("Sub-resource")
    table.add_column("Value", justify="right")
    for obs in observations:
        table.add_row(obs.category.value, obs.sub_resource or "", f"{obs.value:g}")
    console.print(table)
    console.print(
        f"  Classified [green]{len(observations)}[/green] of {len(record)} entries."
    )


@main.command()
@click.argument("aggregates_file", type=click.Path(exists=True, dir_okay=False))
def topology(aggregates_file: str) -> None:
    """Show host zones and aggregates from a saved aggregates JSON listing.

    AGGREGATES_FILE holds the body of GET /os-aggregates, or just its list.
    """
    raw = _load_json(aggregates_file)
    if isinstance(raw, dict):
        raw = raw.get("aggregates", [])
    if not isinstance(raw, list):
        _fail("Aggregates file must contain a list or an object with an 'aggregates' key.")

    topo = build_topology(Aggregate.model_validate(a) for a in raw)
    hosts = sorted(set(topo.zones) | set(topo.aggregates))
    table = Table(title="Host topology")
    table.add_column("Host", style="bold")
    table.add_column("Availability zone")
    table.add_column("Aggregates")
    for host in hosts:
        table.add_row(host, topo.zone_of(host) or "", topo.aggregate_names_of(host))
    console.print(table)


if __name__ == "__main__":
    main()
