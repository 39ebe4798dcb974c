"""Prometheus collector that polls Nova on every scrape.

Each scrape runs the metric groups in a fixed order. Groups are independent:
one failing group is logged and flips the ``up`` gauge to 0, the others
still report. Inside the servers group a failed diagnostics fetch only
skips that server; the number of skipped servers is exported as
``diagnostics_skipped_instances``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

import httpx
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from nova_exporter.capacity import hypervisor_observations
from nova_exporter.classifier import classify_with_identity
from nova_exporter.keystone import KeystoneClient
from nova_exporter.metrics import DIAGNOSTIC_METRICS, MetricSet
from nova_exporter.models import Server, map_server_status
from nova_exporter.nova import NovaClient
from nova_exporter.topology import build_topology

logger = logging.getLogger(__name__)

_CAPACITY_METRICS = (
    "running_vms",
    "current_workload",
    "vcpus_available",
    "vcpus_used",
    "memory_available_bytes",
    "memory_used_bytes",
    "local_storage_available_bytes",
    "local_storage_used_bytes",
)
_LIMIT_METRICS = ("limits_vcpus_max", "limits_vcpus_used", "limits_memory_max", "limits_memory_used")
_DIAGNOSTIC_METRIC_NAMES = tuple(name for name, _ in DIAGNOSTIC_METRICS.values())


class Scrape:
    """Per-scrape state: one gauge family per enabled metric plus counters."""

    def __init__(self, metric_set: MetricSet) -> None:
        self.metric_set = metric_set
        self.families: dict[str, GaugeMetricFamily] = metric_set.new_families()
        self.failed_groups: list[str] = []
        self.skipped_instances = 0

    def add(self, name: str, labels: Iterable[str], value: float) -> None:
        family = self.families.get(name)
        if family is None:
            return  # disabled
        family.add_metric(list(labels), value)


class NovaCollector(Collector):
    """Collects Nova inventory, capacity and diagnostics on each scrape.

    Parameters
    ----------
    nova : NovaClient
        Compute API client.
    keystone : KeystoneClient
        Identity client, used to enumerate projects for the limits group.
    metric_set : MetricSet
        Enabled metrics, built once at startup.
    """

    def __init__(self, nova: NovaClient, keystone: KeystoneClient, metric_set: MetricSet) -> None:
        self.nova = nova
        self.keystone = keystone
        self.metric_set = metric_set

    def describe(self) -> list[Metric]:
        # Empty so that registering the collector does not trigger a scrape.
        return []

    def _groups(self) -> list[tuple[str, tuple[str, ...], Callable[[Scrape], None]]]:
        return [
            ("flavors", ("flavors",), self._collect_flavors),
            ("availability_zones", ("availability_zones",), self._collect_availability_zones),
            ("security_groups", ("security_groups",), self._collect_security_groups),
            (
                "servers",
                ("total_vms", "server_status", *_DIAGNOSTIC_METRIC_NAMES),
                self._collect_servers,
            ),
            ("agent_state", ("agent_state",), self._collect_agent_state),
            ("hypervisors", _CAPACITY_METRICS, self._collect_hypervisors),
            ("limits", _LIMIT_METRICS, self._collect_limits),
        ]

    def scrape(self) -> Scrape:
        """Run every enabled group and return the filled-in scrape."""
        scrape = Scrape(self.metric_set)
        for name, metrics, fn in self._groups():
            if not any(self.metric_set.enabled(m) for m in metrics):
                logger.debug("Skipping disabled group %s", name)
                continue
            try:
                fn(scrape)
            except Exception as exc:
                logger.error("Failed to collect %s metrics: %s", name, exc)
                scrape.failed_groups.append(name)

        scrape.add("up", [], 0.0 if scrape.failed_groups else 1.0)
        scrape.add("diagnostics_skipped_instances", [], float(scrape.skipped_instances))
        return scrape

    def collect(self) -> Iterator[Metric]:
        yield from self.scrape().families.values()

    # ── Groups ────────────────────────────────────────────────────────────

    def _collect_flavors(self, scrape: Scrape) -> None:
        scrape.add("flavors", [], float(len(self.nova.list_flavors())))

    def _collect_availability_zones(self, scrape: Scrape) -> None:
        scrape.add("availability_zones", [], float(len(self.nova.list_availability_zones())))

    def _collect_security_groups(self, scrape: Scrape) -> None:
        scrape.add("security_groups", [], float(len(self.nova.list_security_groups())))

    def _collect_servers(self, scrape: Scrape) -> None:
        servers = self.nova.list_servers()
        scrape.add("total_vms", [], float(len(servers)))

        want_diagnostics = bool(self.metric_set.by_category)
        for server in servers:
            scrape.add("server_status", server.status_label_values(), float(map_server_status(server.status)))
            if want_diagnostics:
                self._collect_diagnostics(scrape, server)

    def _collect_diagnostics(self, scrape: Scrape, server: Server) -> None:
        try:
            record: Any = self.nova.get_diagnostics(server.id)
        except (httpx.HTTPError, ValueError) as exc:
            # One server's diagnostics must never abort the scrape.
            logger.debug("Skipping diagnostics for server %s: %s", server.id, exc)
            scrape.skipped_instances += 1
            return

        for obs, labels in classify_with_identity(record, server.identity):
            spec = self.metric_set.by_category.get(obs.category)
            if spec is None:
                continue
            scrape.add(spec.name, labels, obs.value)

    def _collect_agent_state(self, scrape: Scrape) -> None:
        for service in self.nova.list_services():
            scrape.add(
                "agent_state",
                [
                    service.id,
                    service.host,
                    service.binary,
                    service.status,
                    service.zone,
                    service.disabled_reason,
                ],
                1.0 if service.is_up else 0.0,
            )

    def _collect_hypervisors(self, scrape: Scrape) -> None:
        hypervisors = self.nova.list_hypervisors()
        topology = build_topology(self.nova.list_aggregates())
        for hypervisor in hypervisors:
            for sample in hypervisor_observations(hypervisor, topology):
                scrape.add(sample.metric, sample.labels, sample.value)

    def _collect_limits(self, scrape: Scrape) -> None:
        for project in self.keystone.list_projects():
            limits = self.nova.get_limits(project.id)
            labels = [project.name, project.id]
            scrape.add("limits_vcpus_max", labels, float(limits.max_total_cores))
            scrape.add("limits_vcpus_used", labels, float(limits.total_cores_used))
            scrape.add("limits_memory_max", labels, float(limits.max_total_ram_size))
            scrape.add("limits_memory_used", labels, float(limits.total_ram_used))
