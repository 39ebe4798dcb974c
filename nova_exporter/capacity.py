"""Hypervisor capacity samples labeled with zone and aggregate membership."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from nova_exporter.models import Hypervisor
from nova_exporter.topology import Topology

MEGABYTE = 1024 * 1024
GIGABYTE = 1024 * 1024 * 1024

CAPACITY_LABELS = ["hostname", "availability_zone", "aggregates"]


@dataclass(frozen=True)
class CapacitySample:
    metric: str
    value: float
    labels: tuple[str, str, str]


def hypervisor_observations(hypervisor: Hypervisor, topology: Topology) -> Iterator[CapacitySample]:
    """Yield the capacity samples for one hypervisor.

    Zone and aggregates are looked up by the hypervisor's service host, the
    name aggregates use for their members; the hostname label is the
    hypervisor hostname.
    """
    host = hypervisor.service_host
    labels = (
        hypervisor.hostname,
        topology.zone_of(host) or "",
        topology.aggregate_names_of(host),
    )
    values = (
        ("running_vms", hypervisor.running_vms),
        ("current_workload", hypervisor.current_workload),
        ("vcpus_available", hypervisor.vcpus),
        ("vcpus_used", hypervisor.vcpus_used),
        ("memory_available_bytes", hypervisor.memory_mb * MEGABYTE),
        ("memory_used_bytes", hypervisor.memory_mb_used * MEGABYTE),
        ("local_storage_available_bytes", hypervisor.local_gb * GIGABYTE),
        ("local_storage_used_bytes", hypervisor.local_gb_used * GIGABYTE),
    )
    for metric, value in values:
        yield CapacitySample(metric=metric, value=float(value), labels=labels)
