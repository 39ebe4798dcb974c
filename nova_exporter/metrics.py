"""Declarations of every metric the Nova exporter can emit.

The catalogue is static; a :class:`MetricSet` is built from it once at
startup, applying the configured name prefix and the disabled-metric list.
Diagnostic categories resolve to their metric through an explicit
``DiagnosticCategory → MetricSpec`` mapping on the set rather than by
looking metric names up at emission time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from prometheus_client.core import GaugeMetricFamily

from nova_exporter.capacity import CAPACITY_LABELS
from nova_exporter.classifier import DiagnosticCategory

logger = logging.getLogger(__name__)

SERVICE_NAME = "nova"


@dataclass(frozen=True)
class MetricSpec:
    """A single exported gauge."""

    name: str  # short name, e.g. "vcpus_used"
    labels: tuple[str, ...] = ()
    documentation: str = ""

    def full_name(self, prefix: str) -> str:
        parts = [p for p in (prefix, SERVICE_NAME, self.name) if p]
        return "_".join(parts)


# ──────────────────────────── Catalogue ───────────────────────────────────────

_CATALOGUE: dict[str, MetricSpec] = {}


def _declare(name: str, labels: Iterable[str] = (), documentation: str = "") -> MetricSpec:
    spec = MetricSpec(name=name, labels=tuple(labels), documentation=documentation or name)
    _CATALOGUE[name] = spec
    return spec


_declare("up", documentation="1 if every metric group of the last scrape succeeded")
_declare(
    "diagnostics_skipped_instances",
    documentation="Servers whose diagnostics could not be fetched during the last scrape",
)

_declare("flavors", documentation="Number of flavors")
_declare("availability_zones", documentation="Number of availability zones")
_declare("security_groups", documentation="Number of security groups")
_declare("total_vms", documentation="Number of servers across all tenants")

_declare(
    "agent_state",
    ["id", "hostname", "service", "adminState", "zone", "disabledReason"],
    "1 if the compute service reports state up",
)

for _name in (
    "running_vms",
    "current_workload",
    "vcpus_available",
    "vcpus_used",
    "memory_available_bytes",
    "memory_used_bytes",
    "local_storage_available_bytes",
    "local_storage_used_bytes",
):
    _declare(_name, CAPACITY_LABELS)

SERVER_STATUS_LABELS = [
    "id",
    "status",
    "name",
    "tenant_id",
    "user_id",
    "address_ipv4",
    "address_ipv6",
    "host_id",
    "uuid",
    "availability_zone",
    "flavor_id",
]
_declare("server_status", SERVER_STATUS_LABELS, "Index of the server status in the known status list")

for _name in ("limits_vcpus_max", "limits_vcpus_used", "limits_memory_max", "limits_memory_used"):
    _declare(_name, ["tenant", "tenant_id"])

INSTANCE_LABELS = ["id", "status", "name", "tenant_id", "hypervisor"]

# category → (metric name, sub-resource label or None)
DIAGNOSTIC_METRICS: dict[DiagnosticCategory, tuple[str, str | None]] = {
    DiagnosticCategory.CPU_TIME: ("server_diagnostics_cpu_details_time", "cpu_id"),
    DiagnosticCategory.DISK_WRITE_BYTES: ("server_diagnostics_disk_details_write_bytes", "disk_id"),
    DiagnosticCategory.DISK_READ_BYTES: ("server_diagnostics_disk_details_read_bytes", "disk_id"),
    DiagnosticCategory.DISK_ERRORS: ("server_diagnostics_disk_details_errors_count", "disk_id"),
    DiagnosticCategory.DISK_READ_REQUESTS: ("server_diagnostics_disk_details_read_requests", "disk_id"),
    DiagnosticCategory.DISK_WRITE_REQUESTS: ("server_diagnostics_disk_details_write_requests", "disk_id"),
    DiagnosticCategory.MEMORY_SELECTED: ("server_diagnostics_memory_selected_kb", None),
    DiagnosticCategory.MEMORY_ACTUAL: ("server_diagnostics_memory_actual_kb", None),
    DiagnosticCategory.MEMORY_AVAILABLE: ("server_diagnostics_memory_available_kb", None),
    DiagnosticCategory.MEMORY_LAST_UPDATE: ("server_diagnostics_memory_last_update_time", None),
    DiagnosticCategory.MEMORY_MAJOR_FAULT: ("server_diagnostics_memory_major_fault", None),
    DiagnosticCategory.MEMORY_MINOR_FAULT: ("server_diagnostics_memory_minor_fault", None),
    DiagnosticCategory.MEMORY_RSS: ("server_diagnostics_memory_rss", None),
    DiagnosticCategory.MEMORY_SWAP_IN: ("server_diagnostics_memory_swap_in", None),
    DiagnosticCategory.MEMORY_SWAP_OUT: ("server_diagnostics_memory_swap_out", None),
    DiagnosticCategory.MEMORY_UNUSED: ("server_diagnostics_memory_unused_kb", None),
    DiagnosticCategory.MEMORY_USABLE: ("server_diagnostics_memory_usable_kb", None),
    DiagnosticCategory.NIC_RX_PACKETS: ("server_diagnostics_nic_details_rx_packets", "nic_id"),
    DiagnosticCategory.NIC_RX_DROP: ("server_diagnostics_nic_details_rx_drop", "nic_id"),
    DiagnosticCategory.NIC_RX_ERRORS: ("server_diagnostics_nic_details_rx_errors", "nic_id"),
    DiagnosticCategory.NIC_RX_RATE: ("server_diagnostics_nic_details_rx_rate", "nic_id"),
    DiagnosticCategory.NIC_TX_PACKETS: ("server_diagnostics_nic_details_tx_packets", "nic_id"),
    DiagnosticCategory.NIC_TX_DROP: ("server_diagnostics_nic_details_tx_drop", "nic_id"),
    DiagnosticCategory.NIC_TX_ERRORS: ("server_diagnostics_nic_details_tx_errors", "nic_id"),
    DiagnosticCategory.NIC_TX_RATE: ("server_diagnostics_nic_details_tx_rate", "nic_id"),
}

for _category, (_name, _sub_label) in DIAGNOSTIC_METRICS.items():
    _labels = INSTANCE_LABELS if _sub_label is None else [*INSTANCE_LABELS, _sub_label]
    _declare(_name, _labels, f"Server diagnostics: {_category.value}")


def all_metrics() -> dict[str, MetricSpec]:
    """Return every declared metric keyed by short name."""
    return dict(_CATALOGUE)


# ──────────────────────────── Enabled set ─────────────────────────────────────


@dataclass
class MetricSet:
    """The enabled subset of the catalogue, with the name prefix applied."""

    prefix: str = "openstack"
    disabled: frozenset[str] = frozenset()
    specs: dict[str, MetricSpec] = field(init=False, default_factory=dict)
    by_category: dict[DiagnosticCategory, MetricSpec] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.disabled) - set(_CATALOGUE)
        if unknown:
            logger.warning("Ignoring unknown disabled metrics: %s", ", ".join(sorted(unknown)))
        self.specs = {
            name: spec for name, spec in _CATALOGUE.items() if name not in self.disabled
        }
        self.by_category = {
            category: self.specs[name]
            for category, (name, _) in DIAGNOSTIC_METRICS.items()
            if name in self.specs
        }

    def enabled(self, name: str) -> bool:
        return name in self.specs

    def new_families(self) -> dict[str, GaugeMetricFamily]:
        """Create one empty gauge family per enabled metric for a scrape."""
        return {
            name: GaugeMetricFamily(
                spec.full_name(self.prefix),
                spec.documentation,
                labels=list(spec.labels),
            )
            for name, spec in self.specs.items()
        }
