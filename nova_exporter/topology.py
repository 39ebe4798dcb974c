"""Join hosts to the availability zones and aggregates they belong to."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from nova_exporter.models import Aggregate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Topology:
    """Read-only host lookups built from one aggregate listing.

    ``zones`` maps host → availability zone. ``aggregates`` maps host → the
    names of the non-zone-only aggregates it belongs to, sorted.
    """

    zones: Mapping[str, str] = field(default_factory=dict)
    aggregates: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def zone_of(self, host: str) -> str | None:
        return self.zones.get(host)

    def aggregate_names_of(self, host: str) -> str:
        """Comma-joined aggregate names for *host*, or ``""``."""
        return ",".join(self.aggregates.get(host, ()))


def build_topology(aggregates: Iterable[Aggregate]) -> Topology:
    """Build host → zone and host → aggregate-name lookups.

    A zone declared by a later aggregate overwrites an earlier one. Zone-only
    aggregates set the zone but contribute no name.
    """
    zones: dict[str, str] = {}
    names: dict[str, list[str]] = {}

    for agg in aggregates:
        zone_only = agg.is_zone_only
        for host in agg.hosts:
            if agg.availability_zone:
                previous = zones.get(host)
                if previous and previous != agg.availability_zone:
                    logger.debug(
                        "Host %s moves from zone %s to %s via aggregate %s",
                        host, previous, agg.availability_zone, agg.name,
                    )
                zones[host] = agg.availability_zone
            if not zone_only:
                names.setdefault(host, []).append(agg.name)

    return Topology(
        zones=MappingProxyType(zones),
        aggregates=MappingProxyType({host: tuple(sorted(n)) for host, n in names.items()}),
    )
