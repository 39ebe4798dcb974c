"""Classify per-server diagnostic records into metric categories.

``GET /servers/{id}/diagnostics`` returns a flat key/value snapshot whose key
names depend on the hypervisor driver and on the attached devices, e.g.::

    cpu0_time                  9.965e+10
    memory-actual              1048576
    tap3e417313-ff_rx_packets  8115
    vda_read_req               10778

There is no schema behind these names, so classification is an ordered list
of substring rules evaluated first-match-wins. Each rule decides the
category and extracts the sub-resource (vCPU, NIC, disk) the counter belongs
to. Keys that no rule recognises are dropped, as are values that are not
numbers. Classification never raises.

Known heuristic edge cases, left as-is:
  • NIC rules run before the block-device rule, so a key such as
    ``vdb_tx`` is read as a network counter.
  • a disk key with no recognised counter suffix (``vda`` alone) is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from nova_exporter.models import InstanceIdentity

logger = logging.getLogger(__name__)


# ──────────────────────────── Categories ──────────────────────────────────────


class DiagnosticCategory(str, Enum):
    """Every metric category a diagnostic key can be classified into."""

    CPU_TIME = "cpu-time"

    MEMORY_ACTUAL = "memory-actual"
    MEMORY_AVAILABLE = "memory-available"
    MEMORY_LAST_UPDATE = "memory-last-update"
    MEMORY_MAJOR_FAULT = "memory-major-fault"
    MEMORY_MINOR_FAULT = "memory-minor-fault"
    MEMORY_RSS = "memory-rss"
    MEMORY_SWAP_IN = "memory-swap-in"
    MEMORY_SWAP_OUT = "memory-swap-out"
    MEMORY_UNUSED = "memory-unused"
    MEMORY_USABLE = "memory-usable"
    MEMORY_SELECTED = "memory-selected"

    DISK_READ_BYTES = "disk-read-bytes"
    DISK_WRITE_BYTES = "disk-write-bytes"
    DISK_ERRORS = "disk-errors"
    DISK_READ_REQUESTS = "disk-read-requests"
    DISK_WRITE_REQUESTS = "disk-write-requests"

    NIC_RX_PACKETS = "nic-rx-packets"
    NIC_RX_DROP = "nic-rx-drop"
    NIC_RX_ERRORS = "nic-rx-errors"
    NIC_RX_RATE = "nic-rx-rate"
    NIC_TX_PACKETS = "nic-tx-packets"
    NIC_TX_DROP = "nic-tx-drop"
    NIC_TX_ERRORS = "nic-tx-errors"
    NIC_TX_RATE = "nic-tx-rate"


@dataclass(frozen=True)
class Observation:
    """One classified diagnostic value."""

    category: DiagnosticCategory
    value: float
    sub_resource: str | None = None


# ──────────────────────────── Sub-category tables ─────────────────────────────
# Ordered (substring, category) pairs; the first substring found in the key wins.

_MEMORY_KINDS: tuple[tuple[str, DiagnosticCategory], ...] = (
    ("actual", DiagnosticCategory.MEMORY_ACTUAL),
    ("available", DiagnosticCategory.MEMORY_AVAILABLE),
    ("last_update", DiagnosticCategory.MEMORY_LAST_UPDATE),
    ("major_fault", DiagnosticCategory.MEMORY_MAJOR_FAULT),
    ("minor_fault", DiagnosticCategory.MEMORY_MINOR_FAULT),
    ("rss", DiagnosticCategory.MEMORY_RSS),
    ("swap_in", DiagnosticCategory.MEMORY_SWAP_IN),
    ("swap_out", DiagnosticCategory.MEMORY_SWAP_OUT),
    ("unused", DiagnosticCategory.MEMORY_UNUSED),
    ("usable", DiagnosticCategory.MEMORY_USABLE),
)

_TX_KINDS: tuple[tuple[str, DiagnosticCategory], ...] = (
    ("drop", DiagnosticCategory.NIC_TX_DROP),
    ("errors", DiagnosticCategory.NIC_TX_ERRORS),
    ("packets", DiagnosticCategory.NIC_TX_PACKETS),
)

_RX_KINDS: tuple[tuple[str, DiagnosticCategory], ...] = (
    ("drop", DiagnosticCategory.NIC_RX_DROP),
    ("errors", DiagnosticCategory.NIC_RX_ERRORS),
    ("packets", DiagnosticCategory.NIC_RX_PACKETS),
)

# read_req / write_req must be tested before read / write.
_DISK_KINDS: tuple[tuple[str, DiagnosticCategory], ...] = (
    ("errors", DiagnosticCategory.DISK_ERRORS),
    ("read_req", DiagnosticCategory.DISK_READ_REQUESTS),
    ("write_req", DiagnosticCategory.DISK_WRITE_REQUESTS),
    ("read", DiagnosticCategory.DISK_READ_BYTES),
    ("write", DiagnosticCategory.DISK_WRITE_BYTES),
)

_DISK_PREFIXES = ("hd", "vd", "sd")


def _first_kind(
    key: str,
    kinds: tuple[tuple[str, DiagnosticCategory], ...],
    default: DiagnosticCategory | None = None,
) -> DiagnosticCategory | None:
    for needle, category in kinds:
        if needle in key:
            return category
    return default


# ──────────────────────────── Rules ───────────────────────────────────────────


@dataclass(frozen=True)
class ClassificationRule:
    """One step of the ordered classifier.

    ``matches`` decides whether the rule claims the key at all. Once claimed,
    no later rule is consulted, even if ``category`` returns ``None``.
    """

    name: str
    matches: Callable[[str], bool]
    category: Callable[[str], DiagnosticCategory | None]
    sub_resource: Callable[[str], str | None]


def _no_sub_resource(key: str) -> str | None:
    return None


def _interface_before(anchor: str) -> Callable[[str], str | None]:
    def extract(key: str) -> str | None:
        return key.split(anchor, 1)[0]

    return extract


RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="cpu",
        matches=lambda key: "cpu" in key and "time" in key,
        category=lambda key: DiagnosticCategory.CPU_TIME,
        sub_resource=lambda key: key.removesuffix("_time"),
    ),
    ClassificationRule(
        name="memory",
        matches=lambda key: "memory" in key,
        category=lambda key: _first_kind(key, _MEMORY_KINDS, DiagnosticCategory.MEMORY_SELECTED),
        sub_resource=_no_sub_resource,
    ),
    ClassificationRule(
        name="nic-tx",
        matches=lambda key: "_tx" in key,
        category=lambda key: _first_kind(key, _TX_KINDS, DiagnosticCategory.NIC_TX_RATE),
        sub_resource=_interface_before("_tx"),
    ),
    ClassificationRule(
        name="nic-rx",
        matches=lambda key: "_rx" in key,
        category=lambda key: _first_kind(key, _RX_KINDS, DiagnosticCategory.NIC_RX_RATE),
        sub_resource=_interface_before("_rx"),
    ),
    ClassificationRule(
        name="disk",
        matches=lambda key: key.startswith(_DISK_PREFIXES),
        category=lambda key: _first_kind(key, _DISK_KINDS),
        sub_resource=lambda key: key.split("_", 1)[0],
    ),
)


# ──────────────────────────── Classification ──────────────────────────────────


def _as_number(value: Any) -> float | None:
    """Interpret a diagnostic value as a float, or return ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value)
    except (ValueError, OverflowError):
        return None


def classify_key(key: str) -> tuple[DiagnosticCategory, str | None] | None:
    """Return ``(category, sub_resource)`` for a diagnostic key, or ``None``."""
    for rule in RULES:
        if not rule.matches(key):
            continue
        category = rule.category(key)
        if category is None:
            return None
        return category, rule.sub_resource(key)
    return None


def classify(record: Mapping[str, Any] | None) -> list[Observation]:
    """Classify every entry of a diagnostic record.

    Entries are visited in the record's iteration order. Unrecognised keys
    and non-numeric values produce no observation.
    """
    observations: list[Observation] = []
    if not isinstance(record, Mapping):
        return observations

    for key, raw in record.items():
        if not isinstance(key, str):
            continue
        value = _as_number(raw)
        if value is None:
            logger.debug("Skipping non-numeric diagnostic %s=%r", key, raw)
            continue
        result = classify_key(key)
        if result is None:
            continue
        category, sub_resource = result
        observations.append(Observation(category=category, value=value, sub_resource=sub_resource))
    return observations


def classify_with_identity(
    record: Mapping[str, Any] | None,
    identity: InstanceIdentity,
) -> Iterable[tuple[Observation, list[str]]]:
    """Classify *record* and pair each observation with its full label values.

    Label values are the identity labels followed by the sub-resource id
    when the category carries one.
    """
    base = identity.label_values()
    for obs in classify(record):
        labels = [*base] if obs.sub_resource is None else [*base, obs.sub_resource]
        yield obs, labels
