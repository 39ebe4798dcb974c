"""Shared test fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from nova_exporter.config import Settings


@pytest.fixture()
def libvirt_diagnostics() -> dict[str, Any]:
    """A legacy (microversion 2.1) diagnostics body from a libvirt host."""
    return {
        "cpu0_time": 9.965e10,
        "cpu1_time": 7.153e10,
        "hda_errors": -1,
        "hda_read": 796976,
        "hda_read_req": 213,
        "hda_write": 0,
        "hda_write_req": 0,
        "memory": 1.048576e06,
        "memory-actual": 1.048576e06,
        "memory-available": 1.008548e06,
        "memory-last_update": 1.586337512e09,
        "memory-major_fault": 643,
        "memory-minor_fault": 3.985196e06,
        "memory-rss": 810084,
        "memory-swap_in": 0,
        "memory-swap_out": 0,
        "memory-unused": 582860,
        "memory-usable": 593740,
        "tap3e417313-ff_rx": 3.454137e06,
        "tap3e417313-ff_rx_drop": 0,
        "tap3e417313-ff_rx_errors": 0,
        "tap3e417313-ff_rx_packets": 8115,
        "tap3e417313-ff_tx": 3.905463e06,
        "tap3e417313-ff_tx_drop": 0,
        "tap3e417313-ff_tx_errors": 0,
        "tap3e417313-ff_tx_packets": 15717,
        "vda_errors": -1,
        "vda_read": 1.89332992e08,
        "vda_read_req": 10778,
        "vda_write": 2.23245312e08,
        "vda_write_req": 1663,
    }


@pytest.fixture()
def aggregates_body() -> dict[str, Any]:
    """A ``GET /os-aggregates`` body with a zone-only aggregate and two pools."""
    return {
        "aggregates": [
            {
                "name": "az1-hosts",
                "availability_zone": "az1",
                "metadata": {"availability_zone": "az1"},
                "hosts": ["compute-1", "compute-2"],
            },
            {
                "name": "ssd",
                "availability_zone": None,
                "metadata": {"disk": "ssd"},
                "hosts": ["compute-1"],
            },
            {
                "name": "gpu",
                "availability_zone": "az1",
                "metadata": {"availability_zone": "az1", "gpu": "true"},
                "hosts": ["compute-1", "compute-3"],
            },
        ]
    }


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        auth_url="https://keystone.example.com:5000/v3",
        username="exporter",
        password="secret",
        project_name="admin",
        compute_url="https://nova.example.com:8774/v2.1",
    )


def _make_response(json_body: Any, headers: dict[str, str] | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = json_body
    resp.headers = headers or {}
    resp.raise_for_status = MagicMock()
    return resp


@pytest.fixture()
def make_response():
    """Factory for MagicMocks standing in for an ``httpx.Response``."""
    return _make_response
