"""Nova (OpenStack Compute) HTTP API client.

Fetches the lists and per-server records the exporter turns into metrics.
Every call raises ``httpx.HTTPError`` on failure; deciding whether a failure
is fatal for a scrape is left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nova_exporter.config import Settings
from nova_exporter.keystone import KeystoneClient
from nova_exporter.models import (
    AbsoluteLimits,
    Aggregate,
    ComputeService,
    Hypervisor,
    Server,
)

logger = logging.getLogger(__name__)

# Hard stop for "next" links that never end.
_MAX_PAGES = 1000


class NovaClient:
    """Lightweight Nova API v2.1 client.

    Parameters
    ----------
    settings : Settings
        Endpoint, region, microversion and TLS options.
    keystone : KeystoneClient
        Supplies tokens and the service catalog.
    """

    def __init__(self, settings: Settings, keystone: KeystoneClient) -> None:
        self.settings = settings
        self.keystone = keystone
        self._client = httpx.Client(
            timeout=httpx.Timeout(settings.timeout, connect=5.0),
            verify=settings.verify,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NovaClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Raw helpers ───────────────────────────────────────────────────────

    @property
    def base_url(self) -> str:
        if self.settings.compute_url:
            return self.settings.compute_url.rstrip("/")
        return self.keystone.token().endpoint(
            "compute", self.settings.interface, self.settings.region_name
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "X-Auth-Token": self.keystone.token().value,
            "Accept": "application/json",
        }
        if self.settings.compute_api_version:
            headers["X-OpenStack-Nova-API-Version"] = self.settings.compute_api_version
        return headers

    def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET *path* (relative to the compute endpoint, or absolute).

        A 401 drops the cached token and the request is sent once more with
        a fresh one. Raises ``httpx.HTTPStatusError`` on non-2xx responses.
        """
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        resp = self._client.get(url, params=params, headers=self._headers())
        if resp.status_code == 401:
            logger.info("Nova rejected the token, re-authenticating")
            self.keystone.invalidate()
            resp = self._client.get(url, params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def _list(self, path: str, key: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """Collect every page of a list call by following ``<key>_links``."""
        items: list[dict[str, Any]] = []
        next_url: str | None = path
        pages = 0
        while next_url is not None:
            if pages >= _MAX_PAGES:
                logger.warning("Stopped following %s pagination after %d pages", key, pages)
                break
            data = self._get(next_url, params=params)
            pages += 1
            items.extend(data.get(key) or [])
            next_url = None
            params = None  # the next link already carries the query
            for link in data.get(f"{key}_links") or []:
                if link.get("rel") == "next":
                    next_url = link.get("href")
                    break
        return items

    # ── Inventory counts ──────────────────────────────────────────────────

    def list_flavors(self) -> list[dict[str, Any]]:
        return self._list("/flavors/detail", "flavors")

    def list_availability_zones(self) -> list[dict[str, Any]]:
        return self._get("/os-availability-zone").get("availabilityZoneInfo") or []

    def list_security_groups(self) -> list[dict[str, Any]]:
        return self._get("/os-security-groups").get("security_groups") or []

    # ── Servers ───────────────────────────────────────────────────────────

    def list_servers(self) -> list[Server]:
        """Return every server across all tenants."""
        raw = self._list("/servers/detail", "servers", params={"all_tenants": "1"})
        return [Server.model_validate(s) for s in raw]

    def get_diagnostics(self, server_id: str) -> dict[str, Any]:
        """Return the raw diagnostic record of one server."""
        return self._get(f"/servers/{server_id}/diagnostics")

    # ── Hosts ─────────────────────────────────────────────────────────────

    def list_services(self) -> list[ComputeService]:
        raw = self._get("/os-services").get("services") or []
        return [ComputeService.model_validate(s) for s in raw]

    def list_hypervisors(self) -> list[Hypervisor]:
        raw = self._list("/os-hypervisors/detail", "hypervisors")
        return [Hypervisor.model_validate(h) for h in raw]

    def list_aggregates(self) -> list[Aggregate]:
        raw = self._get("/os-aggregates").get("aggregates") or []
        return [Aggregate.model_validate(a) for a in raw]

    # ── Limits ────────────────────────────────────────────────────────────

    def get_limits(self, project_id: str) -> AbsoluteLimits:
        data = self._get("/limits", params={"tenant_id": project_id})
        return AbsoluteLimits.model_validate(data.get("limits", {}).get("absolute", {}))
