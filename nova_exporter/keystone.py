"""Keystone v3 authentication and project listing.

Only the password method with a project scope is supported; that is what
an exporter running under a service account needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from nova_exporter.config import Settings
from nova_exporter.models import Project

logger = logging.getLogger(__name__)

# Re-authenticate this long before the token actually expires.
_EXPIRY_MARGIN = timedelta(minutes=5)


def _v3_url(auth_url: str) -> str:
    url = auth_url.rstrip("/")
    return url if url.endswith("/v3") else f"{url}/v3"


@dataclass
class Token:
    """A scoped Keystone token and the service catalog that came with it."""

    value: str
    expires_at: datetime | None = None
    catalog: list[dict[str, Any]] = field(default_factory=list)

    def expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - _EXPIRY_MARGIN

    def endpoint(self, service_type: str, interface: str = "public", region: str = "") -> str:
        """Return the catalog URL for *service_type*.

        Raises ``RuntimeError`` if the catalog has no matching endpoint.
        """
        for service in self.catalog:
            if service.get("type") != service_type:
                continue
            for ep in service.get("endpoints", []):
                if ep.get("interface") != interface:
                    continue
                if region and region not in (ep.get("region"), ep.get("region_id")):
                    continue
                return str(ep["url"]).rstrip("/")
        where = f" in region {region}" if region else ""
        raise RuntimeError(f"No {interface} {service_type} endpoint in the service catalog{where}")


def _parse_expiry(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable token expiry %r, treating token as non-expiring", raw)
        return None


class KeystoneClient:
    """Lightweight Keystone v3 client.

    Parameters
    ----------
    settings : Settings
        Credentials and TLS options.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = _v3_url(settings.auth_url)
        self._client = httpx.Client(
            timeout=httpx.Timeout(settings.timeout, connect=5.0),
            verify=settings.verify,
        )
        self._token: Token | None = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "KeystoneClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Tokens ────────────────────────────────────────────────────────────

    def _auth_body(self) -> dict[str, Any]:
        s = self.settings
        if s.project_id:
            project: dict[str, Any] = {"id": s.project_id}
        else:
            project = {"name": s.project_name, "domain": {"name": s.project_domain_name}}
        return {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": s.username,
                            "domain": {"name": s.user_domain_name},
                            "password": s.password,
                        }
                    },
                },
                "scope": {"project": project},
            }
        }

    def authenticate(self) -> Token:
        """Request a new project-scoped token.

        Raises ``httpx.HTTPStatusError`` on non-2xx responses.
        """
        logger.debug("Authenticating as %s against %s", self.settings.username, self.base_url)
        resp = self._client.post(f"{self.base_url}/auth/tokens", json=self._auth_body())
        resp.raise_for_status()
        body = resp.json().get("token", {})
        token = Token(
            value=resp.headers["X-Subject-Token"],
            expires_at=_parse_expiry(body.get("expires_at")),
            catalog=body.get("catalog", []),
        )
        self._token = token
        return token

    def token(self) -> Token:
        """Return the cached token, re-authenticating when it is about to expire."""
        if self._token is None or self._token.expired():
            return self.authenticate()
        return self._token

    def invalidate(self) -> None:
        self._token = None

    # ── Projects ──────────────────────────────────────────────────────────

    def identity_url(self) -> str:
        """Identity endpoint from the catalog, falling back to the auth URL."""
        try:
            url = self.token().endpoint(
                "identity", self.settings.interface, self.settings.region_name
            )
        except RuntimeError:
            return self.base_url
        return _v3_url(url)

    def list_projects(self) -> list[Project]:
        url = f"{self.identity_url()}/projects"
        resp = self._client.get(url, headers={"X-Auth-Token": self.token().value})
        if resp.status_code == 401:
            logger.info("Keystone rejected the token, re-authenticating")
            self.invalidate()
            resp = self._client.get(url, headers={"X-Auth-Token": self.token().value})
        resp.raise_for_status()
        return [Project.model_validate(p) for p in resp.json().get("projects", [])]
