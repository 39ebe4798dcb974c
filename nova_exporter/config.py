"""Application configuration and settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


DEFAULT_PREFIX = "openstack"
DEFAULT_LISTEN_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 9180
DEFAULT_TIMEOUT = 30.0

# Searched in order when --os-client-config is not given.
CLOUDS_YAML_PATHS = (
    Path("clouds.yaml"),
    Path.home() / ".config" / "openstack" / "clouds.yaml",
    Path("/etc/openstack/clouds.yaml"),
)


def _env(name: str, default: str = "") -> Any:
    return Field(default_factory=lambda: os.environ.get(name, default))


class Settings(BaseModel):
    """Runtime settings resolved from env vars, clouds.yaml and CLI flags."""

    # Keystone
    auth_url: str = _env("OS_AUTH_URL")
    username: str = _env("OS_USERNAME")
    password: str = _env("OS_PASSWORD")
    project_name: str = _env("OS_PROJECT_NAME")
    project_id: str = _env("OS_PROJECT_ID")
    user_domain_name: str = _env("OS_USER_DOMAIN_NAME", "Default")
    project_domain_name: str = _env("OS_PROJECT_DOMAIN_NAME", "Default")
    region_name: str = _env("OS_REGION_NAME")
    interface: str = _env("OS_INTERFACE", "public")
    ca_cert: str = _env("OS_CACERT")
    insecure: bool = False

    # Nova
    compute_url: str = Field(
        default="",
        description="Compute endpoint override. Empty = take it from the service catalog.",
    )
    compute_api_version: str = Field(
        default="2.1",
        description="Value of the X-OpenStack-Nova-API-Version header.",
    )
    timeout: float = DEFAULT_TIMEOUT

    # Exporter
    prefix: str = DEFAULT_PREFIX
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    port: int = DEFAULT_PORT
    disabled_metrics: list[str] = Field(default_factory=list)
    verbose: bool = False

    @property
    def verify(self) -> bool | str:
        if self.insecure:
            return False
        return self.ca_cert if self.ca_cert else True

    def validate_credentials(self) -> None:
        missing = [
            env
            for env, value in (
                ("OS_AUTH_URL", self.auth_url),
                ("OS_USERNAME", self.username),
                ("OS_PASSWORD", self.password),
            )
            if not value
        ]
        if not self.project_name and not self.project_id:
            missing.append("OS_PROJECT_NAME")
        if missing:
            raise ValueError(
                f"Missing OpenStack credentials: {', '.join(missing)}. "
                "Export them as environment variables or use --os-client-config."
            )

    @classmethod
    def from_clouds_yaml(cls, cloud: str, path: str | Path | None = None, **overrides: Any) -> "Settings":
        """Build settings from a named cloud in an OpenStack ``clouds.yaml``.

        Values from the file win over environment variables; *overrides*
        (typically CLI flags) win over both.
        """
        clouds_path = _find_clouds_yaml(path)
        try:
            raw = yaml.safe_load(clouds_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {clouds_path}: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("clouds") or {}, dict):
            raise ValueError(f"{clouds_path} must be a mapping with a 'clouds' section")
        entry = (raw.get("clouds") or {}).get(cloud)
        if entry is None:
            raise ValueError(f"Cloud {cloud!r} not found in {clouds_path}")
        if not isinstance(entry, dict):
            raise ValueError(f"Cloud {cloud!r} in {clouds_path} is not a mapping")

        auth = entry.get("auth") or {}
        values: dict[str, Any] = {
            "auth_url": auth.get("auth_url"),
            "username": auth.get("username"),
            "password": auth.get("password"),
            "project_name": auth.get("project_name"),
            "project_id": auth.get("project_id"),
            "user_domain_name": auth.get("user_domain_name"),
            "project_domain_name": auth.get("project_domain_name"),
            "region_name": entry.get("region_name"),
            "interface": entry.get("interface"),
            "ca_cert": entry.get("cacert"),
        }
        if entry.get("verify") is False:
            values["insecure"] = True
        values = {k: v for k, v in values.items() if v is not None}
        values.update(overrides)
        return cls(**values)


def _find_clouds_yaml(path: str | Path | None) -> Path:
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"clouds.yaml not found: {candidate}")
        return candidate
    for candidate in CLOUDS_YAML_PATHS:
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(
        "No clouds.yaml found in " + ", ".join(str(p) for p in CLOUDS_YAML_PATHS)
    )
