"""Pydantic models for the Nova and Keystone records the exporter consumes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ──────────────────────────── Servers ─────────────────────────────────────────

# Position in this list is the value of the server_status gauge.
SERVER_STATUSES: tuple[str, ...] = (
    "ACTIVE",
    "BUILD",  # not finished the original build process
    "BUILD(spawning)",  # still building but networking works (HP Cloud)
    "DELETED",
    "ERROR",
    "HARD_REBOOT",
    "PASSWORD",  # password is being reset
    "REBOOT",  # soft reboot
    "REBUILD",  # being rebuilt from an image
    "RESCUE",
    "RESIZE",
    "SHUTOFF",
    "SUSPENDED",
    "UNKNOWN",
    "VERIFY_RESIZE",  # awaiting confirmation after a move or resize
    "MIGRATING",
    "PAUSED",
    "REVERT_RESIZE",
    "SHELVED",
    "SHELVED_OFFLOADED",  # removed from the compute host, needs unshelve
    "SOFT_DELETED",
)


def map_server_status(status: str) -> int:
    """Return the gauge value for a server status, or -1 if unknown."""
    try:
        return SERVER_STATUSES.index(status)
    except ValueError:
        return -1


class InstanceIdentity(BaseModel):
    """Identity labels attached to every diagnostic sample of one server."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: str = ""
    name: str = ""
    tenant_id: str = ""
    hypervisor: str = ""

    def label_values(self) -> list[str]:
        return [self.id, self.status, self.name, self.tenant_id, self.hypervisor]


class Server(BaseModel):
    """A server from ``GET /servers/detail``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    status: str = ""
    tenant_id: str = ""
    user_id: str = ""
    access_ipv4: str = Field(default="", alias="accessIPv4")
    access_ipv6: str = Field(default="", alias="accessIPv6")
    host_id: str = Field(default="", alias="hostId")
    availability_zone: str = Field(default="", alias="OS-EXT-AZ:availability_zone")
    hypervisor_hostname: str = Field(default="", alias="OS-EXT-SRV-ATTR:hypervisor_hostname")
    flavor: dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "access_ipv4",
        "access_ipv6",
        "host_id",
        "availability_zone",
        "hypervisor_hostname",
        "name",
        "user_id",
        "tenant_id",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def flavor_id(self) -> str:
        value = self.flavor.get("id")
        return "" if value is None else str(value)

    @property
    def identity(self) -> InstanceIdentity:
        return InstanceIdentity(
            id=self.id,
            status=self.status,
            name=self.name,
            tenant_id=self.tenant_id,
            hypervisor=self.hypervisor_hostname,
        )

    def status_label_values(self) -> list[str]:
        """Label values for the server_status gauge."""
        return [
            self.id,
            self.status,
            self.name,
            self.tenant_id,
            self.user_id,
            self.access_ipv4,
            self.access_ipv6,
            self.host_id,
            self.id,
            self.availability_zone,
            self.flavor_id,
        ]


# ──────────────────────────── Hypervisors & Aggregates ────────────────────────


class Hypervisor(BaseModel):
    """A hypervisor from ``GET /os-hypervisors/detail``.

    Newer microversions omit the capacity fields; missing or null values
    read as zero.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    hostname: str = Field(default="", alias="hypervisor_hostname")
    running_vms: int = 0
    current_workload: int = 0
    vcpus: int = 0
    vcpus_used: int = 0
    memory_mb: int = 0
    memory_mb_used: int = 0
    local_gb: int = 0
    local_gb_used: int = 0
    service: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator(
        "running_vms",
        "current_workload",
        "vcpus",
        "vcpus_used",
        "memory_mb",
        "memory_mb_used",
        "local_gb",
        "local_gb_used",
        mode="before",
    )
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def service_host(self) -> str:
        """Host name used for service binding; aggregates list hosts by it."""
        return str(self.service.get("host") or "")


class Aggregate(BaseModel):
    """A host aggregate from ``GET /os-aggregates``."""

    name: str
    availability_zone: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    hosts: list[str] = Field(default_factory=list)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_none(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("hosts", mode="before")
    @classmethod
    def _hosts_none(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_zone_only(self) -> bool:
        """True if the aggregate exists only to declare an availability zone."""
        return len(self.metadata) == 1 and "availability_zone" in self.metadata


# ──────────────────────────── Services, Projects, Limits ──────────────────────


class ComputeService(BaseModel):
    """A compute service from ``GET /os-services``."""

    id: str = ""
    host: str = ""
    binary: str = ""
    status: str = ""
    state: str = ""
    zone: str = ""
    disabled_reason: str = ""

    @field_validator("id", "disabled_reason", "zone", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @property
    def is_up(self) -> bool:
        return self.state == "up"


class Project(BaseModel):
    """A Keystone project."""

    id: str
    name: str = ""


class AbsoluteLimits(BaseModel):
    """The ``absolute`` section of ``GET /limits``."""

    model_config = ConfigDict(populate_by_name=True)

    max_total_cores: int = Field(default=0, alias="maxTotalCores")
    total_cores_used: int = Field(default=0, alias="totalCoresUsed")
    max_total_ram_size: int = Field(default=0, alias="maxTotalRAMSize")
    total_ram_used: int = Field(default=0, alias="totalRAMUsed")
