"""Tests for nova_exporter.capacity."""

from nova_exporter.capacity import GIGABYTE, MEGABYTE, hypervisor_observations
from nova_exporter.models import Aggregate, Hypervisor
from nova_exporter.topology import build_topology


def _hypervisor(**overrides) -> Hypervisor:
    body = {
        "id": 1,
        "hypervisor_hostname": "compute-1.example.com",
        "running_vms": 4,
        "current_workload": 1,
        "vcpus": 32,
        "vcpus_used": 12,
        "memory_mb": 1,
        "memory_mb_used": 2,
        "local_gb": 1,
        "local_gb_used": 3,
        "service": {"host": "compute-1", "id": 7},
    }
    body.update(overrides)
    return Hypervisor.model_validate(body)


class TestUnits:
    def test_constants(self) -> None:
        assert MEGABYTE == 1048576
        assert GIGABYTE == 1073741824

    def test_memory_and_storage_converted(self) -> None:
        samples = {s.metric: s.value for s in hypervisor_observations(_hypervisor(), build_topology([]))}
        assert samples["memory_available_bytes"] == 1048576
        assert samples["memory_used_bytes"] == 2 * 1048576
        assert samples["local_storage_available_bytes"] == 1073741824
        assert samples["local_storage_used_bytes"] == 3 * 1073741824

    def test_counts_pass_through(self) -> None:
        samples = {s.metric: s.value for s in hypervisor_observations(_hypervisor(), build_topology([]))}
        assert samples["running_vms"] == 4
        assert samples["current_workload"] == 1
        assert samples["vcpus_available"] == 32
        assert samples["vcpus_used"] == 12


class TestLabels:
    def test_labels_from_service_host(self) -> None:
        topo = build_topology(
            [
                Aggregate(name="az", availability_zone="az1", metadata={"availability_zone": "az1"}, hosts=["compute-1"]),
                Aggregate(name="ssd", metadata={"disk": "ssd"}, hosts=["compute-1"]),
            ]
        )
        samples = list(hypervisor_observations(_hypervisor(), topo))
        assert len(samples) == 8
        assert {s.labels for s in samples} == {("compute-1.example.com", "az1", "ssd")}

    def test_unknown_host_gets_empty_labels(self) -> None:
        samples = list(hypervisor_observations(_hypervisor(service={}), build_topology([])))
        assert samples[0].labels == ("compute-1.example.com", "", "")

    def test_null_capacity_fields(self) -> None:
        hv = _hypervisor(memory_mb=None, local_gb=None, vcpus=None)
        samples = {s.metric: s.value for s in hypervisor_observations(hv, build_topology([]))}
        assert samples["memory_available_bytes"] == 0
        assert samples["local_storage_available_bytes"] == 0
        assert samples["vcpus_available"] == 0
