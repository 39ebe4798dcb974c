"""Tests for nova_exporter.classifier module."""

import pytest

from nova_exporter.classifier import (
    RULES,
    DiagnosticCategory,
    Observation,
    classify,
    classify_key,
    classify_with_identity,
)
from nova_exporter.models import InstanceIdentity


class TestCpuRule:
    @pytest.mark.parametrize(
        "key, expected_sub",
        [
            ("cpu0_time", "cpu0"),
            ("cpu1_time", "cpu1"),
            ("cpu12_time", "cpu12"),
            ("vcpu3_time", "vcpu3"),
        ],
    )
    def test_cpu_time(self, key: str, expected_sub: str) -> None:
        assert classify_key(key) == (DiagnosticCategory.CPU_TIME, expected_sub)

    def test_cpu_without_time_falls_through(self) -> None:
        # "cpu" alone claims nothing; later rules still see the key.
        assert classify_key("cpu0_memory") == (DiagnosticCategory.MEMORY_SELECTED, None)
        assert classify_key("cpu0_usage") is None

    def test_suffix_only_removed_at_end(self) -> None:
        assert classify_key("cpu_time_total") == (DiagnosticCategory.CPU_TIME, "cpu_time_total")


class TestMemoryRule:
    @pytest.mark.parametrize(
        "key, expected",
        [
            ("memory-actual", DiagnosticCategory.MEMORY_ACTUAL),
            ("memory-available", DiagnosticCategory.MEMORY_AVAILABLE),
            ("memory-last_update", DiagnosticCategory.MEMORY_LAST_UPDATE),
            ("memory-major_fault", DiagnosticCategory.MEMORY_MAJOR_FAULT),
            ("memory-minor_fault", DiagnosticCategory.MEMORY_MINOR_FAULT),
            ("memory-rss", DiagnosticCategory.MEMORY_RSS),
            ("memory-swap_in", DiagnosticCategory.MEMORY_SWAP_IN),
            ("memory-swap_out", DiagnosticCategory.MEMORY_SWAP_OUT),
            ("memory-unused", DiagnosticCategory.MEMORY_UNUSED),
            ("memory-usable", DiagnosticCategory.MEMORY_USABLE),
            ("memory", DiagnosticCategory.MEMORY_SELECTED),
            ("memory-something-new", DiagnosticCategory.MEMORY_SELECTED),
        ],
    )
    def test_memory_categories(self, key: str, expected: DiagnosticCategory) -> None:
        assert classify_key(key) == (expected, None)

    def test_swap_in_single_observation(self) -> None:
        result = classify({"memory-swap_in": 0})
        assert result == [Observation(DiagnosticCategory.MEMORY_SWAP_IN, 0.0, None)]

    def test_order_actual_before_available(self) -> None:
        # Both substrings present: the earlier entry in the order wins.
        assert classify_key("memory-actual_available")[0] == DiagnosticCategory.MEMORY_ACTUAL


class TestNicRules:
    @pytest.mark.parametrize(
        "key, expected",
        [
            ("tap3e417313-ff_tx_packets", DiagnosticCategory.NIC_TX_PACKETS),
            ("tap3e417313-ff_tx_drop", DiagnosticCategory.NIC_TX_DROP),
            ("tap3e417313-ff_tx_errors", DiagnosticCategory.NIC_TX_ERRORS),
            ("tap3e417313-ff_tx", DiagnosticCategory.NIC_TX_RATE),
            ("tap3e417313-ff_rx_packets", DiagnosticCategory.NIC_RX_PACKETS),
            ("tap3e417313-ff_rx_drop", DiagnosticCategory.NIC_RX_DROP),
            ("tap3e417313-ff_rx_errors", DiagnosticCategory.NIC_RX_ERRORS),
            ("tap3e417313-ff_rx", DiagnosticCategory.NIC_RX_RATE),
        ],
    )
    def test_nic_categories(self, key: str, expected: DiagnosticCategory) -> None:
        category, sub = classify_key(key)
        assert category == expected
        assert sub == "tap3e417313-ff"

    def test_interface_without_dash(self) -> None:
        assert classify_key("vnet0_rx_packets") == (DiagnosticCategory.NIC_RX_PACKETS, "vnet0")

    def test_tx_packets_value(self) -> None:
        result = classify({"tap3e417313-ff_tx_packets": 15717})
        assert len(result) == 1
        assert result[0].category == DiagnosticCategory.NIC_TX_PACKETS
        assert result[0].sub_resource == "tap3e417313-ff"
        assert result[0].value == 15717.0

    def test_nic_rule_wins_over_disk_prefix(self) -> None:
        # Known heuristic edge case: a vd* interface is read as a NIC.
        assert classify_key("vdnic_tx_packets") == (DiagnosticCategory.NIC_TX_PACKETS, "vdnic")


class TestDiskRule:
    @pytest.mark.parametrize(
        "key, expected, device",
        [
            ("vda_read_req", DiagnosticCategory.DISK_READ_REQUESTS, "vda"),
            ("vda_write_req", DiagnosticCategory.DISK_WRITE_REQUESTS, "vda"),
            ("vda_read", DiagnosticCategory.DISK_READ_BYTES, "vda"),
            ("vda_write", DiagnosticCategory.DISK_WRITE_BYTES, "vda"),
            ("vda_errors", DiagnosticCategory.DISK_ERRORS, "vda"),
            ("hda_errors", DiagnosticCategory.DISK_ERRORS, "hda"),
            ("sdb_read", DiagnosticCategory.DISK_READ_BYTES, "sdb"),
        ],
    )
    def test_disk_categories(self, key: str, expected: DiagnosticCategory, device: str) -> None:
        assert classify_key(key) == (expected, device)

    def test_read_req_value(self) -> None:
        result = classify({"vda_read_req": 10778})
        assert result == [Observation(DiagnosticCategory.DISK_READ_REQUESTS, 10778.0, "vda")]

    def test_negative_error_count_kept(self) -> None:
        result = classify({"hda_errors": -1})
        assert result[0].value == -1.0

    def test_device_without_counter_dropped(self) -> None:
        assert classify_key("vda") is None
        assert classify({"vda_flush": 3}) == []


class TestUnmatched:
    @pytest.mark.parametrize("key", ["unrelated_metric", "uptime", "", "num_cpus"])
    def test_no_rule_no_observation(self, key: str) -> None:
        assert classify_key(key) is None
        assert classify({key: 1}) == []


class TestValues:
    @pytest.mark.parametrize(
        "value", ["n/a", None, True, False, {"nested": 1}, [1, 2], "", "12abc"]
    )
    def test_non_numeric_values_dropped(self, value) -> None:
        for key in ("cpu0_time", "memory-rss", "vda_read", "tap0_rx"):
            assert classify({key: value}) == []

    def test_numeric_strings_accepted(self) -> None:
        result = classify({"memory-rss": "810084"})
        assert result[0].value == 810084.0

    def test_float_values_preserved(self) -> None:
        result = classify({"cpu0_time": 9.965e10})
        assert result[0].value == pytest.approx(9.965e10)

    def test_non_mapping_record(self) -> None:
        assert classify(None) == []
        assert classify([("cpu0_time", 1)]) == []  # type: ignore[arg-type]

    def test_non_string_keys_ignored(self) -> None:
        assert classify({1: 5, "memory-rss": 2}) == [
            Observation(DiagnosticCategory.MEMORY_RSS, 2.0, None)
        ]


class TestFullRecord:
    def test_libvirt_record(self, libvirt_diagnostics) -> None:
        result = classify(libvirt_diagnostics)
        # Every key in the sample is recognised.
        assert len(result) == len(libvirt_diagnostics)
        by_key = {(o.category, o.sub_resource): o.value for o in result}
        assert by_key[(DiagnosticCategory.CPU_TIME, "cpu1")] == pytest.approx(7.153e10)
        assert by_key[(DiagnosticCategory.MEMORY_SELECTED, None)] == pytest.approx(1048576)
        assert by_key[(DiagnosticCategory.NIC_TX_RATE, "tap3e417313-ff")] == pytest.approx(3.905463e06)
        assert by_key[(DiagnosticCategory.DISK_WRITE_REQUESTS, "vda")] == 1663

    def test_deterministic(self, libvirt_diagnostics) -> None:
        assert classify(libvirt_diagnostics) == classify(dict(libvirt_diagnostics))

    def test_every_category_reachable(self, libvirt_diagnostics) -> None:
        seen = {o.category for o in classify(libvirt_diagnostics)}
        assert seen == set(DiagnosticCategory)


class TestClassifyWithIdentity:
    def test_labels(self) -> None:
        identity = InstanceIdentity(
            id="srv-1", status="ACTIVE", name="web", tenant_id="t1", hypervisor="hv1"
        )
        pairs = list(
            classify_with_identity({"memory-rss": 5, "vda_read": 7, "junk": 1}, identity)
        )
        assert len(pairs) == 2
        mem_obs, mem_labels = pairs[0]
        assert mem_obs.category == DiagnosticCategory.MEMORY_RSS
        assert mem_labels == ["srv-1", "ACTIVE", "web", "t1", "hv1"]
        disk_obs, disk_labels = pairs[1]
        assert disk_labels == ["srv-1", "ACTIVE", "web", "t1", "hv1", "vda"]

    def test_label_lists_not_shared(self) -> None:
        identity = InstanceIdentity(id="x")
        pairs = list(classify_with_identity({"memory-rss": 1, "memory-unused": 2}, identity))
        pairs[0][1].append("mutated")
        assert pairs[1][1] == ["x", "", "", "", ""]


class TestRules:
    def test_rule_order(self) -> None:
        assert [r.name for r in RULES] == ["cpu", "memory", "nic-tx", "nic-rx", "disk"]
