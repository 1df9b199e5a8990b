"""Tests for runtime status text parsers."""

import pytest

from agent_sandbox.sandbox.docker.parsing import (
    MEMORY_UNITS_MB,
    NETWORK_UNITS_BYTES,
    parse_cpu_percent,
    parse_disk_usage,
    parse_free_memory,
    parse_memory_usage,
    parse_network_io,
    parse_port_bindings,
    parse_stats_line,
)
from agent_sandbox.sandbox.exceptions import MetricsFieldError


class TestStatsLine:
    """Test parsing of a full `docker stats` line."""

    def test_reference_line(self):
        snapshot = parse_stats_line("12.34%,123.4MiB / 2GiB,1.2kB / 3.4kB")

        assert snapshot.cpu == pytest.approx(12.34)
        assert snapshot.memory == pytest.approx(123.4)
        assert snapshot.memory_limit == pytest.approx(2048)
        assert snapshot.network_rx == pytest.approx(1228.8)
        assert snapshot.network_tx == pytest.approx(3481.6)

    def test_malformed_field_defaults_to_zero(self):
        """Test one unreadable field does not discard the others."""
        snapshot = parse_stats_line("--,123.4MiB / 2GiB,1.2kB / 3.4kB")

        assert snapshot.cpu == 0
        assert snapshot.memory == pytest.approx(123.4)
        assert snapshot.network_rx == pytest.approx(1228.8)

    def test_unknown_memory_unit_defaults_to_zero(self):
        snapshot = parse_stats_line("5%,512KiB / 1TiB,0B / 0B")

        assert snapshot.cpu == 5
        assert snapshot.memory == 0
        assert snapshot.memory_limit == 0
        assert snapshot.network_rx == 0

    def test_empty_line(self):
        snapshot = parse_stats_line("")
        assert (snapshot.cpu, snapshot.memory, snapshot.network_tx) == (0, 0, 0)


class TestFieldParsers:
    """Test individual field parsers and their unit tables."""

    @pytest.mark.parametrize(
        "text,expected",
        [("12.34%", 12.34), ("0.00%", 0.0), ("150%", 150.0), (" 7.5% ", 7.5)],
    )
    def test_cpu(self, text, expected):
        assert parse_cpu_percent(text) == pytest.approx(expected)

    def test_cpu_unreadable(self):
        with pytest.raises(MetricsFieldError, match="CPU"):
            parse_cpu_percent("n/a")

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("123.4MiB / 2GiB", (123.4, 2048.0)),
            ("1.5GiB / 4GiB", (1536.0, 4096.0)),
            ("64MiB / 512MiB", (64.0, 512.0)),
            ("10MiB/20MiB", (10.0, 20.0)),
        ],
    )
    def test_memory(self, text, expected):
        usage, limit = parse_memory_usage(text)
        assert (usage, limit) == pytest.approx(expected)

    def test_memory_unit_table(self):
        assert MEMORY_UNITS_MB == {"MiB": 1.0, "GiB": 1024.0}

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("0B / 0B", (0.0, 0.0)),
            ("512B / 1kB", (512.0, 1024.0)),
            ("1.2kB / 3.4kB", (1228.8, 3481.6)),
            ("2MB / 1GB", (2 * 1024**2, 1024**3)),
        ],
    )
    def test_network(self, text, expected):
        rx, tx = parse_network_io(text)
        assert (rx, tx) == pytest.approx(expected)

    def test_network_unit_table(self):
        assert NETWORK_UNITS_BYTES == {
            "B": 1,
            "kB": 1024,
            "MB": 1024**2,
            "GB": 1024**3,
        }

    def test_network_unreadable(self):
        with pytest.raises(MetricsFieldError, match="network"):
            parse_network_io("1.2KiB / 3TB")

    def test_disk_usage(self):
        assert parse_disk_usage("42\t/workspace\n") == 42

    def test_disk_usage_unreadable(self):
        with pytest.raises(MetricsFieldError):
            parse_disk_usage("du: cannot access '/workspace'")


class TestPortBindings:
    """Test exposed port reconstruction."""

    def test_tcp_ports(self):
        assert parse_port_bindings("3000/tcp 8080/tcp ") == [3000, 8080]

    def test_udp_and_garbage_ignored(self):
        assert parse_port_bindings("53/udp 3000/tcp bogus/tcp") == [3000]

    def test_empty(self):
        assert parse_port_bindings("") == []


class TestFreeMemory:
    """Test `free -m` parsing."""

    def test_mem_row(self):
        output = (
            "               total        used        free      shared  buff/cache   available\n"
            "Mem:            985         211         402           0         371         629\n"
            "Swap:             0           0           0\n"
        )
        assert parse_free_memory(output) == (211.0, 985.0)

    def test_missing_row(self):
        assert parse_free_memory("free: command not found") is None
