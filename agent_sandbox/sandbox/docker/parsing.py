"""
Parsers for container runtime status text.

All functions are pure. Field parsers raise MetricsFieldError on input they
cannot read; ``parse_stats_line`` applies the lenient policy and defaults
each unreadable field to zero.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from agent_sandbox.sandbox.exceptions import MetricsFieldError

logger = logging.getLogger(__name__)

# Template passed to `docker stats --format`
STATS_FORMAT = "{{.CPUPerc}},{{.MemUsage}},{{.NetIO}}"

# Template passed to `docker inspect --format` to list exposed ports
PORTS_FORMAT = "{{range $p, $conf := .NetworkSettings.Ports}}{{$p}} {{end}}"

MEMORY_UNITS_MB: Dict[str, float] = {
    "MiB": 1.0,
    "GiB": 1024.0,
}

NETWORK_UNITS_BYTES: Dict[str, float] = {
    "B": 1.0,
    "kB": 1024.0,
    "MB": 1024.0**2,
    "GB": 1024.0**3,
}

_MEMORY_RE = re.compile(r"(\d+\.?\d*)(MiB|GiB)\s*/\s*(\d+\.?\d*)(MiB|GiB)")
_NETWORK_RE = re.compile(r"(\d+\.?\d*)(B|kB|MB|GB)\s*/\s*(\d+\.?\d*)(B|kB|MB|GB)")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


@dataclass
class StatsSnapshot:
    """Fields read from one `docker stats` line."""

    cpu: float = 0.0
    memory: float = 0.0
    memory_limit: float = 0.0
    network_rx: float = 0.0
    network_tx: float = 0.0


def parse_cpu_percent(text: str) -> float:
    """``"12.34%"`` -> ``12.34``."""
    value = text.strip().rstrip("%").strip()
    try:
        return float(value)
    except ValueError as e:
        raise MetricsFieldError(f"Unreadable CPU value: {text!r}") from e


def parse_memory_usage(text: str) -> Tuple[float, float]:
    """``"123.4MiB / 2GiB"`` -> ``(123.4, 2048.0)`` in megabytes."""
    match = _MEMORY_RE.search(text)
    if not match:
        raise MetricsFieldError(f"Unreadable memory value: {text!r}")
    usage, usage_unit, limit, limit_unit = match.groups()
    return (
        float(usage) * MEMORY_UNITS_MB[usage_unit],
        float(limit) * MEMORY_UNITS_MB[limit_unit],
    )


def parse_network_io(text: str) -> Tuple[float, float]:
    """``"1.2kB / 3.4kB"`` -> ``(1228.8, 3481.6)`` in bytes."""
    match = _NETWORK_RE.search(text)
    if not match:
        raise MetricsFieldError(f"Unreadable network value: {text!r}")
    rx, rx_unit, tx, tx_unit = match.groups()
    return (
        float(rx) * NETWORK_UNITS_BYTES[rx_unit],
        float(tx) * NETWORK_UNITS_BYTES[tx_unit],
    )


def parse_disk_usage(text: str) -> float:
    """First column of ``du -sm`` output, in megabytes."""
    match = _LEADING_INT_RE.match(text)
    if not match:
        raise MetricsFieldError(f"Unreadable disk usage: {text!r}")
    return float(match.group(1))


def parse_stats_line(line: str) -> StatsSnapshot:
    """
    Parse one line rendered with STATS_FORMAT.

    Each field is parsed independently; a field that does not match its
    pattern is logged and left at zero.
    """
    parts = line.strip().split(",")
    cpu_text, memory_text, network_text = (parts + ["", "", ""])[:3]
    snapshot = StatsSnapshot()

    try:
        snapshot.cpu = parse_cpu_percent(cpu_text)
    except MetricsFieldError as e:
        logger.warning(str(e))

    try:
        snapshot.memory, snapshot.memory_limit = parse_memory_usage(memory_text)
    except MetricsFieldError as e:
        logger.warning(str(e))

    try:
        snapshot.network_rx, snapshot.network_tx = parse_network_io(network_text)
    except MetricsFieldError as e:
        logger.warning(str(e))

    return snapshot


def parse_port_bindings(text: str) -> List[int]:
    """``"3000/tcp 8080/tcp 53/udp "`` -> ``[3000, 8080]`` (TCP ports only)."""
    ports = []
    for token in text.split():
        if "tcp" not in token:
            continue
        number = token.split("/")[0]
        if number.isdigit():
            ports.append(int(number))
    return ports


def parse_free_memory(text: str) -> Optional[Tuple[float, float]]:
    """
    Read ``(used, total)`` megabytes from ``free -m`` output.

    Returns None when no ``Mem:`` row is present.
    """
    for line in text.splitlines():
        columns = line.split()
        if columns and columns[0] == "Mem:" and len(columns) >= 3:
            try:
                return float(columns[2]), float(columns[1])
            except ValueError:
                return None
    return None
