"""ARP table entries per device."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    register_collector,
)


def parse_arp_entries(lines: Iterable[str]) -> dict[str, int]:
    """Count ARP entries per device from the lines of /proc/net/arp."""
    entries: Counter[str] = Counter()
    for line in lines:
        columns = line.split()
        if len(columns) < 6:
            raise ValueError("unexpected ARP table format")
        if columns[0] != "IP":
            entries[columns[-1]] += 1
    return dict(entries)


@register_collector("arp", True)
class ARPCollector(Collector):
    """Exposes the number of ARP entries by device."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.entries = Desc(
            build_fq_name(NAMESPACE, "arp", "entries"),
            "ARP entries by device",
            ("device",),
        )

    def update(self) -> Iterator[Metric]:
        try:
            with open(self.config.proc_file("net", "arp"), encoding="utf-8") as handle:
                entries = parse_arp_entries(handle)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"could not get ARP entries: {err}") from err
        for device, count in entries.items():
            yield Metric(self.entries, ValueType.GAUGE, count, (device,))