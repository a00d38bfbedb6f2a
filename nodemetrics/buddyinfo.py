"""Free memory blocks by order from /proc/buddyinfo."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    register_collector,
)

BUDDYINFO_SUBSYSTEM = "buddyinfo"


@dataclass(frozen=True)
class BuddyInfo:
    """Free block counts of one zone on one NUMA node."""

    node: str
    zone: str
    sizes: tuple[float, ...]


def parse_buddyinfo(text: str) -> list[BuddyInfo]:
    """Parse the contents of /proc/buddyinfo."""
    result: list[BuddyInfo] = []
    bucket_count: int | None = None
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 4:
            raise ValueError("invalid number of fields when parsing buddyinfo")
        node = parts[1].rstrip(",")
        zone = parts[3].rstrip(",")
        buckets = parts[4:]
        if bucket_count is None:
            bucket_count = len(buckets)
        elif bucket_count != len(buckets):
            raise ValueError(
                "mismatch in number of buddyinfo buckets, "
                f"previous count {bucket_count}, new count {len(buckets)}"
            )
        try:
            sizes = tuple(float(bucket) for bucket in buckets)
        except ValueError as err:
            raise ValueError(f"failed to parse buddyinfo value: {err}") from err
        result.append(BuddyInfo(node, zone, sizes))
    return result


@register_collector("buddyinfo", False)
class BuddyinfoCollector(Collector):
    """Exposes free block counts by node, zone and block size."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.desc = Desc(
            build_fq_name(NAMESPACE, BUDDYINFO_SUBSYSTEM, "blocks"),
            "Count of free blocks according to size.",
            ("node", "zone", "size"),
        )

    def update(self) -> Iterator[Metric]:
        try:
            with open(self.config.proc_file("buddyinfo"), encoding="utf-8") as handle:
                entries = parse_buddyinfo(handle.read())
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get buddyinfo: {err}") from err
        self.logger.debug("Set node_buddy buddyInfo=%s", entries)
        for entry in entries:
            for size, value in enumerate(entry.sizes):
                yield Metric(
                    self.desc, ValueType.GAUGE, value, (entry.node, entry.zone, str(size))
                )