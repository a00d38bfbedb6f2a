"""Btrfs filesystem statistics from sysfs."""

from __future__ import annotations

import glob
import math
import os
from dataclasses import dataclass, field
from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    read_uint_from_file,
    register_collector,
)

BTRFS_SUBSYSTEM = "btrfs"
SECTOR_SIZE = 512


@dataclass(frozen=True)
class BtrfsMetric:
    """A single Btrfs value before it becomes a metric."""

    name: str
    desc: str
    value: float
    extra_labels: tuple[str, ...] = ()
    extra_label_values: tuple[str, ...] = ()


@dataclass(frozen=True)
class LayoutUsage:
    """Space used by one data layout (raid level)."""

    used_bytes: int
    total_bytes: int
    ratio: float


@dataclass(frozen=True)
class AllocationStats:
    """Allocation of one block group type."""

    reserved_bytes: int
    layouts: dict[str, LayoutUsage] = field(default_factory=dict)


@dataclass(frozen=True)
class BtrfsStats:
    """Statistics of one Btrfs filesystem."""

    uuid: str
    label: str
    global_rsv_size: int
    devices: dict[str, int]
    data: AllocationStats
    metadata: AllocationStats
    system: AllocationStats


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8") as handle:
        return handle.read().strip()


def _ratio(layout: str, device_count: int) -> float:
    if layout in ("single", "raid0"):
        return 1.0
    if layout in ("dup", "raid1", "raid10"):
        return 2.0
    parity = {"raid5": 1, "raid6": 2}.get(layout)
    if parity is None:
        return 0.0
    denominator = float(device_count - parity)
    if denominator == 0:
        return math.inf if device_count > 0 else math.nan
    return device_count / denominator


def _read_allocation(path: str, device_count: int) -> AllocationStats:
    layouts: dict[str, LayoutUsage] = {}
    for entry in sorted(os.scandir(path), key=lambda e: e.name):
        if entry.is_dir():
            layouts[entry.name] = LayoutUsage(
                used_bytes=read_uint_from_file(os.path.join(entry.path, "used_bytes")),
                total_bytes=read_uint_from_file(os.path.join(entry.path, "total_bytes")),
                ratio=_ratio(entry.name, device_count),
            )
    return AllocationStats(
        reserved_bytes=read_uint_from_file(os.path.join(path, "bytes_reserved")),
        layouts=layouts,
    )


def _read_filesystem(path: str) -> BtrfsStats:
    devices_dir = os.path.join(path, "devices")
    devices = {
        name: SECTOR_SIZE * read_uint_from_file(os.path.join(devices_dir, name, "size"))
        for name in sorted(os.listdir(devices_dir))
    }
    allocation = os.path.join(path, "allocation")
    return BtrfsStats(
        uuid=os.path.basename(path),
        label=_read_text(os.path.join(path, "label")),
        global_rsv_size=read_uint_from_file(os.path.join(allocation, "global_rsv_size")),
        devices=devices,
        data=_read_allocation(os.path.join(allocation, "data"), len(devices)),
        metadata=_read_allocation(os.path.join(allocation, "metadata"), len(devices)),
        system=_read_allocation(os.path.join(allocation, "system"), len(devices)),
    )


def read_btrfs_stats(sys_path: str) -> list[BtrfsStats]:
    """Read every Btrfs filesystem found under sys_path/fs/btrfs."""
    pattern = os.path.join(sys_path, "fs", "btrfs", "*-*")
    return [_read_filesystem(path) for path in sorted(glob.glob(pattern))]


def _allocation_metrics(kind: str, stats: AllocationStats) -> list[BtrfsMetric]:
    metrics = [
        BtrfsMetric(
            "reserved_bytes",
            "Amount of space reserved for a data type",
            stats.reserved_bytes,
            ("block_group_type",),
            (kind,),
        )
    ]
    labels = ("block_group_type", "mode")
    for layout, usage in stats.layouts.items():
        values = (kind, layout)
        metrics.append(BtrfsMetric(
            "used_bytes", "Amount of used space by a layout/data type",
            usage.used_bytes, labels, values,
        ))
        metrics.append(BtrfsMetric(
            "size_bytes", "Amount of space allocated for a layout/data type",
            usage.total_bytes, labels, values,
        ))
        metrics.append(BtrfsMetric(
            "allocation_ratio", "Data allocation ratio for a layout/data type",
            usage.ratio, labels, values,
        ))
    return metrics


@register_collector("btrfs", True)
class BtrfsCollector(Collector):
    """Exposes Btrfs filesystem statistics."""

    def update(self) -> Iterator[Metric]:
        try:
            all_stats = read_btrfs_stats(self.config.sys_path)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to retrieve Btrfs stats: {err}") from err
        for stats in all_stats:
            for m in self.get_metrics(stats):
                desc = Desc(
                    build_fq_name(NAMESPACE, BTRFS_SUBSYSTEM, m.name),
                    m.desc,
                    ("uuid",) + m.extra_labels,
                )
                yield Metric(desc, ValueType.GAUGE, m.value, (stats.uuid,) + m.extra_label_values)

    def get_metrics(self, stats: BtrfsStats) -> list[BtrfsMetric]:
        """The metrics of one filesystem, in a fixed order."""
        metrics = [
            BtrfsMetric("info", "Filesystem information", 1, ("label",), (stats.label,)),
            BtrfsMetric("global_rsv_size_bytes", "Size of global reserve.", stats.global_rsv_size),
        ]
        for name, size in stats.devices.items():
            metrics.append(BtrfsMetric(
                "device_size_bytes",
                "Size of a device that is part of the filesystem.",
                size,
                ("device",),
                (name,),
            ))
        metrics.extend(_allocation_metrics("data", stats.data))
        metrics.extend(_allocation_metrics("metadata", stats.metadata))
        metrics.extend(_allocation_metrics("system", stats.system))
        return metrics