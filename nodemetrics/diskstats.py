"""Block device I/O statistics from /proc/diskstats."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .collector import (
    DISK_LABEL_NAMES,
    DISK_SUBSYSTEM,
    IO_TIME_SECONDS_DESC,
    NAMESPACE,
    READ_BYTES_DESC,
    READ_TIME_SECONDS_DESC,
    READS_COMPLETED_DESC,
    WRITE_TIME_SECONDS_DESC,
    WRITES_COMPLETED_DESC,
    WRITTEN_BYTES_DESC,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    register_collector,
)

DISK_SECTOR_SIZE = 512
DISKSTATS_FILENAME = "diskstats"


@dataclass(frozen=True)
class FactorDesc:
    """A descriptor with a value type and an optional scaling factor."""

    desc: Desc
    value_type: ValueType
    factor: float = 0.0

    def metric(self, value: float, *args: str) -> Metric:
        if self.factor != 0:
            value *= self.factor
        return Metric(self.desc, self.value_type, value, args)


def _disk_desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, DISK_SUBSYSTEM, name), help_text, DISK_LABEL_NAMES)


def _build_descs() -> tuple[FactorDesc, ...]:
    counter, gauge = ValueType.COUNTER, ValueType.GAUGE
    return (
        FactorDesc(READS_COMPLETED_DESC, counter),
        FactorDesc(_disk_desc("reads_merged_total", "The total number of reads merged."), counter),
        FactorDesc(READ_BYTES_DESC, counter, DISK_SECTOR_SIZE),
        FactorDesc(READ_TIME_SECONDS_DESC, counter, 0.001),
        FactorDesc(WRITES_COMPLETED_DESC, counter),
        FactorDesc(_disk_desc("writes_merged_total", "The number of writes merged."), counter),
        FactorDesc(WRITTEN_BYTES_DESC, counter, DISK_SECTOR_SIZE),
        FactorDesc(WRITE_TIME_SECONDS_DESC, counter, 0.001),
        FactorDesc(_disk_desc("io_now", "The number of I/Os currently in progress."), gauge),
        FactorDesc(IO_TIME_SECONDS_DESC, counter, 0.001),
        FactorDesc(
            _disk_desc("io_time_weighted_seconds_total", "The weighted # of seconds spent doing I/Os."),
            counter,
            0.001,
        ),
        FactorDesc(
            _disk_desc("discards_completed_total", "The total number of discards completed successfully."),
            counter,
        ),
        FactorDesc(
            _disk_desc("discards_merged_total", "The total number of discards merged."),
            counter,
        ),
        FactorDesc(
            _disk_desc("discarded_sectors_total", "The total number of sectors discarded successfully."),
            counter,
        ),
        FactorDesc(
            _disk_desc(
                "discard_time_seconds_total",
                "This is the total number of seconds spent by all discards.",
            ),
            counter,
            0.001,
        ),
        FactorDesc(
            _disk_desc(
                "flush_requests_total",
                "The total number of flush requests completed successfully",
            ),
            counter,
        ),
        FactorDesc(
            _disk_desc(
                "flush_requests_time_seconds_total",
                "This is the total number of seconds spent by all flush requests.",
            ),
            counter,
            0.001,
        ),
    )


def parse_disk_stats(lines: Iterable[str]) -> dict[str, list[str]]:
    """Map each device to its raw statistic fields, major and minor numbers stripped."""
    stats: dict[str, list[str]] = {}
    for line in lines:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(f"invalid line in {DISKSTATS_FILENAME}: {line.rstrip()}")
        stats[parts[2]] = parts[3:]
    return stats


@register_collector("diskstats", True)
class DiskstatsCollector(Collector):
    """Exposes disk device statistics."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.ignored_devices_pattern = re.compile(self.config.diskstats_ignored_devices)
        self.descs = _build_descs()

    def update(self) -> Iterator[Metric]:
        try:
            with open(self.config.proc_file(DISKSTATS_FILENAME), encoding="utf-8") as handle:
                disk_stats = parse_disk_stats(handle)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get diskstats: {err}") from err

        for device, stats in disk_stats.items():
            if self.ignored_devices_pattern.search(device):
                self.logger.debug("Ignoring device device=%s", device)
                continue
            # Additional unrecognised fields are ignored by zip.
            for desc, raw in zip(self.descs, stats):
                try:
                    value = float(raw)
                except ValueError as err:
                    raise ValueError(f"invalid value {raw} in diskstats: {err}") from err
                yield desc.metric(value, device)