"""CPU frequency statistics from the sysfs cpufreq interface."""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass
from typing import Iterator

from .collector import (
    CPU_SUBSYSTEM,
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    read_uint_from_file,
    register_collector,
)

# Attribute name and the sysfs file it is read from.
_FREQ_FILES = (
    ("cpuinfo_current_frequency", "cpuinfo_cur_freq"),
    ("cpuinfo_minimum_frequency", "cpuinfo_min_freq"),
    ("cpuinfo_maximum_frequency", "cpuinfo_max_freq"),
    ("scaling_current_frequency", "scaling_cur_freq"),
    ("scaling_minimum_frequency", "scaling_min_freq"),
    ("scaling_maximum_frequency", "scaling_max_freq"),
)


@dataclass(frozen=True)
class CPUFreqStats:
    """Frequencies of one CPU thread in kHz; None where the kernel does not report one."""

    name: str
    cpuinfo_current_frequency: int | None = None
    cpuinfo_minimum_frequency: int | None = None
    cpuinfo_maximum_frequency: int | None = None
    scaling_current_frequency: int | None = None
    scaling_minimum_frequency: int | None = None
    scaling_maximum_frequency: int | None = None


def _read_optional(path: str) -> int | None:
    try:
        return read_uint_from_file(path)
    except (FileNotFoundError, PermissionError):
        return None


def read_system_cpufreq(sys_path: str) -> list[CPUFreqStats]:
    """Read the cpufreq statistics of every CPU that has a cpufreq directory."""
    pattern = os.path.join(sys_path, "devices", "system", "cpu", "cpu[0-9]*")
    result: list[CPUFreqStats] = []
    for cpu in sorted(glob.glob(pattern)):
        freq_dir = os.path.join(cpu, "cpufreq")
        if not os.path.isdir(freq_dir):
            continue
        values = {
            attr: _read_optional(os.path.join(freq_dir, filename))
            for attr, filename in _FREQ_FILES
        }
        result.append(CPUFreqStats(os.path.basename(cpu)[len("cpu"):], **values))
    return result


def _freq_desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, CPU_SUBSYSTEM, name), help_text, ("cpu",))


@register_collector("cpufreq", True)
class CPUFreqCollector(Collector):
    """Exposes current, minimum and maximum CPU frequencies in hertz."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.cpu_freq = _freq_desc("frequency_hertz", "Current cpu thread frequency in hertz.")
        self.cpu_freq_min = _freq_desc("frequency_min_hertz", "Minimum cpu thread frequency in hertz.")
        self.cpu_freq_max = _freq_desc("frequency_max_hertz", "Maximum cpu thread frequency in hertz.")
        self.scaling_freq = _freq_desc(
            "scaling_frequency_hertz", "Current scaled CPU thread frequency in hertz."
        )
        self.scaling_freq_min = _freq_desc(
            "scaling_frequency_min_hertz", "Minimum scaled CPU thread frequency in hertz."
        )
        self.scaling_freq_max = _freq_desc(
            "scaling_frequency_max_hertz", "Maximum scaled CPU thread frequency in hertz."
        )
        self._descs = (
            ("cpuinfo_current_frequency", self.cpu_freq),
            ("cpuinfo_minimum_frequency", self.cpu_freq_min),
            ("cpuinfo_maximum_frequency", self.cpu_freq_max),
            ("scaling_current_frequency", self.scaling_freq),
            ("scaling_minimum_frequency", self.scaling_freq_min),
            ("scaling_maximum_frequency", self.scaling_freq_max),
        )

    def update(self) -> Iterator[Metric]:
        # sysfs reports kHz; export base units.
        for stats in read_system_cpufreq(self.config.sys_path):
            for attr, desc in self._descs:
                value = getattr(stats, attr)
                if value is not None:
                    yield Metric(desc, ValueType.GAUGE, value * 1000.0, (stats.name,))