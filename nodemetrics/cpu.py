"""CPU time, information and thermal throttle statistics."""

from __future__ import annotations

import glob
import os
import re
import threading
from dataclasses import dataclass, field, fields
from typing import Iterator

from .collector import (
    CPU_SECONDS_DESC,
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

USER_HZ = 100

_STAT_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)


@dataclass
class CPUStat:
    """Seconds one CPU spent in each mode."""

    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    guest: float = 0.0
    guest_nice: float = 0.0


@dataclass(frozen=True)
class CPUInfo:
    """One processor entry of /proc/cpuinfo."""

    processor: int
    vendor_id: str = ""
    cpu_family: str = ""
    model: str = ""
    model_name: str = ""
    stepping: str = ""
    microcode: str = ""
    cache_size: str = ""
    physical_id: str = ""
    core_id: str = ""
    flags: tuple[str, ...] = field(default_factory=tuple)
    bugs: tuple[str, ...] = field(default_factory=tuple)


_CPUINFO_KEYS = {
    "vendor_id": "vendor_id",
    "cpu family": "cpu_family",
    "model": "model",
    "model name": "model_name",
    "stepping": "stepping",
    "microcode": "microcode",
    "cache size": "cache_size",
    "physical id": "physical_id",
    "core id": "core_id",
}


def parse_proc_stat_cpus(text: str) -> list[CPUStat]:
    """Parse the per-CPU lines of /proc/stat, indexed by CPU number."""
    cpus: list[CPUStat] = []
    for line in text.splitlines():
        parts = line.split()
        if not parts or not parts[0].startswith("cpu") or parts[0] == "cpu":
            continue
        ident = parts[0][3:]
        if not (ident.isascii() and ident.isdigit()):
            raise ValueError(f"couldn't parse cpu id in {line!r}")
        values = parts[1 : 1 + len(_STAT_FIELDS)]
        if not values:
            raise ValueError(f"couldn't parse {line!r} (cpu): no values")
        try:
            numbers = [float(value) / USER_HZ for value in values]
        except ValueError as err:
            raise ValueError(f"couldn't parse {line!r} (cpu): {err}") from err
        cpu_id = int(ident)
        if cpu_id >= len(cpus):
            cpus.extend(CPUStat() for _ in range(cpu_id - len(cpus) + 1))
        cpus[cpu_id] = CPUStat(**dict(zip(_STAT_FIELDS, numbers)))
    return cpus


def parse_cpuinfo(text: str) -> list[CPUInfo]:
    """Parse the contents of /proc/cpuinfo."""
    entries: list[dict] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if not entries and key != "processor":
            raise ValueError(f"invalid cpuinfo file: {line!r}")
        if not sep:
            continue
        if key == "processor":
            try:
                entries.append({"processor": int(value)})
            except ValueError as err:
                raise ValueError(f"invalid processor number {value!r}") from err
        elif key in _CPUINFO_KEYS:
            entries[-1][_CPUINFO_KEYS[key]] = value
        elif key in ("flags", "bugs"):
            entries[-1][key] = tuple(value.split())
    if not entries:
        raise ValueError("invalid cpuinfo file: no processors")
    return [CPUInfo(**entry) for entry in entries]


def _cpu_desc(name: str, help_text: str, labels: tuple[str, ...]) -> Desc:
    return Desc(build_fq_name(NAMESPACE, CPU_SUBSYSTEM, name), help_text, labels)


def _compile(pattern: str) -> re.Pattern[str] | None:
    return re.compile(pattern) if pattern else None


@register_collector("cpu", True)
class CPUCollector(Collector):
    """Exposes CPU time, cpuinfo and thermal throttle metrics."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.cpu = CPU_SECONDS_DESC
        self.cpu_info = _cpu_desc(
            "info",
            "CPU information from /proc/cpuinfo.",
            ("package", "core", "cpu", "vendor", "family", "model", "model_name",
             "microcode", "stepping", "cachesize"),
        )
        self.cpu_flags_info = _cpu_desc(
            "flag_info", "The `flags` field of CPU information from /proc/cpuinfo.", ("flag",)
        )
        self.cpu_bugs_info = _cpu_desc(
            "bug_info", "The `bugs` field of CPU information from /proc/cpuinfo.", ("bug",)
        )
        self.cpu_guest = _cpu_desc(
            "guest_seconds_total",
            "Seconds the CPUs spent in guests (VMs) for each mode.",
            ("cpu", "mode"),
        )
        self.cpu_core_throttle = _cpu_desc(
            "core_throttles_total",
            "Number of times this CPU core has been throttled.",
            ("package", "core"),
        )
        self.cpu_package_throttle = _cpu_desc(
            "package_throttles_total",
            "Number of times this CPU package has been throttled.",
            ("package",),
        )
        self._cpu_stats: list[CPUStat] = []
        self._lock = threading.Lock()

        flags_include = self.config.cpu_flags_include
        bugs_include = self.config.cpu_bugs_include
        self.enable_info = self.config.cpu_info
        if (flags_include or bugs_include) and not self.enable_info:
            self.enable_info = True
            self.logger.info(
                "--collector.cpu.info has been set to `true` because you set the following "
                "flags, like --collector.cpu.info.flags-include and "
                "--collector.cpu.info.bugs-include"
            )
        try:
            self.flags_include = _compile(flags_include)
            self.bugs_include = _compile(bugs_include)
        except re.error as err:
            raise ValueError(
                "fail to compile --collector.cpu.info.flags-include and "
                "--collector.cpu.info.bugs-include, the values of them must be "
                f"regular expressions: {err}"
            ) from err

    def update(self) -> Iterator[Metric]:
        if self.enable_info:
            yield from self.update_info()
        yield from self.update_stat()
        yield from self.update_thermal_throttle()

    def update_info(self) -> list[Metric]:
        """Metrics from /proc/cpuinfo."""
        with open(self.config.proc_file("cpuinfo"), encoding="utf-8") as handle:
            infos = parse_cpuinfo(handle.read())
        metrics: list[Metric] = []
        for cpu in infos:
            metrics.append(
                Metric(
                    self.cpu_info,
                    ValueType.GAUGE,
                    1,
                    (cpu.physical_id, cpu.core_id, str(cpu.processor), cpu.vendor_id,
                     cpu.cpu_family, cpu.model, cpu.model_name, cpu.microcode,
                     cpu.stepping, cpu.cache_size),
                )
            )
            metrics.extend(self._field_info(cpu.flags, self.flags_include, self.cpu_flags_info))
            metrics.extend(self._field_info(cpu.bugs, self.bugs_include, self.cpu_bugs_info))
        return metrics

    @staticmethod
    def _field_info(values, pattern, desc) -> Iterator[Metric]:
        if pattern is None:
            return
        for value in values:
            if pattern.search(value):
                yield Metric(desc, ValueType.GAUGE, 1, (value,))

    def update_thermal_throttle(self) -> list[Metric]:
        """Thermal throttle counters from sysfs, read once per package and core."""
        cpus = sorted(glob.glob(self.config.sys_file("devices", "system", "cpu", "cpu[0-9]*")))
        package_throttles: dict[int, int] = {}
        core_throttles: dict[int, dict[int, int]] = {}

        def read(cpu: str, *parts: str) -> int | None:
            try:
                return read_uint_from_file(os.path.join(cpu, *parts))
            except (OSError, ValueError):
                return None

        for cpu in cpus:
            package_id = read(cpu, "topology", "physical_package_id")
            if package_id is None:
                self.logger.debug("CPU is missing physical_package_id cpu=%s", cpu)
                continue
            core_id = read(cpu, "topology", "core_id")
            if core_id is None:
                self.logger.debug("CPU is missing core_id cpu=%s", cpu)
                continue

            cores = core_throttles.setdefault(package_id, {})
            if core_id not in cores:
                count = read(cpu, "thermal_throttle", "core_throttle_count")
                if count is not None:
                    cores[core_id] = count
                else:
                    self.logger.debug("CPU is missing core_throttle_count cpu=%s", cpu)

            if package_id not in package_throttles:
                count = read(cpu, "thermal_throttle", "package_throttle_count")
                if count is not None:
                    package_throttles[package_id] = count
                else:
                    self.logger.debug("CPU is missing package_throttle_count cpu=%s", cpu)

        metrics = [
            Metric(self.cpu_package_throttle, ValueType.COUNTER, count, (str(package_id),))
            for package_id, count in sorted(package_throttles.items())
        ]
        for package_id, cores in sorted(core_throttles.items()):
            for core_id, count in sorted(cores.items()):
                metrics.append(
                    Metric(self.cpu_core_throttle, ValueType.COUNTER, count,
                           (str(package_id), str(core_id)))
                )
        return metrics

    def update_stat(self) -> list[Metric]:
        """CPU time metrics from /proc/stat."""
        with open(self.config.proc_file("stat"), encoding="utf-8") as handle:
            stats = parse_proc_stat_cpus(handle.read())
        self.update_cpu_stats(stats)

        metrics: list[Metric] = []
        counter = ValueType.COUNTER
        with self._lock:
            for cpu_id, stat in enumerate(self._cpu_stats):
                num = str(cpu_id)
                for mode, value in (
                    ("user", stat.user),
                    ("nice", stat.nice),
                    ("system", stat.system),
                    ("idle", stat.idle),
                    ("iowait", stat.iowait),
                    ("irq", stat.irq),
                    ("softirq", stat.softirq),
                    ("steal", stat.steal),
                ):
                    metrics.append(Metric(self.cpu, counter, value, (num, mode)))
                # Guest time is also included in user and nice.
                metrics.append(Metric(self.cpu_guest, counter, stat.guest, (num, "user")))
                metrics.append(Metric(self.cpu_guest, counter, stat.guest_nice, (num, "nice")))
        return metrics

    def update_cpu_stats(self, new_stats: list[CPUStat]) -> None:
        """Merge fresh readings into the cache, never letting counters go backwards."""
        with self._lock:
            if len(self._cpu_stats) != len(new_stats):
                self._cpu_stats = [CPUStat() for _ in new_stats]

            for cpu_id, new in enumerate(new_stats):
                old = self._cpu_stats[cpu_id]
                if new.idle < old.idle:
                    self.logger.debug(
                        "CPU Idle counter jumped backwards, possible hotplug event, "
                        "resetting CPU stats cpu=%d old_value=%f new_value=%f",
                        cpu_id, old.idle, new.idle,
                    )
                    old = CPUStat()
                    self._cpu_stats[cpu_id] = old
                old.idle = new.idle

                for stat_field in fields(CPUStat):
                    name = stat_field.name
                    if name == "idle":
                        continue
                    old_value = getattr(old, name)
                    new_value = getattr(new, name)
                    if new_value >= old_value:
                        setattr(old, name, new_value)
                    else:
                        self.logger.debug(
                            "CPU %s counter jumped backwards cpu=%d old_value=%f new_value=%f",
                            name, cpu_id, old_value, new_value,
                        )