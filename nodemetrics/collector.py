"""Core types shared by all collectors: descriptors, metrics, registry and scraping."""

from __future__ import annotations

import logging
import math
import os
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Iterator

NAMESPACE = "node"

_log = logging.getLogger("nodemetrics")


class ValueType(Enum):
    """Kind of value a metric carries."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; an empty name gives an empty result."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes a metric: its full name, help text and label names."""

    fq_name: str
    help: str
    label_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "label_names", tuple(self.label_names))


@dataclass(frozen=True)
class Metric:
    """One sample of a described metric."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        values = tuple(self.label_values)
        if len(values) != len(self.desc.label_names):
            raise ValueError(
                f"{self.desc.fq_name}: expected {len(self.desc.label_names)} label values, "
                f"got {len(values)}"
            )
        object.__setattr__(self, "label_values", values)
        object.__setattr__(self, "value", float(self.value))

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.label_names, self.label_values))


@dataclass(frozen=True)
class TypedDesc:
    """A descriptor bound to a value type."""

    desc: Desc
    value_type: ValueType

    def metric(self, value: float, *args: str) -> Metric:
        return Metric(self.desc, self.value_type, value, args)


class NoDataError(Exception):
    """The collector found no data to collect, but had no other error."""

    def __init__(self, message: str = "collector returned no data") -> None:
        super().__init__(message)


DEFAULT_IGNORED_DEVICES = r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"


@dataclass
class Config:
    """Settings shared by the collectors."""

    proc_path: str = "/proc"
    sys_path: str = "/sys"
    cpu_info: bool = False
    cpu_flags_include: str = ""
    cpu_bugs_include: str = ""
    diskstats_ignored_devices: str = DEFAULT_IGNORED_DEVICES

    def proc_file(self, *args: str) -> str:
        return os.path.join(self.proc_path, *args)

    def sys_file(self, *args: str) -> str:
        return os.path.join(self.sys_path, *args)


class Collector(ABC):
    """Base class of every collector."""

    def __init__(self, config: Config | None = None, logger: logging.Logger | None = None) -> None:
        self.config = config if config is not None else Config()
        self.logger = logger if logger is not None else _log.getChild(type(self).__name__)

    @abstractmethod
    def update(self) -> Iterable[Metric]:
        """Gather metrics; raise NoDataError when there is nothing to report."""


Factory = Callable[[Config, logging.Logger], Collector]


@dataclass
class _Entry:
    factory: Factory
    default_enabled: bool
    enabled: bool
    forced: bool = False


@dataclass
class Registry:
    """Known collectors and whether each one is enabled."""

    _entries: dict[str, _Entry] = field(default_factory=dict)

    def register(self, name: str, default_enabled: bool, factory: Factory) -> None:
        self._entries[name] = _Entry(factory, default_enabled, default_enabled)

    def _entry(self, name: str) -> _Entry:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"unknown collector: {name}") from None

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Explicitly enable or disable a collector."""
        entry = self._entry(name)
        entry.enabled = enabled
        entry.forced = True

    def disable_defaults(self) -> None:
        """Disable every collector that was not explicitly enabled or disabled."""
        for entry in self._entries.values():
            if not entry.forced:
                entry.enabled = False

    def is_enabled(self, name: str) -> bool:
        return self._entry(name).enabled

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def _enabled_factories(self) -> Iterator[tuple[str, Factory]]:
        for name, entry in self._entries.items():
            if entry.enabled:
                yield name, entry.factory


DEFAULT_REGISTRY = Registry()


def register_collector(name: str, default_enabled: bool):
    """Class decorator registering a collector in the default registry."""

    def decorate(factory):
        DEFAULT_REGISTRY.register(name, default_enabled, factory)
        return factory

    return decorate


SCRAPE_DURATION_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_duration_seconds"),
    "node_exporter: Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_SUCCESS_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_success"),
    "node_exporter: Whether a collector succeeded.",
    ("collector",),
)

CPU_SUBSYSTEM = "cpu"
CPU_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_SUBSYSTEM, "seconds_total"),
    "Seconds the CPUs spent in each mode.",
    ("cpu", "mode"),
)

DISK_SUBSYSTEM = "disk"
DISK_LABEL_NAMES = ("device",)
READS_COMPLETED_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "reads_completed_total"),
    "The total number of reads completed successfully.",
    DISK_LABEL_NAMES,
)
READ_BYTES_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "read_bytes_total"),
    "The total number of bytes read successfully.",
    DISK_LABEL_NAMES,
)
WRITES_COMPLETED_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "writes_completed_total"),
    "The total number of writes completed successfully.",
    DISK_LABEL_NAMES,
)
WRITTEN_BYTES_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "written_bytes_total"),
    "The total number of bytes written successfully.",
    DISK_LABEL_NAMES,
)
IO_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "io_time_seconds_total"),
    "Total seconds spent doing I/Os.",
    DISK_LABEL_NAMES,
)
READ_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "read_time_seconds_total"),
    "The total number of seconds spent by all reads.",
    DISK_LABEL_NAMES,
)
WRITE_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "write_time_seconds_total"),
    "This is the total number of seconds spent by all writes.",
    DISK_LABEL_NAMES,
)


class NodeCollector:
    """Runs a set of enabled collectors and adds scrape duration and success metrics."""

    def __init__(
        self,
        registry: Registry | None = None,
        config: Config | None = None,
        filters: Iterable[str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        registry = DEFAULT_REGISTRY if registry is None else registry
        config = Config() if config is None else config
        self.logger = logger if logger is not None else _log
        wanted: set[str] = set()
        for name in filters:
            if name not in registry:
                raise ValueError(f"missing collector: {name}")
            if not registry.is_enabled(name):
                raise ValueError(f"disabled collector: {name}")
            wanted.add(name)
        self.collectors: dict[str, Collector] = {}
        for name, factory in registry._enabled_factories():
            collector = factory(config, self.logger.getChild(name))
            if not wanted or name in wanted:
                self.collectors[name] = collector

    def describe(self) -> list[Desc]:
        return [SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC]

    def collect(self) -> list[Metric]:
        """Run all collectors concurrently and return every metric they produced."""
        if not self.collectors:
            return []
        with ThreadPoolExecutor(max_workers=len(self.collectors)) as pool:
            results = pool.map(self._execute, self.collectors.keys(), self.collectors.values())
            return [metric for batch in results for metric in batch]

    def _execute(self, name: str, collector: Collector) -> list[Metric]:
        begin = time.perf_counter()
        metrics: list[Metric] = []
        success = 1.0
        try:
            metrics.extend(collector.update())
        except NoDataError as err:
            success = 0.0
            self.logger.debug(
                "collector returned no data name=%s duration_seconds=%f err=%s",
                name, time.perf_counter() - begin, err,
            )
        except Exception as err:  # noqa: BLE001 - a failing collector must not stop the scrape
            success = 0.0
            self.logger.error(
                "collector failed name=%s duration_seconds=%f err=%s",
                name, time.perf_counter() - begin, err,
            )
        duration = time.perf_counter() - begin
        if success:
            self.logger.debug("collector succeeded name=%s duration_seconds=%f", name, duration)
        metrics.append(Metric(SCRAPE_DURATION_DESC, ValueType.GAUGE, duration, (name,)))
        metrics.append(Metric(SCRAPE_SUCCESS_DESC, ValueType.GAUGE, success, (name,)))
        return metrics


def read_uint_from_file(path: str) -> int:
    """Read a file holding a single unsigned decimal integer."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read().strip()
    if not text.isdigit() or not text.isascii():
        raise ValueError(f"invalid unsigned integer in {path}: {text!r}")
    return int(text)


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digits, exponent = Decimal(repr(float(value))).normalize().as_tuple()
    text = "".join(map(str, digits))
    point = len(digits) + exponent
    exp10 = point - 1
    prefix = "-" if sign else ""
    if exp10 < -4 or exp10 >= 6:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        return f"{prefix}{mantissa}e{'+' if exp10 >= 0 else '-'}{abs(exp10):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{text}"
    if point >= len(text):
        return prefix + text + "0" * (point - len(text))
    return f"{prefix}{text[:point]}.{text[point:]}"


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _escape_help(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n")


def format_metrics(metrics: Iterable[Metric]) -> str:
    """Render metrics in the Prometheus text exposition format."""
    families: dict[str, list[Metric]] = {}
    for metric in metrics:
        families.setdefault(metric.name, []).append(metric)
    lines: list[str] = []
    for name in sorted(families):
        family = sorted(families[name], key=lambda m: m.label_values)
        first = family[0]
        lines.append(f"# HELP {name} {_escape_help(first.desc.help)}")
        lines.append(f"# TYPE {name} {first.value_type.value}")
        for metric in family:
            if metric.label_values:
                pairs = ",".join(
                    f'{label}="{_escape_label(value)}"'
                    for label, value in zip(metric.desc.label_names, metric.label_values)
                )
                lines.append(f"{name}{{{pairs}}} {_format_value(metric.value)}")
            else:
                lines.append(f"{name} {_format_value(metric.value)}")
    return "".join(line + "\n" for line in lines)