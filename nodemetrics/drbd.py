"""DRBD replication statistics from /proc/drbd."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    NoDataError,
    ValueType,
    build_fq_name,
    register_collector,
)


@dataclass(frozen=True)
class _NumericalMetric:
    desc: Desc
    value_type: ValueType
    multiplier: float


@dataclass(frozen=True)
class _StringPairMetric:
    desc: Desc
    value_ok: str

    def is_okay(self, value: str) -> float:
        return 1.0 if value == self.value_ok else 0.0


def _numerical(name: str, help_text: str, value_type: ValueType, multiplier: float) -> _NumericalMetric:
    desc = Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device",))
    return _NumericalMetric(desc, value_type, multiplier)


def _string_pair(name: str, help_text: str, value_ok: str) -> _StringPairMetric:
    desc = Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device", "node"))
    return _StringPairMetric(desc, value_ok)


@register_collector("drbd", False)
class DRBDCollector(Collector):
    """Exposes DRBD device statistics."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        counter, gauge = ValueType.COUNTER, ValueType.GAUGE
        self.numerical = {
            "ns": _numerical("network_sent_bytes_total", "Total number of bytes sent via the network.", counter, 1024),
            "nr": _numerical("network_received_bytes_total", "Total number of bytes received via the network.", counter, 1),
            "dw": _numerical("disk_written_bytes_total", "Net data written on local hard disk; in bytes.", counter, 1024),
            "dr": _numerical("disk_read_bytes_total", "Net data read from local hard disk; in bytes.", counter, 1024),
            "al": _numerical("activitylog_writes_total", "Number of updates of the activity log area of the meta data.", counter, 1),
            "bm": _numerical("bitmap_writes_total", "Number of updates of the bitmap area of the meta data.", counter, 1),
            "lo": _numerical("local_pending", "Number of open requests to the local I/O sub-system.", gauge, 1),
            "pe": _numerical(
                "remote_pending",
                "Number of requests sent to the peer, but that have not yet been answered by the latter.",
                gauge,
                1,
            ),
            "ua": _numerical(
                "remote_unacknowledged",
                "Number of requests received by the peer via the network connection, "
                "but that have not yet been answered.",
                gauge,
                1,
            ),
            "ap": _numerical(
                "application_pending",
                "Number of block I/O requests forwarded to DRBD, but not yet answered by DRBD.",
                gauge,
                1,
            ),
            "ep": _numerical("epochs", "Number of Epochs currently on the fly.", gauge, 1),
            "oos": _numerical("out_of_sync_bytes", "Amount of data known to be out of sync; in bytes.", gauge, 1024),
        }
        self.string_pair = {
            "ro": _string_pair("node_role_is_primary", "Whether the role of the node is in the primary state.", "Primary"),
            "ds": _string_pair("disk_state_is_up_to_date", "Whether the disk of the node is up to date.", "UpToDate"),
        }
        self.connected = Desc(
            build_fq_name(NAMESPACE, "drbd", "connected"),
            "Whether DRBD is connected to the peer.",
            ("device",),
        )

    def parse(self, text: str) -> list[Metric]:
        """Turn the contents of /proc/drbd into metrics."""
        metrics: list[Metric] = []
        device = "unknown"
        for field in text.split():
            kv = field.split(":")
            if len(kv) != 2:
                self.logger.debug("skipping invalid key:value pair field=%s", field)
                continue
            key, value = kv

            if value == "" and key.isascii() and key.isdigit():
                device = f"drbd{int(key)}"
                continue

            numerical = self.numerical.get(key)
            if numerical is not None:
                try:
                    number = float(value)
                except ValueError as err:
                    raise ValueError(f"invalid value {value!r} for {key}: {err}") from err
                metrics.append(
                    Metric(numerical.desc, numerical.value_type, number * numerical.multiplier, (device,))
                )
                continue

            pair = self.string_pair.get(key)
            if pair is not None:
                values = value.split("/")
                if len(values) < 2:
                    raise ValueError(f"invalid string pair {value!r} for {key}")
                metrics.append(Metric(pair.desc, ValueType.GAUGE, pair.is_okay(values[0]), (device, "local")))
                metrics.append(Metric(pair.desc, ValueType.GAUGE, pair.is_okay(values[1]), (device, "remote")))
                continue

            if key == "cs":
                connected = 1.0 if value == "Connected" else 0.0
                metrics.append(Metric(self.connected, ValueType.GAUGE, connected, (device,)))
                continue

            self.logger.debug("unhandled key-value pair key=%s value=%s", key, value)
        return metrics

    def update(self) -> Iterator[Metric]:
        stats_file = self.config.proc_file("drbd")
        try:
            with open(stats_file, encoding="utf-8") as handle:
                text = handle.read()
        except FileNotFoundError as err:
            self.logger.debug("stats file does not exist, skipping file=%s err=%s", stats_file, err)
            raise NoDataError() from err
        yield from self.parse(text)