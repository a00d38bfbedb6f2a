"""Fibre Channel host statistics from /sys/class/fc_host."""

from __future__ import annotations

import errno
import os
from dataclasses import dataclass, field
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

MAX_UINT64 = (1 << 64) - 1
FIBRECHANNEL_CLASS_PATH = os.path.join("class", "fc_host")

_HOST_FILES = (
    "speed",
    "port_state",
    "port_type",
    "node_name",
    "port_id",
    "port_name",
    "fabric_name",
    "dev_loss_tmo",
    "symbolic_name",
    "supported_classes",
    "supported_speeds",
)

# Statistic file name and the metric it feeds, in push order.
_COUNTERS = (
    ("dumped_frames", "dumped_frames_total"),
    ("error_frames", "error_frames_total"),
    ("invalid_crc_count", "invalid_crc_total"),
    ("rx_frames", "rx_frames_total"),
    ("rx_words", "rx_words_total"),
    ("tx_frames", "tx_frames_total"),
    ("tx_words", "tx_words_total"),
    ("seconds_since_last_reset", "seconds_since_last_reset_total"),
    ("invalid_tx_word_count", "invalid_tx_words_total"),
    ("link_failure_count", "link_failure_total"),
    ("loss_of_sync_count", "loss_of_sync_total"),
    ("loss_of_signal_count", "loss_of_signal_total"),
    ("nos_count", "nos_total"),
    ("fcp_packet_aborts", "fcp_packet_aborts_total"),
)

_DESCRIPTIONS = {
    "dumped_frames_total": "Number of dumped frames",
    "loss_of_signal_total": "Number of times signal has been lost",
    "loss_of_sync_total": "Number of failures on either bit or transmission word boundaries",
    "rx_frames_total": "Number of frames received",
    "error_frames_total": "Number of errors in frames",
    "invalid_tx_words_total": "Number of invalid words transmitted by host port",
    "seconds_since_last_reset_total": "Number of seconds since last host port reset",
    "tx_words_total": "Number of words transmitted by host port",
    "invalid_crc_total": "Invalid Cyclic Redundancy Check count",
    "nos_total": "Number Not_Operational Primitive Sequence received by host port",
    "fcp_packet_aborts_total": "Number of aborted packets",
    "rx_words_total": "Number of words received by host port",
    "tx_frames_total": "Number of frames transmitted by host port",
    "link_failure_total": "Number of times the host port link has failed",
    "name": "Name of Fibre Channel HBA",
    "speed": "Current operating speed",
    "port_state": "Current port state",
    "port_type": "Port type, what the port is connected to",
    "symbolic_name": "Symoblic Name",
    "node_name": "Node Name as hexadecimal string",
    "port_id": "Port ID as string",
    "port_name": "Port Name as hexadecimal string",
    "fabric_name": "Fabric Name; 0 if PTP",
    "dev_loss_tmo": "Device Loss Timeout in seconds",
    "supported_classes": "The FC classes supported",
    "supported_speeds": "The FC speeds supported",
}


@dataclass(frozen=True)
class FibreChannelHost:
    """One Fibre Channel host adapter port."""

    name: str
    speed: str = ""
    port_state: str = ""
    port_type: str = ""
    node_name: str = ""
    port_id: str = ""
    port_name: str = ""
    fabric_name: str = ""
    dev_loss_tmo: str = ""
    symbolic_name: str = ""
    supported_classes: str = ""
    supported_speeds: str = ""
    counters: dict[str, int] = field(default_factory=dict)

    def counter(self, name: str) -> int:
        """A statistic by its sysfs file name; zero where the file is absent."""
        return self.counters.get(name, 0)


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8") as handle:
        return handle.read().strip()


def _parse_uint(text: str, path: str) -> int:
    try:
        value = int(text, 0)
    except ValueError as err:
        raise ValueError(f"invalid value {text!r} in {path}") from err
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"value {text!r} in {path} out of range")
    return value


def _read_statistics(host_path: str) -> dict[str, int]:
    path = os.path.join(host_path, "statistics")
    known = {name for name, _ in _COUNTERS}
    counters: dict[str, int] = {}
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as err:
        raise RuntimeError(f"failed to read statistics of {host_path}: {err}") from err
    for entry in entries:
        if not entry.is_file(follow_symlinks=False) or entry.name == "reset_statistics":
            continue
        try:
            text = _read_text(entry.path)
        except FileNotFoundError:
            continue
        except OSError as err:
            # Some files in this directory are write-only.
            if err.errno in (errno.EOPNOTSUPP, errno.EINVAL):
                continue
            raise RuntimeError(f"failed to read file {entry.path!r}: {err}") from err
        if entry.name in known:
            counters[entry.name] = _parse_uint(text, entry.path)
    return counters


def _read_host(class_path: str, name: str) -> FibreChannelHost:
    path = os.path.join(class_path, name)
    values: dict[str, str] = {}
    for filename in _HOST_FILES:
        file_path = os.path.join(path, filename)
        try:
            values[filename] = _read_text(file_path)
        except OSError as err:
            raise RuntimeError(f"failed to read file {file_path!r}: {err}") from err
    return FibreChannelHost(name=name, counters=_read_statistics(path), **values)


def read_fibre_channel_class(sys_path: str) -> list[FibreChannelHost]:
    """Read every host under sys_path/class/fc_host; a missing directory raises FileNotFoundError."""
    class_path = os.path.join(sys_path, FIBRECHANNEL_CLASS_PATH)
    return [_read_host(class_path, name) for name in sorted(os.listdir(class_path))]


@register_collector("fibrechannel", True)
class FibreChannelCollector(Collector):
    """Exposes Fibre Channel host information and counters."""

    subsystem = "fibrechannel"

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.metric_descs = {
            name: Desc(build_fq_name(NAMESPACE, self.subsystem, name), text, ("fc_host",))
            for name, text in _DESCRIPTIONS.items()
        }
        self.info_desc = Desc(
            build_fq_name(NAMESPACE, self.subsystem, "info"),
            "Non-numeric data from /sys/class/fc_host/<host>, value is always 1.",
            ("fc_host", "speed", "port_state", "port_type", "port_id", "port_name",
             "fabric_name", "symbolic_name", "supported_classes", "supported_speeds",
             "dev_loss_tmo"),
        )

    def update(self) -> Iterator[Metric]:
        try:
            hosts = read_fibre_channel_class(self.config.sys_path)
        except FileNotFoundError as err:
            self.logger.debug("fibrechannel statistics not found, skipping")
            raise NoDataError() from err
        except (OSError, ValueError, RuntimeError) as err:
            raise RuntimeError(f"error obtaining FibreChannel class info: {err}") from err

        for host in hosts:
            yield Metric(
                self.info_desc,
                ValueType.GAUGE,
                1.0,
                (host.name, host.speed, host.port_state, host.port_type, host.port_id,
                 host.port_name, host.fabric_name, host.symbolic_name,
                 host.supported_classes, host.supported_speeds, host.dev_loss_tmo),
            )
            for stat_name, metric_name in _COUNTERS:
                value = host.counter(stat_name)
                # A counter of all ones is not implemented by the HBA firmware.
                if value != MAX_UINT64:
                    yield Metric(
                        self.metric_descs[metric_name], ValueType.COUNTER, value, (host.name,)
                    )