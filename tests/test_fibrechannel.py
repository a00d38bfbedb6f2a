import os

import pytest

from nodemetrics.collector import Config, NoDataError
from nodemetrics.fibrechannel import (
    MAX_UINT64,
    FibreChannelCollector,
    read_fibre_channel_class,
)

HOST_VALUES = {
    "speed": "16 Gbit",
    "port_state": "Online",
    "port_type": "Point-To-Point (direct nport connection)",
    "node_name": "0x1111111111111111",
    "port_id": "0x000002",
    "port_name": "0x2222222222222222",
    "fabric_name": "0x0",
    "dev_loss_tmo": "30",
    "symbolic_name": "Example HBA FV1.0 DV1.0 host0",
    "supported_classes": "Class 3",
    "supported_speeds": "4 Gbit, 8 Gbit, 16 Gbit",
}


def _write(path, text):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)


@pytest.fixture
def sysfs(tmp_path):
    host = tmp_path / "class" / "fc_host" / "host0"
    for name, value in HOST_VALUES.items():
        _write(str(host / name), value + "\n")
    stats = host / "statistics"
    _write(str(stats / "dumped_frames"), "0xffffffffffffffff\n")
    _write(str(stats / "rx_frames"), "0x10\n")
    _write(str(stats / "tx_words"), "42\n")
    _write(str(stats / "reset_statistics"), "not a number\n")
    return tmp_path


def test_read_host_attributes(sysfs):
    (host,) = read_fibre_channel_class(str(sysfs))
    assert host.name == "host0"
    assert host.speed == HOST_VALUES["speed"]
    assert host.supported_speeds == HOST_VALUES["supported_speeds"]


def test_read_counters(sysfs):
    (host,) = read_fibre_channel_class(str(sysfs))
    assert host.counter("rx_frames") == 16
    assert host.counter("tx_words") == 42
    assert host.counter("dumped_frames") == MAX_UINT64
    assert host.counter("nos_count") == 0


def test_missing_class_dir_gives_no_data(tmp_path):
    collector = FibreChannelCollector(Config(sys_path=str(tmp_path)))
    with pytest.raises(NoDataError):
        list(collector.update())


def test_missing_host_file_is_an_error(sysfs):
    os.remove(sysfs / "class" / "fc_host" / "host0" / "speed")
    collector = FibreChannelCollector(Config(sys_path=str(sysfs)))
    with pytest.raises(RuntimeError, match="error obtaining FibreChannel class info"):
        list(collector.update())


def test_invalid_counter_is_an_error(sysfs):
    _write(str(sysfs / "class" / "fc_host" / "host0" / "statistics" / "nos_count"), "many\n")
    with pytest.raises(ValueError):
        read_fibre_channel_class(str(sysfs))


def test_update_info_metric(sysfs):
    metrics = list(FibreChannelCollector(Config(sys_path=str(sysfs))).update())
    info = metrics[0]
    assert info.name == "node_fibrechannel_info"
    assert info.value == 1.0
    labels = info.labels
    assert labels["fc_host"] == "host0"
    assert labels["port_state"] == HOST_VALUES["port_state"]
    assert labels["dev_loss_tmo"] == HOST_VALUES["dev_loss_tmo"]


def test_update_skips_unimplemented_counters(sysfs):
    metrics = list(FibreChannelCollector(Config(sys_path=str(sysfs))).update())
    by_name = {m.name: m for m in metrics[1:]}
    assert "node_fibrechannel_dumped_frames_total" not in by_name
    assert by_name["node_fibrechannel_tx_words_total"].value == 42
    assert by_name["node_fibrechannel_nos_total"].value == 0
    assert all(m.labels == {"fc_host": "host0"} for m in metrics[1:])