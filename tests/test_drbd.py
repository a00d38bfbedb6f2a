import pytest

from nodemetrics.collector import Config, NoDataError
from nodemetrics.drbd import DRBDCollector

SAMPLE = """version: 8.4.3 (api:1/proto:86-101)
srcversion: 1A9F77B1CA5FF92235C2213
 1: cs:Connected ro:Primary/Secondary ds:UpToDate/UpToDate C r-----
    ns:100 nr:200 dw:300 dr:400 al:5 bm:6 lo:0 pe:0 ua:0 ap:0 ep:1 wo:f oos:0
"""


def _find(metrics, name, labels):
    matches = [m for m in metrics if m.name == name and m.label_values == labels]
    assert len(matches) == 1
    return matches[0].value


def test_parse_connection_and_role():
    metrics = DRBDCollector().parse(SAMPLE)
    assert _find(metrics, "node_drbd_connected", ("drbd1",)) == 1.0
    assert _find(metrics, "node_drbd_node_role_is_primary", ("drbd1", "local")) == 1.0
    assert _find(metrics, "node_drbd_node_role_is_primary", ("drbd1", "remote")) == 0.0
    assert _find(metrics, "node_drbd_disk_state_is_up_to_date", ("drbd1", "remote")) == 1.0


def test_parse_numerical_multipliers():
    metrics = DRBDCollector().parse(SAMPLE)
    assert _find(metrics, "node_drbd_network_received_bytes_total", ("drbd1",)) == 200.0
    assert _find(metrics, "node_drbd_network_sent_bytes_total", ("drbd1",)) == 102400.0
    assert _find(metrics, "node_drbd_epochs", ("drbd1",)) == 1.0


def test_parse_unknown_device_and_disconnected():
    metrics = DRBDCollector().parse("cs:StandAlone nr:7")
    assert _find(metrics, "node_drbd_connected", ("unknown",)) == 0.0
    assert _find(metrics, "node_drbd_network_received_bytes_total", ("unknown",)) == 7.0


def test_parse_skips_unhandled_fields():
    assert DRBDCollector().parse("wo:f a:b:c plain") == []


def test_parse_invalid_number():
    with pytest.raises(ValueError):
        DRBDCollector().parse("0: ns:abc")


def test_update_reads_file(tmp_path):
    (tmp_path / "drbd").write_text(SAMPLE)
    collector = DRBDCollector(Config(proc_path=str(tmp_path)))
    metrics = list(collector.update())
    assert metrics == collector.parse(SAMPLE)


def test_update_missing_file(tmp_path):
    collector = DRBDCollector(Config(proc_path=str(tmp_path)))
    with pytest.raises(NoDataError):
        list(collector.update())