import pytest

from nodemetrics.buddyinfo import BuddyInfo, BuddyinfoCollector, parse_buddyinfo
from nodemetrics.collector import Config

SAMPLE = (
    "Node 0, zone      DMA      1      0      1      0      2\n"
    "Node 0, zone    DMA32    759    572    791    475    194\n"
    "Node 0, zone   Normal   4381   1093    185   1530    567\n"
)


def test_parse_sample():
    entries = parse_buddyinfo(SAMPLE)
    assert [e.zone for e in entries] == ["DMA", "DMA32", "Normal"]
    assert all(e.node == "0" for e in entries)
    assert entries[1] == BuddyInfo("0", "DMA32", (759.0, 572.0, 791.0, 475.0, 194.0))


def test_bucket_mismatch():
    text = SAMPLE + "Node 1, zone   Normal   1 2\n"
    with pytest.raises(ValueError, match="mismatch in number of buddyinfo buckets"):
        parse_buddyinfo(text)


def test_too_few_fields():
    with pytest.raises(ValueError, match="invalid number of fields"):
        parse_buddyinfo("Node 0, zone\n")


def test_invalid_value():
    with pytest.raises(ValueError):
        parse_buddyinfo("Node 0, zone DMA 1 x\n")


def test_collector(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "buddyinfo").write_text(SAMPLE)
    metrics = list(BuddyinfoCollector(Config(proc_path=str(proc))).update())
    assert len(metrics) == 15
    by_labels = {m.label_values: m.value for m in metrics}
    assert by_labels[("0", "Normal", "0")] == 4381.0
    assert by_labels[("0", "DMA", "4")] == 2.0
    assert {m.name for m in metrics} == {"node_buddyinfo_blocks"}


def test_collector_missing_file(tmp_path):
    collector = BuddyinfoCollector(Config(proc_path=str(tmp_path)))
    with pytest.raises(RuntimeError, match="couldn't get buddyinfo"):
        list(collector.update())