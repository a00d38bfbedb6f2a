import pytest

from nodemetrics.bonding import BondingCollector, read_bonding_stats
from nodemetrics.collector import Config, NoDataError


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


@pytest.fixture
def net_root(tmp_path):
    root = tmp_path / "sys" / "class" / "net"
    _write(root / "bonding_masters", "bond0 dmz int\n")
    _write(root / "bond0" / "bonding" / "slaves", "\n")
    _write(root / "dmz" / "bonding" / "slaves", "eth0 eth4\n")
    _write(root / "dmz" / "lower_eth0" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "dmz" / "slave_eth4" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "int" / "bonding" / "slaves", "eth5 eth1\n")
    _write(root / "int" / "lower_eth5" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "int" / "lower_eth1" / "bonding_slave" / "mii_status", "down\n")
    return root


def test_bonding(net_root):
    stats = read_bonding_stats(str(net_root))
    assert stats["bond0"] == (0, 0)
    assert stats["int"] == (2, 1)
    assert stats["dmz"] == (2, 2)


def test_missing_slave_status_raises(net_root):
    (net_root / "int" / "lower_eth1" / "bonding_slave" / "mii_status").unlink()
    with pytest.raises(FileNotFoundError):
        read_bonding_stats(str(net_root))


def test_collector_metrics(net_root, tmp_path):
    collector = BondingCollector(Config(sys_path=str(tmp_path / "sys")))
    metrics = list(collector.update())
    values = {(m.name, m.label_values): m.value for m in metrics}
    assert values[("node_bonding_slaves", ("int",))] == 2
    assert values[("node_bonding_active", ("int",))] == 1
    assert values[("node_bonding_active", ("bond0",))] == 0
    assert len(metrics) == 6


def test_collector_no_data(tmp_path):
    collector = BondingCollector(Config(sys_path=str(tmp_path / "missing")))
    with pytest.raises(NoDataError):
        list(collector.update())