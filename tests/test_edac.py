import pytest

from nodemetrics.collector import Config
from nodemetrics.edac import EdacCollector


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


@pytest.fixture
def sys_root(tmp_path):
    mc = tmp_path / "sys" / "devices" / "system" / "edac" / "mc" / "mc0"
    _write(mc / "ce_count", "1\n")
    _write(mc / "ce_noinfo_count", "2\n")
    _write(mc / "ue_count", "5\n")
    _write(mc / "ue_noinfo_count", "6\n")
    _write(mc / "csrow0" / "ce_count", "3\n")
    _write(mc / "csrow0" / "ue_count", "4\n")
    return tmp_path / "sys"


def test_collects_counts(sys_root):
    metrics = list(EdacCollector(Config(sys_path=str(sys_root))).update())
    values = {(m.name, m.label_values): m.value for m in metrics}
    assert values == {
        ("node_edac_correctable_errors_total", ("0",)): 1.0,
        ("node_edac_csrow_correctable_errors_total", ("0", "unknown")): 2.0,
        ("node_edac_uncorrectable_errors_total", ("0",)): 5.0,
        ("node_edac_csrow_uncorrectable_errors_total", ("0", "unknown")): 6.0,
        ("node_edac_csrow_correctable_errors_total", ("0", "0")): 3.0,
        ("node_edac_csrow_uncorrectable_errors_total", ("0", "0")): 4.0,
    }


def test_no_controllers(tmp_path):
    assert list(EdacCollector(Config(sys_path=str(tmp_path))).update()) == []


def test_missing_controller_file(sys_root):
    (sys_root / "devices" / "system" / "edac" / "mc" / "mc0" / "ue_count").unlink()
    with pytest.raises(RuntimeError, match="couldn't get ue_count for controller 0"):
        list(EdacCollector(Config(sys_path=str(sys_root))).update())


def test_missing_csrow_file(sys_root):
    (sys_root / "devices" / "system" / "edac" / "mc" / "mc0" / "csrow0" / "ue_count").unlink()
    with pytest.raises(RuntimeError, match="controller/csrow 0/0"):
        list(EdacCollector(Config(sys_path=str(sys_root))).update())