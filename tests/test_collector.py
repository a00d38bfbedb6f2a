import pytest

from nodemetrics.collector import (
    CPU_SECONDS_DESC,
    SCRAPE_DURATION_DESC,
    SCRAPE_SUCCESS_DESC,
    Collector,
    Config,
    Desc,
    Metric,
    NodeCollector,
    NoDataError,
    Registry,
    TypedDesc,
    ValueType,
    build_fq_name,
    format_metrics,
    read_uint_from_file,
)

SAMPLE_DESC = Desc("node_sample_value", "Sample.", ("device",))


class GoodCollector(Collector):
    def update(self):
        yield Metric(SAMPLE_DESC, ValueType.GAUGE, 1, ("good",))


class NoDataCollector(Collector):
    def update(self):
        raise NoDataError()


class BrokenCollector(Collector):
    def update(self):
        yield Metric(SAMPLE_DESC, ValueType.GAUGE, 1, ("broken",))
        raise RuntimeError("boom")


def make_registry():
    registry = Registry()
    registry.register("good", True, GoodCollector)
    registry.register("nodata", True, NoDataCollector)
    registry.register("broken", True, BrokenCollector)
    registry.register("off", False, GoodCollector)
    return registry


def test_build_fq_name_joins_parts():
    assert build_fq_name("node", "scrape", "collector_success") == "node_scrape_collector_success"
    assert build_fq_name("node", "", "entropy_available_bits") == "node_entropy_available_bits"
    assert build_fq_name("node", "cpu", "") == ""


def test_cpu_seconds_desc_metric():
    metric = TypedDesc(CPU_SECONDS_DESC, ValueType.COUNTER).metric(1.5, "0", "user")
    assert metric.labels == {"cpu": "0", "mode": "user"}
    assert metric.value == 1.5
    text = format_metrics([metric])
    assert "# TYPE node_cpu_seconds_total counter" in text
    assert text.splitlines()[-1].startswith("node_cpu_seconds_total{")
    with pytest.raises(ValueError):
        TypedDesc(CPU_SECONDS_DESC, ValueType.COUNTER).metric(1.5, "0")


def test_metric_label_count_checked():
    with pytest.raises(ValueError):
        Metric(SAMPLE_DESC, ValueType.GAUGE, 1.0, ())


def test_typed_desc_metric():
    metric = TypedDesc(SAMPLE_DESC, ValueType.COUNTER).metric(3, "sda")
    assert metric.value_type is ValueType.COUNTER
    assert metric.labels == {"device": "sda"}
    assert metric.value == 3.0


def test_config_paths(tmp_path):
    config = Config(proc_path=str(tmp_path / "proc"), sys_path=str(tmp_path / "sys"))
    assert config.proc_file("net", "arp") == str(tmp_path / "proc" / "net" / "arp")
    assert config.sys_file("class/net") == str(tmp_path / "sys" / "class/net")


def test_registry_defaults_and_forcing():
    registry = make_registry()
    assert registry.is_enabled("good")
    assert not registry.is_enabled("off")
    registry.set_enabled("nodata", True)
    registry.set_enabled("off", True)
    registry.disable_defaults()
    assert not registry.is_enabled("good")
    assert registry.is_enabled("nodata")
    assert registry.is_enabled("off")


def test_registry_unknown_name():
    with pytest.raises(KeyError):
        Registry().is_enabled("missing")


def test_node_collector_filter_errors():
    registry = make_registry()
    with pytest.raises(ValueError, match="missing collector: nope"):
        NodeCollector(registry, filters=["nope"])
    with pytest.raises(ValueError, match="disabled collector: off"):
        NodeCollector(registry, filters=["off"])


def test_node_collector_filter_selects():
    node = NodeCollector(make_registry(), filters=["good"])
    assert list(node.collectors) == ["good"]


def test_node_collector_factory_error_propagates():
    def failing(config, logger):
        raise OSError("cannot open")

    registry = Registry()
    registry.register("bad", True, failing)
    with pytest.raises(OSError):
        NodeCollector(registry)


def test_describe():
    assert NodeCollector(Registry()).describe() == [SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC]


def test_collect_success_and_failure():
    metrics = NodeCollector(make_registry()).collect()
    success = {
        m.label_values[0]: m.value for m in metrics if m.desc == SCRAPE_SUCCESS_DESC
    }
    assert success == {"good": 1.0, "nodata": 0.0, "broken": 0.0}
    durations = [m for m in metrics if m.desc == SCRAPE_DURATION_DESC]
    assert len(durations) == 3
    assert all(m.value >= 0 for m in durations)
    samples = sorted(m.label_values[0] for m in metrics if m.desc == SAMPLE_DESC)
    assert samples == ["broken", "good"]


def test_read_uint_from_file(tmp_path):
    path = tmp_path / "value"
    path.write_text("1024\n")
    assert read_uint_from_file(str(path)) == 1024
    path.write_text("-1\n")
    with pytest.raises(ValueError):
        read_uint_from_file(str(path))
    with pytest.raises(FileNotFoundError):
        read_uint_from_file(str(tmp_path / "absent"))


def test_format_metrics_text():
    desc = Desc("node_arp_entries", "ARP entries by device", ("device",))
    text = format_metrics([Metric(desc, ValueType.GAUGE, 1024, ("eth0",))])
    assert text == (
        "# HELP node_arp_entries ARP entries by device\n"
        "# TYPE node_arp_entries gauge\n"
        'node_arp_entries{device="eth0"} 1024\n'
    )


def test_format_metrics_exponent_and_escape():
    desc = Desc("node_x", "X.", ("label",))
    text = format_metrics([Metric(desc, ValueType.COUNTER, 16777216, ('a"b',))])
    assert text.splitlines()[-1] == 'node_x{label="a\\"b"} 1.6777216e+07'
    assert "# TYPE node_x counter" in text


def test_format_metrics_groups_families():
    metrics = [
        Metric(SAMPLE_DESC, ValueType.GAUGE, 1, ("b",)),
        Metric(SAMPLE_DESC, ValueType.GAUGE, 1, ("a",)),
    ]
    lines = format_metrics(metrics).splitlines()
    assert sum(line.startswith("# HELP") for line in lines) == 1
    assert lines[2] < lines[3]