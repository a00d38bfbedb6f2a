# nodemetrics

`nodemetrics` reads host metrics from a Linux machine's `/proc` and `/sys`
trees. It turns them into Prometheus-style metrics and renders them in the text
exposition format. It uses only the Python standard library.

## Collectors

Each collector has its own module. When you import the module, its collector is
registered by name in the default registry.

| Module                     | Registered name | Enabled by default | Reads                                            |
|----------------------------|-----------------|--------------------|--------------------------------------------------|
| `nodemetrics.arp`          | `arp`           | yes                | `/proc/net/arp`                                  |
| `nodemetrics.filefd`       | `filefd`        | yes                | `/proc/sys/fs/file-nr`                           |
| `nodemetrics.bonding`      | `bonding`       | yes                | `/sys/class/net/*/bonding`                       |
| `nodemetrics.conntrack`    | `conntrack`     | yes                | `/proc/sys/net/netfilter/nf_conntrack_{count,max}` |
| `nodemetrics.entropy`      | `entropy`       | yes                | `/proc/sys/kernel/random/{entropy_avail,poolsize}` |
| `nodemetrics.buddyinfo`    | `buddyinfo`     | no                 | `/proc/buddyinfo`                                |
| `nodemetrics.edac`         | `edac`          | yes                | `/sys/devices/system/edac/mc`                    |
| `nodemetrics.diskstats`    | `diskstats`     | yes                | `/proc/diskstats`                                |
| `nodemetrics.drbd`         | `drbd`          | no                 | `/proc/drbd`                                     |
| `nodemetrics.cpu`          | `cpu`           | yes                | `/proc/stat`, `/proc/cpuinfo`, `/sys/devices/system/cpu` |
| `nodemetrics.cpufreq`      | `cpufreq`       | yes                | `/sys/devices/system/cpu/cpu*/cpufreq`           |
| `nodemetrics.btrfs`        | `btrfs`         | yes                | `/sys/fs/btrfs`                                  |
| `nodemetrics.fibrechannel` | `fibrechannel`  | yes                | `/sys/class/fc_host`                             |

Every metric name starts with `node_`, for example `node_arp_entries` or
`node_disk_read_bytes_total`.

## Parsing kernel files directly

The parsers can be used on their own, for example on captured files or test
fixtures:

```python
from nodemetrics.arp import parse_arp_entries
from nodemetrics.filefd import parse_file_fd_stats
from nodemetrics.bonding import read_bonding_stats
from nodemetrics.diskstats import parse_disk_stats
from nodemetrics.buddyinfo import parse_buddyinfo
from nodemetrics.cpu import parse_proc_stat_cpus, parse_cpuinfo

with open("/proc/net/arp") as arp:
    print(parse_arp_entries(arp))          # {"eth0": 3, ...}

print(parse_file_fd_stats("/proc/sys/fs/file-nr"))
# {"allocated": "...", "maximum": "..."}

print(read_bonding_stats("/sys/class/net"))
# {"bond0": (2, 1), ...}  -> (configured slaves, active slaves)

with open("/proc/diskstats") as diskstats:
    stats = parse_disk_stats(diskstats)    # device -> raw fields as strings
```

Other readers take the sysfs root: `nodemetrics.cpufreq.read_system_cpufreq`,
`nodemetrics.btrfs.read_btrfs_stats` and
`nodemetrics.fibrechannel.read_fibre_channel_class`.
`nodemetrics.drbd.DRBDCollector.parse` turns the text of `/proc/drbd` into
metrics. Malformed input raises `ValueError`.

## Running collectors

```python
from nodemetrics import arp, cpu, diskstats, filefd  # importing registers them
from nodemetrics.collector import Config, NodeCollector, format_metrics

config = Config(proc_path="/proc", sys_path="/sys")
node = NodeCollector(config=config)
print(format_metrics(node.collect()))
```

- `Config` holds the proc and sys roots, the CPU info options (`cpu_info`,
  `cpu_flags_include`, `cpu_bugs_include`) and `diskstats_ignored_devices`,
  which is a regular expression. `proc_file()` and `sys_file()` join paths
  under the roots. Point the roots at a fixture tree to run the collectors away
  from a live system.
- A collector's `update()` yields `Metric` objects. It raises `NoDataError`
  when there is nothing to report, for example when a kernel module is not
  loaded.
- `Registry` (the default one is `DEFAULT_REGISTRY`) records each collector
  with its default state. Change that state with `set_enabled(name, enabled)`
  or `disable_defaults()`, and query it with `is_enabled(name)`. The
  `register_collector(name, default_enabled)` decorator adds a class to the
  default registry.
- `NodeCollector(registry=None, config=None, filters=(), logger=None)` builds
  every enabled collector. A name in `filters` that is unknown or disabled
  raises `ValueError`. `collect()` runs the collectors in threads. For each
  collector it adds `node_scrape_collector_duration_seconds` and
  `node_scrape_collector_success`; a collector that raises gets a success value
  of 0 and does not stop the scrape.
- `format_metrics()` renders metrics in the Prometheus text format, sorted by
  name.

## What it does not do

The package is a library only. It has no command-line program and no HTTP
server that exposes a `/metrics` endpoint. To serve the text returned by
`format_metrics()`, wire it into your own application.

## Requirements

Python 3.10 or newer on Linux. The test dependencies are in the `test` extra.