"""Connection tracking table usage."""

from __future__ import annotations

from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    NoDataError,
    ValueType,
    build_fq_name,
    read_uint_from_file,
    register_collector,
)


@register_collector("conntrack", True)
class ConntrackCollector(Collector):
    """Exposes the number of conntrack entries and the table limit."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.current = Desc(
            build_fq_name(NAMESPACE, "", "nf_conntrack_entries"),
            "Number of currently allocated flow entries for connection tracking.",
        )
        self.limit = Desc(
            build_fq_name(NAMESPACE, "", "nf_conntrack_entries_limit"),
            "Maximum size of connection tracking table.",
        )

    def _read(self, name: str) -> int:
        try:
            return read_uint_from_file(
                self.config.proc_file("sys", "net", "netfilter", name)
            )
        except FileNotFoundError as err:
            self.logger.debug("conntrack probably not loaded")
            raise NoDataError() from err
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to retrieve conntrack stats: {err}") from err

    def update(self) -> Iterator[Metric]:
        yield Metric(self.current, ValueType.GAUGE, self._read("nf_conntrack_count"))
        yield Metric(self.limit, ValueType.GAUGE, self._read("nf_conntrack_max"))