"""Kernel entropy pool statistics."""

from __future__ import annotations

from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    read_uint_from_file,
    register_collector,
)


@register_collector("entropy", True)
class EntropyCollector(Collector):
    """Exposes available entropy and the entropy pool size."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.entropy_avail = Desc(
            build_fq_name(NAMESPACE, "", "entropy_available_bits"),
            "Bits of available entropy.",
        )
        self.entropy_pool_size = Desc(
            build_fq_name(NAMESPACE, "", "entropy_pool_size_bits"),
            "Bits of entropy pool.",
        )

    def _read_random(self, name: str) -> int | None:
        try:
            return read_uint_from_file(
                self.config.proc_file("sys", "kernel", "random", name)
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as err:
            raise RuntimeError(f"failed to get kernel random stats: {err}") from err

    def update(self) -> Iterator[Metric]:
        available = self._read_random("entropy_avail")
        pool_size = self._read_random("poolsize")
        if available is None:
            raise RuntimeError("couldn't get entropy_avail")
        yield Metric(self.entropy_avail, ValueType.GAUGE, available)
        if pool_size is None:
            raise RuntimeError("couldn't get entropy poolsize")
        yield Metric(self.entropy_pool_size, ValueType.GAUGE, pool_size)