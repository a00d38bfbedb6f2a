"""Configured and active slaves of Linux bonding interfaces."""

from __future__ import annotations

import os
from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    NoDataError,
    TypedDesc,
    ValueType,
    build_fq_name,
    register_collector,
)


def _read_text(*parts: str) -> str:
    with open(os.path.join(*parts), encoding="utf-8") as handle:
        return handle.read()


def _read_slave_state(root: str, master: str, slave: str) -> str:
    try:
        return _read_text(root, master, f"lower_{slave}", "bonding_slave", "mii_status")
    except FileNotFoundError:
        # Some older kernels use the slave_ prefix.
        return _read_text(root, master, f"slave_{slave}", "bonding_slave", "mii_status")


def read_bonding_stats(root: str) -> dict[str, tuple[int, int]]:
    """Map each bonding master under ``root`` to (configured slaves, active slaves)."""
    status: dict[str, tuple[int, int]] = {}
    for master in _read_text(root, "bonding_masters").split():
        configured = active = 0
        for slave in _read_text(root, master, "bonding", "slaves").split():
            state = _read_slave_state(root, master, slave)
            configured += 1
            if state.strip() == "up":
                active += 1
        status[master] = (configured, active)
    return status


@register_collector("bonding", True)
class BondingCollector(Collector):
    """Exposes the number of configured and active slaves per bonding interface."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.slaves = TypedDesc(
            Desc(
                build_fq_name(NAMESPACE, "bonding", "slaves"),
                "Number of configured slaves per bonding interface.",
                ("master",),
            ),
            ValueType.GAUGE,
        )
        self.active = TypedDesc(
            Desc(
                build_fq_name(NAMESPACE, "bonding", "active"),
                "Number of active slaves per bonding interface.",
                ("master",),
            ),
            ValueType.GAUGE,
        )

    def update(self) -> Iterator[Metric]:
        status_file = self.config.sys_file("class", "net")
        try:
            stats = read_bonding_stats(status_file)
        except FileNotFoundError as err:
            self.logger.debug(
                "Not collecting bonding, file does not exist file=%s", status_file
            )
            raise NoDataError() from err
        for master, (configured, active) in stats.items():
            yield self.slaves.metric(configured, master)
            yield self.active.metric(active, master)