"""Memory error counters from the EDAC subsystem."""

from __future__ import annotations

import glob
import os
import re
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

EDAC_SUBSYSTEM = "edac"

_MEM_CONTROLLER_RE = re.compile(r".*devices/system/edac/mc/mc([0-9]*)")
_MEM_CSROW_RE = re.compile(r".*devices/system/edac/mc/mc[0-9]*/csrow([0-9]*)")


def _read_count(path: str, what: str) -> int:
    try:
        return read_uint_from_file(path)
    except (OSError, ValueError) as err:
        raise RuntimeError(f"couldn't get {what}: {err}") from err


@register_collector("edac", True)
class EdacCollector(Collector):
    """Exposes correctable and uncorrectable memory error counts."""

    def __init__(self, config=None, logger=None) -> None:
        super().__init__(config, logger)
        self.ce_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "correctable_errors_total"),
            "Total correctable memory errors.",
            ("controller",),
        )
        self.ue_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "uncorrectable_errors_total"),
            "Total uncorrectable memory errors.",
            ("controller",),
        )
        self.csrow_ce_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_correctable_errors_total"),
            "Total correctable memory errors for this csrow.",
            ("controller", "csrow"),
        )
        self.csrow_ue_count = Desc(
            build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_uncorrectable_errors_total"),
            "Total uncorrectable memory errors for this csrow.",
            ("controller", "csrow"),
        )

    def update(self) -> Iterator[Metric]:
        pattern = self.config.sys_file("devices", "system", "edac", "mc", "mc[0-9]*")
        for controller in sorted(glob.glob(pattern)):
            match = _MEM_CONTROLLER_RE.search(controller)
            if match is None:
                raise RuntimeError(f"controller string didn't match regexp: {controller}")
            number = match.group(1)

            def count(name: str) -> int:
                return _read_count(
                    os.path.join(controller, name), f"{name} for controller {number}"
                )

            yield Metric(self.ce_count, ValueType.COUNTER, count("ce_count"), (number,))
            yield Metric(
                self.csrow_ce_count, ValueType.COUNTER,
                count("ce_noinfo_count"), (number, "unknown"),
            )
            yield Metric(self.ue_count, ValueType.COUNTER, count("ue_count"), (number,))
            yield Metric(
                self.csrow_ue_count, ValueType.COUNTER,
                count("ue_noinfo_count"), (number, "unknown"),
            )

            for csrow in sorted(glob.glob(controller + "/csrow[0-9]*")):
                csrow_match = _MEM_CSROW_RE.search(csrow)
                if csrow_match is None:
                    raise RuntimeError(f"csrow string didn't match regexp: {csrow}")
                row = csrow_match.group(1)
                ce = _read_count(
                    os.path.join(csrow, "ce_count"),
                    f"ce_count for controller/csrow {number}/{row}",
                )
                yield Metric(self.csrow_ce_count, ValueType.COUNTER, ce, (number, row))
                ue = _read_count(
                    os.path.join(csrow, "ue_count"),
                    f"ue_count for controller/csrow {number}/{row}",
                )
                yield Metric(self.csrow_ue_count, ValueType.COUNTER, ue, (number, row))