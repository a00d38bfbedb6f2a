"""File descriptor allocation statistics from file-nr."""

from __future__ import annotations

from typing import Iterator

from .collector import (
    NAMESPACE,
    Collector,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    register_collector,
)

FILE_FD_SUBSYSTEM = "filefd"


def parse_file_fd_stats(filename: str) -> dict[str, str]:
    """Read the allocated and maximum values from a file-nr file."""
    with open(filename, "rb") as handle:
        content = handle.read()
    parts = content.strip().split(b"\t")
    if len(parts) < 3:
        raise ValueError(f"unexpected number of file stats in {filename!r}")
    # The second value is always zero on modern kernels and is skipped.
    return {
        "allocated": parts[0].decode(),
        "maximum": parts[2].decode(),
    }


@register_collector(FILE_FD_SUBSYSTEM, True)
class FileFDStatCollector(Collector):
    """Exposes file-nr statistics."""

    def update(self) -> Iterator[Metric]:
        try:
            stats = parse_file_fd_stats(self.config.proc_file("sys", "fs", "file-nr"))
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get file-nr: {err}") from err
        for name, value in stats.items():
            try:
                number = float(value)
            except ValueError as err:
                raise ValueError(f"invalid value {value} in file-nr: {err}") from err
            desc = Desc(
                build_fq_name(NAMESPACE, FILE_FD_SUBSYSTEM, name),
                f"File descriptor statistics: {name}.",
            )
            yield Metric(desc, ValueType.GAUGE, number)