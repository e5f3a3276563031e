"""Number of concurrent readers used while reading an OSM file."""

from __future__ import annotations

import math
import os
import re
from collections.abc import Iterator, Mapping
from dataclasses import astuple, dataclass

READ_PROCS_ENV = "IMPOSM_READ_PROCS"

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ReaderProcs:
    """How many workers parse blocks and process each element kind."""

    parser: int
    relations: int
    ways: int
    nodes: int
    coords: int

    def __iter__(self) -> Iterator[int]:
        return iter(astuple(self))


def readers_for_cpus(cpus: int) -> ReaderProcs:
    """Split the available CPUs between parsers and element workers."""
    quarter = math.ceil(cpus * 0.25)
    return ReaderProcs(
        parser=math.ceil(cpus * 0.75),
        relations=quarter,
        ways=quarter,
        nodes=quarter,
        coords=quarter,
    )


def _parse_count(text: str) -> int:
    """Parse a 32-bit count; 0 if it does not parse, clamped if out of range."""
    if not _INT_RE.fullmatch(text):
        return 0
    return max(_INT32_MIN, min(_INT32_MAX, int(text)))


def procs_from_env(environ: Mapping[str, str] | None = None) -> ReaderProcs:
    """Reader counts from IMPOSM_READ_PROCS (parser:relations:ways:nodes) or the CPU count.

    The coords worker count follows the nodes count.
    """
    if environ is None:
        environ = os.environ
    conf = environ.get(READ_PROCS_ENV, "")
    if not conf:
        return readers_for_cpus(os.cpu_count() or 1)
    parts = conf.split(":")
    if len(parts) < 4:
        raise ValueError(
            f"{READ_PROCS_ENV} needs four ':'-separated counts, got {conf!r}"
        )
    parser, relations, ways, nodes = (_parse_count(part) for part in parts[:4])
    return ReaderProcs(
        parser=parser,
        relations=relations,
        ways=ways,
        nodes=nodes,
        coords=nodes,
    )