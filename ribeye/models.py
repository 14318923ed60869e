"""Core data structures passed between pipeline stages."""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network
Hop = int | frozenset[int]
RecordKind = Literal["announcement", "withdrawal"]


@dataclass(frozen=True)
class DumpFileRef:
    """One published RIB dump file of a route collector."""

    collector: str
    timestamp: datetime
    location: str
    size: int = 0

    @property
    def key(self) -> tuple[str, datetime]:
        return self.collector, self.timestamp

    @property
    def date(self) -> date:
        return self.timestamp.astimezone(timezone.utc).date() if self.timestamp.tzinfo else self.timestamp.date()


@dataclass(frozen=True)
class RouteRecord:
    """Normalized view of one decoded RIB entry."""

    prefix: IPNetwork
    as_path: tuple[Hop, ...]
    peer_asn: int
    peer_ip: str
    collector: str
    kind: RecordKind = "announcement"
    timestamp: float = 0.0

    def origins(self) -> frozenset[int]:
        """Origin candidates: the last hop, or every member of a trailing AS-set."""
        if not self.as_path:
            return frozenset()
        last = self.as_path[-1]
        if isinstance(last, frozenset):
            return last
        return frozenset((last,))

    def sequence(self) -> tuple[int, ...] | None:
        """
        Plain AS sequence with prepending collapsed.

        A trailing AS-set is dropped. Returns None when an AS-set sits in the
        middle of the path or the path contains a loop.
        """
        hops = list(self.as_path)
        if hops and isinstance(hops[-1], frozenset):
            hops.pop()
        seq: list[int] = []
        for hop in hops:
            if isinstance(hop, frozenset):
                return None
            if seq and seq[-1] == hop:
                continue
            if hop in seq:
                return None
            seq.append(hop)
        return tuple(seq)


@dataclass(frozen=True)
class ProcessorResult:
    """Output of one processor over one dump file; the unit of recovery."""

    processor: str
    source: DumpFileRef
    payload: Any
    skipped: int = 0

    @property
    def date(self) -> date:
        return self.source.date


@dataclass(frozen=True)
class DailyAggregate:
    """Merged result of one processor for one calendar date."""

    processor: str
    date: date
    payload: Any
    sources: tuple[str, ...] = ()
    skipped: int = 0


@dataclass(frozen=True)
class FileFailure:
    """A file, or a single processor on a file, that produced no result."""

    source: DumpFileRef
    stage: Literal["decode", "processor", "timeout", "checkpoint"]
    error: str
    processor: str | None = None


@dataclass
class RunReport:
    """Summary of one cook run."""

    files_attempted: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    files_not_started: int = 0
    failures: list[FileFailure] = field(default_factory=list)
    published: dict[str, list[date]] = field(default_factory=dict)
    fatal: dict[str, list[date]] = field(default_factory=dict)

    @property
    def status(self) -> Literal["done", "fatal"]:
        return "fatal" if self.fatal else "done"
