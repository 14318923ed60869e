"""Builders for dump references, route records and fake decoders."""
from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from typing import Iterator, Sequence

from ribeye.errors import DecodeError
from ribeye.models import DumpFileRef, RouteRecord

DAY = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_ref(collector: str = "rrc00", ts: datetime = DAY, size: int = 100, location: str | None = None) -> DumpFileRef:
    location = location or f"https://data.example.net/{collector}/bview.{ts:%Y%m%d.%H%M}.gz"
    return DumpFileRef(collector=collector, timestamp=ts, location=location, size=size)


def _hops(path: Sequence[int | Sequence[int]]):
    return tuple(frozenset(hop) if isinstance(hop, (list, set, frozenset, tuple)) else hop for hop in path)


def announce(prefix: str, path, peer_asn: int = 65000, peer_ip: str = "192.0.2.1", collector: str = "rrc00") -> RouteRecord:
    return RouteRecord(
        prefix=ipaddress.ip_network(prefix),
        as_path=_hops(path),
        peer_asn=peer_asn,
        peer_ip=peer_ip,
        collector=collector,
        kind="announcement",
    )


def withdraw(prefix: str, peer_asn: int = 65000, peer_ip: str = "192.0.2.1", collector: str = "rrc00") -> RouteRecord:
    return RouteRecord(
        prefix=ipaddress.ip_network(prefix),
        as_path=(),
        peer_asn=peer_asn,
        peer_ip=peer_ip,
        collector=collector,
        kind="withdrawal",
    )


def peer_file_records(peer_asn: int = 65000, collector: str = "rrc00") -> list[RouteRecord]:
    """Ten announced prefixes and two withdrawals from one peer."""
    records = [announce(f"10.0.{i}.0/24", [peer_asn, 64500], peer_asn=peer_asn, collector=collector) for i in range(10)]
    records += [withdraw("10.1.0.0/24", peer_asn=peer_asn, collector=collector), withdraw("10.1.1.0/24", peer_asn=peer_asn, collector=collector)]
    return records


class FakeDecoder:
    """
    Serves canned records per dump location.

    `broken` maps a location to the record index after which a DecodeError
    is raised, emulating a truncated file.
    """

    def __init__(self, records: dict[str, list[RouteRecord]], broken: dict[str, int] | None = None) -> None:
        self.records = records
        self.broken = broken or {}
        self.opened: list[str] = []

    def __call__(self, ref: DumpFileRef) -> Iterator[RouteRecord]:
        self.opened.append(ref.location)
        return self._stream(ref)

    def _stream(self, ref: DumpFileRef) -> Iterator[RouteRecord]:
        cut = self.broken.get(ref.location)
        for index, record in enumerate(self.records.get(ref.location, [])):
            if cut is not None and index >= cut:
                raise DecodeError(f"truncated MRT record in {ref.location}")
            yield record
        if cut is not None:
            raise DecodeError(f"unexpected end of {ref.location}")
