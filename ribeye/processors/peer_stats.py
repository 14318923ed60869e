"""
`peer-stats` generates basic counting information for route collector peers.

Each peer, identified by its ASN and IP address, gets one entry with
announcement/withdrawal counters, prefix counts per address family, the
number of directly connected ASes and default route flags.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any

from ribeye.models import RouteRecord
from ribeye.processors.base import Processor

NAME = "peer-stats"

_COUNTERS = (
    "announcements",
    "withdrawals",
    "num_prefixes",
    "num_v4_pfxs",
    "num_v6_pfxs",
    "num_connected_asns",
)
_FLAGS = ("has_v4_default", "has_v6_default")


@dataclass
class _PeerInfo:
    asn: int
    ip: str
    announcements: int = 0
    withdrawals: int = 0
    v4_pfxs: set[ipaddress.IPv4Network] = field(default_factory=set)
    v6_pfxs: set[ipaddress.IPv6Network] = field(default_factory=set)
    connected_asns: set[int] = field(default_factory=set)
    v4_default: bool = False
    v6_default: bool = False

    def to_entry(self, collector: str) -> dict[str, Any]:
        return {
            "asn": self.asn,
            "ip": self.ip,
            "collectors": [collector],
            "announcements": self.announcements,
            "withdrawals": self.withdrawals,
            "num_prefixes": len(self.v4_pfxs) + len(self.v6_pfxs),
            "num_v4_pfxs": len(self.v4_pfxs),
            "num_v6_pfxs": len(self.v6_pfxs),
            "num_connected_asns": len(self.connected_asns),
            "has_v4_default": self.v4_default,
            "has_v6_default": self.v6_default,
        }


class PeerStatsProcessor(Processor):
    name = NAME

    def __init__(self, source) -> None:
        super().__init__(source)
        self._peers: dict[tuple[int, str], _PeerInfo] = {}

    def consume(self, record: RouteRecord) -> None:
        key = (record.peer_asn, record.peer_ip)
        peer = self._peers.get(key)
        if peer is None:
            peer = _PeerInfo(asn=record.peer_asn, ip=record.peer_ip)
            self._peers[key] = peer

        if record.kind == "withdrawal":
            peer.withdrawals += 1
            return

        if not record.as_path:
            self.skip()
            return

        peer.announcements += 1
        first_hop = record.as_path[0]
        if isinstance(first_hop, int):
            peer.connected_asns.add(first_hop)

        prefix = record.prefix
        if prefix.version == 4:
            peer.v4_pfxs.add(prefix)
            if prefix.prefixlen == 0:
                peer.v4_default = True
        else:
            peer.v6_pfxs.add(prefix)
            if prefix.prefixlen == 0:
                peer.v6_default = True

    def finalize(self) -> list[dict[str, Any]]:
        entries = [peer.to_entry(self.source.collector) for peer in self._peers.values()]
        return sorted(entries, key=_sort_key)


def empty() -> list[dict[str, Any]]:
    return []


def merge(left: list[dict[str, Any]], right: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sum counters per peer, OR the default flags, union the collectors."""
    merged: dict[tuple[int, str], dict[str, Any]] = {}
    for entry in list(left) + list(right):
        key = (int(entry["asn"]), str(entry["ip"]))
        current = merged.get(key)
        if current is None:
            merged[key] = {
                "asn": key[0],
                "ip": key[1],
                "collectors": sorted(set(entry["collectors"])),
                **{name: int(entry[name]) for name in _COUNTERS},
                **{name: bool(entry[name]) for name in _FLAGS},
            }
            continue
        current["collectors"] = sorted(set(current["collectors"]) | set(entry["collectors"]))
        for name in _COUNTERS:
            current[name] += int(entry[name])
        for name in _FLAGS:
            current[name] = current[name] or bool(entry[name])
    return sorted(merged.values(), key=_sort_key)


def summarize(payload: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(payload, key=_sort_key)


def _sort_key(entry: dict[str, Any]) -> tuple[int, str]:
    return int(entry["asn"]), str(entry["ip"])
