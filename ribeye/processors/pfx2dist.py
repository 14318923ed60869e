"""
`pfx2dist` computes the distance of each prefix to the route collector.

Every AS path seen in a dump contributes its links to an undirected AS graph
of that collector. The collector itself is the vantage node, adjacent to each
of its peer ASes, so a prefix originated by a peer AS is 1 hop away. At the end
of the file a breadth-first search from the vantage gives the minimum hop
count to every reachable AS, and each prefix takes the smallest distance over
its origin ASes.
"""
from __future__ import annotations

from collections import deque
from typing import Hashable, Iterable

from ribeye.models import RouteRecord
from ribeye.processors.base import Processor

NAME = "pfx2dist"

VANTAGE = "vantage"


def shortest_hops(adjacency: dict[Hashable, set[Hashable]], start: Hashable) -> dict[Hashable, int]:
    """Breadth-first hop counts from `start`; unreachable nodes are absent."""
    distances = {start: 0}
    pending = deque([start])
    while pending:
        node = pending.popleft()
        for neighbor in adjacency.get(node, ()):
            if neighbor not in distances:
                distances[neighbor] = distances[node] + 1
                pending.append(neighbor)
    return distances


class Prefix2DistProcessor(Processor):
    name = NAME

    def __init__(self, source) -> None:
        super().__init__(source)
        self._adjacency: dict[Hashable, set[Hashable]] = {}
        self._origins: dict[str, set[int]] = {}

    def consume(self, record: RouteRecord) -> None:
        if record.kind != "announcement":
            return
        # skip default route
        if record.prefix.prefixlen == 0:
            return

        seq = record.sequence()
        if not seq:
            self.skip()
            return

        self._link(VANTAGE, seq[0])
        for asn1, asn2 in zip(seq, seq[1:]):
            self._link(asn1, asn2)
        # members of a trailing AS-set hang off the last sequence hop
        origins = record.origins()
        for origin in origins:
            if origin != seq[-1]:
                self._link(seq[-1], origin)
        self._origins.setdefault(str(record.prefix), set()).update(origins)

    def finalize(self) -> dict[str, dict[str, int]]:
        distances = shortest_hops(self._adjacency, VANTAGE)
        collector = self.source.collector
        payload: dict[str, dict[str, int]] = {}
        for prefix, origins in self._origins.items():
            hops = _closest(distances, origins)
            if hops is not None:
                payload[prefix] = {collector: hops}
        return payload

    def _link(self, a: Hashable, b: Hashable) -> None:
        self._adjacency.setdefault(a, set()).add(b)
        self._adjacency.setdefault(b, set()).add(a)


def _closest(distances: dict[Hashable, int], origins: Iterable[int]):
    reachable = [distances[origin] for origin in origins if origin in distances]
    return min(reachable) if reachable else None


def empty() -> dict[str, dict[str, int]]:
    return {}


def merge(left: dict[str, dict[str, int]], right: dict[str, dict[str, int]]) -> dict[str, dict[str, int]]:
    """Per prefix and collector keep the shortest distance seen in any file."""
    merged: dict[str, dict[str, int]] = {}
    for payload in (left, right):
        for prefix, by_collector in payload.items():
            target = merged.setdefault(str(prefix), {})
            for collector, hops in by_collector.items():
                hops = int(hops)
                if hops < 0:
                    raise ValueError(f"negative distance for {prefix} at {collector}")
                current = target.get(collector)
                if current is None or hops < current:
                    target[collector] = hops
    return {prefix: dict(sorted(merged[prefix].items())) for prefix in sorted(merged)}


def summarize(payload: dict[str, dict[str, int]]) -> dict[str, dict[str, int]]:
    return {prefix: dict(sorted(payload[prefix].items())) for prefix in sorted(payload)}
