"""
`as2rel` collects evidence about AS business relationships.

Every adjacent AS pair of a path is keyed by its canonical ordering
``(lo, hi)``. Votes are recorded relative to that ordering:

- ``provider``: ``lo`` provides transit to ``hi``
- ``customer``: ``lo`` buys transit from ``hi``
- ``peer``: settlement-free peering

Votes follow the valley-free model anchored at Tier-1 networks: from the
origin the path climbs through provider links up to the first Tier-1 AS,
optionally crosses one peer link between two Tier-1 ASes, then descends
through customer links towards the collector peer. Paths that never touch a
Tier-1 AS only contribute to the ``paths`` and ``peers`` counters.

``peers`` is the number of distinct collector peers that saw the link in one
dump; across dumps it is summed like the other counters.

The relationship itself is decided in `summarize`, once per day, so that per
file payloads stay plain counters that can be summed in any order.
"""
from __future__ import annotations

from typing import Any, Sequence

from ribeye.models import RouteRecord
from ribeye.processors.base import Processor

NAME = "as2rel"

TIER1 = frozenset(
    (6762, 12956, 2914, 3356, 6453, 1239, 701, 6461, 3257, 1299, 3491, 7018, 3320, 5511, 6830, 174, 6939)
)

# relationship codes, CAIDA serial-1 style: -1 means asn1 is the provider of asn2
REL_P2C = -1
REL_P2P = 0

_COUNTERS = ("paths", "peers", "provider", "customer", "peer")


def pair_key(asn1: int, asn2: int) -> str:
    lo, hi = sorted((asn1, asn2))
    return f"{lo}|{hi}"


def _split_key(key: str) -> tuple[int, int]:
    lo, hi = key.split("|")
    return int(lo), int(hi)


def _new_counters() -> dict[str, int]:
    return {name: 0 for name in _COUNTERS}


class As2relProcessor(Processor):
    name = NAME

    def __init__(self, source) -> None:
        super().__init__(source)
        self._links: dict[str, dict[str, int]] = {}
        self._seen_by: dict[str, set[str]] = {}

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

        for asn1, asn2 in zip(seq, seq[1:]):
            self._counters(asn1, asn2)["paths"] += 1
            self._seen_by.setdefault(pair_key(asn1, asn2), set()).add(record.peer_ip)

        for provider, customer, peer in valley_free_votes(seq):
            if peer:
                self._counters(provider, customer)["peer"] += 1
            else:
                self._vote_transit(provider, customer)

    def finalize(self) -> dict[str, dict[str, int]]:
        return {
            key: {**counters, "peers": len(self._seen_by.get(key, ()))}
            for key, counters in self._links.items()
        }

    def _counters(self, asn1: int, asn2: int) -> dict[str, int]:
        key = pair_key(asn1, asn2)
        counters = self._links.get(key)
        if counters is None:
            counters = _new_counters()
            self._links[key] = counters
        return counters

    def _vote_transit(self, provider: int, customer: int) -> None:
        counters = self._counters(provider, customer)
        if provider < customer:
            counters["provider"] += 1
        else:
            counters["customer"] += 1


def valley_free_votes(seq: Sequence[int]) -> list[tuple[int, int, bool]]:
    """
    Infer ``(provider, customer, is_peer)`` triples for a collector-first path.

    For peer links the first two fields are simply the two ends.
    """
    tier1_positions = [i for i, asn in enumerate(seq) if asn in TIER1]
    if not tier1_positions:
        return []

    votes: list[tuple[int, int, bool]] = []
    top = tier1_positions[-1]

    # uphill: origin side up to the top
    for i in range(top, len(seq) - 1):
        votes.append((seq[i], seq[i + 1], False))

    descent_start = top
    if top > 0 and seq[top - 1] in TIER1:
        votes.append((seq[top - 1], seq[top], True))
        descent_start = top - 1

    # downhill towards the collector peer, only when no other Tier-1 breaks it
    if not any(asn in TIER1 for asn in seq[:descent_start]):
        for i in range(descent_start):
            votes.append((seq[i + 1], seq[i], False))
    return votes


def decide(counters: dict[str, int]) -> tuple[int, bool]:
    """
    Return ``(rel, lo_is_provider)`` for one pair's summed counters.

    Majority vote. Ties prefer peer-peer: a peer count tying the maximum, or
    equal provider and customer votes, yield peer-peer with the lower ASN
    first.
    """
    provider, customer, peer = counters["provider"], counters["customer"], counters["peer"]
    if peer >= max(provider, customer) or provider == customer:
        return REL_P2P, True
    return REL_P2C, provider > customer


def empty() -> dict[str, dict[str, int]]:
    return {}


def merge(left: dict[str, dict[str, int]], right: dict[str, dict[str, int]]) -> dict[str, dict[str, int]]:
    merged: dict[str, dict[str, int]] = {}
    for payload in (left, right):
        for key, counters in payload.items():
            lo, hi = _split_key(key)
            target = merged.setdefault(f"{lo}|{hi}", _new_counters())
            for name in _COUNTERS:
                target[name] += int(counters[name])
    return {key: merged[key] for key in sorted(merged, key=_split_key)}


def summarize(payload: dict[str, dict[str, int]]) -> list[dict[str, Any]]:
    """Decide every pair's relationship; ``asn1`` is the provider for p2c links."""
    entries: list[dict[str, Any]] = []
    for key in sorted(payload, key=_split_key):
        counters = payload[key]
        lo, hi = _split_key(key)
        rel, lo_is_provider = decide(counters)
        if lo_is_provider:
            asn1, asn2 = lo, hi
            provider_votes, customer_votes = counters["provider"], counters["customer"]
        else:
            asn1, asn2 = hi, lo
            provider_votes, customer_votes = counters["customer"], counters["provider"]
        entries.append(
            {
                "asn1": asn1,
                "asn2": asn2,
                "rel": rel,
                "paths": counters["paths"],
                "peers": counters["peers"],
                "provider_votes": provider_votes,
                "customer_votes": customer_votes,
                "peer_votes": counters["peer"],
            }
        )
    return entries
