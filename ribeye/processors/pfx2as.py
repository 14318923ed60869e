"""`pfx2as` maps every announced prefix to the set of origin ASes observed."""
from __future__ import annotations

from ribeye.models import RouteRecord
from ribeye.processors.base import Processor

NAME = "pfx2as"


class Prefix2AsProcessor(Processor):
    name = NAME

    def __init__(self, source) -> None:
        super().__init__(source)
        self._origins: dict[str, set[int]] = {}

    def consume(self, record: RouteRecord) -> None:
        if record.kind != "announcement":
            return
        # skip default route
        if record.prefix.prefixlen == 0:
            return

        origins = record.origins()
        if not origins:
            self.skip()
            return
        self._origins.setdefault(str(record.prefix), set()).update(origins)

    def finalize(self) -> dict[str, list[int]]:
        return {prefix: sorted(asns) for prefix, asns in self._origins.items()}


def empty() -> dict[str, list[int]]:
    return {}


def merge(left: dict[str, list[int]], right: dict[str, list[int]]) -> dict[str, list[int]]:
    merged: dict[str, set[int]] = {}
    for payload in (left, right):
        for prefix, asns in payload.items():
            merged.setdefault(str(prefix), set()).update(int(asn) for asn in asns)
    return {prefix: sorted(merged[prefix]) for prefix in sorted(merged)}


def summarize(payload: dict[str, list[int]]) -> dict[str, list[int]]:
    return {prefix: sorted(payload[prefix]) for prefix in sorted(payload)}
