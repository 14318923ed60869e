"""
RIB data processors.

The set of processors is closed: `ProcessorKind` enumerates every variant and
binds it to its accumulator class and to the merge rules used at aggregation
time.
"""
from __future__ import annotations

from enum import Enum
from types import ModuleType
from typing import Any, Iterable

from ribeye.errors import UnknownProcessorError
from ribeye.models import DumpFileRef
from ribeye.processors import as2rel, peer_stats, pfx2as, pfx2dist
from ribeye.processors.as2rel import As2relProcessor
from ribeye.processors.base import Processor
from ribeye.processors.peer_stats import PeerStatsProcessor
from ribeye.processors.pfx2as import Prefix2AsProcessor
from ribeye.processors.pfx2dist import Prefix2DistProcessor


class ProcessorKind(Enum):
    PEER_STATS = peer_stats.NAME
    PFX2AS = pfx2as.NAME
    AS2REL = as2rel.NAME
    PFX2DIST = pfx2dist.NAME

    @property
    def module(self) -> ModuleType:
        return _MODULES[self]

    def create(self, source: DumpFileRef) -> Processor:
        """Fresh accumulator for one dump file."""
        return _CLASSES[self](source)

    def empty(self) -> Any:
        return self.module.empty()

    def merge(self, left: Any, right: Any) -> Any:
        return self.module.merge(left, right)

    def summarize(self, payload: Any) -> Any:
        return self.module.summarize(payload)


_MODULES = {
    ProcessorKind.PEER_STATS: peer_stats,
    ProcessorKind.PFX2AS: pfx2as,
    ProcessorKind.AS2REL: as2rel,
    ProcessorKind.PFX2DIST: pfx2dist,
}

_CLASSES = {
    ProcessorKind.PEER_STATS: PeerStatsProcessor,
    ProcessorKind.PFX2AS: Prefix2AsProcessor,
    ProcessorKind.AS2REL: As2relProcessor,
    ProcessorKind.PFX2DIST: Prefix2DistProcessor,
}


def get_processor_kinds(names: Iterable[str] | None = None) -> list[ProcessorKind]:
    """Resolve processor names; no names means every processor."""
    names = [name.strip() for name in (names or []) if name.strip()]
    if not names:
        return list(ProcessorKind)

    kinds: list[ProcessorKind] = []
    for name in names:
        try:
            kind = ProcessorKind(name.replace("_", "-"))
        except ValueError:
            available = ", ".join(kind.value for kind in ProcessorKind)
            raise UnknownProcessorError(f"unknown processor {name!r} (available: {available})") from None
        if kind not in kinds:
            kinds.append(kind)
    return kinds


__all__ = [
    "As2relProcessor",
    "PeerStatsProcessor",
    "Prefix2AsProcessor",
    "Prefix2DistProcessor",
    "Processor",
    "ProcessorKind",
    "get_processor_kinds",
]
