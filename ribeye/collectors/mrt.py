"""
Decoder adapter: turns an MRT dump location into RouteRecord objects.

MRT parsing itself is done by bgpkit's Python bindings. This module only
opens the stream and normalizes each element; it does not keep any state
between files.
"""
from __future__ import annotations

import ipaddress
import logging
import re
from pathlib import Path
from typing import Iterator

from pybgpkit_parser import Parser

from ribeye.errors import DecodeError, StorageError
from ribeye.models import DumpFileRef, Hop, RouteRecord

logger = logging.getLogger(__name__)

CONFED_SEGMENT = re.compile(r"\([^)]*\)")  # confederation segments are not part of the inter-AS path


def parse_as_path(as_path: str | None) -> tuple[Hop, ...]:
    """
    Parse a textual AS path such as ``"65001 65002 {65003,65004}"``.

    AS-sets become frozensets. An unparsable path yields an empty tuple, which
    processors treat as a malformed record.
    """
    if not as_path:
        return ()
    hops: list[Hop] = []
    try:
        for part in CONFED_SEGMENT.sub(" ", str(as_path)).split():
            if part.startswith("{") and part.endswith("}"):
                members = frozenset(int(asn) for asn in part[1:-1].split(",") if asn.strip())
                if members:
                    hops.append(members)
            else:
                hops.append(int(part))
    except ValueError:
        return ()
    return tuple(hops)


def to_record(elem, collector: str) -> RouteRecord | None:
    """Normalize one parser element; None when the prefix is unusable."""
    try:
        prefix = ipaddress.ip_network(str(elem.prefix), strict=False)
    except ValueError:
        return None
    kind = "withdrawal" if str(elem.elem_type).upper().startswith("W") else "announcement"
    return RouteRecord(
        prefix=prefix,
        as_path=parse_as_path(elem.as_path) if kind == "announcement" else (),
        peer_asn=int(elem.peer_asn),
        peer_ip=str(elem.peer_ip),
        collector=collector,
        kind=kind,
        timestamp=float(elem.timestamp or 0.0),
    )


class MrtDecoder:
    """
    Callable decoder: ``decoder(ref)`` opens the dump and returns an iterator.

    Opening failures raise StorageError so the caller may retry them; any
    failure while streaming raises DecodeError.
    """

    def __init__(self, cache_dir: Path | None = None) -> None:
        self.cache_dir = cache_dir

    def __call__(self, ref: DumpFileRef) -> Iterator[RouteRecord]:
        try:
            if self.cache_dir is not None:
                parser = Parser(url=ref.location, cache_dir=str(self.cache_dir))
            else:
                parser = Parser(url=ref.location)
        except Exception as exc:  # the bindings surface I/O problems as plain exceptions
            raise StorageError(f"cannot open {ref.location}: {exc}") from exc
        return self._records(parser, ref)

    @staticmethod
    def _records(parser, ref: DumpFileRef) -> Iterator[RouteRecord]:
        count = 0
        dropped = 0
        try:
            for elem in parser:
                record = to_record(elem, ref.collector)
                if record is None:
                    dropped += 1
                    continue
                count += 1
                yield record
        except Exception as exc:
            raise DecodeError(f"decoding {ref.location} failed after {count} records: {exc}") from exc
        if dropped:
            logger.warning("dropped %d elements with unusable prefixes from %s", dropped, ref.location)
        logger.debug("decoded %d records from %s", count, ref.location)
