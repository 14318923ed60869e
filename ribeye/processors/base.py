"""Accumulator contract shared by the built-in processors."""
from __future__ import annotations

from typing import Any, ClassVar

from ribeye.models import DumpFileRef, RouteRecord


class Processor:
    """
    Per-file accumulator.

    A fresh instance is created for every dump file and only ever touched by
    the worker thread processing that file. `consume` is called once per
    decoded record, `finalize` once at end of stream.
    """

    name: ClassVar[str] = ""

    def __init__(self, source: DumpFileRef) -> None:
        self.source = source
        self.skipped = 0

    def consume(self, record: RouteRecord) -> None:
        raise NotImplementedError

    def finalize(self) -> Any:
        raise NotImplementedError

    def skip(self) -> None:
        """Count a record this processor cannot use."""
        self.skipped += 1
