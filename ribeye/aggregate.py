"""
Daily aggregation of per-file processor results.

Every processor payload forms a commutative monoid under its merge rule, so
results can be folded in any order, or split into partitions reduced on
separate threads and combined afterwards, without changing the outcome.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from functools import reduce
from typing import Any, Sequence

from ribeye.errors import AggregationError
from ribeye.models import DailyAggregate, ProcessorResult
from ribeye.processors import ProcessorKind

logger = logging.getLogger(__name__)


def fold(kind: ProcessorKind, payloads: Sequence[Any]) -> Any:
    """Merge payloads left to right starting from the empty payload."""
    return reduce(kind.merge, payloads, kind.empty())


def partitioned_fold(kind: ProcessorKind, payloads: Sequence[Any], partitions: int) -> Any:
    """Reduce `partitions` slices in parallel, then merge the partial results."""
    partitions = max(1, min(partitions, len(payloads)))
    if partitions == 1:
        return fold(kind, payloads)
    slices = [payloads[i::partitions] for i in range(partitions)]
    with ThreadPoolExecutor(max_workers=partitions, thread_name_prefix="ribeye-reduce") as pool:
        partials = list(pool.map(lambda chunk: fold(kind, chunk), slices))
    return fold(kind, partials)


def aggregate(
    kind: ProcessorKind,
    day: date,
    results: Sequence[ProcessorResult],
    partitions: int = 1,
) -> DailyAggregate:
    """Build the daily aggregate of one processor from its per-file results."""
    foreign = [r for r in results if r.processor != kind.value or r.date != day]
    if foreign:
        raise AggregationError(f"{len(foreign)} results do not belong to {kind.value} on {day}")

    payloads: list[Any] = [result.payload for result in results]
    try:
        merged = partitioned_fold(kind, payloads, partitions)
        summary = kind.summarize(merged)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise AggregationError(f"cannot merge {kind.value} results for {day}: {exc!r}") from exc

    logger.info("aggregated %d %s results for %s", len(results), kind.value, day)
    return DailyAggregate(
        processor=kind.value,
        date=day,
        payload=summary,
        sources=tuple(sorted({result.source.location for result in results})),
        skipped=sum(result.skipped for result in results),
    )
