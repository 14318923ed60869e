from __future__ import annotations

import itertools
from datetime import date, datetime, timezone

import pytest

from ribeye.aggregate import aggregate, fold, partitioned_fold
from ribeye.errors import AggregationError
from ribeye.models import ProcessorResult
from ribeye.processors import ProcessorKind
from tests.factories import announce, make_ref

DAY = date(2024, 5, 1)


def _results(kind: ProcessorKind):
    paths = [
        [65000, 3356, 64500],
        [65001, 1299, 3356, 64501],
        [65002, 174, [64500, 64502]],
        [65003, 64510, 64500],
        [65004, 2914, 64511],
    ]
    results = []
    for i, path in enumerate(paths):
        ref = make_ref(f"rrc{i:02d}")
        processor = kind.create(ref)
        processor.consume(announce("192.0.2.0/24", path, peer_asn=path[0], collector=ref.collector))
        processor.consume(announce(f"198.51.{i}.0/24", path, peer_asn=path[0], collector=ref.collector))
        results.append(ProcessorResult(kind.value, ref, processor.finalize(), processor.skipped))
    return results


@pytest.mark.parametrize("kind", list(ProcessorKind))
def test_input_order_does_not_matter(kind):
    results = _results(kind)
    expected = aggregate(kind, DAY, results)
    for permutation in itertools.permutations(results):
        assert aggregate(kind, DAY, list(permutation)) == expected


@pytest.mark.parametrize("kind", list(ProcessorKind))
@pytest.mark.parametrize("partitions", [2, 3, 5, 16])
def test_partitioning_does_not_matter(kind, partitions):
    payloads = [result.payload for result in _results(kind)]
    assert partitioned_fold(kind, payloads, partitions) == fold(kind, payloads)


def test_aggregate_carries_sources_and_skip_counts():
    results = _results(ProcessorKind.PFX2AS)
    daily = aggregate(ProcessorKind.PFX2AS, DAY, results)
    assert daily.sources == tuple(sorted(r.source.location for r in results))
    assert daily.skipped == 0
    assert daily.payload["192.0.2.0/24"] == [64500, 64501, 64502, 64511]


def test_empty_input_gives_empty_payload():
    assert aggregate(ProcessorKind.AS2REL, DAY, []).payload == []
    assert partitioned_fold(ProcessorKind.PFX2AS, [], 4) == {}


def test_foreign_results_are_rejected():
    results = _results(ProcessorKind.PFX2AS)
    with pytest.raises(AggregationError):
        aggregate(ProcessorKind.PEER_STATS, DAY, results)

    other_day = make_ref(ts=datetime(2024, 5, 2, tzinfo=timezone.utc))
    with pytest.raises(AggregationError):
        aggregate(ProcessorKind.PFX2AS, DAY, results + [ProcessorResult("pfx2as", other_day, {})])


@pytest.mark.parametrize(
    "kind, payload",
    [
        (ProcessorKind.PFX2AS, ["not", "a", "mapping"]),
        (ProcessorKind.PEER_STATS, [{"asn": 1}]),
        (ProcessorKind.AS2REL, {"1|2": {"paths": "many"}}),
        (ProcessorKind.PFX2DIST, {"192.0.2.0/24": {"rrc00": -1}}),
    ],
)
def test_malformed_payload_is_an_aggregation_error(kind, payload):
    results = _results(kind) + [ProcessorResult(kind.value, make_ref("rrc99"), payload)]
    with pytest.raises(AggregationError):
        aggregate(kind, DAY, results)
