"""
Property-based tests for the remapping engine using Hypothesis.

Stage tables are generated with disjoint source intervals over a small
value domain, so every property can be checked against exhaustive
per-value evaluation.
"""

import pytest
from hypothesis import given, strategies as st, settings, HealthCheck
from hypothesis.strategies import integers, lists, tuples

from almanac_remap.config import SearchConfig
from almanac_remap.pipeline import build_pipeline
from almanac_remap.range_search import Range, minimum_terminal_value, partition
from almanac_remap.traversal import merge_intervals, traverse, traverse_array, traverse_interval


# Strategy for one stage: disjoint (destination_start, source_start, length) triples
@st.composite
def stage_triples(draw, max_mappings=6):
    """Generate triples whose source intervals never overlap."""
    layout = draw(lists(
        tuples(
            integers(min_value=0, max_value=20),   # gap before the interval
            integers(min_value=1, max_value=30),   # length
            integers(min_value=0, max_value=400),  # destination start
        ),
        min_size=0, max_size=max_mappings,
    ))

    triples = []
    cursor = draw(integers(min_value=0, max_value=50))
    for gap, length, destination in layout:
        source = cursor + gap
        triples.append((destination, source, length))
        cursor = source + length
    return triples


@st.composite
def pipelines(draw, max_stages=4):
    """Generate a linear chain S0 -> S1 -> ... -> Sn."""
    n = draw(integers(min_value=1, max_value=max_stages))
    descriptors = [(f"s{i}-to-s{i + 1}", f"S{i}", f"S{i + 1}") for i in range(n)]
    triples = {name: draw(stage_triples()) for name, _, _ in descriptors}
    return build_pipeline(descriptors, triples)


small_ranges = lists(
    tuples(integers(min_value=0, max_value=300), integers(min_value=0, max_value=40)),
    min_size=0, max_size=4,
)


def brute_force_minimum(pipeline, ranges):
    """Reference: evaluate every value of every range with traverse()."""
    values = [v for start, length in ranges for v in range(start, start + length)]
    results = [traverse(pipeline, v) for v in values]
    return min(results) if results else None


def resolve_by_scan(triples, value):
    """Reference stage lookup: linear scan of the raw triples."""
    for destination, source, length in triples:
        if source <= value < source + length:
            return destination + (value - source)
    return value


# Property 1: Mapped values shift by the mapping offset, unmapped values pass through
@given(stage_triples(), integers(min_value=0, max_value=500))
def test_single_stage_matches_linear_scan(triples, value):
    """
    Property: a one-stage pipeline resolves every value exactly like a
    linear scan over the raw triples (offset inside, identity outside).
    """
    pipeline = build_pipeline([("a-to-b", "A", "B")], {"a-to-b": triples})
    assert traverse(pipeline, value) == resolve_by_scan(triples, value)


# Property 2: Every value inside a mapping lands at destination_start + offset
@given(stage_triples(max_mappings=4), st.data())
def test_in_interval_values_shift(triples, data):
    """
    Property: for v in [source_start, source_end],
    resolve(v) == destination_start + (v - source_start).
    """
    if not triples:
        return
    destination, source, length = data.draw(st.sampled_from(triples))
    value = data.draw(integers(min_value=source, max_value=source + length - 1))

    pipeline = build_pipeline([("a-to-b", "A", "B")], {"a-to-b": triples})
    assert traverse(pipeline, value) == destination + (value - source)


# Property 3: Traversal is deterministic
@given(pipelines(), integers(min_value=0, max_value=500))
def test_traverse_is_deterministic(pipeline, value):
    """
    Property: repeated traversals with identical arguments agree.
    """
    first = traverse(pipeline, value)
    assert all(traverse(pipeline, value) == first for _ in range(3))


# Property 4: Interval traversal covers exactly the per-value images
@given(pipelines(), integers(min_value=0, max_value=300), integers(min_value=1, max_value=60))
@settings(max_examples=300)
def test_interval_traversal_matches_values(pipeline, start, length):
    """
    Property: the set of integers covered by traverse_interval() equals
    {traverse(v) for v in [start, start + length)}.
    """
    end = start + length - 1
    intervals = traverse_interval(pipeline, start, end)

    covered = set()
    for lo, hi in intervals:
        covered.update(range(lo, hi + 1))

    expected = {traverse(pipeline, v) for v in range(start, end + 1)}
    assert covered == expected, \
        f"Interval image mismatch: intervals={intervals}"


# Property 5: Split strategy agrees with brute force
@given(pipelines(), small_ranges)
@settings(max_examples=300)
def test_split_minimum_matches_brute_force(pipeline, ranges):
    """
    Property: minimum_terminal_value(ranges) == min(traverse(v) for v in ranges).
    """
    expected = brute_force_minimum(pipeline, ranges)
    actual = minimum_terminal_value(pipeline, ranges)
    assert actual == expected, \
        f"split={actual}, brute={expected}, ranges={ranges}"


# Property 6: Vectorised traversal agrees with scalar traversal
@given(pipelines(), lists(integers(min_value=0, max_value=500), min_size=1, max_size=50))
def test_array_traversal_matches_scalar(pipeline, values):
    """
    Property: traverse_array() equals traverse() element-wise.
    """
    resolved = traverse_array(pipeline, values)
    assert [int(x) for x in resolved] == [traverse(pipeline, v) for v in values]


# Property 7: Parallel brute force is invariant to workers and chunk size
@given(
    pipelines(max_stages=3),
    small_ranges,
    integers(min_value=1, max_value=4),
    integers(min_value=1, max_value=25),
)
@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_brute_force_invariant_to_decomposition(pipeline, ranges, workers, chunk_size):
    """
    Property: the brute-force minimum does not depend on the number of
    workers or on where chunk boundaries fall.
    """
    config = SearchConfig(strategy="brute", executor="thread", workers=workers, chunk_size=chunk_size)
    assert minimum_terminal_value(pipeline, ranges, config=config) == brute_force_minimum(pipeline, ranges)


# Property 8: Partition covers every value exactly once
@given(small_ranges, integers(min_value=1, max_value=50))
def test_partition_covers_ranges(ranges, chunk_size):
    """
    Property: chunks are non-empty, at most chunk_size long, and together
    enumerate every value of every range in order.
    """
    chunks = list(partition([Range(s, l) for s, l in ranges], chunk_size))

    assert all(0 < stop - start <= chunk_size for start, stop in chunks)

    from_chunks = [v for start, stop in chunks for v in range(start, stop)]
    from_ranges = [v for start, length in ranges for v in range(start, start + length)]
    assert from_chunks == from_ranges


# Property 9: Merged intervals are sorted, separated and cover the same integers
@given(lists(tuples(integers(min_value=0, max_value=200), integers(min_value=0, max_value=30)), max_size=20))
def test_merge_intervals_properties(spans):
    """
    Property: merge_intervals() output is sorted, has a hole between any two
    neighbours, and covers exactly the input integers.
    """
    intervals = [(start, start + width) for start, width in spans]
    merged = merge_intervals(intervals)

    for (_, prev_end), (next_start, _) in zip(merged, merged[1:]):
        assert next_start > prev_end + 1, f"Not separated: {merged}"

    covered = set()
    for lo, hi in intervals:
        covered.update(range(lo, hi + 1))
    merged_covered = set()
    for lo, hi in merged:
        merged_covered.update(range(lo, hi + 1))
    assert covered == merged_covered


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
