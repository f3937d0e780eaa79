"""
Range Search Coordinator tests.

The brute-force scan is exercised on both pool kinds; the split strategy is
checked against exhaustive evaluation of the example ranges.
"""

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from almanac_remap.almanac import read_input
from almanac_remap.config import SearchConfig
from almanac_remap.errors import SearchTimeout, StrategyMismatchError
from almanac_remap.pipeline import Stage, build_pipeline
from almanac_remap import range_search
from almanac_remap.range_search import (
    Range,
    RangeSearch,
    minimum_of_values,
    minimum_terminal_value,
    partition,
)
from almanac_remap.traversal import traverse

EXAMPLE_INPUT = Path(__file__).resolve().parent.parent / "testcases" / "example_input.txt"
EXAMPLE_RANGES = [(79, 14), (55, 13)]


@pytest.fixture(scope="module")
def almanac_pipeline():
    return read_input(EXAMPLE_INPUT).pipeline()


def test_example_ranges_match_exhaustive(almanac_pipeline):
    values = [v for start, length in EXAMPLE_RANGES for v in range(start, start + length)]
    assert len(values) == 27

    expected = min(traverse(almanac_pipeline, v) for v in values)
    assert expected == 46
    assert minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES) == expected


@pytest.mark.parametrize("executor", ["thread", "process"])
@pytest.mark.parametrize("workers,chunk_size", [(1, 1000), (2, 5), (4, 1), (3, 7)])
def test_brute_force_matches_split(almanac_pipeline, executor, workers, chunk_size):
    config = SearchConfig(strategy="brute", executor=executor, workers=workers, chunk_size=chunk_size)
    assert minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES, config=config) == 46


def test_verify_strategy(almanac_pipeline):
    config = SearchConfig(strategy="verify", executor="thread", workers=2, chunk_size=4)
    assert minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES, config=config) == 46


def test_verify_reports_mismatch(almanac_pipeline, monkeypatch):
    monkeypatch.setattr(RangeSearch, "_brute_minimum", lambda self, *args: -1)
    config = SearchConfig(strategy="verify")
    with pytest.raises(StrategyMismatchError) as excinfo:
        minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES, config=config)
    assert excinfo.value.split_result == 46


def test_range_objects_accepted(almanac_pipeline):
    ranges = [Range(79, 14), Range(55, 13)]
    assert minimum_terminal_value(almanac_pipeline, ranges) == 46


def test_empty_range_set_returns_none(almanac_pipeline):
    assert minimum_terminal_value(almanac_pipeline, []) is None
    assert minimum_terminal_value(almanac_pipeline, [(5, 0), (9, 0)]) is None
    brute = SearchConfig(strategy="brute", executor="thread")
    assert minimum_terminal_value(almanac_pipeline, [], config=brute) is None


def test_unreachable_terminal_returns_none():
    pipeline = build_pipeline([("a-to-b", "A", "B"), ("b-to-c", "B", "C")], {})
    assert minimum_terminal_value(pipeline, [(0, 10)], "A", "Z") is None
    brute = SearchConfig(strategy="brute", executor="thread")
    assert minimum_terminal_value(pipeline, [(0, 10)], "A", "Z", config=brute) is None


def test_custom_entry_and_terminal(almanac_pipeline):
    # Seeds 79..92 at the soil stage are 81..94
    assert minimum_terminal_value(almanac_pipeline, [(79, 14)], Stage.SEED, Stage.SOIL) == 81


def test_large_range_split_is_fast():
    # Ten billion values: only the split strategy is practical here
    pipeline = build_pipeline(
        [("a-to-b", "A", "B"), ("b-to-c", "B", "C")],
        {"a-to-b": [(5, 1_000_000_000, 10)], "b-to-c": [(0, 3, 1)]},
    )
    assert minimum_terminal_value(pipeline, [(10, 10_000_000_000)]) == 5


def test_deadline_raises_search_timeout():
    pipeline = build_pipeline([("a-to-b", "A", "B")], {"a-to-b": [(0, 10, 5)]})
    config = SearchConfig(strategy="brute", executor="thread", workers=1,
                          chunk_size=1_000_000, deadline=0.01)
    with pytest.raises(SearchTimeout) as excinfo:
        minimum_terminal_value(pipeline, [(0, 10**13)], config=config)
    assert isinstance(excinfo.value, TimeoutError)
    assert excinfo.value.total == 10**13


def test_deadline_checked_while_chunks_keep_finishing(monkeypatch):
    # Every chunk completes quickly, but the clock still runs out part way
    ticks = iter(range(1000))
    monkeypatch.setattr(range_search, "time", SimpleNamespace(monotonic=lambda: float(next(ticks))))

    pipeline = build_pipeline([("a-to-b", "A", "B")], {"a-to-b": [(0, 10, 5)]})
    config = SearchConfig(strategy="brute", executor="thread", workers=1, chunk_size=1, deadline=2.5)
    search = RangeSearch(pipeline, config)

    with pytest.raises(SearchTimeout):
        search.minimum([(0, 100)])
    assert search.values_processed < 100


def test_worker_initializer_installs_pipeline(almanac_pipeline, monkeypatch):
    monkeypatch.setattr(range_search, "_WORKER_PIPELINE", None)
    range_search._init_worker(almanac_pipeline)

    # Seed 82 reaches location 46
    assert range_search._chunk_minimum(79, 93, None, None) == 46
    assert range_search._chunk_minimum(79, 93, None, None, almanac_pipeline) == 46


def test_plain_string_stage_names(almanac_pipeline):
    assert minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES, "seed", "location") == 46
    brute = SearchConfig(strategy="brute", executor="thread", workers=2, chunk_size=5)
    assert minimum_terminal_value(almanac_pipeline, EXAMPLE_RANGES, "seed", "location", config=brute) == 46
    assert minimum_of_values(almanac_pipeline, [79, 14, 55, 13], "seed", "location") == 35


def test_statistics_and_progress_logging(almanac_pipeline, caplog):
    config = SearchConfig(strategy="brute", executor="thread", workers=2, chunk_size=5, progress_every=1)
    search = RangeSearch(almanac_pipeline, config)

    with caplog.at_level(logging.INFO, logger="almanac_remap"):
        assert search.minimum(EXAMPLE_RANGES) == 46

    stats = search.get_statistics()
    assert stats['values_total'] == 27
    assert stats['values_processed'] == 27
    # 14 values -> 3 chunks, 13 values -> 3 chunks
    assert stats['chunks_total'] == stats['chunks_completed'] == 6
    assert "Progress: 100.00%" in caplog.text


def test_minimum_of_values(almanac_pipeline):
    assert minimum_of_values(almanac_pipeline, [79, 14, 55, 13]) == 35
    assert minimum_of_values(almanac_pipeline, []) is None


def test_minimum_of_values_skips_failed_traversals():
    pipeline = build_pipeline([("a-to-b", "A", "B")], {})
    assert minimum_of_values(pipeline, [3, 1], "A", "B") == 1
    assert minimum_of_values(pipeline, [3, 1], "B", "A") is None


def test_partition():
    ranges = [Range(0, 5), Range(10, 0), Range(20, 3)]
    assert list(partition(ranges, 2)) == [(0, 2), (2, 4), (4, 5), (20, 22), (22, 23)]
    with pytest.raises(ValueError):
        list(partition(ranges, 0))


@pytest.mark.parametrize("args", [(-1, 5), (0, -5), (1.0, 5), (2**64 - 1, 2)])
def test_invalid_ranges_rejected(args):
    with pytest.raises(ValueError):
        Range(*args)


def test_range_properties():
    r = Range(79, 14)
    assert (r.stop, r.last, r.is_empty) == (93, 92, False)
    assert Range(2**64 - 1, 1).last == 2**64 - 1
    assert Range(7, 0).is_empty
