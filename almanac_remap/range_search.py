"""
Range Search Coordinator

Finds the minimum terminal value over every value of a collection of
(start, length) ranges.

Two strategies:
- split: push each range through the pipeline as intervals, cutting at
  mapping boundaries; the answer is the smallest terminal interval start.
- brute: cut the ranges into chunks, evaluate every value of every chunk on
  a worker pool, and fold the per-chunk minima with min().

The brute-force scan is O(total range length) and is kept as the
correctness oracle for the split strategy ("verify" runs both).
"""

import time
import logging
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from almanac_remap.config import SearchConfig
from almanac_remap.errors import SearchTimeout, StrategyMismatchError
from almanac_remap.interval_map import U64_MAX
from almanac_remap.pipeline import Pipeline
from almanac_remap.traversal import traverse, traverse_array, traverse_interval

logger = logging.getLogger(__name__)

# Pending futures per worker; bounds memory for huge ranges
_IN_FLIGHT_PER_WORKER = 4


@dataclass(frozen=True)
class Range:
    """The half-open set of values [start, start + length)."""

    start: int
    length: int

    def __post_init__(self):
        for label, value in (("start", self.start), ("length", self.length)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Range {label} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"Range {label} must be non-negative, got {value}")
        if self.length and self.start + self.length - 1 > U64_MAX:
            raise ValueError(f"Range ({self.start}, {self.length}) exceeds 64-bit range")

    @classmethod
    def coerce(cls, value) -> "Range":
        if isinstance(value, cls):
            return value
        start, length = value
        return cls(start, length)

    @property
    def stop(self) -> int:
        return self.start + self.length

    @property
    def last(self) -> int:
        return self.stop - 1

    @property
    def is_empty(self) -> bool:
        return self.length == 0


def partition(ranges: Iterable[Range], chunk_size: int) -> Iterator[Tuple[int, int]]:
    """
    Cut ranges into half-open (start, stop) chunks of at most chunk_size.

    Empty ranges produce no chunks. The decomposition depends only on the
    inputs, never on scheduling.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")

    for r in ranges:
        for chunk_start in range(r.start, r.stop, chunk_size):
            yield chunk_start, min(chunk_start + chunk_size, r.stop)


# Set once per worker process by _init_worker
_WORKER_PIPELINE = None


def _init_worker(pipeline):
    global _WORKER_PIPELINE
    _WORKER_PIPELINE = pipeline


def _chunk_minimum(start, stop, entry_stage, terminal_stage, pipeline=None) -> int:
    # Worker entry point; must stay importable at module level for pickling
    if pipeline is None:
        pipeline = _WORKER_PIPELINE
    values = np.arange(stop - start, dtype=np.uint64) + np.uint64(start)
    resolved = traverse_array(pipeline, values, entry_stage, terminal_stage)
    return int(resolved.min())


def minimum_of_values(pipeline: Pipeline, values: Iterable[int], entry_stage=None, terminal_stage=None) -> Optional[int]:
    """
    Minimum terminal value over discrete values.

    Values that do not reach the terminal stage are skipped.

    Returns:
        int or None if there are no values or none reaches the terminal stage
    """
    best = None
    for value in values:
        resolved = traverse(pipeline, value, entry_stage, terminal_stage)
        if resolved is None:
            logger.debug("Traversal failed for %d", value)
            continue
        if best is None or resolved < best:
            best = resolved
    return best


class RangeSearch:
    """Runs one strategy over a pipeline and keeps statistics of the last run."""

    def __init__(self, pipeline: Pipeline, config: Optional[SearchConfig] = None):
        self.pipeline = pipeline
        self.config = config or SearchConfig()
        self._reset()

    def _reset(self):
        self.values_total = 0
        self.values_processed = 0
        self.chunks_total = 0
        self.chunks_completed = 0
        self.intervals_out = 0
        self.elapsed = 0.0

    def minimum(self, ranges, entry_stage=None, terminal_stage=None) -> Optional[int]:
        """
        Minimum terminal value over all values of all ranges.

        Args:
            ranges: Iterable of Range or (start, length) pairs
            entry_stage: Stage to start at (default: pipeline.entry)
            terminal_stage: Stage to stop at (default: pipeline.terminal)

        Returns:
            int or None when there is nothing to search or the chain of
            stages never reaches terminal_stage

        Raises:
            SearchTimeout: brute-force scan exceeded config.deadline
            StrategyMismatchError: "verify" found the strategies disagree
        """
        self._reset()
        ranges = [r for r in (Range.coerce(r) for r in ranges) if not r.is_empty]
        self.values_total = sum(r.length for r in ranges)

        if not ranges:
            logger.info("No non-empty ranges to search")
            return None

        if self.pipeline.chain(entry_stage, terminal_stage) is None:
            logger.warning("No chain of stage tables reaches %s",
                           self.pipeline.terminal if terminal_stage is None else terminal_stage)
            return None

        start_time = time.monotonic()
        strategy = self.config.strategy
        logger.info("Searching %d ranges (%d values) with strategy %s",
                    len(ranges), self.values_total, strategy)

        if strategy == "split":
            result = self._split_minimum(ranges, entry_stage, terminal_stage)
        elif strategy == "brute":
            result = self._brute_minimum(ranges, entry_stage, terminal_stage)
        else:
            split_result = self._split_minimum(ranges, entry_stage, terminal_stage)
            brute_result = self._brute_minimum(ranges, entry_stage, terminal_stage)
            if split_result != brute_result:
                raise StrategyMismatchError(split_result, brute_result)
            result = split_result

        self.elapsed = time.monotonic() - start_time
        logger.info("Minimum terminal value %s found in %.3fs", result, self.elapsed)
        return result

    def _split_minimum(self, ranges: List[Range], entry_stage, terminal_stage) -> Optional[int]:
        best = None
        for r in ranges:
            intervals = traverse_interval(self.pipeline, r.start, r.last, entry_stage, terminal_stage)
            self.intervals_out += len(intervals)

            # Intervals come back sorted, the first start is the smallest value
            candidate = intervals[0][0]
            if best is None or candidate < best:
                best = candidate
        return best

    def _make_executor(self):
        if self.config.executor == "process":
            # Ship the pipeline once per worker instead of once per chunk
            executor = ProcessPoolExecutor(max_workers=self.config.pool_size,
                                           initializer=_init_worker, initargs=(self.pipeline,))
            return executor, None
        return ThreadPoolExecutor(max_workers=self.config.pool_size), self.pipeline

    def _brute_minimum(self, ranges: List[Range], entry_stage, terminal_stage) -> Optional[int]:
        config = self.config
        chunks = partition(ranges, config.chunk_size)
        self.chunks_total = sum(-(-r.length // config.chunk_size) for r in ranges)
        self.values_processed = 0
        self.chunks_completed = 0

        window = config.pool_size * _IN_FLIGHT_PER_WORKER
        expires = None if config.deadline is None else time.monotonic() + config.deadline

        best = None
        pending = {}
        timed_out = False
        executor, task_pipeline = self._make_executor()
        try:
            while True:
                for chunk in chunks:
                    future = executor.submit(_chunk_minimum, chunk[0], chunk[1],
                                             entry_stage, terminal_stage, task_pipeline)
                    pending[future] = chunk
                    if len(pending) >= window:
                        break

                if not pending:
                    break

                if expires is not None and time.monotonic() >= expires:
                    timed_out = True
                    raise SearchTimeout(config.deadline, self.values_processed, self.values_total)

                remaining = None if expires is None else max(0.0, expires - time.monotonic())
                done, _ = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                if not done:
                    timed_out = True
                    raise SearchTimeout(config.deadline, self.values_processed, self.values_total)

                for future in done:
                    start, stop = pending.pop(future)
                    chunk_min = future.result()
                    if best is None or chunk_min < best:
                        best = chunk_min
                    self._record_chunk(stop - start)
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=True)

        return best

    def _record_chunk(self, size):
        # Only the coordinating thread touches the counters
        self.values_processed += size
        self.chunks_completed += 1
        if self.chunks_completed % self.config.progress_every == 0 or self.chunks_completed == self.chunks_total:
            logger.info("Progress: %.2f%% (%d/%d values)",
                        100.0 * self.values_processed / self.values_total,
                        self.values_processed, self.values_total)

    def get_statistics(self) -> dict:
        """Return statistics of the last search."""
        return {
            'strategy': self.config.strategy,
            'values_total': self.values_total,
            'values_processed': self.values_processed,
            'chunks_total': self.chunks_total,
            'chunks_completed': self.chunks_completed,
            'intervals_out': self.intervals_out,
            'elapsed': self.elapsed,
        }


def minimum_terminal_value(
    pipeline: Pipeline,
    ranges,
    entry_stage=None,
    terminal_stage=None,
    config: Optional[SearchConfig] = None,
) -> Optional[int]:
    """Minimum terminal value over every value of every range.

    See RangeSearch.minimum().
    """
    return RangeSearch(pipeline, config).minimum(ranges, entry_stage, terminal_stage)
