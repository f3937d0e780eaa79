"""
Value Traversal

Resolves values through a pipeline, one stage table at a time, from an
entry stage to a terminal stage. Three flavours share the same walk:

- traverse():          one scalar value
- traverse_interval(): a whole inclusive interval, split at mapping boundaries
- traverse_array():    a numpy uint64 array, element-wise (brute-force workers)

Each returns None when the walk reaches a stage with no table before
arriving at the terminal stage.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from almanac_remap.interval_map import U64_MAX
from almanac_remap.pipeline import Pipeline

logger = logging.getLogger(__name__)


def _check_value(value):
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"Expected an unsigned 64-bit integer, got {value!r}")
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"Value {value} outside unsigned 64-bit range")


def _as_u64_array(values):
    array = np.asarray(values)
    if array.size == 0:
        return array.astype(np.uint64)

    # Python ints beyond int64/uint64 arrive as an object array
    if array.dtype == object:
        for value in array.flat:
            _check_value(value)
        return array.astype(np.uint64)

    if array.dtype.kind not in "iu":
        raise ValueError(f"Expected unsigned 64-bit integers, got {array.dtype} array")
    if array.dtype.kind == "i" and array.min() < 0:
        raise ValueError(f"Value {array.min()} outside unsigned 64-bit range")
    return array.astype(np.uint64, copy=False)


def traverse(pipeline: Pipeline, value: int, entry_stage=None, terminal_stage=None) -> Optional[int]:
    """
    Resolve one value from entry_stage to terminal_stage.

    Args:
        pipeline: Pipeline to walk
        value: Starting value
        entry_stage: Stage to start at (default: pipeline.entry)
        terminal_stage: Stage to stop at (default: pipeline.terminal)

    Returns:
        int: Value at the terminal stage, or None if no chain of stage
             tables reaches it
    """
    _check_value(value)
    current_stage = pipeline.entry if entry_stage is None else entry_stage
    terminal_stage = pipeline.terminal if terminal_stage is None else terminal_stage
    current_value = int(value)

    steps = 0
    while current_stage != terminal_stage:
        table = pipeline.table_for(current_stage)
        if table is None or steps >= len(pipeline):
            logger.debug("No stage table for %s, %d does not reach %s",
                         current_stage, value, terminal_stage)
            return None

        resolved = table.resolve(current_value)
        logger.debug("%s %d -> %s %d", current_stage, current_value, table.successor, resolved)

        current_value = resolved
        current_stage = table.successor
        steps += 1

    return current_value


def merge_intervals(intervals):
    """
    Merge overlapping or adjacent inclusive intervals.

    Args:
        intervals: List of (start, end) tuples

    Returns:
        list: Sorted, non-overlapping, non-adjacent intervals
    """
    if not intervals:
        return []

    sorted_intervals = sorted(intervals)
    merged = [sorted_intervals[0]]

    for current_start, current_end in sorted_intervals[1:]:
        last_start, last_end = merged[-1]

        # Integers: [a, b] and [b + 1, c] cover [a, c] with no hole
        if current_start <= last_end + 1:
            merged[-1] = (last_start, max(last_end, current_end))
        else:
            merged.append((current_start, current_end))

    return merged


def traverse_interval(
    pipeline: Pipeline, start: int, end: int, entry_stage=None, terminal_stage=None
) -> Optional[List[Tuple[int, int]]]:
    """
    Push the inclusive interval [start, end] through every stage.

    At each stage every interval is cut at the table's mapping boundaries
    and the pieces are merged again before moving on, so the working set
    stays bounded by the number of mapping boundaries seen so far.

    Args:
        pipeline: Pipeline to walk
        start: First value
        end: Last value (inclusive), start <= end
        entry_stage: Stage to start at (default: pipeline.entry)
        terminal_stage: Stage to stop at (default: pipeline.terminal)

    Returns:
        list: Sorted (start, end) intervals reached at the terminal stage,
              or None if the chain is broken
    """
    _check_value(start)
    _check_value(end)
    if start > end:
        raise ValueError(f"Interval start {start} is after end {end}")

    tables = pipeline.chain(entry_stage, terminal_stage)
    if tables is None:
        return None

    intervals = [(int(start), int(end))]
    for table in tables:
        pieces = []
        for lo, hi in intervals:
            pieces.extend(table.split(lo, hi))
        intervals = merge_intervals(pieces)

    return intervals


def traverse_array(pipeline: Pipeline, values, entry_stage=None, terminal_stage=None):
    """
    Element-wise traverse() over a numpy array.

    Args:
        values: Array-like of non-negative integers (converted to uint64)

    Raises:
        ValueError: Non-integer input or values outside the unsigned 64-bit
            range, as traverse() does

    Returns:
        numpy uint64 array of terminal values, or None if the chain is broken
    """
    tables = pipeline.chain(entry_stage, terminal_stage)
    if tables is None:
        return None

    current = _as_u64_array(values)
    for table in tables:
        current = table.resolve_array(current)
    return current
