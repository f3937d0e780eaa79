"""
Interval Mapping and Stage Table

A stage table holds the disjoint source intervals of one conversion stage,
sorted by start position. Lookups use binary search over the sorted
intervals; values that fall outside every interval pass through unchanged.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Hashable, Iterable, List, Optional, Tuple

import numpy as np

from almanac_remap.errors import ConstructionError

U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class IntervalMapping:
    """Maps the inclusive source interval [source_start, source_end] onto
    [destination_start, destination_start + (source_end - source_start)]."""

    source_start: int
    source_end: int
    destination_start: int
    from_stage: Hashable
    to_stage: Hashable

    @property
    def destination_end(self) -> int:
        return self.destination_start + (self.source_end - self.source_start)

    @property
    def length(self) -> int:
        return self.source_end - self.source_start + 1

    def contains(self, value: int) -> bool:
        return self.source_start <= value <= self.source_end

    def shift(self, value: int) -> int:
        """Apply the constant offset. Caller guarantees contains(value)."""
        return self.destination_start + (value - self.source_start)


@dataclass(frozen=True)
class StageTable:
    """
    All interval mappings of one stage plus the stage that follows it.

    Use StageTable.build() rather than the constructor: it sorts the
    mappings and rejects overlapping source intervals.
    """

    stage: Hashable
    successor: Hashable
    mappings: Tuple[IntervalMapping, ...] = ()
    name: Optional[str] = None

    @classmethod
    def build(cls, stage, successor, mappings: Iterable[IntervalMapping], name=None):
        """
        Sort mappings by source start and validate disjointness.

        Args:
            stage: Stage id this table converts from
            successor: Stage id this table converts to
            mappings: Interval mappings of the stage, in any order
            name: Optional label (e.g. "seed-to-soil")

        Returns:
            StageTable: Immutable table ready for lookups

        Raises:
            ConstructionError: If two source intervals share any value
        """
        ordered = sorted(mappings, key=lambda m: (m.source_start, m.source_end))

        # Sorted by start, so only neighbours can overlap
        for prev, curr in zip(ordered, ordered[1:]):
            if curr.source_start <= prev.source_end:
                raise ConstructionError(
                    f"Overlapping intervals in stage {name or stage!s}: "
                    f"[{prev.source_start}, {prev.source_end}] and "
                    f"[{curr.source_start}, {curr.source_end}]"
                )

        return cls(stage=stage, successor=successor, mappings=tuple(ordered), name=name)

    def __len__(self):
        return len(self.mappings)

    def find(self, value: int) -> Optional[IntervalMapping]:
        """
        Find the mapping whose source interval contains value.

        Binary search on the sorted, non-overlapping source intervals.

        Returns:
            IntervalMapping or None if the value is unmapped
        """
        left, right = 0, len(self.mappings) - 1

        while left <= right:
            mid = (left + right) // 2
            mapping = self.mappings[mid]

            if value < mapping.source_start:
                right = mid - 1
            elif value > mapping.source_end:
                left = mid + 1
            else:
                return mapping

        return None

    def resolve(self, value: int) -> int:
        """Map value through this stage; unmapped values pass through."""
        mapping = self.find(value)
        if mapping is None:
            return value
        return mapping.shift(value)

    def _first_ending_at_or_after(self, value: int) -> int:
        # Ends are sorted too because intervals are disjoint
        left, right = 0, len(self.mappings)
        while left < right:
            mid = (left + right) // 2
            if self.mappings[mid].source_end < value:
                left = mid + 1
            else:
                right = mid
        return left

    def split(self, start: int, end: int) -> List[Tuple[int, int]]:
        """
        Map the inclusive interval [start, end] through this stage.

        The interval is cut at every mapping boundary it crosses. Pieces
        covered by a mapping are shifted by that mapping's offset; pieces in
        the gaps between mappings pass through unchanged.

        Args:
            start: First value of the interval
            end: Last value of the interval (inclusive)

        Returns:
            list: Output (start, end) intervals, in input order (not sorted)
        """
        pieces = []
        cursor = start
        idx = self._first_ending_at_or_after(start)

        while cursor <= end and idx < len(self.mappings):
            mapping = self.mappings[idx]
            if mapping.source_start > end:
                break

            # Gap before this mapping is an identity piece
            if cursor < mapping.source_start:
                pieces.append((cursor, mapping.source_start - 1))
                cursor = mapping.source_start

            hi = min(end, mapping.source_end)
            pieces.append((mapping.shift(cursor), mapping.shift(hi)))
            cursor = hi + 1
            idx += 1

        if cursor <= end:
            pieces.append((cursor, end))

        return pieces

    @cached_property
    def columns(self) -> Tuple[Any, Any, Any]:
        """Source starts, source ends and destination starts as uint64 arrays."""
        starts = np.array([m.source_start for m in self.mappings], dtype=np.uint64)
        ends = np.array([m.source_end for m in self.mappings], dtype=np.uint64)
        dests = np.array([m.destination_start for m in self.mappings], dtype=np.uint64)
        return starts, ends, dests

    def resolve_array(self, values):
        """
        Vectorised resolve() over a uint64 array.

        Args:
            values: numpy uint64 array

        Returns:
            numpy uint64 array of mapped values, same shape
        """
        if not self.mappings:
            return values

        starts, ends, dests = self.columns
        idx = np.searchsorted(starts, values, side="right").astype(np.int64) - 1
        safe = np.clip(idx, 0, None)
        hit = (idx >= 0) & (values <= ends[safe])

        # Misses may wrap around in the subtraction; np.where discards them
        with np.errstate(over="ignore"):
            shifted = dests[safe] + (values - starts[safe])
        return np.where(hit, shifted, values)
