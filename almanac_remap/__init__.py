"""Staged interval-remapping engine for the seed almanac puzzle."""

from almanac_remap.errors import (
    AlmanacFormatError,
    ConstructionError,
    SearchTimeout,
    StrategyMismatchError,
)
from almanac_remap.interval_map import IntervalMapping, StageTable
from almanac_remap.pipeline import Pipeline, Stage, build_pipeline
from almanac_remap.traversal import traverse, traverse_array, traverse_interval
from almanac_remap.config import SearchConfig
from almanac_remap.range_search import Range, RangeSearch, minimum_of_values, minimum_terminal_value

__all__ = [
    "AlmanacFormatError",
    "ConstructionError",
    "IntervalMapping",
    "Pipeline",
    "Range",
    "RangeSearch",
    "SearchConfig",
    "SearchTimeout",
    "Stage",
    "StageTable",
    "StrategyMismatchError",
    "build_pipeline",
    "minimum_of_values",
    "minimum_terminal_value",
    "traverse",
    "traverse_array",
    "traverse_interval",
]
