"""
Pipeline Construction

Builds the chain of stage tables from stage descriptors and the raw
(destination_start, source_start, length) triples of each stage.

Stage tables live in a flat tuple; a dict maps each stage id to its
position, so moving to the next stage is a field lookup on the table.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from almanac_remap.errors import ConstructionError
from almanac_remap.interval_map import U64_MAX, IntervalMapping, StageTable

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Stages of the seed almanac, in conversion order.

    Members compare equal to their plain names, so "seed" and Stage.SEED
    address the same stage table.
    """

    SEED = "seed"
    SOIL = "soil"
    FERTILIZER = "fertilizer"
    WATER = "water"
    LIGHT = "light"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    LOCATION = "location"

    @classmethod
    def parse(cls, name: str) -> "Stage":
        return cls(name.strip().lower())

    def __str__(self):
        return self.value


StageDescriptor = Tuple[str, Hashable, Hashable]


@dataclass(frozen=True)
class Pipeline:
    """
    Immutable chain of stage tables.

    Attributes:
        tables: Stage tables in visiting order, entry first
        entry: Stage id traversal starts from by default
        terminal: Stage id traversal ends at by default
    """

    tables: Tuple[StageTable, ...]
    entry: Hashable
    terminal: Hashable
    index: Dict[Hashable, int] = field(default_factory=dict, compare=False, repr=False)

    def __len__(self):
        return len(self.tables)

    def __iter__(self) -> Iterator[StageTable]:
        return iter(self.tables)

    @property
    def stages(self) -> List[Hashable]:
        """Source stage of every table, in visiting order."""
        return [table.stage for table in self.tables]

    def table_for(self, stage) -> Optional[StageTable]:
        position = self.index.get(stage)
        if position is None:
            return None
        return self.tables[position]

    def chain(self, entry=None, terminal=None) -> Optional[List[StageTable]]:
        """
        Stage tables visited when walking from entry to terminal.

        Returns:
            list: Tables in visiting order (empty when entry == terminal),
                  or None if some stage on the way has no table
        """
        current = self.entry if entry is None else entry
        terminal = self.terminal if terminal is None else terminal

        visited = []
        while current != terminal:
            table = self.table_for(current)
            if table is None or len(visited) >= len(self.tables):
                return None
            visited.append(table)
            current = table.successor
        return visited


def _parse_field(value, label: str) -> int:
    if isinstance(value, bool):
        raise ConstructionError(f"{label}: expected a number, got {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdecimal():
        number = int(value.strip())
    else:
        raise ConstructionError(f"{label}: expected a number, got {value!r}")

    if number < 0:
        raise ConstructionError(f"{label}: negative value {number}")
    return number


def _mapping_from_triple(name, from_stage, to_stage, triple, position) -> IntervalMapping:
    label = f"stage {name!r}, triple #{position}"

    if isinstance(triple, (str, bytes)):
        raise ConstructionError(f"{label}: expected 3 fields, got string {triple!r}")
    try:
        fields = tuple(triple)
    except TypeError:
        raise ConstructionError(f"{label}: expected 3 fields, got {triple!r}") from None
    if len(fields) != 3:
        raise ConstructionError(f"{label}: expected 3 fields, got {len(fields)}")

    destination_start = _parse_field(fields[0], f"{label} destination_start")
    source_start = _parse_field(fields[1], f"{label} source_start")
    length = _parse_field(fields[2], f"{label} length")

    if length < 1:
        raise ConstructionError(f"{label}: length must be at least 1")

    source_end = source_start + length - 1
    if source_end > U64_MAX or destination_start + length - 1 > U64_MAX:
        raise ConstructionError(f"{label}: interval exceeds 64-bit range")

    return IntervalMapping(
        source_start=source_start,
        source_end=source_end,
        destination_start=destination_start,
        from_stage=from_stage,
        to_stage=to_stage,
    )


def _check_acyclic(tables: Sequence[StageTable], index: Mapping[Hashable, int]):
    # Each stage has one successor, so a walk either leaves the table or loops
    for table in tables:
        seen = {table.stage}
        current = table.successor
        while current in index:
            if current in seen:
                raise ConstructionError(f"Stage chain loops back to {current!s}")
            seen.add(current)
            current = tables[index[current]].successor


def _chain_ends(tables: Sequence[StageTable], index: Mapping[Hashable, int]) -> Tuple[Hashable, Hashable]:
    successors = {table.successor for table in tables}
    heads = [table.stage for table in tables if table.stage not in successors]
    tails = [table.successor for table in tables if table.successor not in index]

    if len(heads) != 1 or len(tails) != 1:
        raise ConstructionError(
            f"Stages do not form a single chain: entry stages {[str(s) for s in heads]}, "
            f"terminal stages {[str(s) for s in tails]}"
        )
    return heads[0], tails[0]


def build_pipeline(
    stage_descriptors: Iterable[StageDescriptor],
    raw_triples_by_stage: Optional[Mapping[str, Iterable[Sequence]]] = None,
) -> Pipeline:
    """
    Build a Pipeline from stage descriptors and raw triples.

    Args:
        stage_descriptors: (stage_name, from_stage, to_stage) tuples, any order
        raw_triples_by_stage: stage_name -> iterable of
            (destination_start, source_start, length). Fields may be ints
            or decimal strings. Stages without triples are identity stages.

    Returns:
        Pipeline: entry is the only from_stage that no descriptor maps
                  into, terminal the only to_stage with no table of its
                  own; descriptor order does not matter

    Raises:
        ConstructionError: On malformed triples, overlapping intervals,
            duplicate or branching stages, cycles, stages that do not form
            one chain, or triples for an undeclared stage
    """
    descriptors = list(stage_descriptors)
    if not descriptors:
        raise ConstructionError("At least one stage descriptor is required")

    raw = dict(raw_triples_by_stage or {})

    tables = []
    index = {}
    names = set()

    for descriptor in descriptors:
        try:
            name, from_stage, to_stage = descriptor
        except (TypeError, ValueError):
            raise ConstructionError(
                f"Stage descriptor must be (name, from_stage, to_stage), got {descriptor!r}"
            ) from None

        if name in names:
            raise ConstructionError(f"Duplicate stage name {name!r}")
        if from_stage in index:
            raise ConstructionError(f"Stage {from_stage!s} has more than one successor")
        if from_stage == to_stage:
            raise ConstructionError(f"Stage {from_stage!s} maps onto itself")
        names.add(name)

        mappings = [
            _mapping_from_triple(name, from_stage, to_stage, triple, position)
            for position, triple in enumerate(raw.get(name, ()))
        ]
        table = StageTable.build(from_stage, to_stage, mappings, name=name)

        index[from_stage] = len(tables)
        tables.append(table)
        logger.debug("Stage %s: %d mappings, %s -> %s", name, len(table), from_stage, to_stage)

    undeclared = [name for name in raw if name not in names]
    if undeclared:
        raise ConstructionError(f"Triples given for undeclared stages: {undeclared}")

    _check_acyclic(tables, index)
    entry, terminal = _chain_ends(tables, index)

    # Store tables in visiting order, whatever order the descriptors came in
    ordered = []
    current = entry
    while current != terminal:
        table = tables[index[current]]
        ordered.append(table)
        current = table.successor

    return Pipeline(
        tables=tuple(ordered),
        entry=entry,
        terminal=terminal,
        index={table.stage: position for position, table in enumerate(ordered)},
    )
