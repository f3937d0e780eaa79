"""
Almanac Reader

Reads the puzzle input: a seeds line followed by map sections.

    seeds: 79 14 55 13

    seed-to-soil map:
    50 98 2
    52 50 48

Each map line is "destination_start source_start length". Map lines are
kept as string fields; numeric validation happens in build_pipeline().
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Tuple

from almanac_remap.errors import AlmanacFormatError
from almanac_remap.pipeline import Pipeline, Stage, build_pipeline
from almanac_remap.range_search import Range

_HEADER = re.compile(r"^(\w+)-to-(\w+)\s+map:$")


def stage_id(name: str) -> Hashable:
    """Almanac stage names become Stage members; unknown names stay strings."""
    try:
        return Stage.parse(name)
    except ValueError:
        return name


@dataclass
class Almanac:
    seeds: List[int] = field(default_factory=list)
    descriptors: List[Tuple[str, Hashable, Hashable]] = field(default_factory=list)
    triples: Dict[str, List[Tuple[str, ...]]] = field(default_factory=dict)

    def pipeline(self) -> Pipeline:
        return build_pipeline(self.descriptors, self.triples)

    def seed_ranges(self) -> List[Range]:
        """Pair the seeds up as (start, length) ranges."""
        if len(self.seeds) % 2 != 0:
            raise AlmanacFormatError(
                f"Seeds line has {len(self.seeds)} numbers, expected (start, length) pairs"
            )
        return [Range(start, length) for start, length in zip(self.seeds[::2], self.seeds[1::2])]


def parse_almanac(text: str) -> Almanac:
    """
    Parse almanac text.

    Args:
        text: Full puzzle input

    Returns:
        Almanac: seeds, stage descriptors in section order, raw triples

    Raises:
        AlmanacFormatError: Missing seeds line, bad seed numbers, map lines
            outside a section, or an unrecognised section header
    """
    almanac = Almanac()
    state = 0
    current = None

    for line_no, line in enumerate(text.splitlines(), start=1):
        line = line.strip()

        if state == 0:
            # Leading blank lines are allowed before the seeds line
            if not line:
                continue
            label, sep, numbers = line.partition(":")
            if not sep or label.strip().lower() != "seeds":
                raise AlmanacFormatError(f"Line {line_no}: expected 'seeds:' line, got {line!r}")
            try:
                almanac.seeds = [int(token) for token in numbers.split()]
            except ValueError:
                raise AlmanacFormatError(f"Line {line_no}: non-numeric seed in {line!r}") from None
            if any(seed < 0 for seed in almanac.seeds):
                raise AlmanacFormatError(f"Line {line_no}: negative seed in {line!r}")
            state = 1

        elif state == 1:
            if not line:
                continue
            match = _HEADER.match(line)
            if match is None:
                raise AlmanacFormatError(f"Line {line_no}: expected '<from>-to-<to> map:', got {line!r}")
            source, destination = match.groups()
            current = f"{source}-to-{destination}"
            almanac.descriptors.append((current, stage_id(source), stage_id(destination)))
            almanac.triples[current] = []
            state = 2

        elif state == 2:
            if not line:
                state = 1
                continue
            almanac.triples[current].append(tuple(line.split()))

    if state == 0:
        raise AlmanacFormatError("Input has no 'seeds:' line")

    return almanac


def read_input(filename) -> Almanac:
    """Read and parse an almanac file."""
    with open(filename) as f:
        return parse_almanac(f.read())
