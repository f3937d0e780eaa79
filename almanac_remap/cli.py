"""
Command-line interface: lowest location number for the almanac seeds.

Part one treats every seed as a single value; part two reads the seeds
line as (start, length) pairs.
"""

import os
import sys
import argparse

from almanac_remap.config import EXECUTORS, STRATEGIES, SearchConfig
from almanac_remap.errors import SearchTimeout, StrategyMismatchError
from almanac_remap.almanac import parse_almanac
from almanac_remap.log import get_logger
from almanac_remap.range_search import RangeSearch, minimum_of_values


def build_parser():
    parser = argparse.ArgumentParser(
        prog='almanac-remap',
        description='Find the lowest location number reachable from almanac seeds'
    )
    parser.add_argument('input_file', nargs='?', type=argparse.FileType('r'),
                        default=sys.stdin,
                        help='Almanac input file (default: stdin)')
    parser.add_argument('--part', choices=('one', 'two', 'both'), default='both',
                        help='Which answer to compute (default: both)')
    parser.add_argument('--strategy', choices=STRATEGIES,
                        help='Range search strategy for part two (default: split)')
    parser.add_argument('--workers', type=int,
                        help='Worker pool size for the brute-force scan')
    parser.add_argument('--chunk-size', type=int,
                        help='Values per brute-force work unit')
    parser.add_argument('--executor', choices=EXECUTORS,
                        help='Worker pool kind for the brute-force scan')
    parser.add_argument('--deadline', type=float,
                        help='Give up the brute-force scan after this many seconds')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Log progress and print search statistics')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = get_logger('almanac_remap',
                        level='INFO' if args.verbose else os.getenv('LOG_LEVEL', 'WARNING'))

    try:
        config = SearchConfig.from_env().override(
            strategy=args.strategy,
            workers=args.workers,
            chunk_size=args.chunk_size,
            executor=args.executor,
            deadline=args.deadline,
        )

        almanac = parse_almanac(args.input_file.read())
        pipeline = almanac.pipeline()
        logger.info("Built pipeline with %d stages: %s -> %s",
                    len(pipeline), pipeline.entry, pipeline.terminal)

        if args.part in ('one', 'both'):
            print(f"Part one: {minimum_of_values(pipeline, almanac.seeds)}")

        if args.part in ('two', 'both'):
            search = RangeSearch(pipeline, config)
            print(f"Part two: {search.minimum(almanac.seed_ranges())}")

            if args.verbose:
                stats = search.get_statistics()
                print(f"\nStatistics:", file=sys.stderr)
                print(f"  Strategy: {stats['strategy']}", file=sys.stderr)
                print(f"  Values: {stats['values_total']}", file=sys.stderr)
                print(f"  Chunks: {stats['chunks_completed']}/{stats['chunks_total']}", file=sys.stderr)
                print(f"  Terminal intervals: {stats['intervals_out']}", file=sys.stderr)
                print(f"  Time: {stats['elapsed']:.3f}s", file=sys.stderr)

    except (ValueError, SearchTimeout, StrategyMismatchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
