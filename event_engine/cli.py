#!/usr/bin/env python3
"""
Replay an AIS position file through the event engine.

Examples:
    ais-events data/AIS_2020_01_01.csv --areas configs/ports.yaml
    ais-events positions.parquet --config configs/engine.yaml --output events.jsonl
"""

import argparse
import json
import logging
import sys
import time

from .config import EngineConfig
from .data_loader import StreamingDataLoader, LoaderConfig
from .engine import EventEngine
from .errors import EngineError
from .sink import JsonLinesSink

logger = logging.getLogger(__name__)


class StdoutSink:
    """Writes events as JSON lines to stdout."""

    def __call__(self, batch):
        for event in batch:
            sys.stdout.write(json.dumps(event.to_dict()) + "\n")
        sys.stdout.flush()


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect docking, undocking, idle and collision-risk events from AIS positions")
    parser.add_argument("input", help="AIS positions file (.csv, .csv.gz or .parquet)")
    parser.add_argument("--config", help="Engine configuration YAML")
    parser.add_argument("--areas", help="Docking areas (.yaml or .geojson); overrides the config")
    parser.add_argument("--output", "-o", help="Write events as JSON lines to this file (default: stdout)")
    parser.add_argument("--shards", type=int, help="Number of worker shards")
    parser.add_argument("--threaded", action="store_true",
                        help="Run shard worker threads instead of the deterministic single-thread replay")
    parser.add_argument("--chunk-size", type=int, default=LoaderConfig.chunk_size,
                        help="Rows read per chunk")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = setup_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )

    try:
        settings = EngineConfig.from_yaml(args.config).to_dict() if args.config else {}
        if args.areas:
            settings['areas_path'] = args.areas
        if args.shards:
            settings['shard_count'] = args.shards
        config = EngineConfig.from_dict(settings)
    except EngineError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    downstream = JsonLinesSink(args.output) if args.output else StdoutSink()
    engine = EventEngine(config, downstream=downstream)
    loader = StreamingDataLoader(LoaderConfig(chunk_size=args.chunk_size))

    start = time.time()
    try:
        if args.threaded:
            with engine:
                for report in loader.iter_reports(args.input):
                    engine.submit(report)
                engine.join()
        else:
            engine.replay(loader.iter_reports(args.input))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to read {args.input}: {e}")
        return 1
    finally:
        engine.stop()

    duration = time.time() - start
    stats = engine.stats
    rate = loader.stats['valid_records'] / duration if duration > 0 else 0.0
    logger.info(f"Processed {loader.stats['valid_records']:,} reports in {duration:.1f}s "
                f"({rate:,.0f}/s), {stats.get('events', 0):,} events")
    for key in sorted(stats):
        logger.info(f"  {key}: {stats[key]}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
