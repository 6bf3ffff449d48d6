"""Command line entry point: materialize a fixture block from a config file."""
import argparse
import logging
import sys

from tsfixture.config import load_config
from tsfixture.errors import FixtureError
from tsfixture.generators import create_generator
from tsfixture.harness import materialize_block
from tsfixture.metrics import IngestMetrics


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        fmt = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def main(argv=None):
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Time-series fixture generator - write synthetic series into a block"
    )
    parser.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to configuration YAML file"
    )
    parser.add_argument(
        "--out",
        "-o",
        required=True,
        help="Directory the block is written into"
    )

    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    spec = config.fixtures
    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(
        f"Fixtures: {spec.total_series} series, {spec.label_count} labels, "
        f"[{spec.min_time}, {spec.max_time}), seed={spec.seed}"
    )

    fixtures = create_generator(spec).generate_from_spec(spec)
    metrics = IngestMetrics()

    try:
        block_dir = materialize_block(args.out, fixtures, config.head, config.compactor, metrics)
    except FixtureError as e:
        logger.error(f"Failed to materialize block: {e}", exc_info=True)
        return 1

    print(block_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
