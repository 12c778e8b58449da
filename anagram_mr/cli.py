#!/usr/bin/env python3
"""
Anagram Count CLI
Usage: anagram-count <N> <input-path> <output-path> [options]

Words shorter than N (after trimming one trailing ',', '.' or ';') are ignored.
"""

import sys
import logging
import argparse

from anagram_mr.config import (
    SHUFFLE_TRANSPORTS,
    JobConfig,
    default_log_level,
    default_max_workers,
    default_num_map_tasks,
    default_num_reduce_tasks,
    default_scratch_dir,
    default_shuffle_transport,
)
from anagram_mr.context import ExecutionContext
from anagram_mr.errors import AnagramJobError, ConfigurationError
from anagram_mr.pipeline import AnagramPipeline

logger = logging.getLogger(__name__)

USAGE = "anagram-count <N> <input-path> <output-path> [options]"


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting, so errors share one path"""

    def error(self, message):
        raise ConfigurationError(message)


def parse_min_length(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"N must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"N must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog='anagram-count',
        usage=USAGE,
        description='Find anagram groups and word frequencies in a text corpus',
    )
    parser.add_argument('min_length', metavar='N', help='Ignore words shorter than N')
    parser.add_argument('input_path', metavar='input-path',
                        help='Input file, directory or glob pattern')
    parser.add_argument('output_path', metavar='output-path',
                        help='Output directory (must not exist unless --overwrite)')
    parser.add_argument('--num-map-tasks', type=int, default=None,
                        help='Number of input splits (env ANAGRAM_NUM_MAP_TASKS, default 4)')
    parser.add_argument('--num-reduce-tasks', type=int, default=None,
                        help='Number of reduce partitions (env ANAGRAM_NUM_REDUCE_TASKS, default 4)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads (env ANAGRAM_MAX_WORKERS, default 4)')
    parser.add_argument('--overwrite', action='store_true',
                        help='Replace the output location if it exists')
    parser.add_argument('--shuffle-transport', choices=SHUFFLE_TRANSPORTS, default=None,
                        help='How reducers fetch map output (env ANAGRAM_SHUFFLE_TRANSPORT)')
    parser.add_argument('--shuffle-port', type=int, default=0,
                        help='Port for the gRPC shuffle server (0 picks a free port)')
    parser.add_argument('--scratch-dir', default=None,
                        help='Directory for intermediate files (env ANAGRAM_SCRATCH_DIR)')
    parser.add_argument('--metrics-file', default=None,
                        help='Write job metrics as JSON to this file')
    parser.add_argument('--log-level', default=None,
                        help='Logging level (env ANAGRAM_LOG_LEVEL, default INFO)')
    return parser


def parse_args(argv=None) -> tuple:
    """
    Parse command-line arguments into a JobConfig

    Returns:
        (JobConfig, log level name)

    Raises:
        ConfigurationError: On a wrong argument count or invalid values
    """
    args = build_parser().parse_args(argv)

    config = JobConfig(
        min_length=parse_min_length(args.min_length),
        input_path=args.input_path,
        output_path=args.output_path,
        num_map_tasks=args.num_map_tasks if args.num_map_tasks is not None else default_num_map_tasks(),
        num_reduce_tasks=(args.num_reduce_tasks if args.num_reduce_tasks is not None
                          else default_num_reduce_tasks()),
        max_workers=args.workers if args.workers is not None else default_max_workers(),
        overwrite=args.overwrite,
        shuffle_transport=args.shuffle_transport or default_shuffle_transport(),
        shuffle_port=args.shuffle_port,
        scratch_dir=args.scratch_dir or default_scratch_dir(),
        metrics_file=args.metrics_file,
    )
    return config.validate(), (args.log_level or default_log_level()).upper()


def setup_logging(level: str):
    numeric = getattr(logging, level, None)
    if not isinstance(numeric, int):
        raise ConfigurationError(f"Unknown log level {level!r}")
    logging.basicConfig(
        level=numeric,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def save_metrics(metrics, path: str):
    try:
        metrics.save_to_file(path)
    except OSError as e:
        raise AnagramJobError(f"Cannot write metrics to {path}: {e}") from e


def run(config: JobConfig):
    """Run one job inside its own execution context"""
    with ExecutionContext.from_config(config) as ctx:
        pipeline = AnagramPipeline(ctx, config)
        try:
            metrics = pipeline.run()
        except BaseException:
            if config.metrics_file:
                try:
                    save_metrics(pipeline.metrics, config.metrics_file)
                except AnagramJobError as e:
                    # The job failure is the error to report
                    logger.error(str(e))
            raise
        if config.metrics_file:
            save_metrics(metrics, config.metrics_file)
    return metrics


def main(argv=None) -> int:
    try:
        config, log_level = parse_args(argv)
        setup_logging(log_level)
    except ConfigurationError as e:
        print(f"Usage: {USAGE}", file=sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(f"N={config.min_length}")
    logger.info(f"<input-path>={config.input_path}")
    logger.info(f"<output-path>={config.output_path}")

    try:
        run(config)
    except KeyboardInterrupt:
        logger.error("Interrupted, no output was published")
        return 130
    except AnagramJobError as e:
        logger.error(f"Job {config.job_id} failed: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
