#!/usr/bin/env python3
"""
Producer/consumer demo that reports a pending-jobs counter to N9E.

Jobs are added to and taken from a bounded queue at random while a reporter
pushes the registry to the collector on a fixed interval.
"""
import argparse
import json
import logging
import queue
import random
import sys
import time
from typing import Any, Dict, List, Optional

from metrics_reporter import (
    MetricRegistry,
    N9EReporter,
    N9ESender,
    build_tags,
    config as reporter_config,
    name,
    register_process_gauges,
)
from metrics_reporter.exceptions import ConfigurationError

# Setup logging
logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JobQueue:
    """A bounded job queue whose size is tracked by a registry counter."""

    def __init__(self, pending_jobs, maxsize: int = 10000):
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.pending_jobs = pending_jobs

    def add_job(self, job: str) -> bool:
        try:
            self.queue.put_nowait(job)
        except queue.Full:
            logger.warning("Job queue full, dropping %s", job)
            return False
        self.pending_jobs.inc()
        return True

    def take_job(self) -> Optional[str]:
        try:
            job = self.queue.get_nowait()
        except queue.Empty:
            return None
        self.pending_jobs.dec()
        return job


def run_jobs(job_queue: JobQueue, steps: int = 0, step_delay: float = 0.2,
             rng: Optional[random.Random] = None) -> int:
    """
    Randomly add (70%) or take (30%) jobs.

    Args:
        job_queue (JobQueue): The queue to work on
        steps (int): Number of steps to run (0 for infinite)
        step_delay (float): Seconds to sleep between steps
        rng (random.Random, optional): Random source

    Returns:
        int: Number of steps run
    """
    rng = rng or random.Random()
    num = 1
    while steps == 0 or num <= steps:
        if step_delay:
            time.sleep(step_delay)
        if rng.random() > 0.7:
            job = job_queue.take_job()
            logger.debug("take job : %s", job)
        else:
            job = f"Job-{num}"
            job_queue.add_job(job)
            logger.debug("add job : %s", job)
        num += 1
    return num - 1


def setup_logging(log_level: str) -> None:
    """Configure root logging for the demo; raises ValueError on an unknown level name."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def load_config_from_file(config_file: str) -> Dict[str, Any]:
    """
    Read demo options from a JSON object keyed by flag name ("batch-size" or "batch_size").

    An unreadable file or anything other than a JSON object yields no options.
    """
    try:
        with open(config_file) as f:
            options = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Ignoring config file %s: %s", config_file, e)
        return {}

    if not isinstance(options, dict):
        logger.error("Ignoring config file %s: expected a JSON object", config_file)
        return {}
    return options


def merge_config_with_args(config: Dict[str, Any], args: argparse.Namespace,
                           parser: argparse.ArgumentParser) -> argparse.Namespace:
    """
    Merge configuration from a file with command line arguments.
    Values given on the command line take precedence over config file values.

    Args:
        config (dict): Configuration dictionary from file
        args (argparse.Namespace): Parsed command line arguments
        parser (argparse.ArgumentParser): Parser used, to tell defaults from explicit values

    Returns:
        argparse.Namespace: Updated arguments namespace
    """
    args_dict = vars(args)

    for key, value in config.items():
        # Convert dashes to underscores in key names
        arg_key = key.replace('-', '_')

        if arg_key not in args_dict or args_dict[arg_key] == parser.get_default(arg_key):
            args_dict[arg_key] = value

    return argparse.Namespace(**args_dict)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Run a job queue demo and report its metrics to N9E.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--config-file', type=str,
                        help='Path to JSON configuration file')
    parser.add_argument('--log-level', type=str, default=reporter_config.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Log level')

    # Collector options
    parser.add_argument('--server-url', type=str, default=reporter_config.SERVER_URL,
                        help='N9E collector push URL')
    parser.add_argument('--batch-size', type=int, default=reporter_config.BATCH_SIZE,
                        help='Maximum number of samples per request')
    parser.add_argument('--request-timeout', type=float, default=reporter_config.REQUEST_TIMEOUT,
                        help='Request timeout in seconds')

    # Reporter options
    parser.add_argument('--interval', type=int, default=reporter_config.REPORT_INTERVAL,
                        help='Interval between reports in seconds')
    parser.add_argument('--prefix', type=str, default=reporter_config.PREFIX,
                        help='Prefix for every metric name')
    parser.add_argument('--tags', type=str, default=None,
                        help='Tag string, e.g. "service=judge,region=bj"; overrides --service/--region')
    parser.add_argument('--service', type=str, default='n9e-demo',
                        help='Service tag')
    parser.add_argument('--region', type=str, default=None,
                        help='Region tag')
    parser.add_argument('--rate-unit', type=str, default=reporter_config.RATE_UNIT,
                        help='Unit meter rates are reported in')
    parser.add_argument('--duration-unit', type=str, default=reporter_config.DURATION_UNIT,
                        help='Unit timer durations are reported in')
    parser.add_argument('--process-gauges', action='store_true',
                        help='Also report CPU, memory and thread gauges of this process')

    # Demo options
    parser.add_argument('--steps', type=int, default=0,
                        help='Number of job steps to run (0 for infinite)')
    parser.add_argument('--step-delay', type=float, default=0.2,
                        help='Seconds between job steps')

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments, layered over an optional JSON config file."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config_file:
        config = load_config_from_file(args.config_file)
        if config:
            args = merge_config_with_args(config, args, parser)

    return args


def build_reporter(args: argparse.Namespace, registry: MetricRegistry) -> N9EReporter:
    """
    Create the sender and reporter described by the arguments.

    Raises:
        ConfigurationError: If the arguments describe an invalid setup
    """
    sender = N9ESender(
        url=args.server_url,
        batch_size=args.batch_size,
        timeout=args.request_timeout
    )
    tags = args.tags if args.tags is not None else build_tags(args.service, args.region)
    return N9EReporter(
        registry,
        sender,
        prefix=args.prefix,
        tags=tags,
        rate_unit=args.rate_unit,
        duration_unit=args.duration_unit
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to parse arguments and run the demo."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    registry = MetricRegistry()
    pending_jobs = registry.counter(name('queue', 'pending-jobs', 'size'))
    if args.process_gauges:
        register_process_gauges(registry)

    try:
        reporter = build_reporter(args, registry)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    logger.info("Reporting to %s every %s seconds with tags %r",
                reporter.sender.url, args.interval, reporter.tags)
    reporter.start(args.interval)

    job_queue = JobQueue(pending_jobs)
    try:
        steps = run_jobs(job_queue, args.steps, args.step_delay)
        logger.info("Ran %d job steps", steps)
    except KeyboardInterrupt:
        logger.info("Demo interrupted by user.")
    finally:
        reporter.stop()
        # Deliver whatever was collected since the last tick
        reporter.report()
        reporter.sender.close()

    logger.info("Demo completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
