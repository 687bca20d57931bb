#!/usr/bin/env python3
"""
KETI Device Resolver
Entry point for node-local lookups

사용 예:
  main.py checkpoint GPU-8f3c...      -> Pod UID
  main.py live GPU-8f3c...::1         -> namespace/name container
"""

import os
import sys
import logging
import argparse
import math

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from keti_resolver.config import LOG_LEVEL, ResolverConfig, get_config_summary
from keti_resolver.errors import DeviceNotFoundError, ResolverError
from keti_resolver.checkpoint import CheckpointResolver
from keti_resolver.podresources import PodResourcesResolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_ERROR = 2


def positive_seconds(value: str) -> float:
    """argparse type: finite number of seconds greater than zero"""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not math.isfinite(seconds) or seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive finite number: {value!r}")
    return seconds


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Find the pod that owns a GPU device")
    parser.add_argument("--config", action="store_true",
                        help="print the effective configuration before resolving")
    sub = parser.add_subparsers(dest="mode", required=True)

    checkpoint = sub.add_parser("checkpoint", help="look up the kubelet checkpoint file")
    checkpoint.add_argument("device_id")
    checkpoint.add_argument("--file", default=None, help="checkpoint file path")

    live = sub.add_parser("live", help="query the kubelet pod resources API")
    live.add_argument("device_id")
    live.add_argument("--timeout", type=positive_seconds, default=None, help="seconds (default: config)")

    return parser.parse_args(argv)


def run(args, config: ResolverConfig) -> int:
    """Resolve one device and print the owner"""
    if args.config:
        for key, value in get_config_summary(config).items():
            print(f"{key}: {value}")

    try:
        if args.mode == "checkpoint":
            pod_uid = CheckpointResolver(config).resolve(args.device_id, path=args.file)
            print(pod_uid)
        else:
            identity = PodResourcesResolver(config).resolve(args.device_id, timeout=args.timeout)
            print(f"{identity.pod_key} {identity.container}")
    except DeviceNotFoundError as e:
        logger.warning(str(e))
        return EXIT_NOT_FOUND
    except ResolverError as e:
        logger.error(f"Resolve failed: {e}")
        return EXIT_ERROR
    except ValueError as e:
        logger.error(f"Invalid argument: {e}")
        return EXIT_ERROR

    return EXIT_OK


def main(argv=None) -> int:
    """Entry point"""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = parse_args(argv)

    try:
        config = ResolverConfig.from_env()
    except ResolverError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_ERROR

    return run(args, config)


if __name__ == "__main__":
    sys.exit(main())
