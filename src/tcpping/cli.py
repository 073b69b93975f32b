#!/usr/bin/env python3
"""
TCPPing command line

Usage:
    tcpping -p --port PORT [--mps RATE] [--size SIZE] HOST
    tcpping -c --port PORT --bind IP_ADDRESS
"""

import argparse
import logging
import sys
from typing import List, Optional, Union

from tcpping.catcher import Catcher
from tcpping.config import (
    DEFAULT_MESSAGE_SIZE,
    DEFAULT_MSG_PER_SECOND,
    MAX_MESSAGE_SIZE,
    MIN_MESSAGE_SIZE,
    PING_DURATION,
    CatcherConfig,
    PitcherConfig,
    resolve_packet_size,
)
from tcpping.errors import ConfigurationError
from tcpping.export import records_to_frame, save_measurements
from tcpping.pitcher import Pitcher
from tcpping.plot import plot_latency

logger = logging.getLogger('TCPPing')

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on bad input"""

    def error(self, message):
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog='tcpping',
                     description='Measure TCP round trip time and its A->B / B->A segments')

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-p', dest='pitcher', action='store_true',
                      help='Run as Pitcher (sends ping packets)')
    mode.add_argument('-c', dest='catcher', action='store_true',
                      help='Run as Catcher (echoes ping packets)')

    parser.add_argument('--port', type=int,
                        help='[Pitcher] TCP port to connect to, [Catcher] TCP port to listen on')
    parser.add_argument('--bind', metavar='IP_ADDRESS',
                        help='[Catcher] address to listen on')
    parser.add_argument('--mps', type=int, default=DEFAULT_MSG_PER_SECOND,
                        help=f'[Pitcher] messages per second (default: {DEFAULT_MSG_PER_SECOND})')
    parser.add_argument('--size', type=int, default=DEFAULT_MESSAGE_SIZE,
                        help=f'[Pitcher] message length in bytes, {MIN_MESSAGE_SIZE}-{MAX_MESSAGE_SIZE} '
                             f'(default: {DEFAULT_MESSAGE_SIZE})')
    parser.add_argument('--duration', type=float, default=PING_DURATION,
                        help=f'[Pitcher] seconds to keep pinging (default: {PING_DURATION:g})')
    parser.add_argument('--output', metavar='FILE',
                        help='[Pitcher] save measurements to FILE (.csv or .json)')
    parser.add_argument('--plot', metavar='FILE',
                        help='[Pitcher] save a latency plot to FILE')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('host', nargs='*', help='[Pitcher] host to ping')
    return parser


def build_config(args: argparse.Namespace) -> Union[PitcherConfig, CatcherConfig]:
    """Turn parsed arguments into a validated role configuration"""
    if args.pitcher and args.port is not None:
        if len(args.host) != 1:
            raise ConfigurationError("Pitcher mode needs exactly one target host")
        if args.bind is not None:
            raise ConfigurationError("--bind is only valid in Catcher mode")
        return PitcherConfig(host=args.host[0],
                             port=args.port,
                             mps=args.mps,
                             size=resolve_packet_size(args.size),
                             duration=args.duration)

    if args.catcher and args.port is not None and args.bind is not None:
        if args.host:
            raise ConfigurationError("Catcher mode takes no positional arguments")
        return CatcherConfig(bind=args.bind, port=args.port)

    raise ConfigurationError("choose -p with --port and a host, or -c with --port and --bind")


def _save_results(pitcher: Pitcher, output: Optional[str], plot: Optional[str]) -> None:
    if not (output or plot):
        return
    records = pitcher.aggregator.history
    if output:
        save_measurements(records, output)
    if plot:
        if not records:
            logger.warning("No measurements recorded, skipping plot")
            return
        plot_latency(records_to_frame(records), plot)


def _usage(parser: argparse.ArgumentParser, error: Exception) -> int:
    parser.print_usage(sys.stderr)
    print(f"tcpping: {error}", file=sys.stderr)
    return EXIT_USAGE


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except ConfigurationError as e:
        return _usage(parser, e)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = build_config(args)
    except ConfigurationError as e:
        return _usage(parser, e)

    if isinstance(config, CatcherConfig):
        ok = Catcher(config).start_catching()
        return EXIT_OK if ok else EXIT_FAILURE

    pitcher = Pitcher(config)
    try:
        ok = pitcher.start_pitching()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        pitcher.stop()
        ok = False

    try:
        _save_results(pitcher, args.output, args.plot)
    except (OSError, ValueError) as e:
        logger.error(f"Error saving results: {e}")
        return EXIT_FAILURE

    return EXIT_OK if ok else EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
