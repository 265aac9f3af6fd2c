#!/usr/bin/env python3
"""
UFW Reporter CLI - Main entry point
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import date
from typing import List, Optional

from .. import __version__
from ..config import ConfigError, ReporterConfig, load_config


def get_config(args) -> ReporterConfig:
    """Load configuration, exiting on invalid values."""
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    if getattr(args, 'log_file', None):
        config.log_file = args.log_file
    if getattr(args, 'cache_file', None):
        config.cache_file = args.cache_file
    return config


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_run(args):
    """Run the reporter until interrupted"""
    from ..service import ReporterService

    config = get_config(args)
    setup_logging(args.log_level or config.log_level)
    service = ReporterService(config)

    async def runner() -> bool:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, service.stop)
            except NotImplementedError:
                pass
        return await service.run()

    ok = asyncio.run(runner())
    sys.exit(0 if ok else 1)


def cmd_check(args):
    """Parse a log line and show what the reporter would do with it"""
    from ..network import StaticAddressProvider
    from ..reporting import CacheIOError, LineOutcome, ReportCache, ReportingEngine, ReportPolicy

    config = get_config(args)
    setup_logging(args.log_level or 'WARNING')

    cache = ReportCache(config.cache_file, config.cooldown_seconds)
    if not args.no_cache:
        try:
            cache.load()
        except CacheIOError as e:
            print(f"Warning: {e}", file=sys.stderr)

    self_ips = list(config.extra_self_ips) + (args.self_ip or [])
    engine = ReportingEngine(
        cache=cache,
        reporter=None,
        address_provider=StaticAddressProvider(self_ips),
        policy=ReportPolicy(
            port_categories=config.categories_by_port,
            comment_template=config.comment_template,
        ),
        marker=config.marker,
        block_documentation=config.block_documentation_ranges,
    )

    result = engine.check_line(args.line)
    output = result.to_dict()
    if result.record is not None and result.outcome is LineOutcome.ELIGIBLE:
        output['categories'] = engine.policy.categories(result.record)
        output['comment'] = engine.policy.comment(result.record)

    if args.json:
        print(json.dumps(output, indent=2, default=str))
        return

    print(f"Outcome: {output['outcome']}")
    if output['reason']:
        print(f"Reason:  {output['reason']}")
    if output['record']:
        print("\nRecord:")
        for key, value in output['record'].items():
            if value is not None and value is not False and value != []:
                print(f"  {key:<10} {value}")
    if 'categories' in output:
        print(f"\nCategories: {output['categories']}")
        print(f"Comment:    {output['comment']}")


def cmd_summary(args):
    """Print the daily digest built from the cache file"""
    from ..reporting.summaries import build_digest

    config = get_config(args)
    day = None
    if args.date:
        try:
            day = date.fromisoformat(args.date)
        except ValueError:
            print(f"Error: invalid date {args.date!r}, expected YYYY-MM-DD", file=sys.stderr)
            sys.exit(2)

    try:
        _, message = build_digest(config.cache_file, day)
    except OSError as e:
        print(f"Error: cannot read {config.cache_file}: {e}", file=sys.stderr)
        sys.exit(1)
    print(message)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ufw-reporter',
        description='Report UFW-blocked source addresses to an abuse database'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--config', '-c', help='Path to YAML config file')
    parser.add_argument('--log-level', help='Logging level (default: from config)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    run_parser = subparsers.add_parser('run', help='Tail the UFW log and report (default)')
    run_parser.add_argument('--log-file', help='UFW log file to monitor')
    run_parser.add_argument('--cache-file', help='Report cache file')
    run_parser.set_defaults(func=cmd_run)

    check_parser = subparsers.add_parser('check', help='Dry-run a single log line')
    check_parser.add_argument('line', help='Log line to check')
    check_parser.add_argument('--self-ip', action='append', help='Treat this address as our own (repeatable)')
    check_parser.add_argument('--no-cache', action='store_true', help='Ignore the report cache')
    check_parser.add_argument('--cache-file', help='Report cache file')
    check_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    check_parser.set_defaults(func=cmd_check)

    summary_parser = subparsers.add_parser('summary', help='Show hourly report counts for a day')
    summary_parser.add_argument('--date', '-d', help='UTC day, YYYY-MM-DD (default: yesterday)')
    summary_parser.add_argument('--cache-file', help='Report cache file')
    summary_parser.set_defaults(func=cmd_summary)

    return parser


def cli(argv: Optional[List[str]] = None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        args = parser.parse_args(list(argv if argv is not None else sys.argv[1:]) + ['run'])

    args.func(args)


def main():
    """Entry point"""
    cli()


if __name__ == '__main__':
    main()
