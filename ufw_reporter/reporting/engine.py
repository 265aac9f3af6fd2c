#!/usr/bin/env python3
"""
UFW Reporter Engine

Runs every tailed log line through the decision chain:

    parse -> malformed? -> self? -> non-routable? -> TCP? -> cooldown? -> report

and keeps the report cache in step with the abuse API: an address is only
written to the cache (and the cache only saved) after the API confirmed
the report.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..alerts import NotificationLevel, Notifier, NullNotifier
from ..parsing import BLOCK_MARKER, LogRecord, parse_line
from .cache import CacheIOError, ReportCache, normalize_address
from .filters import FilterResult, evaluate
from .policy import ReportPolicy
from .providers.spamverify import ReportOutcome, ReportResult


logger = logging.getLogger('ufw_reporter.engine')


class LineOutcome(Enum):
    """What happened to a log line."""
    PARSE_SKIP = "parse_skip"
    MALFORMED = "malformed"
    SELF = "self"
    NON_ROUTABLE = "non_routable"
    PROTOCOL = "protocol"
    COOLDOWN = "cooldown"
    ELIGIBLE = "eligible"
    REPORTED = "reported"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


_FILTER_OUTCOMES = {
    'malformed': LineOutcome.MALFORMED,
    'self': LineOutcome.SELF,
    'non_routable': LineOutcome.NON_ROUTABLE,
    'protocol': LineOutcome.PROTOCOL,
}


@dataclass
class LineResult:
    """Decision taken for one log line."""
    outcome: LineOutcome
    record: Optional[LogRecord] = None
    reason: Optional[str] = None
    report: Optional[ReportResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'outcome': self.outcome.value,
            'reason': self.reason,
            'record': self.record.to_dict() if self.record else None,
            'report': self.report.to_dict() if self.report else None,
        }


def format_elapsed(seconds: float) -> str:
    """
    Human-readable duration, e.g. ``1d 2h 5s``.

    Zero parts are omitted; seconds are always shown when nothing else is.
    """
    seconds = max(0, int(seconds))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return ' '.join(parts)


def _format_reported_at(ts: int) -> str:
    try:
        return datetime.fromtimestamp(ts).strftime('%Y-%m-%d %H:%M:%S')
    except (OverflowError, OSError, ValueError):
        return str(ts)


class ReportingEngine:
    """
    Decides, per log line, whether to report and keeps the cache consistent.

    Lines must be fed one at a time (await each process_line before the
    next); the engine holds no locks.

    Usage:
        engine = ReportingEngine(cache, reporter, address_provider)
        result = await engine.process_line(line)
    """

    def __init__(
        self,
        cache: ReportCache,
        reporter,
        address_provider,
        policy: Optional[ReportPolicy] = None,
        notifier: Optional[Notifier] = None,
        marker: str = BLOCK_MARKER,
        block_documentation: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            cache: Loaded report cache
            reporter: Object with ``async report(record, categories, comment)``
            address_provider: Object with ``get_addresses()`` returning the
                current self addresses
            policy: Category/comment strategy
            notifier: Sink for escalated events
            marker: Token identifying block events
            block_documentation: Treat documentation ranges as non-routable
            clock: Source of the current unix time
        """
        self.cache = cache
        self.reporter = reporter
        self.address_provider = address_provider
        self.policy = policy or ReportPolicy()
        self.notifier = notifier or NullNotifier()
        self.marker = marker
        self.block_documentation = block_documentation
        self.clock = clock

        self._stats: Dict[str, int] = {outcome.value: 0 for outcome in LineOutcome}

    def _escalate(self, message: str, level: NotificationLevel = NotificationLevel.ERROR):
        logger.error(message)
        self.notifier.notify(level, message)

    def _finish(self, result: LineResult) -> LineResult:
        self._stats[result.outcome.value] += 1
        return result

    @staticmethod
    def _describe(record: LogRecord) -> str:
        return f"PROTO={(record.proto or '').lower()} SRC={record.src_ip} DPT={record.dpt} ID={record.packet_id}"

    def check_line(self, line: str) -> LineResult:
        """
        Run the line through every check except the report itself.

        Returns ELIGIBLE when the line would be reported. Counts nothing and
        touches nothing.
        """
        record = parse_line(line, self.marker)
        if record is None:
            return LineResult(LineOutcome.PARSE_SKIP, reason="Not a block event")

        verdict: FilterResult = evaluate(
            record,
            self.address_provider.get_addresses(),
            self.block_documentation,
        )
        if not verdict.should_report:
            return LineResult(_FILTER_OUTCOMES[verdict.filter_name], record, verdict.reason)

        now = self.clock()
        key = normalize_address(record.src_ip)
        if self.cache.is_on_cooldown(key, now):
            reported_at = self.cache.last_reported(key)
            when = _format_reported_at(reported_at)
            return LineResult(
                LineOutcome.COOLDOWN,
                record,
                f"{record.src_ip} was last reported on {when} ({format_elapsed(now - reported_at)} ago)",
            )

        return LineResult(LineOutcome.ELIGIBLE, record, "Passed all filters")

    async def process_line(self, line: str) -> LineResult:
        """Run one log line through the full pipeline, reporting if due."""
        checked = self.check_line(line)
        record = checked.record

        if checked.outcome is LineOutcome.PARSE_SKIP:
            logger.debug(f"Ignoring invalid line: {line}")
            return self._finish(checked)

        if checked.outcome is LineOutcome.MALFORMED:
            self._escalate(f"{checked.reason}: {line}")
            return self._finish(checked)

        if checked.outcome in (LineOutcome.SELF, LineOutcome.NON_ROUTABLE, LineOutcome.PROTOCOL):
            logger.info(f"{checked.reason}! {self._describe(record)}")
            return self._finish(checked)

        if checked.outcome is LineOutcome.COOLDOWN:
            logger.info(checked.reason)
            return self._finish(checked)

        categories = self.policy.categories(record)
        comment = self.policy.comment(record)
        report = await self.reporter.report(record, categories, comment)

        summary = f"{record.src_ip} [{record.dpt}/{record.proto}]; ID: {record.packet_id}; Categories: {categories}"

        if report.outcome is ReportOutcome.SUCCESS:
            self.cache.mark_reported(normalize_address(record.src_ip), self.clock())
            try:
                self.cache.save()
            except CacheIOError as e:
                self._escalate(str(e))
            logger.info(f"Reported {summary}; Abuse: {report.threat_score}%")
            return self._finish(LineResult(LineOutcome.REPORTED, record, report.message, report))

        if report.outcome is ReportOutcome.RATE_LIMITED:
            logger.info(f"Failed to report {summary}; {report.error}")
            return self._finish(LineResult(LineOutcome.RATE_LIMITED, record, report.error, report))

        self._escalate(f"Failed to report {summary}; {report.error}")
        return self._finish(LineResult(LineOutcome.FAILED, record, report.error, report))

    def get_stats(self) -> Dict[str, Any]:
        """Counters per outcome, plus cache size."""
        return {
            **self._stats,
            'cached_ips': len(self.cache),
        }
