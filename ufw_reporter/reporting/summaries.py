#!/usr/bin/env python3
"""
Daily report digest.

Once a day, just after UTC midnight, posts how many addresses were reported
during each hour of the previous day. Built from the report cache store,
which only keeps the latest report per address.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ..alerts import NotificationLevel, Notifier
from .cache import read_entries


logger = logging.getLogger('ufw_reporter.summaries')


@dataclass
class DailySummary:
    """Per-hour report counts for one UTC day."""
    day: date
    hourly: Dict[int, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.hourly.values())

    @property
    def top_hours(self) -> List[int]:
        """Busiest hours, only when the busiest hour saw more than one report."""
        if not self.hourly:
            return []
        peak = max(self.hourly.values())
        if peak <= 1:
            return []
        return sorted(hour for hour, count in self.hourly.items() if count == peak)


def _pluralize(count: int) -> str:
    return 'report' if count == 1 else 'reports'


def summarize_day(entries: Iterable[Tuple[str, int]], day: date) -> DailySummary:
    """Count (address, timestamp) entries falling on a UTC day, by hour."""
    summary = DailySummary(day=day)
    seen = set()
    for ip, ts in entries:
        if (ip, ts) in seen:
            continue
        seen.add((ip, ts))
        try:
            reported = datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue
        if reported.date() != day:
            continue
        summary.hourly[reported.hour] = summary.hourly.get(reported.hour, 0) + 1
    return summary


def format_summary(summary: DailySummary) -> str:
    """Render one line per active hour, e.g. ``07:00-07:59: 3 reports 🔥``."""
    top = set(summary.top_hours)
    lines = []
    for hour in sorted(summary.hourly):
        count = summary.hourly[hour]
        marker = ' \U0001f525' if hour in top else ''
        lines.append(f"{hour:02d}:00-{hour:02d}:59: {count} {_pluralize(count)}{marker}")
    return '\n'.join(lines)


def build_digest(cache_path, day: Optional[date] = None) -> Tuple[NotificationLevel, str]:
    """
    Build the digest message for a day (yesterday, UTC, by default).

    Raises:
        OSError: the cache store exists but cannot be read
    """
    day = day or (datetime.now(timezone.utc).date() - timedelta(days=1))
    try:
        entries = list(read_entries(cache_path))
    except FileNotFoundError:
        return NotificationLevel.ERROR, f"Cache file not found: {cache_path}"

    if not entries:
        return NotificationLevel.INFO, f"Cache file is empty: {cache_path}"

    summary = summarize_day(entries, day)
    body = format_summary(summary) or 'No reports.'
    return (
        NotificationLevel.NOTICE,
        f"Summary of IP address reports ({summary.total}) from {day.isoformat()}.\n"
        f"```{body}```",
    )


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    tomorrow = datetime.combine(now.date() + timedelta(days=1), dtime(0, 0), tzinfo=timezone.utc)
    return (tomorrow - now).total_seconds()


async def run_daily_summaries(cache_path, notifier: Notifier):
    """Post yesterday's digest every UTC midnight, forever."""
    while True:
        await asyncio.sleep(seconds_until_midnight() + 1)
        try:
            level, message = build_digest(cache_path)
        except Exception as e:
            logger.error(f"Error building summary from {cache_path}: {e}")
            notifier.notify(NotificationLevel.ERROR, f"Error building summary from {cache_path}: {e}")
            continue
        logger.info(message)
        notifier.notify(level, message)
