#!/usr/bin/env python3
"""
Timestamp extraction for UFW log lines.

Handles the two prefixes rsyslog/journald write in front of kernel messages:
- RFC 3339 (``2025-01-02T03:04:05.123456+01:00 host kernel: ...``)
- classic BSD syslog (``Jan  2 03:04:05 host kernel: ...``), which carries no year
"""

import re
from datetime import datetime, timezone
from typing import Optional


RFC3339_PATTERN = re.compile(
    r'^(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)'
)
SYSLOG_PATTERN = re.compile(
    r'^([A-Z][a-z]{2})\s+(\d{1,2})\s+(\d{2}):(\d{2}):(\d{2})'
)

MONTHS = {
    'Jan': 1, 'Feb': 2, 'Mar': 3, 'Apr': 4, 'May': 5, 'Jun': 6,
    'Jul': 7, 'Aug': 8, 'Sep': 9, 'Oct': 10, 'Nov': 11, 'Dec': 12,
}


def _parse_rfc3339(text: str) -> Optional[datetime]:
    text = text.replace(' ', 'T', 1)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    # fromisoformat() wants the offset with a colon on older interpreters
    offset = re.search(r'([+-]\d{2})(\d{2})$', text)
    if offset:
        text = text[:offset.start()] + f"{offset.group(1)}:{offset.group(2)}"
    # and at most six fractional digits
    text = re.sub(r'(\.\d{6})\d+', r'\1', text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse_syslog(match: 're.Match', now: datetime) -> Optional[datetime]:
    month = MONTHS.get(match.group(1))
    if month is None:
        return None
    try:
        parsed = datetime(
            now.year, month, int(match.group(2)),
            int(match.group(3)), int(match.group(4)), int(match.group(5)),
        )
    except ValueError:
        return None
    # A December line read in early January belongs to last year
    if parsed > now.replace(tzinfo=None):
        try:
            parsed = parsed.replace(year=now.year - 1)
        except ValueError:
            return None
    return parsed


def parse_timestamp(line: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Extract the leading timestamp of a log line.

    Args:
        line: Raw log line
        now: Reference time used to infer the year of syslog timestamps

    Returns:
        datetime (timezone-aware for RFC 3339 input with an offset, naive
        local time for syslog input) or None when no timestamp is recognized
    """
    line = line.lstrip()

    match = RFC3339_PATTERN.match(line)
    if match:
        return _parse_rfc3339(match.group(1))

    match = SYSLOG_PATTERN.match(line)
    if match:
        return _parse_syslog(match, now or datetime.now(timezone.utc).astimezone())

    return None
