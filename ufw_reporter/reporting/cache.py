#!/usr/bin/env python3
"""
Report Cache - remembers when each source address was last reported.

Store format is plain text, one entry per line, no header:

    203.0.113.7 1735787045
    2001:db8::42 1735787101

The store is rewritten in full on every save (temp file + rename), so a
crash mid-write leaves the previous version in place.
"""

import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from .filters import parse_address


logger = logging.getLogger('ufw_reporter.cache')


class CacheIOError(Exception):
    """The cache store exists but could not be read or written."""


def is_valid_timestamp(ts: int) -> bool:
    """Check that a unix timestamp maps to a representable date."""
    try:
        datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return False
    return True


def normalize_address(ip: str) -> str:
    """Canonical spelling of an address, used as the cache key."""
    parsed = parse_address(ip)
    return str(parsed) if parsed is not None else ip


def read_entries(path) -> Iterator[Tuple[str, int]]:
    """
    Yield (address, timestamp) pairs from a cache store.

    Malformed lines and out-of-range timestamps are skipped. Raises
    FileNotFoundError if the store is missing and OSError if it cannot be read.
    """
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            parts = line.split()
            if len(parts) != 2:
                continue
            ip, ts = parts
            try:
                ts = int(ts)
            except ValueError:
                continue
            if not is_valid_timestamp(ts):
                continue
            yield ip, ts


class ReportCache:
    """
    Persistent map of source address -> last successful report time.

    Usage:
        cache = ReportCache('/var/lib/ufw-reporter/reported_ips.cache', 12 * 3600)
        cache.load()

        if not cache.is_on_cooldown(ip):
            ...  # report
            cache.mark_reported(ip)
            cache.save()
    """

    def __init__(self, path, cooldown_seconds: float):
        """
        Args:
            path: Location of the cache store
            cooldown_seconds: Minimum time between two reports of one address
        """
        self.path = Path(path)
        self.cooldown_seconds = cooldown_seconds
        self._entries: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, ip: str) -> bool:
        return ip in self._entries

    def load(self) -> int:
        """
        Populate the cache from the store.

        Returns:
            Number of entries loaded

        Raises:
            CacheIOError: the store exists but is unreadable
        """
        try:
            entries = {normalize_address(ip): ts for ip, ts in read_entries(self.path)}
        except FileNotFoundError:
            logger.info(f"{self.path} does not exist. No data to load.")
            self._entries = {}
            return 0
        except (OSError, UnicodeDecodeError) as e:
            raise CacheIOError(f"Cannot read cache {self.path}: {e}") from e

        self._entries = entries
        logger.info(f"Loaded {len(entries)} IPs from {self.path}")
        return len(entries)

    def save(self):
        """
        Write every entry back to the store, replacing it atomically.

        Raises:
            CacheIOError: the store could not be written
        """
        data = ''.join(f"{ip} {ts}\n" for ip, ts in self._entries.items())
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix='.tmp'
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheIOError(f"Cannot write cache {self.path}: {e}") from e

    def last_reported(self, ip: str) -> Optional[int]:
        """Timestamp of the last successful report of an address, if any."""
        return self._entries.get(ip)

    def is_on_cooldown(self, ip: str, now: Optional[float] = None) -> bool:
        """Check if an address was reported less than the cooldown ago."""
        reported_at = self._entries.get(ip)
        if reported_at is None:
            return False
        if now is None:
            now = time.time()
        return now - reported_at < self.cooldown_seconds

    def mark_reported(self, ip: str, now: Optional[float] = None):
        """Record a successful report. Callers must save() right after."""
        self._entries[ip] = int(now if now is not None else time.time())

    def entries(self) -> Dict[str, int]:
        """Copy of the address -> timestamp mapping."""
        return dict(self._entries)
