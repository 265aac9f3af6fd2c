#!/usr/bin/env python3
"""
UFW Reporter Auto-Abuse Reporting

- Stateless filters (self, non-routable, protocol)
- Persistent per-address cooldown cache
- SpamVerify API provider
- Pluggable category/comment policy
"""

from .cache import CacheIOError, ReportCache
from .engine import LineOutcome, LineResult, ReportingEngine, format_elapsed
from .filters import FilterResult, evaluate, is_non_routable, is_reportable_protocol, is_self
from .policy import AbuseCategory, ReportPolicy
from .providers import ReportOutcome, ReportResult, SpamVerifyReporter

__all__ = [
    'AbuseCategory',
    'CacheIOError',
    'FilterResult',
    'LineOutcome',
    'LineResult',
    'ReportCache',
    'ReportOutcome',
    'ReportPolicy',
    'ReportResult',
    'ReportingEngine',
    'SpamVerifyReporter',
    'evaluate',
    'format_elapsed',
    'is_non_routable',
    'is_reportable_protocol',
    'is_self',
]
