#!/usr/bin/env python3
"""
Abuse Reporting Providers
"""

from .spamverify import ReportOutcome, ReportResult, SpamVerifyReporter

__all__ = [
    'ReportOutcome',
    'ReportResult',
    'SpamVerifyReporter',
]
