#!/usr/bin/env python3
"""
Log file tailing.
"""

from .tailer import LogFileUnavailable, LogTailer, TailerState, TailState

__all__ = [
    'LogFileUnavailable',
    'LogTailer',
    'TailerState',
    'TailState',
]
