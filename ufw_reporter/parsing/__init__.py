#!/usr/bin/env python3
"""
UFW log parsing.
"""

from .ufw import BLOCK_MARKER, LogRecord, is_block_event, parse_line
from .timestamps import parse_timestamp

__all__ = [
    'BLOCK_MARKER',
    'LogRecord',
    'is_block_event',
    'parse_line',
    'parse_timestamp',
]
