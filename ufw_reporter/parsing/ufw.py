#!/usr/bin/env python3
"""
UFW Block Line Parser

Turns one kernel log line written by UFW into a LogRecord:

    Jan  2 03:04:05 host kernel: [UFW BLOCK] IN=eth0 OUT= MAC=... SRC=203.0.113.7
    DST=198.51.100.2 LEN=60 TOS=0x00 PREC=0x00 TTL=54 ID=4321 DF PROTO=TCP
    SPT=51234 DPT=22 WINDOW=64240 RES=0x00 SYN URGP=0

Every field has its own extractor that looks for a whitespace-bounded
``KEY=value`` token anywhere in the line. A field that is missing or has a
value that does not parse becomes None without affecting the others.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Optional

from .timestamps import parse_timestamp


BLOCK_MARKER = '[UFW BLOCK]'

TCP_FLAGS = ('ACK', 'SYN', 'FIN', 'RST', 'PSH', 'URG')


@dataclass(frozen=True)
class LogRecord:
    """One parsed firewall block event."""
    src_ip: Optional[str]
    raw: str = ""
    timestamp: Optional[datetime] = None
    dst_ip: Optional[str] = None
    proto: Optional[str] = None
    spt: Optional[int] = None
    dpt: Optional[int] = None
    in_iface: Optional[str] = None
    out_iface: Optional[str] = None
    mac: Optional[str] = None
    length: Optional[int] = None
    ttl: Optional[int] = None
    packet_id: Optional[int] = None
    tos: Optional[str] = None
    prec: Optional[str] = None
    res: Optional[str] = None
    window: Optional[int] = None
    urgp: Optional[int] = None
    ack: bool = False
    syn: bool = False
    flags: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def protocol(self) -> str:
        """Upper-cased protocol for comparisons (empty string when absent)."""
        return (self.proto or '').upper()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat() if self.timestamp else None
        data['flags'] = sorted(self.flags)
        data.pop('raw')
        return data


# === Field extractors ===

def _token(key: str, value: str = r'\S+') -> 're.Pattern':
    return re.compile(rf'(?<!\S){key}=({value})')


def text_field(key: str, value: str = r'\S+') -> Callable[[str], Optional[str]]:
    """Extractor returning the raw value of ``KEY=value``."""
    pattern = _token(key, value)

    def extract(line: str) -> Optional[str]:
        match = pattern.search(line)
        return match.group(1) if match else None

    return extract


def int_field(key: str) -> Callable[[str], Optional[int]]:
    """Extractor returning ``KEY=value`` as an int, or None if not an integer."""
    pattern = _token(key)

    def extract(line: str) -> Optional[int]:
        match = pattern.search(line)
        if not match:
            return None
        try:
            return int(match.group(1), 10)
        except ValueError:
            return None

    return extract


def flag_field(flag: str) -> Callable[[str], bool]:
    """Extractor testing for a bare flag token such as ``SYN``."""
    pattern = re.compile(rf'(?<!\S){flag}(?!\S)')

    def extract(line: str) -> bool:
        return bool(pattern.search(line))

    return extract


ADDRESS = r'[0-9A-Fa-f:.]+'

FIELD_EXTRACTORS: Dict[str, Callable[[str], Any]] = {
    'src_ip': text_field('SRC', ADDRESS),
    'dst_ip': text_field('DST', ADDRESS),
    'proto': text_field('PROTO'),
    'spt': int_field('SPT'),
    'dpt': int_field('DPT'),
    'in_iface': text_field('IN'),
    'out_iface': text_field('OUT'),
    'mac': text_field('MAC', r'[0-9A-Fa-f:]+'),
    'length': int_field('LEN'),
    'ttl': int_field('TTL'),
    'packet_id': int_field('ID'),
    'tos': text_field('TOS'),
    'prec': text_field('PREC'),
    'res': text_field('RES'),
    'window': int_field('WINDOW'),
    'urgp': int_field('URGP'),
}

_FLAG_EXTRACTORS = {flag: flag_field(flag) for flag in TCP_FLAGS}


def is_block_event(line: str, marker: str = BLOCK_MARKER) -> bool:
    """Check whether a line carries the block marker token."""
    return marker in line


def parse_line(
    line: str,
    marker: str = BLOCK_MARKER,
    now: Optional[datetime] = None,
) -> Optional[LogRecord]:
    """
    Parse a UFW log line.

    Args:
        line: Raw log line
        marker: Token identifying block events
        now: Reference time for year inference of syslog timestamps

    Returns:
        LogRecord, or None if the line is not a block event
    """
    if not is_block_event(line, marker):
        return None

    values = {name: extract(line) for name, extract in FIELD_EXTRACTORS.items()}
    flags = frozenset(flag for flag, extract in _FLAG_EXTRACTORS.items() if extract(line))

    return LogRecord(
        raw=line,
        timestamp=parse_timestamp(line, now),
        ack='ACK' in flags,
        syn='SYN' in flags,
        flags=flags,
        **values,
    )
