#!/usr/bin/env python3
"""
Report Policy - what gets said about a blocked connection.

Maps a LogRecord to the category list and comment sent to the abuse API.
Product rules, not pipeline mechanics: swap the policy to change them.
"""

from enum import IntEnum
from typing import Dict, List, Optional

from ..parsing import LogRecord


class AbuseCategory(IntEnum):
    """
    Abuse report categories.
    https://www.abuseipdb.com/categories
    """
    DNS_COMPROMISE = 1
    DNS_POISONING = 2
    FRAUD_ORDERS = 3
    DDOS_ATTACK = 4
    FTP_BRUTE_FORCE = 5
    PING_OF_DEATH = 6
    PHISHING = 7
    FRAUD_VOIP = 8
    OPEN_PROXY = 9
    WEB_SPAM = 10
    EMAIL_SPAM = 11
    BLOG_SPAM = 12
    VPN_IP = 13
    PORT_SCAN = 14
    HACKING = 15
    SQL_INJECTION = 16
    SPOOFING = 17
    BRUTE_FORCE = 18
    BAD_WEB_BOT = 19
    EXPLOITED_HOST = 20
    WEB_APP_ATTACK = 21
    SSH = 22
    IOT_TARGETED = 23


_C = AbuseCategory

# Destination port -> categories; a blocked hit is always at least a port scan
DEFAULT_PORT_CATEGORIES: Dict[int, List[int]] = {
    21: [_C.PORT_SCAN, _C.FTP_BRUTE_FORCE, _C.BRUTE_FORCE],
    22: [_C.PORT_SCAN, _C.SSH, _C.BRUTE_FORCE],
    23: [_C.PORT_SCAN, _C.HACKING, _C.BRUTE_FORCE, _C.IOT_TARGETED],
    25: [_C.PORT_SCAN, _C.EMAIL_SPAM],
    53: [_C.PORT_SCAN, _C.DNS_COMPROMISE],
    80: [_C.PORT_SCAN, _C.WEB_APP_ATTACK],
    110: [_C.PORT_SCAN, _C.EMAIL_SPAM],
    143: [_C.PORT_SCAN, _C.EMAIL_SPAM],
    443: [_C.PORT_SCAN, _C.WEB_APP_ATTACK],
    445: [_C.PORT_SCAN, _C.HACKING],
    1433: [_C.PORT_SCAN, _C.SQL_INJECTION],
    2222: [_C.PORT_SCAN, _C.SSH, _C.BRUTE_FORCE],
    2323: [_C.PORT_SCAN, _C.HACKING, _C.IOT_TARGETED],
    3306: [_C.PORT_SCAN, _C.SQL_INJECTION],
    3389: [_C.PORT_SCAN, _C.HACKING, _C.BRUTE_FORCE],
    5060: [_C.PORT_SCAN, _C.FRAUD_VOIP],
    5432: [_C.PORT_SCAN, _C.SQL_INJECTION],
    5900: [_C.PORT_SCAN, _C.HACKING, _C.BRUTE_FORCE],
    6379: [_C.PORT_SCAN, _C.HACKING],
    8080: [_C.PORT_SCAN, _C.WEB_APP_ATTACK],
    8443: [_C.PORT_SCAN, _C.WEB_APP_ATTACK],
    27017: [_C.PORT_SCAN, _C.HACKING],
}

DEFAULT_CATEGORIES: List[int] = [_C.PORT_SCAN]

DEFAULT_COMMENT_TEMPLATE = (
    "Blocked by UFW ({dpt}/{proto}). "
    "Source port: {spt} | TTL: {ttl} | Packet length: {length} | TOS: {tos}"
    "{syn_note}"
)

MAX_COMMENT_LENGTH = 1024

# Rendered once when a policy is built, so a bad template fails at start-up
_SAMPLE_RECORD = LogRecord(
    src_ip='192.0.2.1', dst_ip='198.51.100.2', proto='TCP', spt=40000, dpt=22,
    ttl=64, length=60, tos='0x00', syn=True, flags=frozenset({'SYN'}),
)


class ReportPolicy:
    """
    Default policy: categories from the destination port, comment from a
    ``str.format`` template over the record's fields.

    Template fields: every LogRecord field (missing values render as
    ``N/A``), ``proto`` lower-cased, and ``syn_note``.
    """

    def __init__(
        self,
        port_categories: Optional[Dict[int, List[int]]] = None,
        default_categories: Optional[List[int]] = None,
        comment_template: Optional[str] = None,
    ):
        self.port_categories = dict(DEFAULT_PORT_CATEGORIES)
        if port_categories:
            self.port_categories.update(port_categories)
        self.default_categories = list(default_categories or DEFAULT_CATEGORIES)
        self.comment_template = comment_template or DEFAULT_COMMENT_TEMPLATE
        try:
            self.comment(_SAMPLE_RECORD)
        except (KeyError, IndexError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid comment template {self.comment_template!r}: {e!r}") from e

    def categories(self, record: LogRecord) -> List[int]:
        cats = self.port_categories.get(record.dpt, self.default_categories)
        return [int(c) for c in cats]

    def comment(self, record: LogRecord) -> str:
        fields = {
            k: ('N/A' if v is None else v)
            for k, v in record.to_dict().items()
        }
        fields['proto'] = (record.proto or 'N/A').lower()
        fields['flags'] = ' '.join(sorted(record.flags)) or 'N/A'
        fields['syn_note'] = ' | SYN (connection attempt)' if record.syn and not record.ack else ''
        comment = self.comment_template.format(**fields)
        return comment[:MAX_COMMENT_LENGTH]
