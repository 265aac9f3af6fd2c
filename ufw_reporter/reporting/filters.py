#!/usr/bin/env python3
"""
UFW Reporter Filters

Decides whether a parsed block event may be reported at all:
- the source address must be present and parse as an IP address
- it must not belong to this host
- it must be globally routable (exact CIDR membership, both families)
- the protocol must be TCP; a UDP source address is trivially spoofed

The cooldown check lives in the report cache, since it needs state.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Union

from ..parsing import LogRecord


IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


NON_ROUTABLE_NETWORKS = [ipaddress.ip_network(n) for n in (
    # IPv4
    '0.0.0.0/8',           # "this network"
    '10.0.0.0/8',          # RFC 1918
    '100.64.0.0/10',       # carrier-grade NAT
    '127.0.0.0/8',         # loopback
    '169.254.0.0/16',      # link-local
    '172.16.0.0/12',       # RFC 1918
    '192.0.0.0/24',        # IETF protocol assignments
    '192.88.99.0/24',      # 6to4 relay anycast (deprecated)
    '192.168.0.0/16',      # RFC 1918
    '198.18.0.0/15',       # benchmarking
    '224.0.0.0/4',         # multicast
    '240.0.0.0/4',         # reserved
    '255.255.255.255/32',  # broadcast
    # IPv6
    '::/128',              # unspecified
    '::1/128',             # loopback
    '100::/64',            # discard-only
    'fc00::/7',            # unique local
    'fe80::/10',           # link-local
    'fec0::/10',           # site-local (deprecated)
    'ff00::/8',            # multicast
)]

DOCUMENTATION_NETWORKS = [ipaddress.ip_network(n) for n in (
    '192.0.2.0/24',        # TEST-NET-1
    '198.51.100.0/24',     # TEST-NET-2
    '203.0.113.0/24',      # TEST-NET-3
    '2001:db8::/32',
    '3fff::/20',
)]


@dataclass
class FilterResult:
    """Result of filtering decision."""
    should_report: bool
    ip: Optional[str]
    reason: Optional[str] = None
    filter_name: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'should_report': self.should_report,
            'ip': self.ip,
            'reason': self.reason,
            'filter_name': self.filter_name,
            'details': self.details,
        }


def parse_address(addr: Optional[str]) -> Optional[IPAddress]:
    """Parse an address, unwrapping IPv4-mapped IPv6. None if unparseable."""
    if not addr:
        return None
    try:
        ip = ipaddress.ip_address(addr.strip())
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _in_networks(ip: IPAddress, networks) -> bool:
    return any(ip.version == net.version and ip in net for net in networks)


def is_non_routable(addr: str, block_documentation: bool = False) -> bool:
    """
    Check whether an address lies in a private, loopback, link-local,
    multicast, reserved or unspecified block.

    Args:
        addr: IPv4 or IPv6 address
        block_documentation: Also treat RFC 5737 / RFC 3849 documentation
            blocks as non-routable

    Unparseable input counts as non-routable.
    """
    ip = parse_address(addr)
    if ip is None:
        return True
    if _in_networks(ip, NON_ROUTABLE_NETWORKS):
        return True
    return block_documentation and _in_networks(ip, DOCUMENTATION_NETWORKS)


def is_self(addr: str, self_addresses: Iterable[str]) -> bool:
    """Check whether an address is one of this host's addresses."""
    ip = parse_address(addr)
    if ip is None:
        return False
    return any(parse_address(own) == ip for own in self_addresses)


def is_reportable_protocol(proto: Optional[str]) -> bool:
    """Only TCP is reportable: a completed handshake is needed to trust SRC."""
    return (proto or '').upper() == 'TCP'


def evaluate(
    record: LogRecord,
    self_addresses: Iterable[str],
    block_documentation: bool = False,
) -> FilterResult:
    """
    Run the stateless filter chain over a record.

    Checks, in order:
    1. Malformed - missing or unparseable source address
    2. Self - source is one of our own addresses
    3. Non-routable - source is in a private/reserved block
    4. Protocol - anything but TCP
    """
    src = record.src_ip

    if parse_address(src) is None:
        return FilterResult(
            should_report=False,
            ip=src,
            reason="Missing SRC in the log line" if not src else f"Unparseable SRC {src!r}",
            filter_name="malformed",
        )

    if is_self(src, self_addresses):
        return FilterResult(
            should_report=False,
            ip=src,
            reason="Ignoring own IP address",
            filter_name="self",
        )

    if is_non_routable(src, block_documentation):
        return FilterResult(
            should_report=False,
            ip=src,
            reason="Ignoring local IP address",
            filter_name="non_routable",
        )

    if not is_reportable_protocol(record.proto):
        return FilterResult(
            should_report=False,
            ip=src,
            reason=f"Skipping {record.proto or 'unknown'} traffic",
            filter_name="protocol",
            details={'proto': record.proto},
        )

    return FilterResult(
        should_report=True,
        ip=src,
        reason="Passed all filters",
    )
