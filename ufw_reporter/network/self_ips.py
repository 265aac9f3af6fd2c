#!/usr/bin/env python3
"""
Self-Address Discovery

Keeps the set of addresses that belong to this host, so the firewall's own
traffic is never reported. Sources:
- a public "what is my IP" endpoint (the NAT/public IPv4)
- the addresses the kernel picks for outbound IPv4/IPv6 traffic
- whatever the hostname resolves to

The set is refreshed periodically and replaced as a whole; readers always
see a complete snapshot.
"""

import asyncio
import logging
import socket
from typing import FrozenSet, Iterable, Optional, Set

import aiohttp

from ..reporting.filters import is_non_routable, parse_address


logger = logging.getLogger('ufw_reporter.network.self_ips')

DEFAULT_LOOKUP_URL = "https://api.sefinek.net/api/v2/ip"

# Never contacted: connect() on a UDP socket only selects a route
_PROBE_TARGETS = (
    (socket.AF_INET, '1.1.1.1'),
    (socket.AF_INET6, '2606:4700:4700::1111'),
)


class StaticAddressProvider:
    """Fixed set of self addresses."""

    def __init__(self, addresses: Iterable[str] = ()):
        self._addresses: FrozenSet[str] = frozenset(addresses)

    def get_addresses(self) -> FrozenSet[str]:
        return self._addresses


def outbound_addresses() -> Set[str]:
    """Source addresses the kernel would use for outbound traffic."""
    found = set()
    for family, target in _PROBE_TARGETS:
        try:
            with socket.socket(family, socket.SOCK_DGRAM) as sock:
                sock.connect((target, 53))
                found.add(sock.getsockname()[0])
        except OSError:
            continue
    return found


def hostname_addresses() -> Set[str]:
    """Addresses the local hostname resolves to."""
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None)
    except (socket.gaierror, UnicodeError):
        return set()
    return {info[4][0].split('%', 1)[0] for info in infos}


class SelfAddressProvider:
    """
    Periodically refreshed set of this host's public addresses.

    Usage:
        provider = SelfAddressProvider(refresh_interval=3600)
        await provider.refresh()
        task = asyncio.create_task(provider.run())
        ...
        provider.get_addresses()
    """

    def __init__(
        self,
        lookup_url: Optional[str] = DEFAULT_LOOKUP_URL,
        refresh_interval: float = 3600,
        extra_addresses: Iterable[str] = (),
        timeout: float = 15.0,
    ):
        """
        Args:
            lookup_url: Public IP endpoint; None disables the lookup
            refresh_interval: Seconds between refreshes
            extra_addresses: Addresses always treated as our own
            timeout: HTTP timeout for the lookup
        """
        self.lookup_url = lookup_url
        self.refresh_interval = refresh_interval
        self.extra_addresses = frozenset(extra_addresses)
        self.timeout = timeout
        self._addresses: FrozenSet[str] = self.extra_addresses

    def get_addresses(self) -> FrozenSet[str]:
        """Current snapshot of self addresses."""
        return self._addresses

    async def fetch_public_address(self) -> Optional[str]:
        """Ask the lookup endpoint for our public address."""
        if not self.lookup_url:
            return None
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.lookup_url,
                    headers={"Accept": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Error fetching public IP address: {e}")
            return None

        if isinstance(data, dict) and data.get('success') and data.get('message'):
            address = str(data['message']).strip()
            if parse_address(address) is not None:
                return address
        logger.warning(f"Unexpected response from {self.lookup_url}: {data!r}")
        return None

    def local_addresses(self) -> Set[str]:
        """Routable addresses configured on this host."""
        candidates = outbound_addresses() | hostname_addresses()
        return {addr for addr in candidates if not is_non_routable(addr)}

    async def refresh(self) -> FrozenSet[str]:
        """Rebuild the address set and swap it in."""
        addresses = set(self.extra_addresses)

        public = await self.fetch_public_address()
        if public:
            addresses.add(public)

        loop = asyncio.get_running_loop()
        addresses |= await loop.run_in_executor(None, self.local_addresses)

        self._addresses = frozenset(addresses)
        logger.debug(f"Self addresses: {sorted(self._addresses)}")
        return self._addresses

    async def run(self):
        """Refresh forever, every refresh_interval seconds."""
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()
