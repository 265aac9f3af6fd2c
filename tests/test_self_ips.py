#!/usr/bin/env python3
"""
Tests for self-address discovery.
"""

import pytest
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, patch

from aiohttp import test_utils, web

sys.path.insert(0, str(Path(__file__).parent.parent))

from ufw_reporter.network import SelfAddressProvider, StaticAddressProvider


@asynccontextmanager
async def lookup_server(body, status=200):
    async def handler(request):
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_get('/api/v2/ip', handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url('/api/v2/ip'))
    finally:
        await server.close()


class TestStaticAddressProvider:

    def test_addresses(self):
        provider = StaticAddressProvider(["198.51.100.2", "198.51.100.2"])
        assert provider.get_addresses() == frozenset({"198.51.100.2"})

    def test_empty(self):
        assert StaticAddressProvider().get_addresses() == frozenset()


class TestFetchPublicAddress:
    """Tests for the public IP lookup."""

    @pytest.mark.asyncio
    async def test_success(self):
        async with lookup_server({"success": True, "message": "203.0.113.9"}) as url:
            provider = SelfAddressProvider(lookup_url=url)
            assert await provider.fetch_public_address() == "203.0.113.9"

    @pytest.mark.asyncio
    async def test_unsuccessful_response(self):
        async with lookup_server({"success": False, "message": "rate limited"}) as url:
            provider = SelfAddressProvider(lookup_url=url)
            assert await provider.fetch_public_address() is None

    @pytest.mark.asyncio
    async def test_not_an_address(self):
        async with lookup_server({"success": True, "message": "hello"}) as url:
            provider = SelfAddressProvider(lookup_url=url)
            assert await provider.fetch_public_address() is None

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with lookup_server("<html>", status=502) as url:
            provider = SelfAddressProvider(lookup_url=url)
            assert await provider.fetch_public_address() is None

    @pytest.mark.asyncio
    async def test_unreachable(self):
        provider = SelfAddressProvider(lookup_url="http://127.0.0.1:9/api/v2/ip", timeout=2)
        assert await provider.fetch_public_address() is None

    @pytest.mark.asyncio
    async def test_disabled(self):
        assert await SelfAddressProvider(lookup_url=None).fetch_public_address() is None


class TestRefresh:
    """Tests for rebuilding the address set."""

    def test_initial_set_is_extra_addresses(self):
        provider = SelfAddressProvider(extra_addresses=["198.51.100.2"])
        assert provider.get_addresses() == frozenset({"198.51.100.2"})

    @pytest.mark.asyncio
    async def test_refresh_merges_sources(self):
        provider = SelfAddressProvider(extra_addresses=["198.51.100.2"])
        with patch.object(provider, "fetch_public_address", AsyncMock(return_value="203.0.113.9")), \
                patch.object(provider, "local_addresses", return_value={"2001:470:1:18::2"}):
            addresses = await provider.refresh()

        assert addresses == frozenset({"198.51.100.2", "203.0.113.9", "2001:470:1:18::2"})
        assert provider.get_addresses() == addresses

    @pytest.mark.asyncio
    async def test_refresh_replaces_snapshot(self):
        """Readers holding the old snapshot keep a complete, unchanged set."""
        provider = SelfAddressProvider()
        with patch.object(provider, "fetch_public_address", AsyncMock(return_value="203.0.113.9")), \
                patch.object(provider, "local_addresses", return_value=set()):
            first = await provider.refresh()

        with patch.object(provider, "fetch_public_address", AsyncMock(return_value="203.0.113.10")), \
                patch.object(provider, "local_addresses", return_value=set()):
            second = await provider.refresh()

        assert first == frozenset({"203.0.113.9"})
        assert second == frozenset({"203.0.113.10"})
        assert first is not second

    def test_local_addresses_drop_non_routable(self):
        provider = SelfAddressProvider()
        with patch("ufw_reporter.network.self_ips.outbound_addresses", return_value={"192.168.1.5", "45.33.32.156"}), \
                patch("ufw_reporter.network.self_ips.hostname_addresses", return_value={"127.0.1.1", "::1"}):
            assert provider.local_addresses() == {"45.33.32.156"}
