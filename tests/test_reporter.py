#!/usr/bin/env python3
"""
Tests for the SpamVerify reporter, against a local aiohttp test server.
"""

import asyncio
import pytest
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from aiohttp import web
from aiohttp import test_utils

sys.path.insert(0, str(Path(__file__).parent.parent))

from ufw_reporter.parsing import parse_line
from ufw_reporter.reporting.providers.spamverify import ReportOutcome, SpamVerifyReporter


RECORD = parse_line(
    "[UFW BLOCK] IN=eth0 OUT= SRC=45.33.32.156 DST=198.51.100.2 LEN=60 TTL=54 "
    "ID=4321 PROTO=TCP SPT=51234 DPT=22 SYN URGP=0"
)


@asynccontextmanager
async def api_server(status=200, body=None, delay=0.0, requests=None):
    """Run a fake report endpoint; yields its URL."""
    async def handler(request):
        if requests is not None:
            requests.append({
                'headers': dict(request.headers),
                'json': await request.json(),
            })
        if delay:
            await asyncio.sleep(delay)
        if body is None:
            return web.Response(status=status, text="not json")
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_post('/v1/ip/report', handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url('/v1/ip/report'))
    finally:
        await server.close()


class TestSpamVerifyReporter:
    """Tests for outcome classification."""

    @pytest.mark.asyncio
    async def test_success(self):
        requests = []
        async with api_server(200, {"data": {"threat_score": 87}}, requests=requests) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url)
            result = await reporter.report(RECORD, [14, 22, 18], "Blocked by UFW (22/tcp)")

        assert result.outcome is ReportOutcome.SUCCESS
        assert result.success is True
        assert result.threat_score == 87
        assert result.status == 200

        assert len(requests) == 1
        sent = requests[0]
        assert sent['headers']['Api-Key'] == "secret"
        assert sent['json'] == {
            "ip_address": "45.33.32.156",
            "categories": [14, 22, 18],
            "comment": "Blocked by UFW (22/tcp)",
        }

    @pytest.mark.asyncio
    async def test_custom_credential_header(self):
        requests = []
        async with api_server(200, {"data": {}}, requests=requests) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url, api_key_header="Key")
            await reporter.report(RECORD, [14], "x")
        assert requests[0]['headers']['Key'] == "secret"

    @pytest.mark.asyncio
    async def test_comment_truncated(self):
        requests = []
        async with api_server(200, {"data": {"threat_score": 1}}, requests=requests) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url)
            await reporter.report(RECORD, [14], "x" * 5000)
        assert len(requests[0]['json']['comment']) == 1024

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        async with api_server(429, {"errors": [{"detail": "Too many requests"}]}) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url)
            result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.RATE_LIMITED
        assert result.success is False

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with api_server(500, {"errors": [{"detail": "boom"}]}) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url)
            result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.FAILURE
        assert "HTTP 500" in result.error
        assert "boom" in result.error

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with api_server(401, {"errors": []}) as url:
            reporter = SpamVerifyReporter(api_key="wrong", url=url)
            result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.FAILURE
        assert result.error == "Invalid API key"

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        async with api_server(200, None) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url)
            result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.SUCCESS
        assert result.threat_score is None

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        async with api_server(200, {"data": {}}, delay=2.0) as url:
            reporter = SpamVerifyReporter(api_key="secret", url=url, timeout=0.2)
            result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.FAILURE
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_connection_error_is_failure(self):
        reporter = SpamVerifyReporter(api_key="secret", url="http://127.0.0.1:9/v1/ip/report", timeout=2)
        result = await reporter.report(RECORD, [14], "x")

        assert result.outcome is ReportOutcome.FAILURE
        assert result.error.startswith("Connection error")

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("SPAMVERIFY_API_KEY", raising=False)
        reporter = SpamVerifyReporter(api_key=None, url="http://127.0.0.1:9/")

        assert reporter.enabled is False
        result = await reporter.report(RECORD, [14], "x")
        assert result.outcome is ReportOutcome.FAILURE
        assert "API key" in result.error

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("SPAMVERIFY_API_KEY", "from-env")
        assert SpamVerifyReporter().api_key == "from-env"

    def test_result_to_dict(self):
        from ufw_reporter.reporting.providers.spamverify import ReportResult
        data = ReportResult(outcome=ReportOutcome.RATE_LIMITED, ip="45.33.32.156").to_dict()
        assert data['outcome'] == "rate_limited"
        assert data['timestamp']
