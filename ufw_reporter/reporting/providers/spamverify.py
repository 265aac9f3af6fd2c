#!/usr/bin/env python3
"""
SpamVerify Reporter - Submit abuse reports for blocked source addresses.

API: POST https://api.spamverify.com/v1/ip/report
Environment variable: SPAMVERIFY_API_KEY

One call per report, no retries: a rate-limited or failed report is simply
attempted again the next time the address shows up in the log.
"""

import asyncio
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from ... import __version__
from ...parsing import LogRecord


DEFAULT_REPORT_URL = "https://api.spamverify.com/v1/ip/report"
MAX_COMMENT_LENGTH = 1024


class ReportOutcome(Enum):
    """How the abuse API answered."""
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    FAILURE = "failure"


@dataclass
class ReportResult:
    """Result of an abuse report submission."""
    outcome: ReportOutcome
    ip: str
    provider: str = "spamverify"
    status: Optional[int] = None
    threat_score: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = ""
    raw_response: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def success(self) -> bool:
        return self.outcome is ReportOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'outcome': self.outcome.value,
            'ip': self.ip,
            'provider': self.provider,
            'status': self.status,
            'threat_score': self.threat_score,
            'message': self.message,
            'error': self.error,
            'timestamp': self.timestamp,
        }


def _error_detail(response_data: Any) -> Optional[str]:
    if isinstance(response_data, dict) and response_data.get('errors'):
        return str(response_data['errors'])
    return None


class SpamVerifyReporter:
    """
    Submit abuse reports to the SpamVerify API.

    Usage:
        reporter = SpamVerifyReporter(api_key="...")
        result = await reporter.report(record, [14, 22], "Blocked by UFW (22/tcp)")
        if result.outcome is ReportOutcome.SUCCESS:
            ...
    """

    name = "spamverify"

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: str = DEFAULT_REPORT_URL,
        api_key_header: str = "Api-Key",
        timeout: float = 30.0,
    ):
        """
        Initialize the reporter.

        Args:
            api_key: API key (or from SPAMVERIFY_API_KEY env var)
            url: Report endpoint
            api_key_header: Header carrying the credential
            timeout: Total request timeout in seconds
        """
        self.api_key = api_key or os.environ.get('SPAMVERIFY_API_KEY')
        self.url = url
        self.api_key_header = api_key_header
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        """Check if reporter is enabled."""
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            self.api_key_header: self.api_key,
            "Accept": "application/json",
            "Cache-Control": "no-cache",
            "User-Agent": f"Mozilla/5.0 (compatible; UFW-Reporter/{__version__})",
        }

    async def report(
        self,
        record: LogRecord,
        categories: List[int],
        comment: str,
    ) -> ReportResult:
        """
        Submit an abuse report for the record's source address.

        Args:
            record: Parsed block event
            categories: Category ids
            comment: Human-readable description (truncated to 1024 chars)

        Returns:
            ReportResult; never raises for HTTP or transport errors
        """
        ip = record.src_ip

        if not self.enabled:
            return ReportResult(
                outcome=ReportOutcome.FAILURE,
                ip=ip,
                error="API key not configured. Set SPAMVERIFY_API_KEY environment variable."
            )

        payload = {
            "ip_address": ip,
            "categories": [int(c) for c in categories],
            "comment": comment[:MAX_COMMENT_LENGTH],
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.url,
                    headers=self._headers(),
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    try:
                        response_data = await response.json(content_type=None)
                    except ValueError:
                        response_data = None
                    if not isinstance(response_data, dict):
                        response_data = None

                    if 200 <= response.status < 300:
                        data = (response_data or {}).get("data")
                        threat_score = data.get("threat_score") if isinstance(data, dict) else None
                        return ReportResult(
                            outcome=ReportOutcome.SUCCESS,
                            ip=ip,
                            status=response.status,
                            threat_score=threat_score,
                            message=f"Report accepted. Abuse: {threat_score}%",
                            raw_response=response_data,
                        )
                    elif response.status == 429:
                        return ReportResult(
                            outcome=ReportOutcome.RATE_LIMITED,
                            ip=ip,
                            status=response.status,
                            error="Rate limit exceeded. Try again later.",
                            raw_response=response_data,
                        )
                    elif response.status == 401:
                        return ReportResult(
                            outcome=ReportOutcome.FAILURE,
                            ip=ip,
                            status=response.status,
                            error="Invalid API key",
                            raw_response=response_data,
                        )
                    else:
                        detail = _error_detail(response_data)
                        return ReportResult(
                            outcome=ReportOutcome.FAILURE,
                            ip=ip,
                            status=response.status,
                            error=f"API error: HTTP {response.status}" + (f"\n{detail}" if detail else ""),
                            raw_response=response_data,
                        )

        except asyncio.TimeoutError:
            return ReportResult(
                outcome=ReportOutcome.FAILURE,
                ip=ip,
                error=f"Request timed out after {self.timeout}s"
            )
        except aiohttp.ClientError as e:
            return ReportResult(
                outcome=ReportOutcome.FAILURE,
                ip=ip,
                error=f"Connection error: {str(e)}"
            )
