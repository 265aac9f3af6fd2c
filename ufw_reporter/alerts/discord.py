#!/usr/bin/env python3
"""
UFW Reporter Notifications

Fire-and-forget delivery of operator notifications to a Discord webhook.
Delivery runs on a daemon thread so the reporting pipeline never waits on
it and never sees its failures.
"""

import json
import logging
import threading
import time
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


logger = logging.getLogger('ufw_reporter.alerts.discord')


class NotificationLevel(IntEnum):
    """Notification levels, with their embed emoji and colour."""
    SUCCESS = 0
    WARN = 1
    ERROR = 2
    FAIL = 3
    INFO = 4
    DEBUG = 5
    CRITICAL = 6
    NOTICE = 7

    @property
    def emoji(self) -> str:
        return _EMOJIS[self]

    @property
    def color(self) -> int:
        return _COLORS[self]


_EMOJIS = {
    NotificationLevel.SUCCESS: '✅',
    NotificationLevel.WARN: '⚠️',
    NotificationLevel.ERROR: '❌',
    NotificationLevel.FAIL: '\U0001f534',
    NotificationLevel.INFO: '\U0001f4c4',
    NotificationLevel.DEBUG: '\U0001f6e0️',
    NotificationLevel.CRITICAL: '\U0001f534',
    NotificationLevel.NOTICE: '\U0001f4dd',
}

_COLORS = {
    NotificationLevel.SUCCESS: 0x60D06D,
    NotificationLevel.WARN: 0xFFB02E,
    NotificationLevel.ERROR: 0xF92F60,
    NotificationLevel.FAIL: 0xF8312F,
    NotificationLevel.INFO: 0xF2EEF8,
    NotificationLevel.DEBUG: 0xB4ACBC,
    NotificationLevel.CRITICAL: 0xF8312F,
    NotificationLevel.NOTICE: 0xF3EEF8,
}


class Notifier:
    """Notification sink interface. Implementations must never raise."""

    def notify(self, level: NotificationLevel, message: str):
        raise NotImplementedError


class NullNotifier(Notifier):
    """Drops every notification."""

    def notify(self, level: NotificationLevel, message: str):
        pass


class DiscordNotifier(Notifier):
    """
    Posts notifications as Discord embeds.

    Usage:
        notifier = DiscordNotifier(url, server_id="fw-01")
        notifier.notify(NotificationLevel.ERROR, "Failed to report 203.0.113.7")
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        server_id: str = "ufw-reporter",
        enabled: bool = True,
        async_send: bool = True,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
    ):
        """
        Args:
            webhook_url: Discord webhook URL
            server_id: Name of this host, shown in the embed title
            enabled: Master switch
            async_send: Deliver on a daemon thread (False for tests)
            max_retries: Delivery attempts per notification
            retry_delay: Initial retry delay (doubles each retry)
            timeout: HTTP timeout per attempt
        """
        self.webhook_url = webhook_url
        self.server_id = server_id
        self.enabled = enabled and bool(webhook_url)
        self.async_send = async_send
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout

        self._stats = {'sent': 0, 'failed': 0}
        self._lock = threading.Lock()

    def build_payload(self, level: NotificationLevel, message: str) -> Dict[str, Any]:
        """Format a notification as a Discord embed."""
        now = datetime.now(timezone.utc)
        return {
            "embeds": [
                {
                    "title": f"{level.emoji} {self.server_id}: {level.name} [ID {int(level)}]",
                    "description": message[:4096],
                    "color": level.color,
                    "footer": {"text": f"Date: {now.strftime('%Y-%m-%d %H:%M:%S UTC')} | UFW Reporter"},
                    "timestamp": now.isoformat(),
                }
            ]
        }

    def notify(self, level: NotificationLevel, message: str):
        if not self.enabled:
            return

        payload = self.build_payload(level, message)
        if self.async_send:
            thread = threading.Thread(
                target=self._send,
                args=(payload,),
                daemon=True,
            )
            thread.start()
        else:
            self._send(payload)

    def _send(self, payload: Dict[str, Any]):
        """Deliver a payload with retries."""
        delay = self.retry_delay
        for attempt in range(self.max_retries):
            try:
                self._http_post(payload)
                with self._lock:
                    self._stats['sent'] += 1
                return
            except (HTTPError, URLError, OSError) as e:
                if attempt < self.max_retries - 1:
                    time.sleep(delay)
                    delay *= 2
                else:
                    # logger only, never back into notify()
                    logger.warning(f"Failed to deliver Discord webhook: {e}")
                    with self._lock:
                        self._stats['failed'] += 1

    def _http_post(self, payload: Dict[str, Any]):
        data = json.dumps(payload).encode('utf-8')
        request = Request(
            self.webhook_url,
            data=data,
            headers={
                'Content-Type': 'application/json',
                'User-Agent': 'UFW-Reporter/1.0',
            },
            method='POST',
        )
        with urlopen(request, timeout=self.timeout) as response:
            return response.read()

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)
