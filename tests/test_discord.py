#!/usr/bin/env python3
"""
Tests for Discord notifications.
"""

import sys
from pathlib import Path
from unittest.mock import patch
from urllib.error import URLError

sys.path.insert(0, str(Path(__file__).parent.parent))

from ufw_reporter.alerts import DiscordNotifier, NotificationLevel, NullNotifier


HOOK = "https://discord.example/api/webhooks/1/abc"


class TestPayload:
    """Tests for embed formatting."""

    def test_embed(self):
        notifier = DiscordNotifier(HOOK, server_id="fw-01")
        payload = notifier.build_payload(NotificationLevel.ERROR, "Failed to report 203.0.113.7")

        embed = payload["embeds"][0]
        assert embed["title"] == "❌ fw-01: ERROR [ID 2]"
        assert embed["description"] == "Failed to report 203.0.113.7"
        assert embed["color"] == NotificationLevel.ERROR.color
        assert "UFW Reporter" in embed["footer"]["text"]

    def test_description_truncated(self):
        notifier = DiscordNotifier(HOOK)
        payload = notifier.build_payload(NotificationLevel.INFO, "x" * 10000)
        assert len(payload["embeds"][0]["description"]) == 4096

    def test_every_level_has_emoji_and_color(self):
        for level in NotificationLevel:
            assert level.emoji
            assert isinstance(level.color, int)


class TestDelivery:
    """Tests for fire-and-forget delivery."""

    def test_disabled_without_url(self):
        notifier = DiscordNotifier(None)
        assert notifier.enabled is False
        with patch.object(notifier, "_http_post") as post:
            notifier.notify(NotificationLevel.INFO, "hello")
        post.assert_not_called()

    def test_disabled_by_switch(self):
        notifier = DiscordNotifier(HOOK, enabled=False, async_send=False)
        with patch.object(notifier, "_http_post") as post:
            notifier.notify(NotificationLevel.INFO, "hello")
        post.assert_not_called()

    def test_sends(self):
        notifier = DiscordNotifier(HOOK, async_send=False)
        with patch.object(notifier, "_http_post") as post:
            notifier.notify(NotificationLevel.NOTICE, "digest")

        post.assert_called_once()
        assert post.call_args[0][0]["embeds"][0]["description"] == "digest"
        assert notifier.get_stats() == {"sent": 1, "failed": 0}

    def test_failure_is_logged_not_raised(self, caplog):
        notifier = DiscordNotifier(HOOK, async_send=False, max_retries=2, retry_delay=0)
        with patch.object(notifier, "_http_post", side_effect=URLError("unreachable")) as post:
            notifier.notify(NotificationLevel.ERROR, "boom")

        assert post.call_count == 2
        assert notifier.get_stats() == {"sent": 0, "failed": 1}
        assert "Failed to deliver Discord webhook" in caplog.text

    def test_retry_then_success(self):
        notifier = DiscordNotifier(HOOK, async_send=False, max_retries=3, retry_delay=0)
        with patch.object(notifier, "_http_post", side_effect=[OSError("reset"), None]) as post:
            notifier.notify(NotificationLevel.WARN, "flaky")

        assert post.call_count == 2
        assert notifier.get_stats() == {"sent": 1, "failed": 0}


def test_null_notifier_accepts_anything():
    NullNotifier().notify(NotificationLevel.CRITICAL, "ignored")
