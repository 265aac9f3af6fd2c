#!/usr/bin/env python3
"""
UFW Reporter operator notifications.
"""

from .discord import DiscordNotifier, NotificationLevel, Notifier, NullNotifier

__all__ = [
    'DiscordNotifier',
    'NotificationLevel',
    'Notifier',
    'NullNotifier',
]
