#!/usr/bin/env python3
"""
UFW Reporter configuration.

Loaded from the ``reporter:`` section of a YAML file, or from
``UFW_REPORTER_*`` environment variables when no file is found:

    reporter:
      log_file: /var/log/ufw.log
      cache_file: /var/lib/ufw-reporter/reported_ips.cache
      cooldown: 12h
      api_key: ...
      server_id: fw-01
      discord_webhook_url: https://discord.com/api/webhooks/...
      categories_by_port:
        8022: [14, 22, 18]
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .parsing import BLOCK_MARKER
from .reporting.policy import ReportPolicy
from .reporting.providers.spamverify import DEFAULT_REPORT_URL
from .network.self_ips import DEFAULT_LOOKUP_URL


DEFAULT_CONFIG_PATHS = [
    Path("ufw-reporter.yaml"),
    Path("config/ufw-reporter.yaml"),
    Path("/etc/ufw-reporter/config.yaml"),
]


class ConfigError(Exception):
    """Invalid configuration value."""


def parse_duration_hours(value: Any) -> float:
    """
    Parse a cooldown such as ``12h``, ``30m``, ``90s`` or a bare number of
    hours into hours.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        hours = float(value)
    else:
        text = str(value).strip().lower()
        units = {'h': 1.0, 'm': 1 / 60, 's': 1 / 3600, 'd': 24.0}
        factor = 1.0
        if text and text[-1] in units:
            factor = units[text[-1]]
            text = text[:-1]
        try:
            hours = float(text) * factor
        except ValueError:
            raise ConfigError(f"Invalid duration: {value!r}")
    if hours <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return hours


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _positive(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return number


def _comment_template(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    try:
        ReportPolicy(comment_template=str(raw))
    except ValueError as e:
        raise ConfigError(str(e))
    return str(raw)


def _port_categories(raw: Any) -> Dict[int, List[int]]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("categories_by_port must be a mapping of port -> categories")
    parsed = {}
    for port, cats in raw.items():
        if isinstance(cats, str):
            cats = cats.split(',')
        try:
            parsed[int(port)] = [int(c) for c in cats]
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid categories for port {port!r}: {cats!r}")
    return parsed


@dataclass
class ReporterConfig:
    """Runtime configuration of the reporter."""
    log_file: str = "/var/log/ufw.log"
    cache_file: str = "/var/lib/ufw-reporter/reported_ips.cache"
    cooldown_hours: float = 12
    api_key: Optional[str] = None
    api_url: str = DEFAULT_REPORT_URL
    api_key_header: str = "Api-Key"
    request_timeout: float = 30
    marker: str = BLOCK_MARKER
    server_id: str = "ufw-reporter"
    ip_lookup_url: Optional[str] = DEFAULT_LOOKUP_URL
    ip_refresh_interval: float = 3600
    extra_self_ips: List[str] = field(default_factory=list)
    discord_enabled: bool = False
    discord_webhook_url: Optional[str] = None
    summaries_enabled: bool = False
    block_documentation_ranges: bool = False
    categories_by_port: Dict[int, List[int]] = field(default_factory=dict)
    comment_template: Optional[str] = None
    log_level: str = "INFO"

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_hours * 3600

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReporterConfig':
        """Create config from dictionary (e.g., YAML parsed)."""
        defaults = cls()
        webhook = data.get('discord_webhook_url')
        return cls(
            log_file=data.get('log_file', defaults.log_file),
            cache_file=data.get('cache_file', defaults.cache_file),
            cooldown_hours=parse_duration_hours(data.get('cooldown', defaults.cooldown_hours)),
            api_key=data.get('api_key') or os.environ.get('SPAMVERIFY_API_KEY'),
            api_url=data.get('api_url', defaults.api_url),
            api_key_header=data.get('api_key_header', defaults.api_key_header),
            request_timeout=_positive('request_timeout', data.get('request_timeout', defaults.request_timeout)),
            marker=data.get('marker', defaults.marker),
            server_id=str(data.get('server_id', defaults.server_id)),
            ip_lookup_url=data.get('ip_lookup_url', defaults.ip_lookup_url),
            ip_refresh_interval=_positive(
                'ip_refresh_interval', data.get('ip_refresh_interval', defaults.ip_refresh_interval)
            ),
            extra_self_ips=list(data.get('extra_self_ips') or []),
            discord_enabled=_as_bool(data.get('discord_enabled', bool(webhook))),
            discord_webhook_url=webhook,
            summaries_enabled=_as_bool(data.get('summaries_enabled', False)),
            block_documentation_ranges=_as_bool(data.get('block_documentation_ranges', False)),
            categories_by_port=_port_categories(data.get('categories_by_port')),
            comment_template=_comment_template(data.get('comment_template')),
            log_level=str(data.get('log_level', defaults.log_level)).upper(),
        )

    @classmethod
    def from_env(cls) -> 'ReporterConfig':
        """Create config from environment variables."""
        env = os.environ
        defaults = cls()
        webhook = env.get('UFW_REPORTER_DISCORD_WEBHOOK_URL')
        extra = env.get('UFW_REPORTER_EXTRA_SELF_IPS', '')
        return cls(
            log_file=env.get('UFW_REPORTER_LOG_FILE', defaults.log_file),
            cache_file=env.get('UFW_REPORTER_CACHE_FILE', defaults.cache_file),
            cooldown_hours=parse_duration_hours(env.get('UFW_REPORTER_COOLDOWN', defaults.cooldown_hours)),
            api_key=env.get('SPAMVERIFY_API_KEY'),
            api_url=env.get('UFW_REPORTER_API_URL', defaults.api_url),
            api_key_header=env.get('UFW_REPORTER_API_KEY_HEADER', defaults.api_key_header),
            request_timeout=_positive(
                'UFW_REPORTER_REQUEST_TIMEOUT', env.get('UFW_REPORTER_REQUEST_TIMEOUT', defaults.request_timeout)
            ),
            marker=env.get('UFW_REPORTER_MARKER', defaults.marker),
            server_id=env.get('UFW_REPORTER_SERVER_ID', defaults.server_id),
            ip_lookup_url=env.get('UFW_REPORTER_IP_LOOKUP_URL', defaults.ip_lookup_url) or None,
            ip_refresh_interval=_positive(
                'UFW_REPORTER_IP_REFRESH_INTERVAL',
                env.get('UFW_REPORTER_IP_REFRESH_INTERVAL', defaults.ip_refresh_interval),
            ),
            extra_self_ips=[ip.strip() for ip in extra.split(',') if ip.strip()],
            discord_enabled=_as_bool(env.get('UFW_REPORTER_DISCORD_ENABLED', bool(webhook))),
            discord_webhook_url=webhook,
            summaries_enabled=_as_bool(env.get('UFW_REPORTER_SUMMARIES_ENABLED', 'false')),
            block_documentation_ranges=_as_bool(env.get('UFW_REPORTER_BLOCK_DOCUMENTATION_RANGES', 'false')),
            log_level=env.get('UFW_REPORTER_LOG_LEVEL', defaults.log_level).upper(),
        )


def load_config(path: Optional[str] = None) -> ReporterConfig:
    """
    Load configuration from a YAML file, falling back to the environment.

    Args:
        path: Explicit config file; default locations are tried otherwise

    Raises:
        ConfigError: the file is unreadable, not valid YAML, or holds
            invalid values
    """
    if path is None:
        for candidate in DEFAULT_CONFIG_PATHS:
            if candidate.exists():
                path = str(candidate)
                break

    if path is None:
        return ReporterConfig.from_env()

    try:
        with open(path) as f:
            document = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(document, dict):
        raise ConfigError(f"{path} must contain a mapping")
    section = document.get('reporter', document)
    if not isinstance(section, dict):
        raise ConfigError(f"'reporter' section in {path} must be a mapping")
    return ReporterConfig.from_dict(section)
