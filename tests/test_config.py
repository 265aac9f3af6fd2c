#!/usr/bin/env python3
"""
Tests for configuration loading.
"""

import os
import pytest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from ufw_reporter.config import ConfigError, ReporterConfig, load_config, parse_duration_hours


class TestParseDuration:
    """Tests for cooldown durations."""

    @pytest.mark.parametrize("value,hours", [
        ("12h", 12),
        ("30m", 0.5),
        ("5400s", 1.5),
        ("1d", 24),
        (6, 6),
        (0.25, 0.25),
        ("8", 8),
        (" 2H ", 2),
    ])
    def test_valid(self, value, hours):
        assert parse_duration_hours(value) == pytest.approx(hours)

    @pytest.mark.parametrize("value", ["", "abc", "12x", "0", "-1h", 0, True])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_duration_hours(value)


class TestReporterConfig:
    """Tests for ReporterConfig constructors."""

    def test_defaults(self):
        config = ReporterConfig()
        assert config.log_file == "/var/log/ufw.log"
        assert config.cooldown_seconds == 12 * 3600
        assert config.block_documentation_ranges is False
        assert config.discord_enabled is False

    def test_from_dict(self):
        config = ReporterConfig.from_dict({
            'log_file': '/tmp/ufw.log',
            'cooldown': '6h',
            'api_key': 'secret',
            'server_id': 'fw-02',
            'extra_self_ips': ['198.51.100.2'],
            'discord_webhook_url': 'https://discord.example/hook',
            'categories_by_port': {8022: [14, 22], '2525': '14,11'},
            'log_level': 'debug',
        })

        assert config.log_file == '/tmp/ufw.log'
        assert config.cooldown_seconds == 6 * 3600
        assert config.api_key == 'secret'
        assert config.server_id == 'fw-02'
        assert config.extra_self_ips == ['198.51.100.2']
        assert config.discord_enabled is True
        assert config.categories_by_port == {8022: [14, 22], 2525: [14, 11]}
        assert config.log_level == 'DEBUG'

    def test_from_dict_api_key_falls_back_to_env(self):
        with patch.dict(os.environ, {'SPAMVERIFY_API_KEY': 'env-key'}):
            config = ReporterConfig.from_dict({})
        assert config.api_key == 'env-key'

    def test_from_dict_discord_can_be_disabled(self):
        config = ReporterConfig.from_dict({
            'discord_webhook_url': 'https://discord.example/hook',
            'discord_enabled': False,
        })
        assert config.discord_enabled is False

    def test_from_dict_invalid_values(self):
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'cooldown': 'soon'})
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'request_timeout': -5})
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'categories_by_port': [22]})
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'categories_by_port': {22: ['ssh']}})

    def test_from_env(self):
        env = {
            'UFW_REPORTER_LOG_FILE': '/srv/ufw.log',
            'UFW_REPORTER_COOLDOWN': '90m',
            'SPAMVERIFY_API_KEY': 'env-key',
            'UFW_REPORTER_EXTRA_SELF_IPS': '198.51.100.2, 2001:db8::2 ,',
            'UFW_REPORTER_SUMMARIES_ENABLED': 'yes',
            'UFW_REPORTER_BLOCK_DOCUMENTATION_RANGES': 'true',
            'UFW_REPORTER_IP_LOOKUP_URL': '',
        }
        with patch.dict(os.environ, env, clear=True):
            config = ReporterConfig.from_env()

        assert config.log_file == '/srv/ufw.log'
        assert config.cooldown_hours == pytest.approx(1.5)
        assert config.api_key == 'env-key'
        assert config.extra_self_ips == ['198.51.100.2', '2001:db8::2']
        assert config.summaries_enabled is True
        assert config.block_documentation_ranges is True
        assert config.ip_lookup_url is None


class TestLoadConfig:
    """Tests for load_config."""

    def test_reporter_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "reporter:\n"
            "  log_file: /tmp/ufw.log\n"
            "  cooldown: 1h\n"
            "  categories_by_port:\n"
            "    8022: [14, 22, 18]\n"
        )

        config = load_config(str(path))
        assert config.log_file == '/tmp/ufw.log'
        assert config.cooldown_hours == 1
        assert config.categories_by_port == {8022: [14, 22, 18]}

    def test_flat_document(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server_id: fw-03\n")
        assert load_config(str(path)).server_id == 'fw-03'

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)).log_file == '/var/log/ufw.log'

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("reporter: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "ufw-reporter.yaml").write_text("reporter:\n  server_id: from-cwd\n")
        assert load_config().server_id == 'from-cwd'

    def test_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch('ufw_reporter.config.DEFAULT_CONFIG_PATHS', [tmp_path / "absent.yaml"]):
            with patch.dict(os.environ, {'UFW_REPORTER_SERVER_ID': 'from-env'}):
                assert load_config().server_id == 'from-env'


class TestCommentTemplate:
    """Comment templates are rendered once when the config is read."""

    def test_valid_template(self):
        config = ReporterConfig.from_dict({'comment_template': "Blocked {src_ip} on {dpt}/{proto}"})
        assert config.comment_template == "Blocked {src_ip} on {dpt}/{proto}"

    def test_unknown_placeholder(self):
        with pytest.raises(ConfigError, match="dport"):
            ReporterConfig.from_dict({'comment_template': "Blocked {dport}"})

    def test_positional_placeholder(self):
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'comment_template': "Blocked {0}"})

    def test_unbalanced_braces(self):
        with pytest.raises(ConfigError):
            ReporterConfig.from_dict({'comment_template': "Blocked {dpt"})

    def test_yaml_template_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("reporter:\n  comment_template: 'Blocked {dport}'\n")
        with pytest.raises(ConfigError):
            load_config(str(path))
