"""Unit tests for exporter settings."""

import pytest
from pydantic import ValidationError

from pgexporter.core.config import Settings, parse_labels
from pgexporter.core.exceptions import ConfigurationError


class TestParseLabels:
    """Tests for constant-label parsing."""

    def test_empty(self):
        assert parse_labels("") == {}

    def test_pairs(self):
        assert parse_labels("env=prod, cluster = main") == {"env": "prod", "cluster": "main"}

    def test_trailing_comma_ignored(self):
        assert parse_labels("env=prod,") == {"env": "prod"}

    def test_empty_value_allowed(self):
        assert parse_labels("env=") == {"env": ""}

    @pytest.mark.parametrize("raw", ["env", "=prod", "env=prod,region"])
    def test_malformed(self, raw):
        with pytest.raises(ConfigurationError):
            parse_labels(raw)


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.INTERVAL == 20.0
        assert settings.QUERY_TIMEOUT == 1.0
        assert settings.PORT == 9111
        assert settings.const_labels == {}

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("PG_EXPORTER_INTERVAL", "5")
        monkeypatch.setenv("PG_EXPORTER_LABELS", "env=staging")

        settings = Settings(_env_file=None)

        assert settings.INTERVAL == 5.0
        assert settings.const_labels == {"env": "staging"}

    @pytest.mark.parametrize("field", ["INTERVAL", "QUERY_TIMEOUT"])
    def test_non_positive_durations_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})
