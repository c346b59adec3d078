"""
Unit tests for environment-driven settings.
"""

import pytest

from audience_hub.core.config import Settings, parse_connections


class TestParseConnections:
    """WAREHOUSE_CONNECTIONS parsing"""

    def test_empty_string(self):
        assert parse_connections("") == {}

    def test_multiple_entries(self):
        raw = "analytics=postgresql://user:pw@db/analytics; local = sqlite:///./warehouse.db ;"
        assert parse_connections(raw) == {
            "analytics": "postgresql://user:pw@db/analytics",
            "local": "sqlite:///./warehouse.db",
        }

    def test_url_may_contain_equals_signs(self):
        assert parse_connections("wh=postgresql://db/x?sslmode=require") == {"wh": "postgresql://db/x?sslmode=require"}

    @pytest.mark.parametrize("raw", ["no-separator", "=sqlite://", "wh="])
    def test_invalid_entries(self, raw):
        with pytest.raises(ValueError):
            parse_connections(raw)


class TestSettingsFromEnv:
    """Settings.from_env"""

    def test_defaults(self, monkeypatch):
        for name in [
            "WAREHOUSE_CONNECTIONS",
            "COHORT_PREVIEW_LIMIT",
            "AUDIENCE_STRICT_FIELDS",
            "AUDIENCE_JOIN_STRATEGY",
            "COHORT_COUNT_TTL_HOURS",
            "AUDIENCE_CHILD_KEY_FIELD",
        ]:
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.warehouse_connections == {}
        assert settings.cohort_preview_limit == 25
        assert settings.cohort_count_ttl_hours == 24
        assert settings.strict_fields is True
        assert settings.join_strategy == "first_match"
        assert settings.child_key_field == "ic_cntid"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("WAREHOUSE_CONNECTIONS", "wh=sqlite:///./wh.db")
        monkeypatch.setenv("COHORT_PREVIEW_LIMIT", "10")
        monkeypatch.setenv("AUDIENCE_STRICT_FIELDS", "false")
        monkeypatch.setenv("AUDIENCE_STRICT_OPERATORS", "yes")
        monkeypatch.setenv("AUDIENCE_JOIN_STRATEGY", "graph")
        monkeypatch.setenv("WAREHOUSE_QUERY_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("APPLICATION_ID", "audience-hub-tests")
        monkeypatch.setenv("AUDIENCE_CHILD_KEY_FIELD", "person_id")

        settings = Settings.from_env()

        assert settings.warehouse_connections == {"wh": "sqlite:///./wh.db"}
        assert settings.cohort_preview_limit == 10
        assert settings.strict_fields is False
        assert settings.strict_operators is True
        assert settings.join_strategy == "graph"
        assert settings.warehouse_query_timeout_seconds == 12.5
        assert settings.application_id == "audience-hub-tests"
        assert settings.child_key_field == "person_id"
