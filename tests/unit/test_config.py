"""Tests for Settings and environment discovery."""
import pytest

from rubicsync.config import Settings
from rubicsync.errors import ConfigurationError


def _settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestTargetEnvironments:
    def test_none_enabled_by_default(self):
        assert _settings().target_environments() == []

    def test_environment_needs_both_tokens(self):
        settings = _settings(tripletex_production_consumer_token="c")
        assert settings.target_environments() == []

    def test_production_listed_before_sandbox(self):
        settings = _settings(
            tripletex_production_consumer_token="c1",
            tripletex_production_employee_token="e1",
            tripletex_sandbox_consumer_token="c2",
            tripletex_sandbox_employee_token="e2",
        )
        envs = settings.target_environments()
        assert [e.name for e in envs] == ["production", "sandbox"]
        assert envs[1].base_url == "https://api.tripletex.io/v2"
        assert envs[1].consumer_token == "c2"

    def test_invalid_enabled_endpoint_rejected(self):
        settings = _settings(
            tripletex_sandbox_base_url="https://tripletex.evil.io/v2",
            tripletex_sandbox_consumer_token="c",
            tripletex_sandbox_employee_token="e",
        )
        with pytest.raises(ConfigurationError):
            settings.target_environments()

    def test_disabled_environment_not_validated(self):
        settings = _settings(tripletex_sandbox_base_url="http://localhost")
        assert settings.target_environments() == []


class TestSourceEndpoint:
    def test_valid(self):
        endpoint = _settings(rubic_api_key="k", rubic_organization_id=7).source_endpoint()
        assert endpoint.organization_id == 7
        assert endpoint.api_key == "k"

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            _settings(rubic_api_base_url="https://rubic.example.com").source_endpoint()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RUBIC_ORGANIZATION_ID", "314")
        monkeypatch.setenv("CRON_SECRET", "shh")
        settings = _settings()
        assert settings.rubic_organization_id == 314
        assert settings.cron_secret == "shh"
