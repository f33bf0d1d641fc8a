"""Tests for application settings."""

from accesslayer.config.settings import Settings, get_settings
from accesslayer.policies.conditions import ConditionLimits


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.evaluation_timeout_ms == 250.0
        assert settings.max_condition_depth == 10
        assert settings.max_condition_nodes == 200
        assert settings.audit_enabled is True
        assert settings.policy_file is None

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ACCESSLAYER_EVALUATION_TIMEOUT_MS", "50")
        monkeypatch.setenv("ACCESSLAYER_AUDIT_ENABLED", "false")

        settings = Settings()

        assert settings.evaluation_timeout_ms == 50.0
        assert settings.audit_enabled is False

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("ACCESSLAYER_MAX_CONDITION_DEPTH=4\n")

        assert Settings().max_condition_depth == 4

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_limits_from_settings(self, monkeypatch):
        monkeypatch.setenv("ACCESSLAYER_MAX_CONDITION_NODES", "7")
        get_settings.cache_clear()

        limits = ConditionLimits.from_settings()

        assert limits.max_nodes == 7
        assert limits.max_depth == 10
