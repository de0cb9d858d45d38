"""Tests for application settings."""

from docflow.core.config import Settings


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url.startswith("postgresql://")
        assert settings.log_level == "INFO"
        assert settings.collaborator_timeout == 10.0

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("UM_SERVICE_URL", "http://users.internal/")
        monkeypatch.setenv("COLLABORATOR_TIMEOUT", "3.5")

        settings = Settings(_env_file=None)

        assert settings.um_service_url == "http://users.internal/"
        assert settings.collaborator_timeout == 3.5

    def test_provisional_account_falls_back_to_exchange(self):
        settings = Settings(_env_file=None, exchange_service_url="http://x/")

        assert settings.provisional_account_base == "http://x/"

    def test_provisional_account_override(self):
        settings = Settings(
            _env_file=None,
            exchange_service_url="http://x/",
            provisional_account_url="http://p/",
        )

        assert settings.provisional_account_base == "http://p/"
