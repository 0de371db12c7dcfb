"""
Unit Tests - Configuration
"""
import pytest
from pydantic import SecretStr, ValidationError

from retail_analytics.config import Settings
from retail_analytics.serving.api.routes.admin import DEFAULT_TEST_SECRET, expected_secret


class TestSettings:
    """Tests for Settings"""

    def test_defaults(self, test_settings):
        assert test_settings.app_env == "testing"
        assert not test_settings.is_production
        assert test_settings.ingestion.store_sheet_name == "StoreSalesReport"
        assert test_settings.ingestion.preferred_sheets[0] == "Last Closed Week"

    def test_rejects_unknown_environment(self):
        with pytest.raises(ValidationError):
            Settings(APP_ENV="qa")

    def test_database_url_override(self, test_settings):
        test_settings.database.url = "sqlite+aiosqlite:///./retail.db"

        assert test_settings.database.async_url == "sqlite+aiosqlite:///./retail.db"


class TestCleanupSecret:
    """Tests for the cleanup endpoint secret"""

    def test_default_outside_production(self, test_settings):
        test_settings.security.test_api_secret = None

        assert expected_secret(test_settings) == DEFAULT_TEST_SECRET

    def test_no_default_in_production(self):
        settings = Settings(APP_ENV="production")
        settings.security.test_api_secret = None

        assert expected_secret(settings) is None

    def test_configured_secret_wins(self):
        settings = Settings(APP_ENV="production")
        settings.security.test_api_secret = SecretStr("s3cret")

        assert expected_secret(settings) == "s3cret"
