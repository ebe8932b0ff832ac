"""
Tests for settings validation and logging context helpers.
"""

import pytest
import structlog
from pydantic import ValidationError

from utilities.config import AppConfig
from utilities.logger import bind_request_context, clear_request_context


class TestAppConfig:

    def test_log_level_normalized(self):
        assert AppConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            AppConfig(log_level="chatty")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            AppConfig(log_format="xml")

    @pytest.mark.parametrize("minutes", [0, 1441])
    def test_reset_lifetime_bounds(self, minutes):
        with pytest.raises(ValidationError):
            AppConfig(password_reset_token_minutes=minutes)

    def test_smtp_configured_needs_credentials(self):
        assert not AppConfig(smtp_username="", smtp_password="").smtp_configured()
        assert AppConfig(smtp_username="mailer", smtp_password="secret").smtp_configured()

    def test_log_file_path(self):
        assert AppConfig(log_file=None).get_log_file_path() is None
        assert AppConfig(log_file="logs/x.log").get_log_file_path().name == "x.log"


def test_request_context_bind_and_clear():
    clear_request_context()
    bind_request_context(user_id="u1", path="/api/AiChat")
    assert structlog.contextvars.get_contextvars() == {"user_id": "u1", "path": "/api/AiChat"}

    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}


class TestAPIConfig:

    def test_jwt_algorithm_normalized(self):
        from api.config import APIConfig
        assert APIConfig(jwt_algorithm="hs512").jwt_algorithm == "HS512"

    def test_asymmetric_algorithm_rejected(self):
        from api.config import APIConfig
        with pytest.raises(ValidationError):
            APIConfig(jwt_algorithm="RS256")

    def test_lifetime_must_be_positive(self):
        from api.config import APIConfig
        with pytest.raises(ValidationError):
            APIConfig(jwt_lifetime_minutes=0)


def test_unknown_settings_are_ignored():
    settings = AppConfig(test_mode=True)
    assert "test_mode" not in AppConfig.model_fields
    assert not hasattr(settings, "test_mode")
