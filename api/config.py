"""
API configuration settings: server, bearer token and CORS.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "LegalGen Research API"
    api_version: str = "1.0.0"
    api_description: str = "Research books, legal information, keyword search and sharing"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Bearer token settings
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "legalgen-api"
    jwt_audience: str = "legalgen-clients"
    jwt_lifetime_minutes: int = 60

    # CORS Settings
    cors_origins: list = ["*"]  # Configure appropriately for production
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator('jwt_algorithm')
    @classmethod
    def validate_jwt_algorithm(cls, v):
        """Tokens are signed with a shared secret, so only HMAC algorithms apply."""
        valid_algorithms = ['HS256', 'HS384', 'HS512']
        if v.upper() not in valid_algorithms:
            raise ValueError(f'jwt_algorithm must be one of: {valid_algorithms}')
        return v.upper()

    @field_validator('jwt_lifetime_minutes')
    @classmethod
    def validate_jwt_lifetime(cls, v):
        if v < 1:
            raise ValueError('jwt_lifetime_minutes must be at least 1')
        return v


# Global config instance
config = APIConfig()
