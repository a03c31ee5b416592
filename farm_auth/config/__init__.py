"""
Configuration package for the farm portal authentication service.
"""

from farm_auth.config.settings import settings, get_settings
from farm_auth.config.jwt_config import (
    ConfigurationError,
    get_jwt_settings,
    get_signing_key,
    get_token_expiry,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH
)

__all__ = [
    "ConfigurationError",
    "get_jwt_settings",
    "get_signing_key",
    "get_token_expiry",
    "TOKEN_TYPE_ACCESS",
    "TOKEN_TYPE_REFRESH",
    "settings",
    "get_settings"
]
