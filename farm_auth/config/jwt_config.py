"""
JWT configuration settings for the farm portal authentication service.

This module resolves signing keys and token lifetimes from the application
settings at call time, so tests and deployments can adjust them without
re-importing the token module.
"""
from datetime import timedelta
from typing import Dict, Union

from farm_auth.config.settings import settings

# Token settings
TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


class ConfigurationError(Exception):
    """Exception raised when the service is missing required configuration."""
    pass


# PUBLIC_INTERFACE
def get_jwt_settings() -> Dict[str, Union[str, int]]:
    """
    Get JWT configuration settings that are safe to expose (no secrets).

    Returns:
        Dictionary containing JWT configuration settings.
    """
    return {
        "algorithm": settings.JWT_ALGORITHM,
        "access_token_expire_minutes": settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        "refresh_token_expire_days": settings.REFRESH_TOKEN_EXPIRE_DAYS,
    }


# PUBLIC_INTERFACE
def get_signing_key(token_type: str) -> str:
    """
    Get the secret used to sign and verify tokens of the given type.

    Access and refresh tokens are signed with separate secrets so that a
    leaked access secret cannot be used to mint refresh tokens.

    Args:
        token_type: Type of token (access or refresh).

    Returns:
        The signing secret.

    Raises:
        ConfigurationError: If a secret is missing or both secrets are equal.
        ValueError: If the token type is unknown.
    """
    if token_type not in (TOKEN_TYPE_ACCESS, TOKEN_TYPE_REFRESH):
        raise ValueError(f"Invalid token type: {token_type}")

    access_secret = settings.JWT_ACCESS_SECRET
    refresh_secret = settings.JWT_REFRESH_SECRET
    if access_secret is None or not access_secret.get_secret_value():
        raise ConfigurationError("JWT_ACCESS_SECRET is not defined")
    if refresh_secret is None or not refresh_secret.get_secret_value():
        raise ConfigurationError("JWT_REFRESH_SECRET is not defined")
    if access_secret.get_secret_value() == refresh_secret.get_secret_value():
        raise ConfigurationError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")

    if token_type == TOKEN_TYPE_ACCESS:
        return access_secret.get_secret_value()
    return refresh_secret.get_secret_value()


# PUBLIC_INTERFACE
def get_token_expiry(token_type: str) -> timedelta:
    """
    Get token expiry time based on token type.

    Args:
        token_type: Type of token (access or refresh).

    Returns:
        Timedelta representing token expiry time.
    """
    if token_type == TOKEN_TYPE_ACCESS:
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    elif token_type == TOKEN_TYPE_REFRESH:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    else:
        raise ValueError(f"Invalid token type: {token_type}")
