"""
Farm portal authentication service.

This package provides the authentication core of the farmer portal:
- User records with bcrypt password storage
- Signed access/refresh token pairs tracked in per-user allowlists
- A request gate for access tokens
- Signup, login, logout and refresh endpoints, plus profile endpoints
"""

__version__ = "0.1.0"

# Export config constants first to avoid circular imports
from farm_auth.config import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    ConfigurationError,
)

from farm_auth.database import (
    Base,
    init_db,
    get_session,
)

from farm_auth.models import (
    User,
    UserRole,
    SoilType,
    IrrigationType,
)

from farm_auth.token import (
    create_token,
    verify_token,
    issue_token_pair,
    revoke_all_tokens,
    rotate_refresh_token,
    TokenPair,
    TokenStatus,
    TokenVerification,
    TokenError,
    RefreshTokenNotFoundError,
)

from farm_auth.auth import (
    AuthenticationManager,
    AuthError,
    EmailInUseError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidRoleError,
    UserNotFoundError,
)

__all__ = [
    # Models
    "User",
    "UserRole",
    "SoilType",
    "IrrigationType",

    # Database
    "Base",
    "init_db",
    "get_session",

    # Token management
    "create_token",
    "verify_token",
    "issue_token_pair",
    "revoke_all_tokens",
    "rotate_refresh_token",
    "TokenPair",
    "TokenStatus",
    "TokenVerification",
    "TokenError",
    "RefreshTokenNotFoundError",

    # Authentication
    "AuthenticationManager",
    "AuthError",
    "EmailInUseError",
    "InvalidCredentialsError",
    "InvalidRefreshTokenError",
    "InvalidRoleError",
    "UserNotFoundError",

    # Config constants
    "TOKEN_TYPE_ACCESS",
    "TOKEN_TYPE_REFRESH",
    "ConfigurationError",
]
