"""
Dependency injection for the farm portal authentication service.

This module provides the FastAPI dependencies that open the per-request
authentication manager and guard routes with an access token.
"""
import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from farm_auth.auth import AuthenticationManager
from farm_auth.config.jwt_config import TOKEN_TYPE_ACCESS, ConfigurationError
from farm_auth.database import get_session
from farm_auth.errors import ErrorCode, server_error, unauthorized
from farm_auth.models import User
from farm_auth.schemas import UserPublic
from farm_auth.token import TokenStatus, verify_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer"


@dataclass
class AuthContext:
    """The authenticated caller and the access token they presented."""
    user: User
    token: str


# PUBLIC_INTERFACE
def get_auth_manager(session: Session = Depends(get_session)) -> AuthenticationManager:
    """Authentication manager bound to the request's database session."""
    return AuthenticationManager(session)


def _extract_token(authorization: str) -> str:
    """Strip the Bearer scheme from an Authorization header value."""
    value = authorization.strip()
    if value == BEARER_PREFIX or value.startswith(BEARER_PREFIX + " "):
        return value[len(BEARER_PREFIX):].strip()
    return value


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    session: Session = Depends(get_session),
) -> AuthContext:
    """
    Authenticate the request from its `Authorization: Bearer <token>` header.

    The token must verify against the access secret, be unexpired, name an
    existing user, and still be in that user's access-token allowlist. On
    success the sanitized user and the token are also stored on
    `request.state` for middleware and logging.

    Args:
        request: FastAPI request object.
        session: Database session for the request.

    Returns:
        AuthContext for the authenticated caller.

    Raises:
        APIError: 401 with a code naming the failed check, or 500 AUTH_ERROR
            when the signing secrets are misconfigured.
    """
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise unauthorized(ErrorCode.MISSING_AUTH_HEADER, "Authorization header missing")

    token = _extract_token(authorization)
    if not token:
        raise unauthorized(ErrorCode.NO_TOKEN_PROVIDED, "No token provided")

    try:
        result = verify_token(token, TOKEN_TYPE_ACCESS)
    except ConfigurationError as e:
        logger.error(f"Authentication misconfigured: {str(e)}")
        raise server_error(ErrorCode.AUTH_ERROR, "Authentication failed")

    if result.status is TokenStatus.EXPIRED:
        raise unauthorized(ErrorCode.TOKEN_EXPIRED, "Token has expired")
    if result.status in (TokenStatus.MALFORMED, TokenStatus.SIGNATURE_MISMATCH):
        logger.warning(f"Rejected access token: {result.status.value}")
        raise unauthorized(ErrorCode.INVALID_TOKEN, "Invalid token")

    user = session.get(User, result.user_id)
    if user is None:
        raise unauthorized(ErrorCode.USER_NOT_FOUND, "User not found for this token")

    if not user.has_access_token(token):
        raise unauthorized(ErrorCode.TOKEN_REVOKED, "Token is no longer valid")

    request.state.user = UserPublic.model_validate(user)
    request.state.token = token
    return AuthContext(user=user, token=token)
