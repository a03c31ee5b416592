"""
Session lifecycle endpoints for the farm portal authentication service.

This module provides the FastAPI router for signup, login, logout and
refresh token exchange.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError

from farm_auth.auth import (AuthenticationManager, EmailInUseError,
                            InvalidCredentialsError, InvalidRefreshTokenError,
                            InvalidRoleError)
from farm_auth.config.jwt_config import ConfigurationError
from farm_auth.dependencies import get_auth_manager
from farm_auth.errors import (APIError, ErrorCode, bad_request, server_error,
                              unauthorized)
from farm_auth.schemas import (AuthResponse, ErrorResponse, LoginRequest,
                               MessageResponse, RefreshTokenRequest,
                               SignupRequest, UserPublic)
from farm_auth.security import WeakPasswordError

logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(tags=["authentication"])

_REFRESH_ERRORS = {
    "expired": (ErrorCode.REFRESH_TOKEN_EXPIRED, "Refresh token expired"),
    "invalid": (ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token"),
    "revoked": (ErrorCode.REFRESH_TOKEN_REVOKED, "Refresh token revoked"),
}


def _require_refresh_token(body: Optional[RefreshTokenRequest]) -> str:
    if body is None or not body.refresh_token:
        raise bad_request(ErrorCode.MISSING_REFRESH_TOKEN, "Refresh token is required")
    return body.refresh_token


def _refresh_token_error(exc: InvalidRefreshTokenError, unknown_user: ErrorCode) -> APIError:
    if exc.reason == "unknown_user":
        message = "Invalid user" if unknown_user == ErrorCode.INVALID_USER else "Invalid refresh token"
        return unauthorized(unknown_user, message)
    code, message = _REFRESH_ERRORS[exc.reason]
    return unauthorized(code, message)


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields, invalid data or email in use"},
        403: {"model": ErrorResponse, "description": "Admin role requested"},
        500: {"model": ErrorResponse, "description": "Registration failed"},
    },
    summary="Register a new user",
    description="Create a farmer or buyer account and return its first token pair.",
)
def signup(
    body: Optional[SignupRequest] = None,
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """
    Register a new user and log them in.

    Args:
        body: Signup request data.
        auth_manager: Authentication manager for this request.

    Returns:
        AuthResponse with the access token, refresh token and sanitized user.

    Raises:
        APIError: If registration fails.
    """
    body = body or SignupRequest()
    if not body.name or not body.email or not body.password:
        raise bad_request(ErrorCode.MISSING_REQUIRED_FIELDS, "Name, email, and password are required")

    try:
        user, tokens = auth_manager.register_user(
            body.name,
            body.email,
            body.password,
            body.role,
            phone=body.phone,
            location=body.location,
            land_size=body.land_size,
            soil_type=body.soil_type,
        )
    except InvalidRoleError as e:
        if e.forbidden:
            raise APIError(status.HTTP_403_FORBIDDEN, ErrorCode.INVALID_ROLE, str(e))
        raise bad_request(ErrorCode.INVALID_ROLE, str(e))
    except EmailInUseError:
        raise bad_request(ErrorCode.EMAIL_IN_USE, "Email already in use")
    except WeakPasswordError as e:
        raise bad_request(ErrorCode.WEAK_PASSWORD, str(e))
    except ValueError as e:
        raise bad_request(ErrorCode.VALIDATION_ERROR, str(e))
    except (ConfigurationError, SQLAlchemyError) as e:
        logger.error(f"Signup error: {str(e)}", exc_info=True)
        raise server_error(ErrorCode.REGISTRATION_FAILED, "Registration failed")

    return AuthResponse(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserPublic.model_validate(user),
        message="Registration successful",
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse, "description": "Missing credentials"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Authenticate user and get tokens",
    description="Authenticate with email and password, and return access and refresh tokens.",
)
def login(
    body: Optional[LoginRequest] = None,
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """
    Authenticate a user and generate access and refresh tokens.

    Unknown emails and wrong passwords get the same response.

    Raises:
        APIError: If authentication fails.
    """
    body = body or LoginRequest()
    if not body.email or not body.password:
        raise bad_request(ErrorCode.MISSING_CREDENTIALS, "Email and password are required")

    try:
        user, tokens = auth_manager.authenticate_user(body.email, body.password)
    except InvalidCredentialsError as e:
        raise unauthorized(ErrorCode.LOGIN_FAILED, str(e))
    except (ConfigurationError, SQLAlchemyError) as e:
        logger.error(f"Login error: {str(e)}", exc_info=True)
        raise server_error(ErrorCode.SERVER_ERROR)

    return AuthResponse(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserPublic.model_validate(user),
        message="Login successful",
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse, "description": "Missing refresh token"},
        401: {"model": ErrorResponse, "description": "Invalid, expired or revoked refresh token"},
        500: {"model": ErrorResponse, "description": "Logout failed"},
    },
    summary="Logout user",
    description="Revoke every access and refresh token of the refresh token's owner.",
)
def logout(
    body: Optional[RefreshTokenRequest] = None,
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """
    Logout a user by clearing both of their token allowlists.

    Raises:
        APIError: If logout fails.
    """
    refresh_token = _require_refresh_token(body)

    try:
        auth_manager.logout_user(refresh_token)
    except InvalidRefreshTokenError as e:
        raise _refresh_token_error(e, unknown_user=ErrorCode.INVALID_USER)
    except (ConfigurationError, SQLAlchemyError) as e:
        logger.error(f"Logout error: {str(e)}", exc_info=True)
        raise server_error(ErrorCode.LOGOUT_FAILED, "Logout failed")

    return MessageResponse(message="Logged out successfully")


@router.post(
    "/refresh-token",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse, "description": "Missing refresh token"},
        401: {"model": ErrorResponse, "description": "Invalid, expired or revoked refresh token"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Refresh tokens",
    description="Exchange a refresh token for a new access and refresh token pair.",
)
def refresh_token(
    body: Optional[RefreshTokenRequest] = None,
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """
    Rotate a refresh token. The presented refresh token cannot be used again.

    Raises:
        APIError: If the refresh token cannot be exchanged.
    """
    token = _require_refresh_token(body)

    try:
        user, tokens = auth_manager.refresh_tokens(token)
    except InvalidRefreshTokenError as e:
        raise _refresh_token_error(e, unknown_user=ErrorCode.INVALID_REFRESH_TOKEN)
    except (ConfigurationError, SQLAlchemyError) as e:
        logger.error(f"Token refresh error: {str(e)}", exc_info=True)
        raise server_error(ErrorCode.SERVER_ERROR)

    return AuthResponse(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserPublic.model_validate(user),
        message="Token refreshed successfully",
    )
