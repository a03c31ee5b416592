"""
JWT token management module for the farm portal authentication service.

This module signs access/refresh token pairs, records them in the owning
user's allowlists, verifies presented tokens, rotates refresh tokens and
revokes every outstanding token of a user.

Verification never raises for a bad token. It returns a `TokenVerification`
whose `status` is one of a closed set of outcomes, and callers decide the
HTTP response by switching on that status.
"""
import datetime
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, NamedTuple, Optional, TypeVar

import jwt
from jwt.exceptions import InvalidSignatureError, InvalidTokenError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from farm_auth.config.jwt_config import (TOKEN_TYPE_ACCESS, TOKEN_TYPE_REFRESH,
                                         get_jwt_settings, get_signing_key,
                                         get_token_expiry)
from farm_auth.models import User

# Configure logger
logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "type", "jti", "exp"]

# Extra attempts for an allowlist write that lost a version check
STALE_WRITE_RETRIES = 3

T = TypeVar("T")


class TokenError(Exception):
    """Base exception for token-related errors."""
    pass


class RefreshTokenNotFoundError(TokenError):
    """Raised when a refresh token is not in the user's allowlist (already used or revoked)."""
    pass


class TokenStatus(enum.Enum):
    """Outcome of verifying a token's signature, structure and expiry."""
    VALID = "valid"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class TokenVerification:
    """Result of `verify_token`. `payload` is set for VALID and EXPIRED tokens."""
    status: TokenStatus
    payload: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.VALID

    @property
    def user_id(self) -> Optional[str]:
        return self.payload.get("sub") if self.payload else None


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# PUBLIC_INTERFACE
def create_token(
    user_id: str,
    token_type: str,
    expires_delta: Optional[datetime.timedelta] = None,
    now: Optional[datetime.datetime] = None,
) -> str:
    """
    Sign a JWT of the given type for a user.

    The token is not recorded anywhere; use `issue_token_pair` to mint tokens
    that the service will honor.

    Args:
        user_id: ID of the user the token identifies.
        token_type: Type of token to create (access or refresh).
        expires_delta: Lifetime override. Defaults to the configured lifetime.
        now: Issue time override, mostly for tests.

    Returns:
        Encoded JWT string.

    Raises:
        ConfigurationError: If the signing secrets are not configured.
    """
    issued_at = now or _utcnow()
    if expires_delta is None:
        expires_delta = get_token_expiry(token_type)

    token_data = {
        "sub": str(user_id),
        "type": token_type,
        "jti": str(uuid.uuid4()),
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }

    return jwt.encode(
        token_data,
        get_signing_key(token_type),
        algorithm=get_jwt_settings()["algorithm"],
    )


# PUBLIC_INTERFACE
def verify_token(
    token: str,
    token_type: str,
    now: Optional[datetime.datetime] = None,
) -> TokenVerification:
    """
    Verify a token's signature, required claims and expiry.

    Allowlist membership is not checked here; that needs the user record.

    Args:
        token: Encoded JWT string.
        token_type: Expected type; selects the verification secret.
        now: Reference time for the expiry check, defaults to the current time.

    Returns:
        TokenVerification with status VALID, EXPIRED, MALFORMED or
        SIGNATURE_MISMATCH.

    Raises:
        ConfigurationError: If the signing secrets are not configured.
    """
    key = get_signing_key(token_type)

    if not token:
        return TokenVerification(TokenStatus.MALFORMED)

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[get_jwt_settings()["algorithm"]],
            # Expiry is checked below against `now`
            options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
        )
    except InvalidSignatureError:
        logger.debug(f"Signature mismatch on {token_type} token")
        return TokenVerification(TokenStatus.SIGNATURE_MISMATCH)
    except InvalidTokenError as e:
        logger.debug(f"Malformed {token_type} token: {str(e)}")
        return TokenVerification(TokenStatus.MALFORMED)

    if payload.get("type") != token_type or not payload.get("sub"):
        return TokenVerification(TokenStatus.MALFORMED)

    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return TokenVerification(TokenStatus.MALFORMED)

    reference = now or _utcnow()
    if exp <= reference.timestamp():
        return TokenVerification(TokenStatus.EXPIRED, payload)

    return TokenVerification(TokenStatus.VALID, payload)


def _mint_pair(user: User) -> TokenPair:
    pair = TokenPair(
        access_token=create_token(user.id, TOKEN_TYPE_ACCESS),
        refresh_token=create_token(user.id, TOKEN_TYPE_REFRESH),
    )
    user.valid_access_tokens = list(user.valid_access_tokens or []) + [pair.access_token]
    user.valid_refresh_tokens = list(user.valid_refresh_tokens or []) + [pair.refresh_token]
    return pair


def _clear_allowlists(user: User) -> None:
    user.valid_access_tokens = []
    user.valid_refresh_tokens = []


def _commit_allowlists(user: User, session: Session, apply: Callable[[User], T]) -> T:
    """
    Apply an allowlist change and commit it, re-applying it on a lost version check.

    Another request may have written the same user between our read and our
    commit. The change is then applied again to the reloaded row, so the
    later writer wins instead of failing.
    """
    for attempt in range(STALE_WRITE_RETRIES + 1):
        try:
            result = apply(user)
            session.commit()
            return result
        except StaleDataError:
            session.rollback()
            if attempt == STALE_WRITE_RETRIES:
                raise
            logger.info(f"Concurrent write to user {user.id}, retrying")
            session.refresh(user)
        except Exception:
            session.rollback()
            raise


# PUBLIC_INTERFACE
def issue_token_pair(user: User, session: Session) -> TokenPair:
    """
    Mint an access/refresh pair for a user and add both to the user's allowlists.

    The allowlist update is committed before the pair is returned, so a token
    is never handed out that the service would not honor.

    Args:
        user: Persisted user the tokens are issued to.
        session: Database session the user is attached to.

    Returns:
        The new TokenPair.

    Raises:
        ConfigurationError: If the signing secrets are not configured.
        SQLAlchemyError: If the allowlists could not be persisted.
    """
    if user is None or not user.id:
        raise ValueError("User must be persisted before tokens are issued")

    pair = _commit_allowlists(user, session, _mint_pair)

    logger.debug(f"Issued token pair for user {user.id}")
    return pair


# PUBLIC_INTERFACE
def revoke_all_tokens(user: User, session: Session) -> None:
    """
    Clear both allowlists of a user, revoking every token issued so far.

    Args:
        user: User whose tokens are revoked.
        session: Database session the user is attached to.
    """
    _commit_allowlists(user, session, _clear_allowlists)

    logger.info(f"Revoked all tokens for user {user.id}")


# PUBLIC_INTERFACE
def rotate_refresh_token(user: User, old_refresh_token: str, session: Session) -> TokenPair:
    """
    Exchange a refresh token for a new pair; the old refresh token stops working.

    Removing the old token and recording the new pair happen in one commit.
    If another request rotated the same user concurrently, the version check
    on the user row fails and the exchange is refused.

    Args:
        user: Owner of the refresh token.
        old_refresh_token: The refresh token being exchanged.
        session: Database session the user is attached to.

    Returns:
        The new TokenPair.

    Raises:
        RefreshTokenNotFoundError: If the token is not in the allowlist, or a
            concurrent rotation won the race.
    """
    if not user.has_refresh_token(old_refresh_token):
        logger.warning(f"Refresh token replay or revoked token used for user {user.id}")
        raise RefreshTokenNotFoundError("Refresh token is not valid for this user")

    user.valid_refresh_tokens = [
        t for t in user.valid_refresh_tokens if t != old_refresh_token
    ]
    pair = _mint_pair(user)
    try:
        session.commit()
    except StaleDataError:
        session.rollback()
        logger.warning(f"Concurrent refresh token rotation for user {user.id}")
        raise RefreshTokenNotFoundError("Refresh token was already used")
    except Exception:
        session.rollback()
        raise

    logger.debug(f"Rotated refresh token for user {user.id}")
    return pair
