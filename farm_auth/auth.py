"""
Authentication functionality for the farm portal authentication service.

This module is the credential store and the session lifecycle built on it:
user registration, credential verification, logout and refresh token
exchange. Route handlers translate the exceptions raised here into HTTP
responses.
"""
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farm_auth.config.jwt_config import TOKEN_TYPE_REFRESH
from farm_auth.models import SoilType, User, UserRole
from farm_auth.security import default_password_manager
from farm_auth.token import (RefreshTokenNotFoundError, TokenPair, TokenStatus,
                             issue_token_pair, revoke_all_tokens,
                             rotate_refresh_token, verify_token)

# Configure logging
logger = logging.getLogger(__name__)

# Same message for unknown email and wrong password
INVALID_CREDENTIALS_MESSAGE = "Invalid login credentials"


class AuthError(Exception):
    """Base exception for authentication-related errors."""
    pass


class UserNotFoundError(AuthError):
    """Exception raised when a user is not found."""
    pass


class InvalidCredentialsError(AuthError):
    """Exception raised when credentials are invalid."""
    pass


class EmailInUseError(AuthError):
    """Exception raised when trying to register an email that already exists."""
    pass


class InvalidRoleError(AuthError):
    """Exception raised when a role is unknown or may not be self-assigned."""

    def __init__(self, message: str, forbidden: bool = False):
        super().__init__(message)
        self.forbidden = forbidden


class InvalidRefreshTokenError(AuthError):
    """Exception raised when a refresh token cannot be used.

    `reason` is one of "expired", "invalid", "revoked" or "unknown_user".
    """

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


# PUBLIC_INTERFACE
def normalize_email(email: str) -> str:
    """Return the stored form of an email address (trimmed, lower-cased)."""
    return email.strip().lower()


class AuthenticationManager:
    """
    Authentication manager for user registration and session lifecycle.

    Every method works on the session passed at construction, which is the
    per-request session in the API.
    """

    def __init__(self, session: Session):
        """
        Initialize the authentication manager.

        Args:
            session: Database session used for all operations.
        """
        self.session = session

    # PUBLIC_INTERFACE
    def find_user_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, ignoring case."""
        return self.session.query(User).filter(
            func.lower(User.email) == normalize_email(email)
        ).first()

    # PUBLIC_INTERFACE
    def get_user(self, user_id: str) -> User:
        """
        Get a user by ID.

        Raises:
            UserNotFoundError: If no user has this ID.
        """
        user = self.session.get(User, user_id) if user_id else None
        if user is None:
            raise UserNotFoundError(f"User not found with ID: {user_id}")
        return user

    # PUBLIC_INTERFACE
    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
        commit: bool = True,
        **profile: Any
    ) -> User:
        """
        Create and persist a new user with a hashed password.

        Args:
            name: Display name.
            email: Email address; must not already exist in any letter case.
            password: Raw password, hashed before persistence.
            role: Role value; defaults to farmer. Admin is rejected.
            commit: Commit the new row. Pass False to commit it together
                with further changes, such as the first token pair.
            **profile: Optional profile fields (phone, location, land_size, soil_type).

        Returns:
            The persisted user.

        Raises:
            InvalidRoleError: If the role is admin or unknown.
            EmailInUseError: If the email is already registered.
            WeakPasswordError: If the password fails the password policy.
            ValueError: If a profile field has an invalid value.
        """
        user_role = self._resolve_signup_role(role)

        if self.find_user_by_email(email):
            raise EmailInUseError("Email already in use")

        soil_type = profile.get("soil_type") or SoilType.ALLUVIAL.value
        if soil_type not in {s.value for s in SoilType}:
            raise ValueError(f"Invalid soil type: {soil_type}")

        user = User(
            id=str(uuid.uuid4()),
            name=name.strip(),
            email=normalize_email(email),
            role=user_role,
            phone=profile.get("phone"),
            location=profile.get("location"),
            land_size=profile.get("land_size") or 0,
            soil_type=soil_type,
            crops=[],
            skills=[],
            documents=[],
            valid_access_tokens=[],
            valid_refresh_tokens=[],
        )
        user.set_password(password)

        self.session.add(user)
        if commit:
            try:
                self.session.commit()
            except IntegrityError:
                # Lost a race with another signup for the same email
                self.session.rollback()
                raise EmailInUseError("Email already in use")

        logger.info(f"User registered: {user.id} ({user.role.value})")
        return user

    # PUBLIC_INTERFACE
    def verify_credentials(self, email: str, password: str) -> User:
        """
        Check an email and password pair.

        Raises:
            InvalidCredentialsError: For an unknown email or a wrong password,
                with the same message in both cases.
        """
        user = self.find_user_by_email(email)
        if user is None:
            default_password_manager.dummy_verify()
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        if not user.verify_password(password):
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        return user

    # PUBLIC_INTERFACE
    def register_user(
        self,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
        **profile: Any
    ) -> Tuple[User, TokenPair]:
        """
        Register a new user and log them in.

        The user row and its first token pair are committed together.

        Returns:
            Tuple of the new user and its first token pair.
        """
        user = self.create_user(name, email, password, role, commit=False, **profile)
        try:
            tokens = issue_token_pair(user, self.session)
        except IntegrityError:
            raise EmailInUseError("Email already in use")
        return user, tokens

    # PUBLIC_INTERFACE
    def authenticate_user(self, email: str, password: str) -> Tuple[User, TokenPair]:
        """
        Authenticate a user and generate tokens.

        Returns:
            Tuple of the authenticated user and a fresh token pair.

        Raises:
            InvalidCredentialsError: If the credentials are invalid.
        """
        user = self.verify_credentials(email, password)
        tokens = issue_token_pair(user, self.session)
        logger.info(f"User logged in: {user.id}")
        return user, tokens

    # PUBLIC_INTERFACE
    def logout_user(self, refresh_token: str) -> User:
        """
        Revoke every access and refresh token of the refresh token's owner.

        The refresh token must still be in the owner's allowlist, so a token
        that was already rotated or revoked cannot trigger another revocation.

        Returns:
            The user whose tokens were revoked.

        Raises:
            InvalidRefreshTokenError: If the token is expired, invalid, revoked,
                or its user no longer exists (reason "unknown_user").
        """
        user = self._resolve_refresh_token_owner(refresh_token)
        if not user.has_refresh_token(refresh_token):
            logger.warning(f"Logout with a revoked refresh token for user {user.id}")
            raise InvalidRefreshTokenError("Refresh token revoked", reason="revoked")

        revoke_all_tokens(user, self.session)
        logger.info(f"User logged out: {user.id}")
        return user

    # PUBLIC_INTERFACE
    def refresh_tokens(self, refresh_token: str) -> Tuple[User, TokenPair]:
        """
        Exchange a refresh token for a new token pair.

        Returns:
            Tuple of the token owner and the new pair.

        Raises:
            InvalidRefreshTokenError: If the token is expired, invalid, revoked
                or already used.
        """
        user = self._resolve_refresh_token_owner(refresh_token)
        try:
            tokens = rotate_refresh_token(user, refresh_token, self.session)
        except RefreshTokenNotFoundError as e:
            raise InvalidRefreshTokenError(str(e), reason="revoked")
        return user, tokens

    # PUBLIC_INTERFACE
    def update_profile(self, user: User, fields: Dict[str, Any]) -> User:
        """
        Replace a user's profile fields.

        Args:
            user: User to update.
            fields: Profile values keyed by model attribute name. The
                password and token allowlists are never touched.

        Raises:
            EmailInUseError: If the new email belongs to another user.
        """
        email = normalize_email(fields["email"])
        owner = self.find_user_by_email(email)
        if owner is not None and owner.id != user.id:
            raise EmailInUseError("Email already in use")

        for attribute in PROFILE_ATTRIBUTES:
            if attribute in fields:
                setattr(user, attribute, fields[attribute])
        user.email = email

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise EmailInUseError("Email already in use")

        logger.info(f"Profile updated for user {user.id}")
        return user

    def _resolve_signup_role(self, role: Optional[str]) -> UserRole:
        if not role:
            return UserRole.FARMER
        if role == UserRole.ADMIN.value:
            raise InvalidRoleError("Admin role cannot be assigned via signup", forbidden=True)
        try:
            return UserRole(role)
        except ValueError:
            raise InvalidRoleError(f"Invalid role: {role}")

    def _resolve_refresh_token_owner(self, refresh_token: str) -> User:
        result = verify_token(refresh_token, TOKEN_TYPE_REFRESH)

        if result.status is TokenStatus.EXPIRED:
            raise InvalidRefreshTokenError("Refresh token expired", reason="expired")
        if result.status is not TokenStatus.VALID:
            raise InvalidRefreshTokenError("Invalid refresh token", reason="invalid")

        user = self.session.get(User, result.user_id)
        if user is None:
            raise InvalidRefreshTokenError("Invalid user", reason="unknown_user")
        return user


# Model attributes owned by the profile endpoints
PROFILE_ATTRIBUTES = (
    "name",
    "phone",
    "location",
    "land_size",
    "soil_type",
    "crops",
    "skills",
    "profile_image",
    "aadhar_number",
    "farm_registration_number",
    "irrigation_type",
    "documents",
)
