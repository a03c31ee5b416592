"""
Security utilities for the farm portal authentication service.

This module provides password hashing with bcrypt (through passlib) and the
password policy applied when a raw password is set.
"""
import logging
from typing import List, Optional, Tuple

from passlib.context import CryptContext

from farm_auth.config import settings

# Configure logging
logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class PasswordError(Exception):
    """Base exception for password-related errors."""
    pass


class WeakPasswordError(PasswordError):
    """Exception raised when a password does not meet the password policy."""
    pass


class PasswordValidator:
    """
    Password policy validator.

    Validates passwords against a minimum length and bcrypt's byte limit.
    """

    def __init__(self, min_length: Optional[int] = None, max_bytes: int = MAX_PASSWORD_BYTES):
        """
        Initialize the password validator.

        Args:
            min_length: Minimum password length. Defaults to PASSWORD_MIN_LENGTH.
            max_bytes: Maximum UTF-8 encoded length.
        """
        self.min_length = settings.PASSWORD_MIN_LENGTH if min_length is None else min_length
        self.max_bytes = max_bytes

    # PUBLIC_INTERFACE
    def validate(self, password: str) -> Tuple[bool, List[str]]:
        """
        Validate a password against the configured requirements.

        Args:
            password: Password to validate.

        Returns:
            Tuple containing:
                - Boolean indicating if the password is valid.
                - List of validation error messages (empty if valid).
        """
        errors = []

        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters long.")

        if len(password.encode("utf-8")) > self.max_bytes:
            errors.append(f"Password must be at most {self.max_bytes} bytes long.")

        return len(errors) == 0, errors

    # PUBLIC_INTERFACE
    def validate_or_raise(self, password: str) -> None:
        """
        Validate a password and raise an exception if it's invalid.

        Raises:
            WeakPasswordError: If the password does not meet the requirements.
        """
        is_valid, errors = self.validate(password)
        if not is_valid:
            raise WeakPasswordError(" ".join(errors))


class PasswordManager:
    """
    Password management utilities.

    Provides functionality for hashing and verifying passwords.
    """

    def __init__(self, validator: Optional[PasswordValidator] = None, rounds: Optional[int] = None):
        """
        Initialize the password manager.

        Args:
            validator: Optional password validator for policy checks.
            rounds: bcrypt work factor. Defaults to BCRYPT_ROUNDS.
        """
        self.validator = validator or PasswordValidator()
        self.context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.BCRYPT_ROUNDS if rounds is None else rounds,
        )

    # PUBLIC_INTERFACE
    def hash_password(self, password: str, validate: bool = True) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password to hash.
            validate: Whether to check the password policy before hashing.

        Returns:
            Hashed password string.

        Raises:
            WeakPasswordError: If validate is True and the password is weak.
        """
        if validate:
            self.validator.validate_or_raise(password)

        return self.context.hash(password)

    # PUBLIC_INTERFACE
    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a hash.

        Returns:
            True if the password matches the hash, False otherwise.
        """
        try:
            return self.context.verify(plain_password, hashed_password)
        except ValueError as e:
            # Unrecognized or corrupt hash in the database
            logger.error(f"Password hash could not be verified: {str(e)}")
            return False

    # PUBLIC_INTERFACE
    def dummy_verify(self) -> None:
        """Spend the time of a real verification when there is no user to check."""
        self.context.dummy_verify()


# Create default instances for common use
default_password_validator = PasswordValidator()
default_password_manager = PasswordManager(validator=default_password_validator)
