"""
SQLAlchemy models for the farm portal authentication service.

The user record holds the credential, the profile owned by the profile
endpoints, and the two token allowlists that decide whether an issued
token is still honored.
"""
import datetime
import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Enum, Float, Integer, String

from farm_auth.database import Base
from farm_auth.security import default_password_manager


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class UserRole(enum.Enum):
    """User role enumeration."""
    FARMER = "farmer"
    BUYER = "buyer"
    ADMIN = "admin"


class SoilType(enum.Enum):
    """Soil types a farmer can record for their land."""
    ALLUVIAL = "Alluvial"
    BLACK = "Black"
    RED = "Red"
    CLAY = "Clay"
    SANDY = "Sandy"
    OTHER = "Other"


class IrrigationType(enum.Enum):
    """Irrigation methods; the empty value means not specified."""
    UNSPECIFIED = ""
    RAINFED = "Rainfed"
    TUBE_WELL = "Tube Well"
    CANAL = "Canal"
    DRIP = "Drip"
    SPRINKLER = "Sprinkler"
    OTHER = "Other"


class User(Base):
    """
    User model for authentication and profile data.

    `valid_access_tokens` and `valid_refresh_tokens` are ordered allowlists:
    a signed token is only honored while it is listed here. The lists are
    always replaced, never mutated in place, so SQLAlchemy sees the change.
    `version` makes every write a compare-and-swap on the row.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(100), nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.FARMER,
        nullable=False,
    )

    # Profile
    phone = Column(String(30), nullable=True)
    location = Column(String(255), nullable=True)
    land_size = Column(Float, default=0, nullable=False)
    soil_type = Column(String(20), default=SoilType.ALLUVIAL.value, nullable=False)
    crops = Column(JSON, default=list, nullable=False)
    skills = Column(JSON, default=list, nullable=False)
    profile_image = Column(String(500), nullable=True)
    aadhar_number = Column(String(20), nullable=True)
    farm_registration_number = Column(String(50), nullable=True)
    irrigation_type = Column(String(20), nullable=True)
    documents = Column(JSON, default=list, nullable=False)

    # Token allowlists
    valid_access_tokens = Column(JSON, default=list, nullable=False)
    valid_refresh_tokens = Column(JSON, default=list, nullable=False)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def set_password(self, password: str) -> None:
        """
        Hash and set the user password.

        Args:
            password: Plain text password to hash and store.

        Raises:
            WeakPasswordError: If the password does not meet the policy.
        """
        self.hashed_password = default_password_manager.hash_password(password)

    def verify_password(self, password: str) -> bool:
        """
        Verify a password against the stored hash.

        Args:
            password: Plain text password to verify.

        Returns:
            True if the password matches, False otherwise.
        """
        if not password or not self.hashed_password:
            return False
        return default_password_manager.verify_password(password, self.hashed_password)

    def has_access_token(self, token: str) -> bool:
        return token in (self.valid_access_tokens or [])

    def has_refresh_token(self, token: str) -> bool:
        return token in (self.valid_refresh_tokens or [])

    def __repr__(self) -> str:
        """String representation of the User object."""
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
