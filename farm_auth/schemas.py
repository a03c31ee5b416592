"""
Pydantic models for request and response bodies.

Bodies use camelCase keys on the wire (`refreshToken`, `landSize`) and
snake_case attributes in Python. Request fields the endpoints require are
still declared optional so that a missing field is answered with the
endpoint's own error code rather than a generic validation error.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from farm_auth.models import UserRole


class CamelModel(BaseModel):
    """Base model with camelCase aliases that also accepts field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests
class SignupRequest(CamelModel):
    """Request model for user signup."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    land_size: Optional[float] = Field(None, ge=0)
    soil_type: Optional[str] = None


class LoginRequest(CamelModel):
    """Request model for user login."""
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(CamelModel):
    """Request model for logout and token refresh."""
    refresh_token: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    """Request model for a profile update. `documents` is checked by the route."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    land_size: Optional[float] = Field(None, ge=0)
    soil_type: Optional[str] = None
    crops: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    profile_image: Optional[str] = None
    aadhar_number: Optional[str] = None
    farm_registration_number: Optional[str] = None
    irrigation_type: Optional[str] = None
    documents: Optional[Any] = None


# Responses
class DocumentRef(BaseModel):
    """A document already hosted elsewhere, referenced by URL."""
    type: str
    url: str
    name: str
    public_id: Optional[str] = None


class UserPublic(CamelModel):
    """User profile as returned to clients; never includes secrets or allowlists."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )

    id: str
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    location: Optional[str] = None
    land_size: float = 0
    soil_type: Optional[str] = None
    crops: List[str] = []
    skills: List[str] = []
    profile_image: Optional[str] = None
    aadhar_number: Optional[str] = None
    farm_registration_number: Optional[str] = None
    irrigation_type: Optional[str] = None
    documents: List[DocumentRef] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    """Response model for signup, login and token refresh."""
    success: bool = True
    token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    user: UserPublic
    message: str


class UserResponse(CamelModel):
    """Response model for profile reads."""
    success: bool = True
    user: UserPublic


class ProfileUpdateResponse(CamelModel):
    """Response model for profile updates."""
    success: bool = True
    user: UserPublic
    message: str


class MessageResponse(CamelModel):
    """Response model for operations that only report a message."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Response model for errors."""
    success: bool = False
    message: str
    code: str
