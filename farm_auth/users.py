"""
Profile endpoints for the farm portal.

Every route here sits behind the access-token gate. A user may read any
profile but may only update their own.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError

from farm_auth.auth import AuthenticationManager, EmailInUseError, UserNotFoundError
from farm_auth.dependencies import AuthContext, get_auth_manager, get_current_user
from farm_auth.errors import APIError, ErrorCode, bad_request, server_error
from farm_auth.models import IrrigationType, SoilType
from farm_auth.schemas import (ErrorResponse, ProfileUpdateRequest,
                               ProfileUpdateResponse, UserPublic, UserResponse)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

DOCUMENT_REQUIRED_KEYS = ("type", "url", "name")

_GATE_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing, invalid, expired or revoked access token"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


def _validate_documents(documents: Any) -> List[Dict[str, Any]]:
    """Check the shape of a documents list and keep only the known keys."""
    if documents is None:
        return []
    if not isinstance(documents, list):
        raise bad_request(ErrorCode.INVALID_DOCUMENTS_FORMAT, "Documents must be an array")

    cleaned = []
    for doc in documents:
        if not isinstance(doc, dict) or not all(doc.get(key) for key in DOCUMENT_REQUIRED_KEYS):
            raise bad_request(
                ErrorCode.INVALID_DOCUMENT_FORMAT,
                "Each document must have type, url, and name",
            )
        entry = {key: str(doc[key]) for key in DOCUMENT_REQUIRED_KEYS}
        if doc.get("public_id"):
            entry["public_id"] = str(doc["public_id"])
        cleaned.append(entry)
    return cleaned


def _profile_fields(body: ProfileUpdateRequest) -> Dict[str, Any]:
    """Build the full replacement profile, applying defaults for omitted fields."""
    soil_type = body.soil_type or SoilType.ALLUVIAL.value
    if soil_type not in {s.value for s in SoilType}:
        raise bad_request(ErrorCode.VALIDATION_ERROR, f"Invalid soil type: {soil_type}")

    irrigation_type = body.irrigation_type
    if irrigation_type is not None and irrigation_type not in {i.value for i in IrrigationType}:
        raise bad_request(ErrorCode.VALIDATION_ERROR, f"Invalid irrigation type: {irrigation_type}")

    return {
        "name": body.name.strip(),
        "email": body.email,
        "phone": body.phone,
        "location": body.location,
        "land_size": body.land_size or 0,
        "soil_type": soil_type,
        "crops": body.crops or [],
        "skills": body.skills or [],
        "profile_image": body.profile_image,
        "aadhar_number": body.aadhar_number,
        "farm_registration_number": body.farm_registration_number,
        "irrigation_type": irrigation_type,
        "documents": _validate_documents(body.documents),
    }


@router.get(
    "/me",
    response_model=UserResponse,
    responses=_GATE_RESPONSES,
    summary="Current user",
    description="Return the profile of the authenticated caller.",
)
def read_current_user(auth: AuthContext = Depends(get_current_user)):
    """Return the caller's own profile."""
    return UserResponse(user=UserPublic.model_validate(auth.user))


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={**_GATE_RESPONSES, 404: {"model": ErrorResponse, "description": "User not found"}},
    summary="Get a user",
    description="Return the profile of any user by ID.",
)
def read_user(
    user_id: str,
    auth: AuthContext = Depends(get_current_user),
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """Return a user's profile."""
    try:
        user = auth_manager.get_user(user_id)
    except UserNotFoundError:
        raise APIError(status.HTTP_404_NOT_FOUND, ErrorCode.USER_NOT_FOUND, "User not found")
    return UserResponse(user=UserPublic.model_validate(user))


@router.put(
    "/{user_id}",
    response_model=ProfileUpdateResponse,
    responses={
        **_GATE_RESPONSES,
        400: {"model": ErrorResponse, "description": "Missing or invalid profile fields"},
        403: {"model": ErrorResponse, "description": "Updating another user's profile"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
    summary="Update a profile",
    description="Replace the caller's profile fields. Password and tokens are not affected.",
)
def update_user(
    user_id: str,
    body: Optional[ProfileUpdateRequest] = None,
    auth: AuthContext = Depends(get_current_user),
    auth_manager: AuthenticationManager = Depends(get_auth_manager),
):
    """
    Update the caller's profile.

    Args:
        user_id: ID from the path; must be the caller's own ID.
        body: New profile values.
        auth: Authenticated caller.
        auth_manager: Authentication manager for this request.

    Returns:
        ProfileUpdateResponse with the updated, sanitized user.

    Raises:
        APIError: If the caller is not the owner or the body is invalid.
    """
    if auth.user.id != user_id:
        raise APIError(status.HTTP_403_FORBIDDEN, ErrorCode.NOT_AUTHORIZED, "Not authorized")

    body = body or ProfileUpdateRequest()
    if not body.name or not body.email or not body.phone or not body.location:
        raise bad_request(
            ErrorCode.MISSING_REQUIRED_FIELDS,
            "Name, email, phone, and location are required",
        )

    fields = _profile_fields(body)

    try:
        user = auth_manager.get_user(user_id)
        user = auth_manager.update_profile(user, fields)
    except UserNotFoundError:
        raise APIError(status.HTTP_404_NOT_FOUND, ErrorCode.USER_NOT_FOUND, "User not found")
    except EmailInUseError:
        raise bad_request(ErrorCode.EMAIL_IN_USE, "Email already in use")
    except SQLAlchemyError as e:
        logger.error(f"Error updating user {user_id}: {str(e)}", exc_info=True)
        raise server_error(ErrorCode.SERVER_ERROR)

    return ProfileUpdateResponse(
        user=UserPublic.model_validate(user),
        message="Profile updated successfully",
    )
