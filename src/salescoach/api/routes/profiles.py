"""
Profile API routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.api.auth import require_credentials
from salescoach.api.schemas import (
    ProfileCreate,
    ProfileCreateResponse,
    ProfileResponse,
)
from salescoach.auth import Credentials
from salescoach.db.connection import get_db
from salescoach.exceptions import PermissionDeniedError, ProfileExistsError
from salescoach.profiles import ProfileCreateRequest, ProfileService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/create", response_model=ProfileCreateResponse)
def create_profile(
    body: ProfileCreate,
    credentials: Credentials = Depends(require_credentials),
    session: Session = Depends(get_db),
) -> ProfileCreateResponse:
    """
    Create the caller's profile (and its company, if new).

    Non-admin callers always get the demo role and may only create their
    own profile.

    Raises:
        HTTPException 401: No valid session or bearer token
        HTTPException 403: Non-admin creating a profile for another user
        HTTPException 409: Profile already exists for this auth id
        HTTPException 500: Database write failed
    """
    service = ProfileService(session)
    try:
        profile = service.create_profile(
            credentials, ProfileCreateRequest(**body.model_dump())
        )
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ProfileExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Profile already exists for this user",
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to create profile for {body.auth_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user profile",
        )

    return ProfileCreateResponse(profile=ProfileResponse.model_validate(profile))
