"""
Session API routes.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.api.auth import get_credentials, get_optional_profile
from salescoach.api.dependencies import get_demo_limits
from salescoach.api.schemas import (
    SessionCreate,
    SessionDescriptorResponse,
    SessionEnd,
    SessionEnvelope,
    SessionViewResponse,
)
from salescoach.auth import Credentials
from salescoach.db.connection import get_db
from salescoach.exceptions import (
    DemoQuotaExceededError,
    PermissionDeniedError,
    QuotaExceededError,
    SessionConflictError,
    SessionNotFoundError,
)
from salescoach.models.db import Profile
from salescoach.quota import DemoLimits, DemoQuotaGuard
from salescoach.sessions import SessionLifecycle, is_ephemeral

logger = logging.getLogger(__name__)

router = APIRouter()

DEMO_USER_ID = "demo-user"


def get_lifecycle(
    session: Session = Depends(get_db),
    limits: DemoLimits = Depends(get_demo_limits),
) -> SessionLifecycle:
    return SessionLifecycle(session, DemoQuotaGuard(session, limits))


@router.post("/create", response_model=SessionEnvelope)
def create_session(
    body: SessionCreate,
    credentials: Credentials = Depends(get_credentials),
    profile: Optional[Profile] = Depends(get_optional_profile),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionEnvelope:
    """
    Start a voice-training session.

    Anonymous callers (and ``userId: "demo-user"``) get an ephemeral demo
    session that is never stored.

    Raises:
        HTTPException 400: Subscription minutes exhausted
        HTTPException 403: Demo quota used up (upgrade required)
        HTTPException 404: Authenticated caller has no profile
        HTTPException 500: Session could not be stored
    """
    demo_user = body.demo_user or body.user_id == DEMO_USER_ID
    if not credentials.is_anonymous and not demo_user and profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found"
        )

    try:
        descriptor = lifecycle.create_session(
            credentials,
            profile,
            title=body.title,
            company_id=body.company_id,
            demo_user=demo_user,
        )
    except DemoQuotaExceededError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except QuotaExceededError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Session creation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session",
        )

    return SessionEnvelope(session=SessionDescriptorResponse(**asdict(descriptor)))


@router.post("/{session_id}/end", response_model=SessionEnvelope)
def end_session(
    session_id: str,
    body: SessionEnd,
    credentials: Credentials = Depends(get_credentials),
    profile: Optional[Profile] = Depends(get_optional_profile),
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionEnvelope:
    """
    Finalize a session with its duration and transcript.

    Ephemeral ``demo-`` sessions always succeed without a database write.

    Raises:
        HTTPException 401: Anonymous caller ending a stored session
        HTTPException 403: Caller does not own the session
        HTTPException 404: Session not found
        HTTPException 409: Session already linked to a different conversation
    """
    if not is_ephemeral(session_id) and credentials.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization required"
        )

    try:
        descriptor = lifecycle.finalize_session(
            session_id,
            duration_seconds=body.duration_seconds,
            transcript=body.transcript,
            conversation_id=body.conversation_id,
            profile=profile,
        )
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except SessionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return SessionEnvelope(session=SessionDescriptorResponse(**asdict(descriptor)))


@router.get("/{session_id}", response_model=SessionViewResponse)
def get_session(
    session_id: str,
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
) -> SessionViewResponse:
    """
    Get a stored session with its detailed analysis.

    ``demo-`` ids return a marker telling the client to use its local data.
    """
    view = lifecycle.get_session(session_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return SessionViewResponse(session=view.session, is_demo=view.is_demo, message=view.message)
