"""Admin authentication endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from chaosops.database import get_session
from chaosops.models.organisation import User
from chaosops.schemas.auth import LoginRequest, LoginResponse
from chaosops.utils.security import create_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/auth/login", response_model=LoginResponse)
def login(request: LoginRequest, session: Session = Depends(get_session)):
    """Exchange username and password for an access token."""
    user = session.exec(select(User).where(User.username == request.username)).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.warning("Failed login for %s", request.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    return LoginResponse(
        access_token=create_access_token(user.id, user.organisation_id, user.role),
        user_id=user.id,
        organisation_id=user.organisation_id,
        role=user.role,
    )
