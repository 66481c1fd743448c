"""Authentication API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from auth import Caller, get_current_caller
from database import get_db
from dependencies import get_auth_service
from errors import AuthenticationError
from monitoring import auth_attempts_counter, auth_failures_counter
from schemas import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
)
from services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Authenticate user and return a bearer token.

    Demo credentials:
    - admin@test.com / Admin123! (Admin)
    - user@test.com / User123! (User)
    """
    auth_attempts_counter.add(1, {"type": "login"})

    try:
        user, session = auth_service.login(db, request)
    except AuthenticationError as e:
        auth_failures_counter.add(1, {"reason": "locked_out" if "locked" in e.message else "invalid_credentials"})
        logger.warning("Login failed", extra={
            "email": request.email,
            "reason": e.message
        })
        raise

    logger.info("User logged in successfully", extra={
        "email": user.email,
        "user_id": user.id
    })

    return {
        "message": "Login successful",
        "email": user.email,
        "token": session.token,
        "expires_at": session.expires_at
    }


@router.post("/register", response_model=RegisterResponse)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create a regular shopper account."""
    user = auth_service.register(db, request)
    return {"message": "Registration successful", "email": user.email}


@router.post("/logout", response_model=MessageResponse)
async def logout(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    auth_service: AuthService = Depends(get_auth_service)
):
    """End the caller's session - requires authentication."""
    auth_service.logout(db, caller.token)
    logger.info("User logged out", extra={"user_id": caller.user_id})
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(caller: Caller = Depends(get_current_caller)):
    """Get the caller's profile and roles - requires authentication."""
    user = caller.user
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "roles": sorted(caller.roles),
        "created_at": user.created_at,
        "last_login_at": user.last_login_at
    }
