"""Authentication and authorization utilities."""
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Set
from fastapi import Depends, Header
from sqlalchemy.orm import Session
import logging

from database import get_db
from dependencies import get_auth_service
from errors import ForbiddenError, UnauthorizedError
from models import User
from monitoring import auth_failures_counter, auth_attempts_counter
from services.auth_service import AuthService

logger = logging.getLogger(__name__)


@dataclass
class Caller:
    """Authenticated identity behind a request."""
    user: User
    roles: Set[str]
    token: str

    @property
    def user_id(self) -> str:
        return self.user.id


def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract the bearer token from the Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Bearer token

    Raises:
        UnauthorizedError: If the header is missing or malformed
    """
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise UnauthorizedError("Missing authorization header")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise UnauthorizedError("Invalid authorization header format")

    return parts[1]


def get_current_caller(
    token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
) -> Caller:
    """
    Resolve the bearer token to a user and its roles.

    Raises:
        UnauthorizedError: If the token has no live session
    """
    user = auth_service.resolve_token(db, token)
    if user is None:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise UnauthorizedError("Invalid or expired token")

    logger.debug("Authentication successful", extra={"user_id": user.id})
    return Caller(user=user, roles=auth_service.get_roles(db, user), token=token)


def authorize(caller_roles: Iterable[str], required_roles: Iterable[str]) -> bool:
    """True when the caller holds at least one of the required roles."""
    return bool(set(caller_roles) & set(required_roles))


def require_roles(*required_roles: str) -> Callable[..., Caller]:
    """Build a dependency that admits only callers holding one of the roles."""

    def dependency(caller: Caller = Depends(get_current_caller)) -> Caller:
        if not authorize(caller.roles, required_roles):
            logger.warning("Authorization failed: Missing role", extra={
                "user_id": caller.user_id,
                "required_roles": sorted(required_roles)
            })
            raise ForbiddenError("You do not have permission to perform this action")
        return caller

    return dependency
