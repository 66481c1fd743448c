"""Account, credential and session management."""
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Iterable, Optional, Set, Tuple

import bcrypt
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    BCRYPT_ROUNDS,
    LOCKOUT_MAX_ATTEMPTS,
    LOCKOUT_MINUTES,
    REMEMBER_ME_TTL_DAYS,
    ROLE_ADMIN,
    ROLE_USER,
    SESSION_TTL_HOURS,
)
from errors import AuthenticationError, FieldError, ValidationError
from models import AuthSession, User, UserRole, utcnow
from schemas import LoginRequest, RegisterRequest
from validation import ensure_valid, validate_login, validate_registration

logger = logging.getLogger(__name__)

SEED_USERS = [
    {"email": "admin@test.com", "password": "Admin123!", "first_name": "Admin",
     "last_name": "User", "roles": [ROLE_ADMIN]},
    {"email": "user@test.com", "password": "User123!", "first_name": "Test",
     "last_name": "User", "roles": [ROLE_USER]},
]


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))


class AuthService:
    """Identity provider for the store: users, roles and bearer sessions."""

    def find_user_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    def get_roles(self, db: Session, user: User) -> Set[str]:
        rows = db.query(UserRole.role).filter(UserRole.user_id == user.id).all()
        return {row.role for row in rows}

    def create_user(
        self,
        db: Session,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        roles: Iterable[str]
    ) -> User:
        """Insert a user with its roles; the caller commits."""
        user = User(
            id=str(uuid.uuid4()),
            email=email.strip(),
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            created_at=utcnow()
        )
        db.add(user)
        db.flush()
        for role in roles:
            db.add(UserRole(user_id=user.id, role=role))
        return user

    def register(self, db: Session, data: RegisterRequest) -> User:
        """
        Create a regular account.

        Raises:
            ValidationError: If a field is invalid or the email is taken
        """
        ensure_valid(validate_registration(data))

        if self.find_user_by_email(db, data.email) is not None:
            raise ValidationError([FieldError("email", f"Email '{data.email}' is already taken.")])

        try:
            user = self.create_user(
                db, data.email, data.password, data.first_name, data.last_name, [ROLE_USER]
            )
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            db.rollback()
            raise ValidationError([FieldError("email", f"Email '{data.email}' is already taken.")]) from None
        except Exception:
            db.rollback()
            raise

        logger.info("User registered", extra={"user_id": user.id, "email": user.email})
        return user

    def login(self, db: Session, data: LoginRequest) -> Tuple[User, AuthSession]:
        """
        Check credentials and open a session.

        Consecutive failures lock the account for a while.

        Returns:
            The user and the new session

        Raises:
            ValidationError: If email or password is missing
            AuthenticationError: If the credentials are wrong or the account is locked
        """
        ensure_valid(validate_login(data))

        user = self.find_user_by_email(db, data.email)
        if user is None:
            raise AuthenticationError("Invalid email or password")

        now = utcnow()
        if user.lockout_end is not None and user.lockout_end > now:
            raise AuthenticationError("Account locked out")

        try:
            if not verify_password(data.password, user.password_hash):
                user.access_failed_count += 1
                locked = user.access_failed_count >= LOCKOUT_MAX_ATTEMPTS
                if locked:
                    user.lockout_end = now + timedelta(minutes=LOCKOUT_MINUTES)
                    user.access_failed_count = 0
                db.commit()

                if locked:
                    logger.warning("Account locked after repeated failures", extra={"user_id": user.id})
                    raise AuthenticationError("Account locked out")
                raise AuthenticationError("Invalid email or password")

            ttl = timedelta(days=REMEMBER_ME_TTL_DAYS) if data.remember_me else timedelta(hours=SESSION_TTL_HOURS)
            session = AuthSession(
                token=secrets.token_urlsafe(32),
                user_id=user.id,
                created_at=now,
                expires_at=now + ttl
            )
            db.add(session)

            user.access_failed_count = 0
            user.lockout_end = None
            user.last_login_at = now
            db.commit()
        except AuthenticationError:
            raise
        except Exception:
            db.rollback()
            raise

        logger.info("User logged in", extra={"user_id": user.id, "remember_me": data.remember_me})
        return user, session

    def logout(self, db: Session, token: str) -> None:
        try:
            db.query(AuthSession).filter(AuthSession.token == token).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise

    def resolve_token(self, db: Session, token: str) -> Optional[User]:
        """
        Look up the user behind a bearer token.

        Expired sessions are removed and resolve to None.
        """
        session = db.query(AuthSession).filter(AuthSession.token == token).first()
        if session is None:
            return None

        if session.expires_at <= utcnow():
            db.delete(session)
            db.commit()
            return None

        return db.query(User).filter(User.id == session.user_id).first()

    def ensure_seed_users(self, db: Session) -> None:
        """Create the demo admin and shopper accounts if missing."""
        created = []
        for seed in SEED_USERS:
            if self.find_user_by_email(db, seed["email"]) is not None:
                continue
            self.create_user(
                db, seed["email"], seed["password"], seed["first_name"], seed["last_name"], seed["roles"]
            )
            created.append(seed["email"])

        if created:
            db.commit()
            logger.info("Seeded demo users", extra={"emails": created})
