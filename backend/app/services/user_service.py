"""
User Service

Business logic for user accounts (sign-up, sign-in, profile lookups),
used by both API and CLI.
"""
from typing import Optional

from sqlmodel import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from backend.app.db.models import User
from backend.app.services.auth_service import hash_password, verify_password, SessionManager
from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)

DUPLICATE_ACCOUNT_MESSAGE = "An account with this email already exists"


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """
    Get user by email (case-insensitive).

    Args:
        session: Database session
        email: Email to search

    Returns:
        User or None if not found
    """
    stmt = select(User).where(User.email == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[User]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User or None if not found
    """
    stmt = select(User).where(User.id == user_id)
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_users(session: AsyncSession) -> list[User]:
    """List all users, oldest first."""
    stmt = select(User).order_by(User.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_user(
    session: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    phone: str,
) -> tuple[Optional[User], Optional[str]]:
    """
    Create a new user with a zero balance (sign-up).

    Args:
        session: Database session
        email: Email address (stored lower-case)
        password: Plain text password (will be hashed)
        full_name: Display name
        phone: Contact phone number

    Returns:
        Tuple of (User, None) on success or (None, error_message) on failure
    """
    email = normalize_email(email)

    existing = await get_user_by_email(session, email)
    if existing:
        logger.warning("Sign-up rejected: duplicate email", email=email)
        return None, DUPLICATE_ACCOUNT_MESSAGE

    user = User(
        email=email,
        full_name=full_name,
        phone=phone,
        hashed_password=hash_password(password),
    )

    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race against a concurrent sign-up with the same email
        await session.rollback()
        logger.warning("Sign-up rejected: duplicate email", email=email)
        return None, DUPLICATE_ACCOUNT_MESSAGE
    await session.refresh(user)

    logger.info("User created", user_id=user.id, email=user.email)
    return user, None


async def authenticate(session: AsyncSession, email: str, password: str) -> Optional[User]:
    """
    Password sign-in check.

    Returns:
        The user when the credentials match, None otherwise. Callers must not
        reveal which of email or password was wrong.
    """
    user = await get_user_by_email(session, email)

    if not user:
        logger.warning("Sign-in failed: unknown email", email=normalize_email(email))
        return None

    if not verify_password(password, user.hashed_password):
        logger.warning("Sign-in failed: wrong password", user_id=user.id)
        return None

    return user


async def reset_password(
    session: AsyncSession,
    email: str,
    new_password: str,
    session_manager: Optional[SessionManager] = None,
) -> tuple[bool, Optional[str]]:
    """
    Reset a user's password.

    Args:
        session: Database session
        email: Account email
        new_password: New plain text password (will be hashed)
        session_manager: When given, the user's open sessions are revoked

    Returns:
        Tuple of (success, error_message)
    """
    user = await get_user_by_email(session, email)
    if not user:
        return False, f"User '{email}' not found"

    user.hashed_password = hash_password(new_password)
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()

    if session_manager is not None:
        session_manager.delete_user_sessions(user.id)

    logger.info("Password reset", user_id=user.id)
    return True, None
