"""
Authentication API Endpoints

Provides sign-up, sign-in, sign-out and the current-user query.
"""
from typing import Literal

from fastapi import APIRouter, HTTPException, Response, Request, Depends
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from backend.app.db.session import get_session_generator
from backend.app.db.models import User
from backend.app.schemas.auth import (
    AuthLoginRequest,
    AuthLoginResponse,
    AuthLogoutResponse,
    AuthMeResponse,
    AuthUserResponse,
    AuthRegisterRequest,
    AuthRegisterResponse,
)
from backend.app.services.auth_service import SessionManager
from backend.app.services import user_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

# Session cookie configuration
SESSION_COOKIE_NAME = "session"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"
SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS

INVALID_CREDENTIALS_MESSAGE = "Invalid login credentials"


def get_session_cookie(request: Request) -> str | None:
    """Extract session cookie from request."""
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_session_manager(request: Request) -> SessionManager:
    """Dependency returning the process-wide SessionManager."""
    return request.app.state.session_manager


def _set_session_cookie(response: Response, session_id: str, manager: SessionManager) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=manager.expire_hours * 3600,
        httponly=SESSION_COOKIE_HTTPONLY,
        samesite=SESSION_COOKIE_SAMESITE,
        secure=SESSION_COOKIE_SECURE,
    )


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_session_generator),
    manager: SessionManager = Depends(get_session_manager),
) -> User:
    """
    Dependency to get current authenticated user.
    Raises 401 if not authenticated.
    """
    session_id = get_session_cookie(request)

    if not session_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = manager.get_user_id(session_id)

    if not user_id:
        raise HTTPException(status_code=401, detail="Session expired or invalid")

    user = await user_service.get_user_by_id(session, user_id)

    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user


@router.post("/register", response_model=AuthRegisterResponse, status_code=201)
async def register(
    request: AuthRegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session_generator),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Register a new user with a zero balance and sign them in.
    """
    user, error = await user_service.create_user(
        session,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        phone=request.phone,
    )

    if not user:
        raise HTTPException(status_code=400, detail=error)

    auth_session = manager.create_session(user.id, user.email)
    _set_session_cookie(response, auth_session.session_id, manager)

    logger.info("User registered", user_id=user.id)

    return AuthRegisterResponse(
        user=AuthUserResponse.model_validate(user),
        message="Registration successful"
    )


@router.post("/login", response_model=AuthLoginResponse)
async def login(
    request: AuthLoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session_generator),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Authenticate with email and password and create a session.
    """
    user = await user_service.authenticate(session, request.email, request.password)

    if not user:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS_MESSAGE)

    auth_session = manager.create_session(user.id, user.email)
    _set_session_cookie(response, auth_session.session_id, manager)

    logger.info("User logged in", user_id=user.id)

    return AuthLoginResponse(
        user=AuthUserResponse.model_validate(user),
        message="Login successful"
    )


@router.post("/logout", response_model=AuthLogoutResponse)
async def logout(
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Logout current user and destroy session.
    """
    session_id = get_session_cookie(request)

    if session_id:
        manager.delete_session(session_id)

    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        httponly=SESSION_COOKIE_HTTPONLY,
        samesite=SESSION_COOKIE_SAMESITE,
        secure=SESSION_COOKIE_SECURE,
    )

    return AuthLogoutResponse(message="Logged out successfully")


@router.get("/me", response_model=AuthMeResponse)
async def get_me(
    current_user: User = Depends(get_current_user)
):
    """
    Get current authenticated user profile (including balance).
    """
    return AuthMeResponse(
        user=AuthUserResponse.model_validate(current_user)
    )
