"""
Authentication API Routes for Librarium.

Handles:
- User registration
- Login (token generation, rate-limited per client IP)
- Current user retrieval
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from librarium.accounts.service import UserService
from librarium.api.dependencies import (
    Identity,
    Settings,
    get_client_ip,
    get_current_identity,
    get_settings_from_app,
    get_user_service,
)
from librarium.api.schemas import (
    ErrorResponse,
    LoginRequest,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from librarium.security import create_access_token
from librarium.storage.user_repository import StoredUser

router = APIRouter(prefix="/auth", tags=["auth"])


def issue_token(user: StoredUser, settings: Settings) -> str:
    """Bearer token with the user id as subject and the role claim."""
    return create_access_token(
        data={"sub": str(user.id), "role": user.role, "email": user.email, "name": user.name},
        secret_key=settings.jwt_secret_key,
        expires_delta=timedelta(minutes=settings.jwt_expire_minutes),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid user data"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def register(
    payload: UserCreate,
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings_from_app),
):
    """Register a new user and return an access token."""
    user = await users.create_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role.value if payload.role else None,
    )
    return {"user": user, "access_token": issue_token(user, settings), "token_type": "bearer"}


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
    },
)
async def login(
    payload: LoginRequest,
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings_from_app),
    client_ip: str = Depends(get_client_ip),
):
    """
    Login endpoint.
    Returns a JWT if the credentials are valid.
    """
    user = await users.authenticate(payload.email, payload.password)
    if user is None:
        logger.warning(f"Failed login for {payload.email} from {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User {user.id} logged in from {client_ip}")
    return {"access_token": issue_token(user, settings), "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
async def read_current_user(
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    """Get current user profile."""
    return await users.get_user(identity.id)
