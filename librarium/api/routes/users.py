"""
User API Routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from librarium.accounts.service import UserService
from librarium.api.dependencies import get_current_identity, get_user_service
from librarium.api.schemas import ErrorResponse, UserCreate, UserResponse, UserUpdate

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_current_identity)],
)


@router.get("", response_model=list[UserResponse])
async def list_users(
    name: Optional[str] = Query(None, description="Filter by name substring"),
    users: UserService = Depends(get_user_service),
):
    """List users, optionally filtered by name."""
    if name:
        return await users.search_users(name)
    return await users.list_users()


@router.get("/by-email", response_model=UserResponse, responses={404: {"model": ErrorResponse}})
async def get_user_by_email(
    email: str = Query(...),
    users: UserService = Depends(get_user_service),
):
    return await users.get_by_email(email)


@router.get("/{user_id}", response_model=UserResponse, responses={404: {"model": ErrorResponse}})
async def get_user(user_id: int, users: UserService = Depends(get_user_service)):
    return await users.get_user(user_id)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid user data"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def create_user(payload: UserCreate, users: UserService = Depends(get_user_service)):
    return await users.create_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role.value if payload.role else None,
    )


@router.put("/{user_id}", response_model=UserResponse, responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def update_user(
    user_id: int,
    payload: UserUpdate,
    users: UserService = Depends(get_user_service),
):
    return await users.update_user(
        user_id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role.value if payload.role else None,
    )


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse, "description": "User has active loans"}},
)
async def delete_user(user_id: int, users: UserService = Depends(get_user_service)):
    await users.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
