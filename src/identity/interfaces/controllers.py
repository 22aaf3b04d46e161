"""
Identity Controllers (API Routes)
=================================

FastAPI routes for authentication and user administration.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.identity.application import (
    AuthService,
    UserService,
    SignupRequest,
    LoginRequest,
    RoleUpdateRequest,
    UserResponse,
    AuthResponse,
)
from src.identity.domain import Principal
from src.identity.infrastructure import CredentialService, SQLAlchemyUserRepository
from src.identity.interfaces.dependencies import (
    get_credential_service,
    get_current_user,
    require_admin,
    require_privileged,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])


def get_auth_service(
    db: AsyncSession = Depends(get_session),
    credentials: CredentialService = Depends(get_credential_service),
) -> AuthService:
    return AuthService(SQLAlchemyUserRepository(db), credentials)


def get_user_service(db: AsyncSession = Depends(get_session)) -> UserService:
    return UserService(SQLAlchemyUserRepository(db))


# ========== Authentication ==========

@auth_router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new employee account",
    responses={400: {"description": "User already exists or invalid body"}}
)
async def signup(
    payload: SignupRequest,
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    user, token = await service.signup(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        department=payload.department,
    )
    await db.commit()

    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=UserResponse.from_domain(user),
    )


@auth_router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email and password",
    responses={401: {"description": "Invalid email or password"}}
)
async def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    user, token = await service.login(payload.email, payload.password)
    return AuthResponse(
        message="Login successful",
        token=token,
        user=UserResponse.from_domain(user),
    )


@auth_router.get("/me", response_model=UserResponse, summary="Current user")
async def me(
    user: Principal = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return UserResponse.from_domain(await service.get_profile(user.user_id))


# ========== Users ==========

@users_router.get(
    "",
    response_model=List[UserResponse],
    summary="List all users (admin only)"
)
async def list_users(
    _: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return [UserResponse.from_domain(u) for u in await service.list_users()]


@users_router.get(
    "/responders",
    response_model=List[UserResponse],
    summary="List users who can be assigned incidents"
)
async def list_responders(
    _: Principal = Depends(require_privileged),
    service: UserService = Depends(get_user_service),
):
    return [UserResponse.from_domain(u) for u in await service.list_responders()]


@users_router.patch(
    "/{user_id}/role",
    response_model=UserResponse,
    summary="Change a user's role (admin only)"
)
async def change_role(
    user_id: str,
    payload: RoleUpdateRequest,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    service: UserService = Depends(get_user_service),
):
    user = await service.change_role(user_id, payload.role)
    await db.commit()

    logger.info(
        "Role updated by admin",
        extra={"admin_id": admin.user_id, "user_id": user_id, "role": payload.role}
    )
    return UserResponse.from_domain(user)
