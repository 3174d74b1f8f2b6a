"""
Authentication and profile endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request, status

from paperflow.api.deps import CurrentUser, Identity, get_client_ip, get_user_agent
from paperflow.schemas.auth import (
    TokenResponse,
    UserCreate,
    UserLogin,
    UserProfileUpdate,
    UserResponse,
)

router = APIRouter()


def _token_response(user, token: str, expires_at: datetime) -> TokenResponse:
    expires_in = int((expires_at - datetime.now(timezone.utc)).total_seconds())
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, data: UserCreate, identity: Identity):
    """
    Register a new account in the pending role.

    The exam unit is notified and must assign a role before the account can
    upload or review files.
    """
    ip_address = get_client_ip(request)
    await identity.register_user(
        email=data.email,
        password=data.password,
        display_name=data.display_name,
        ip_address=ip_address,
    )

    result = await identity.authenticate(
        email=data.email,
        password=data.password,
        ip_address=ip_address,
        user_agent=get_user_agent(request),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to authenticate after registration",
        )
    return _token_response(*result)


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, data: UserLogin, identity: Identity):
    result = await identity.authenticate(
        email=data.email,
        password=data.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_response(*result)


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(data: UserProfileUpdate, user: CurrentUser, identity: Identity):
    return await identity.update_profile(
        user,
        display_name=data.display_name,
        email_notifications_enabled=data.email_notifications_enabled,
    )
