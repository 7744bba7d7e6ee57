"""
Authentication API Routes

Provides REST API endpoints for authentication operations.
Login and signup are rate limited to slow down brute force attempts.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Request
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from db import get_db, get_settings
from auth_service import (
    AuthService,
    AuthenticationError,
    AccountDisabledError,
    EmailTakenError,
    WeakPasswordError,
)
from auth_dependencies import get_current_user_required, require_feature, require_platform_admin
from models import Channel
from models_rbac import User
from permissions import Feature
from schemas import UserResponse, UserListResponse, user_to_response
from settings import Settings

logger = logging.getLogger(__name__)

def rate_limit_key(request: Request) -> str:
    """Client address, scoped to the app instance serving the request"""
    scope = getattr(request.app.state, "rate_limit_scope", "")
    return f"{scope}:{get_remote_address(request)}"


class AppRateLimiter(Limiter):
    """
    Limiter shared by the route decorators whose on/off switch is read from
    the Settings of the app handling each request.
    """

    def _check_request_limit(self, request, endpoint_func, in_middleware=True):
        settings = getattr(request.app.state, "settings", None)
        if settings is not None and not settings.rate_limit_enabled:
            request.state.view_rate_limit = None
            return
        super()._check_request_limit(request, endpoint_func, in_middleware)


limiter = AppRateLimiter(key_func=rate_limit_key)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Request/Response Models
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    company: Optional[str] = None


class ChannelsUpdate(BaseModel):
    channels: List[Channel]


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    success: bool = True
    user: UserResponse


class ChannelsResponse(BaseModel):
    success: bool = True
    channels: List[str]


# Authentication Endpoints

@router.post("/login", response_model=AuthResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Login endpoint

    Authenticates user with email and password, returns JWT access token.
    Rate limited to 5 requests per minute per IP.
    """
    auth_service = AuthService(db, settings)

    try:
        user, token = auth_service.login(login_request.email, login_request.password)
    except AccountDisabledError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except AuthenticationError as e:
        logger.info(f"Failed login for {login_request.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    return AuthResponse(token=token, user=user_to_response(user))


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/hour")
async def signup(
    request: Request,
    signup_request: SignupRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Signup endpoint

    Registers a new user account and returns a JWT access token.
    """
    auth_service = AuthService(db, settings)

    try:
        user, token = auth_service.signup(
            name=signup_request.name,
            email=signup_request.email,
            password=signup_request.password,
            company=signup_request.company,
        )
    except EmailTakenError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except WeakPasswordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return AuthResponse(token=token, user=user_to_response(user))


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: User = Depends(get_current_user_required)):
    """Get the authenticated user with their permission matrix"""
    return MeResponse(user=user_to_response(current_user))


@router.put("/channels", response_model=ChannelsResponse)
async def update_channels(
    update: ChannelsUpdate,
    current_user: User = Depends(require_feature(Feature.SETTINGS_EDIT)),
    db: Session = Depends(get_db),
):
    """Replace the channels enabled for the caller's account"""
    channels = []
    for channel in update.channels:
        if channel.value not in channels:
            channels.append(channel.value)

    current_user.channels_enabled = channels
    db.commit()

    logger.info(f"User {current_user.id} enabled channels {channels}")
    return ChannelsResponse(channels=channels)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """List every account (platform admin only)"""
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return UserListResponse(
        users=[user_to_response(u, include_permissions=False) for u in users],
        total=len(users),
    )
