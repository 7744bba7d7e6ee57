from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from models_rbac import User
from permissions import Feature, PermissionEntry
from rbac_middleware import load_user_matrix


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    account_role: str
    company: Optional[str] = None
    contact_phone: Optional[str] = None
    plan_id: Optional[str] = None
    credits_available: int = 0
    credits_used: int = 0
    channels_enabled: List[str] = []
    status: str
    permissions: List[PermissionEntry] = []
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserResponse]
    total: int


def user_to_response(user: User, include_permissions: bool = True) -> UserResponse:
    """Convert User model to response, with the effective permission matrix"""
    permissions = []
    if include_permissions:
        matrix = load_user_matrix(user)
        permissions = [matrix[feature] for feature in Feature if feature in matrix]

    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        account_role=user.account_role or "admin",
        company=user.company,
        contact_phone=user.contact_phone,
        plan_id=user.plan_id,
        credits_available=user.credits_available or 0,
        credits_used=user.credits_used or 0,
        channels_enabled=user.channels_enabled or [],
        status=user.status,
        permissions=permissions,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )
