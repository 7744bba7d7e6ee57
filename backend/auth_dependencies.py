"""
Authentication Dependencies
Reusable FastAPI Dependencies

Provides common dependencies for authentication and authorization.
"""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from db import get_db, get_settings
from models_rbac import User
from permissions import Feature
from auth_service import AuthService
from rbac_middleware import check_permission, PermissionDeniedError
from settings import Settings

security = HTTPBearer(auto_error=False)  # Optional auth


def _user_from_token(token: str, db: Session, settings: Settings, request: Request) -> Optional[User]:
    auth_service = AuthService(db, settings)

    # Verify token
    payload = auth_service.verify_token(token)
    if not payload:
        return None

    try:
        user_id = int(payload.get("id", payload.get("sub")))
    except (ValueError, TypeError):
        return None

    user = auth_service.get_user_by_id(user_id)
    if user:
        request.state.token_claims = payload
    return user


def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """
    Get current user from JWT token (optional - returns None if not authenticated)

    Args:
        request: Incoming request (decoded claims are attached to request.state)
        credentials: HTTP authorization credentials (optional)
        db: Database session
        settings: Application settings

    Returns:
        User object if authenticated, None otherwise
    """
    if not credentials:
        return None
    return _user_from_token(credentials.credentials, db, settings, request)


def get_current_user_required(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Get current user from JWT token (required - raises 401 if not authenticated)

    Raises:
        HTTPException: 401 if no token or the token is invalid/expired,
            403 if the account is disabled
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = _user_from_token(credentials.credentials, db, settings, request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    return user


def require_feature(feature: Feature):
    """
    Dependency to check if current user may use a feature

    Usage:
        @router.get("/api/contacts")
        def list_contacts(
            current_user: User = Depends(require_feature(Feature.CONTACTS_VIEW)),
            db: Session = Depends(get_db)
        ):
            # Endpoint code here - current_user is returned

    Args:
        feature: Required feature

    Returns:
        Dependency function that returns the user if authorized, raises 403 otherwise
    """
    def check(
        current_user: User = Depends(get_current_user_required),
        db: Session = Depends(get_db)
    ) -> User:
        if not check_permission(current_user, feature, db):
            raise PermissionDeniedError(f"Permission denied. Required: {feature.value}")

        return current_user

    return check


def require_platform_admin():
    """
    Dependency to check if current user is a platform admin

    Raises:
        HTTPException: 403 if not platform admin
    """
    def check(current_user: User = Depends(get_current_user_required)) -> User:
        if not current_user.is_platform_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required"
            )
        return current_user

    return check


class TenantContext:
    """Context object containing the current user and the data they may see"""

    def __init__(self, user: User, db: Session):
        self.user = user
        self.db = db
        self.user_id = user.id
        self.is_platform_admin = user.is_platform_admin

    def filter_by_owner(self, query, owner_column):
        """
        Apply owner isolation to a query

        Args:
            query: SQLAlchemy query
            owner_column: Column to filter (e.g., Contact.user_id)

        Returns:
            Filtered query (or unfiltered for platform admins)
        """
        if self.is_platform_admin:
            return query
        return query.filter(owner_column == self.user_id)

    def can_access_resource(self, owner_id: Optional[int]) -> bool:
        if self.is_platform_admin:
            return True
        return owner_id == self.user_id
