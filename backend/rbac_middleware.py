"""
RBAC Middleware
Feature Permission Enforcement

Loads a user's stored grants into a PermissionMatrix and answers
"may this user use feature F" for the authorization dependencies.
"""

import logging
from typing import Iterable
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models_rbac import User, UserPermission
from permissions import (
    Feature,
    PermissionEntry,
    PermissionMatrix,
    build_matrix,
    has_access,
    tenant_class_for_role,
)

logger = logging.getLogger(__name__)


class PermissionDeniedError(HTTPException):
    """Custom exception for permission denied"""
    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


def load_user_matrix(user: User) -> PermissionMatrix:
    """
    Build the typed permission matrix from a user's stored rows.

    Rows naming a feature outside the user's catalog are skipped (and logged),
    which leaves that feature denied.
    """
    rows = [
        {"feature": row.feature, "admin": row.admin, "manager": row.manager, "agent": row.agent}
        for row in user.permission_rows
    ]
    return build_matrix(rows, tenant_class_for_role(user.role))


def check_permission(user: User, feature: Feature, db: Session) -> bool:
    """
    Check if user may use a feature

    Args:
        user: Current user object
        feature: Feature to check (e.g., Feature.CONTACTS_VIEW)
        db: Database session

    Returns:
        True if user has permission, False otherwise
    """
    # Platform admins have all permissions
    if user.is_platform_admin:
        return True

    matrix = load_user_matrix(user)
    allowed = has_access(user.role, user.account_role, matrix, feature)
    if not allowed:
        logger.debug(f"User {user.id} ({user.account_role}) denied '{feature.value}'")
    return allowed


def store_permissions(db: Session, user: User, entries: Iterable[PermissionEntry]) -> None:
    """
    Replace every stored grant of a user with the given entries.

    Does not commit; callers run this inside their own transaction.
    """
    if isinstance(entries, dict):
        entries = entries.values()

    user.permission_rows.clear()
    db.flush()

    for entry in entries:
        user.permission_rows.append(UserPermission(
            feature=entry.feature.value,
            admin=entry.admin,
            manager=entry.manager,
            agent=entry.agent,
        ))
    db.flush()


def ensure_channel_enabled(user: User, channel: str) -> None:
    """
    Refuse work on a channel the user's account is not enabled for

    Raises:
        PermissionDeniedError: If the channel is not in channels_enabled
    """
    if user.is_platform_admin:
        return
    if channel not in (user.channels_enabled or []):
        raise PermissionDeniedError(f"Channel {channel} is not enabled for this account")
