"""
Permission Catalog & User Permission API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List

from auth_dependencies import get_current_user_required, require_platform_admin
from db import get_db, transaction
from models_rbac import User
from permissions import (
    PermissionEntry,
    TenantClass,
    UnknownFeatureError,
    build_matrix,
    matrix_to_list,
    sorted_catalog,
    tenant_class_for_role,
)
from rbac_middleware import load_user_matrix, store_permissions
from services.audit_service import log_admin_action, AuditActions

router = APIRouter(prefix="/api", tags=["permissions"])


class CatalogResponse(BaseModel):
    success: bool = True
    tenant_class: TenantClass
    features: List[str]


class UserPermissionsResponse(BaseModel):
    success: bool = True
    user_id: int
    tenant_class: TenantClass
    account_role: str
    permissions: List[PermissionEntry]


class PermissionsUpdate(BaseModel):
    permissions: List[PermissionEntry]


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def permissions_response(user: User) -> UserPermissionsResponse:
    return UserPermissionsResponse(
        user_id=user.id,
        tenant_class=tenant_class_for_role(user.role),
        account_role=user.account_role or "admin",
        permissions=matrix_to_list(load_user_matrix(user)),
    )


@router.get("/permissions/catalog", response_model=CatalogResponse)
async def get_catalog(
    tenant_class: TenantClass = Query(TenantClass.USER),
    current_user: User = Depends(get_current_user_required),
):
    """Features that can be granted to accounts of a tenant class"""
    return CatalogResponse(
        tenant_class=tenant_class,
        features=[feature.value for feature in sorted_catalog(tenant_class)],
    )


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: int,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    return permissions_response(get_user_or_404(db, user_id))


@router.put("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def replace_user_permissions(
    user_id: int,
    update: PermissionsUpdate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """
    Replace a user's permission matrix.

    Every entry must name a feature from the catalog of the user's tenant
    class; otherwise nothing is written and a 400 is returned.
    """
    user = get_user_or_404(db, user_id)
    tenant_class = tenant_class_for_role(user.role)

    try:
        matrix = build_matrix(update.permissions, tenant_class, strict=True)
    except UnknownFeatureError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    with transaction(db):
        store_permissions(db, user, matrix)

    log_admin_action(
        db, current_user, AuditActions.USER_PERMISSIONS_UPDATE,
        resource_type="user", resource_id=user_id,
        details={"features": len(matrix)},
    )

    db.refresh(user)
    return permissions_response(user)
