"""
Reseller Management API Routes

Platform admin endpoints for reseller accounts. Each reseller is paired
with a login User of role "reseller".
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime

from auth_dependencies import require_platform_admin
from auth_service import WeakPasswordError
from db import get_db
from models import Channel, Reseller
from models_rbac import User
from permissions import Feature, PermissionEntry, UnknownFeatureError
from rbac_middleware import load_user_matrix
from services.audit_service import log_admin_action, AuditActions
from services.reseller_service import (
    ResellerService,
    ResellerConflictError,
    ResellerValidationError,
)

router = APIRouter(prefix="/api/resellers", tags=["resellers"])


class ResellerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    phone: Optional[str] = None
    domain: Optional[str] = None
    api_base_url: Optional[str] = None
    commission_percent: float = Field(10, ge=0, le=100)
    status: Literal["active", "inactive"] = "active"
    plan_id: Optional[str] = None
    channels_enabled: List[Channel] = []
    permissions: Optional[List[PermissionEntry]] = None


class ResellerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    domain: Optional[str] = None
    api_base_url: Optional[str] = None
    commission_percent: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[Literal["active", "inactive"]] = None
    plan_id: Optional[str] = None
    channels_enabled: Optional[List[Channel]] = None
    permissions: Optional[List[PermissionEntry]] = None


class ResellerResponse(BaseModel):
    id: int
    user_id: int
    name: str
    email: str
    phone: Optional[str] = None
    domain: Optional[str] = None
    api_base_url: Optional[str] = None
    commission_percent: float
    status: str
    plan_id: Optional[str] = None
    channels_enabled: List[str] = []
    revenue_generated: float = 0
    clients_managed: int = 0
    payout_pending: float = 0
    permissions: List[PermissionEntry] = []
    created_at: Optional[datetime] = None


class ResellerListResponse(BaseModel):
    success: bool = True
    resellers: List[ResellerResponse]
    total: int


class ResellerDetailResponse(BaseModel):
    success: bool = True
    reseller: ResellerResponse


class ResellerCreatedResponse(BaseModel):
    success: bool = True
    id: int
    user_id: int
    message: str = "Reseller added successfully"


def reseller_to_response(reseller: Reseller) -> ResellerResponse:
    permissions = []
    if reseller.user is not None:
        matrix = load_user_matrix(reseller.user)
        permissions = [matrix[f] for f in Feature if f in matrix]

    return ResellerResponse(
        id=reseller.id,
        user_id=reseller.user_id,
        name=reseller.name,
        email=reseller.email,
        phone=reseller.phone,
        domain=reseller.domain,
        api_base_url=reseller.api_base_url,
        commission_percent=float(reseller.commission_percent or 0),
        status=reseller.status,
        plan_id=reseller.plan_id,
        channels_enabled=reseller.channels_enabled or [],
        revenue_generated=float(reseller.revenue_generated or 0),
        clients_managed=reseller.clients_managed or 0,
        payout_pending=float(reseller.payout_pending or 0),
        permissions=permissions,
        created_at=reseller.created_at,
    )


def get_reseller_or_404(db: Session, reseller_id: int) -> Reseller:
    reseller = db.query(Reseller).filter(Reseller.id == reseller_id).first()
    if not reseller:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reseller not found"
        )
    return reseller


def _raise_for(exc: Exception):
    if isinstance(exc, ResellerConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/", response_model=ResellerListResponse)
async def list_resellers(
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """List resellers, newest first, with their account permissions"""
    resellers = db.query(Reseller).order_by(Reseller.created_at.desc(), Reseller.id.desc()).all()
    return ResellerListResponse(
        resellers=[reseller_to_response(r) for r in resellers],
        total=len(resellers),
    )


@router.get("/{reseller_id}", response_model=ResellerDetailResponse)
async def get_reseller(
    reseller_id: int,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    return ResellerDetailResponse(reseller=reseller_to_response(get_reseller_or_404(db, reseller_id)))


@router.post("/", response_model=ResellerCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_reseller(
    reseller_data: ResellerCreate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Create a reseller together with its login account"""
    data = reseller_data.model_dump(exclude={"password", "permissions"})
    data["channels_enabled"] = [c.value for c in reseller_data.channels_enabled]

    try:
        reseller = ResellerService(db).create(
            data,
            password=reseller_data.password,
            permissions=reseller_data.permissions,
        )
    except (ResellerConflictError, ResellerValidationError, WeakPasswordError, UnknownFeatureError) as e:
        _raise_for(e)

    log_admin_action(
        db, current_user, AuditActions.RESELLER_CREATE,
        resource_type="reseller", resource_id=reseller.id,
        details={"email": reseller.email},
    )

    return ResellerCreatedResponse(id=reseller.id, user_id=reseller.user_id)


@router.put("/{reseller_id}")
async def update_reseller(
    reseller_id: int,
    reseller_data: ResellerUpdate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Partially update a reseller; only supplied fields are written"""
    update_data = reseller_data.model_dump(exclude_unset=True)
    password = update_data.pop("password", None)
    permissions_supplied = update_data.pop("permissions", None) is not None
    # Required columns cannot be cleared
    for key in ("name", "email", "status", "commission_percent"):
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if not update_data and password is None and not permissions_supplied:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    reseller = get_reseller_or_404(db, reseller_id)

    if "channels_enabled" in update_data:
        update_data["channels_enabled"] = [c.value for c in reseller_data.channels_enabled or []]

    try:
        ResellerService(db).update(
            reseller,
            update_data,
            password=password,
            permissions=reseller_data.permissions if permissions_supplied else None,
        )
    except (ResellerConflictError, ResellerValidationError, WeakPasswordError, UnknownFeatureError) as e:
        _raise_for(e)

    log_admin_action(
        db, current_user, AuditActions.RESELLER_UPDATE,
        resource_type="reseller", resource_id=reseller_id,
        details={"fields": sorted(reseller_data.model_fields_set - {"password"})},
    )

    return {"success": True, "message": "Reseller updated"}
