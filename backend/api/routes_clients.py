"""
Client Management API Routes

Platform admin endpoints for tenant accounts (users of role "user"):
list, create, partial update, and impersonation.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Literal, Optional
import logging

from auth_dependencies import require_platform_admin
from auth_service import AuthService, WeakPasswordError, validate_password_strength
from auth_utils import hash_password
from db import get_db, get_settings, transaction
from models import Channel, Plan, Reseller, WalletTransaction
from models_rbac import User
from permissions import SubRole, TenantClass, default_matrix
from rbac_middleware import store_permissions
from schemas import UserResponse, user_to_response
from services.audit_service import log_admin_action, AuditActions
from settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])

CLIENT_ROLE = "user"


# Request/Response Models
class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    company: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    plan_id: Optional[str] = None
    status: Literal["active", "inactive"] = "active"
    account_role: SubRole = SubRole.ADMIN
    credits_available: int = Field(0, ge=0, description="Opening balance, recorded as a ledger credit")
    channels_enabled: List[Channel] = []


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    company: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    plan_id: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None
    account_role: Optional[SubRole] = None
    channels_enabled: Optional[List[Channel]] = None


class ClientListResponse(BaseModel):
    success: bool = True
    clients: List[UserResponse]
    total: int


class ClientDetailResponse(BaseModel):
    success: bool = True
    client: UserResponse


class ImpersonateResponse(BaseModel):
    success: bool = True
    token: str
    client: UserResponse


# Helper functions
def get_client_or_404(db: Session, client_id: int) -> User:
    client = db.query(User).filter(User.id == client_id, User.role == CLIENT_ROLE).first()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    return client


def ensure_email_free(db: Session, email: str, client: Optional[User] = None) -> None:
    """Emails are unique across every account and reseller profile"""
    user_q = db.query(User).filter(User.email == email)
    reseller_q = db.query(Reseller).filter(Reseller.email == email)
    if client is not None:
        user_q = user_q.filter(User.id != client.id)

    if user_q.first() or reseller_q.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )


def ensure_plan_exists(db: Session, plan_id: Optional[str]) -> None:
    if plan_id and not db.query(Plan).filter(Plan.id == plan_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Plan {plan_id} does not exist"
        )


def unique_channels(channels: List[Channel]) -> List[str]:
    values = []
    for channel in channels:
        if channel.value not in values:
            values.append(channel.value)
    return values


def check_password(password: str) -> None:
    try:
        validate_password_strength(password)
    except WeakPasswordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/", response_model=ClientListResponse)
async def list_clients(
    search: Optional[str] = Query(None, description="Search by name, email or company"),
    status_filter: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    plan_id: Optional[str] = Query(None),
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """List tenant accounts, newest first (platform admin only)"""
    query = db.query(User).filter(User.role == CLIENT_ROLE)

    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            or_(
                User.name.ilike(search_pattern),
                User.email.ilike(search_pattern),
                User.company.ilike(search_pattern),
            )
        )
    if status_filter:
        query = query.filter(User.status == status_filter)
    if plan_id:
        query = query.filter(User.plan_id == plan_id)

    clients = query.order_by(User.id.desc()).all()
    return ClientListResponse(
        clients=[user_to_response(c, include_permissions=False) for c in clients],
        total=len(clients),
    )


@router.get("/{client_id}", response_model=ClientDetailResponse)
async def get_client(
    client_id: int,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    return ClientDetailResponse(client=user_to_response(get_client_or_404(db, client_id)))


@router.post("/", response_model=ClientDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """
    Create a tenant account (platform admin only).

    The account gets the default user permission matrix. A non-zero opening
    balance is written as a credit entry in the same transaction.
    """
    email = client_data.email.lower()
    ensure_email_free(db, email)
    ensure_plan_exists(db, client_data.plan_id)
    check_password(client_data.password)

    with transaction(db):
        client = User(
            name=client_data.name.strip(),
            email=email,
            password_hash=hash_password(client_data.password),
            role=CLIENT_ROLE,
            account_role=client_data.account_role.value,
            company=(client_data.company or "").strip() or None,
            contact_phone=(client_data.contact_phone or "").strip() or None,
            plan_id=client_data.plan_id,
            status=client_data.status,
            credits_available=client_data.credits_available,
            credits_used=0,
            channels_enabled=unique_channels(client_data.channels_enabled),
        )
        db.add(client)
        db.flush()
        store_permissions(db, client, default_matrix(TenantClass.USER))

        if client_data.credits_available:
            db.add(WalletTransaction(
                user_id=client.id,
                type="credit",
                amount=client_data.credits_available,
                description="Opening balance",
                status="completed",
                created_by=current_user.id,
            ))

    db.refresh(client)
    logger.info(f"Client {client.id} ({client.email}) created by admin {current_user.id}")
    log_admin_action(
        db, current_user, AuditActions.CLIENT_CREATE,
        resource_type="user", resource_id=client.id,
        details={"email": client.email, "plan_id": client.plan_id,
                 "credits": client_data.credits_available},
    )

    return ClientDetailResponse(client=user_to_response(client))


@router.put("/{client_id}", response_model=ClientDetailResponse)
async def update_client(
    client_id: int,
    client_data: ClientUpdate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """
    Partially update a tenant account (platform admin only).

    Only supplied fields are written. Balances move through /api/wallet/adjust.
    """
    update_data = client_data.model_dump(exclude_unset=True)
    password = update_data.pop("password", None)
    if password is not None and not password.strip():
        password = None
    # Required columns cannot be cleared
    for key in ("name", "email", "status", "account_role"):
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if not update_data and password is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    client = get_client_or_404(db, client_id)

    if "email" in update_data:
        update_data["email"] = update_data["email"].lower()
        ensure_email_free(db, update_data["email"], client)
    if "plan_id" in update_data:
        update_data["plan_id"] = update_data["plan_id"] or None
        ensure_plan_exists(db, update_data["plan_id"])
    if "account_role" in update_data:
        update_data["account_role"] = client_data.account_role.value
    if "channels_enabled" in update_data:
        update_data["channels_enabled"] = unique_channels(client_data.channels_enabled or [])
    for key in ("company", "contact_phone"):
        if key in update_data:
            update_data[key] = (update_data[key] or "").strip() or None
    if password is not None:
        check_password(password)
        update_data["password_hash"] = hash_password(password)

    for key, value in update_data.items():
        setattr(client, key, value)
    db.commit()
    db.refresh(client)

    log_admin_action(
        db, current_user, AuditActions.CLIENT_UPDATE,
        resource_type="user", resource_id=client.id,
        details={"fields": sorted(client_data.model_fields_set)},
    )

    return ClientDetailResponse(client=user_to_response(client))


@router.post("/{client_id}/impersonate", response_model=ImpersonateResponse)
async def impersonate_client(
    client_id: int,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Issue an access token for a tenant account (platform admin only).

    The token carries an impersonated_by claim naming the admin.
    """
    client = get_client_or_404(db, client_id)
    if not client.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    token = AuthService(db, settings).issue_token(client, extra_claims={"impersonated_by": current_user.id})

    logger.warning(f"Admin {current_user.id} impersonating client {client.id}")
    log_admin_action(
        db, current_user, AuditActions.CLIENT_IMPERSONATE,
        resource_type="user", resource_id=client.id,
    )

    return ImpersonateResponse(token=token, client=user_to_response(client))
