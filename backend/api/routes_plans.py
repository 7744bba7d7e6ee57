"""
Subscription Plans API Routes

Provides REST API endpoints for subscription plan management.
- Public endpoint for listing active plans
- Platform admin endpoints for CRUD operations
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from db import get_db, transaction
from models import Channel, Plan, Reseller
from models_rbac import User
from auth_dependencies import (
    get_current_user_optional,
    require_platform_admin,
)
from services.audit_service import log_admin_action, AuditActions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plans", tags=["plans"])


# Request/Response Models
class PlanCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    price: float = Field(..., ge=0)
    monthly_credits: int = Field(..., ge=0)
    client_count: int = Field(..., ge=1)
    channels_allowed: List[Channel] = Field(..., min_length=1)
    automation_limit: int = Field(..., ge=-1, description="-1 for unlimited")
    campaign_limit: int = Field(..., ge=-1, description="-1 for unlimited")
    api_access: bool


class PlanResponse(BaseModel):
    """Plan as the dashboard reads it (camelCase keys)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    price: float
    monthly_credits: int
    client_count: int
    channels_allowed: List[str] = []
    automation_limit: int
    campaign_limit: int
    api_access: bool
    status: str


class PlanListResponse(BaseModel):
    success: bool = True
    plans: List[PlanResponse]
    total: int


class PlanDetailResponse(BaseModel):
    success: bool = True
    plan: PlanResponse


class PlanStatusResponse(BaseModel):
    success: bool = True
    id: str
    status: str


# Helper functions
def plan_to_response(plan: Plan) -> PlanResponse:
    """Convert Plan model to response."""
    return PlanResponse(
        id=plan.id,
        name=plan.name,
        price=float(plan.price or 0),
        monthly_credits=plan.monthly_credits or 0,
        client_count=plan.client_count or 1,
        # Unreadable stored lists come back from the column type as []
        channels_allowed=[str(c) for c in (plan.channels_allowed or [])],
        automation_limit=plan.automation_limit if plan.automation_limit is not None else -1,
        campaign_limit=plan.campaign_limit if plan.campaign_limit is not None else -1,
        api_access=bool(plan.api_access),
        status=plan.status,
    )


def get_plan_or_404(db: Session, plan_id: str) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found"
        )
    return plan


def apply_plan_data(plan: Plan, data: PlanCreate) -> None:
    plan.name = data.name.strip()
    plan.price = data.price
    plan.monthly_credits = data.monthly_credits
    plan.client_count = data.client_count
    plan.channels_allowed = [c.value for c in data.channels_allowed]
    plan.automation_limit = data.automation_limit
    plan.campaign_limit = data.campaign_limit
    plan.api_access = data.api_access


# Public Endpoints

@router.get("/", response_model=PlanListResponse)
async def list_plans(
    admin: bool = Query(False, description="Include inactive plans (platform admin only)"),
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    """
    List subscription plans, cheapest first.

    By default, only returns active plans. Platform admins passing
    admin=true also get inactive plans; the flag is ignored for anyone else.
    """
    query = db.query(Plan)

    if not (admin and current_user and current_user.is_platform_admin):
        query = query.filter(Plan.status == "active")

    plans = query.order_by(Plan.price.asc(), Plan.name.asc()).all()

    return PlanListResponse(
        plans=[plan_to_response(p) for p in plans],
        total=len(plans),
    )


@router.get("/{plan_id}", response_model=PlanDetailResponse)
async def get_plan(
    plan_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    """Get a single plan. Inactive plans are only visible to platform admins."""
    plan = get_plan_or_404(db, plan_id)

    if plan.status != "active" and not (current_user and current_user.is_platform_admin):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found"
        )

    return PlanDetailResponse(plan=plan_to_response(plan))


# Admin Endpoints

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_data: PlanCreate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Create a new subscription plan (platform admin only)."""
    plan = Plan(status="active")
    apply_plan_data(plan, plan_data)

    db.add(plan)
    db.commit()
    db.refresh(plan)

    logger.info(f"Plan {plan.id} ({plan.name}) created by admin {current_user.id}")
    log_admin_action(
        db, current_user, AuditActions.PLAN_CREATE,
        resource_type="plan", resource_id=plan.id,
        details={"name": plan.name, "price": plan.price},
    )

    return {"success": True, **plan_to_response(plan).model_dump(by_alias=True)}


@router.put("/{plan_id}")
async def update_plan(
    plan_id: str,
    plan_data: PlanCreate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Replace every field of a plan (platform admin only)."""
    plan = get_plan_or_404(db, plan_id)
    apply_plan_data(plan, plan_data)
    db.commit()

    log_admin_action(
        db, current_user, AuditActions.PLAN_UPDATE,
        resource_type="plan", resource_id=plan_id,
        details=plan_data.model_dump(mode="json"),
    )

    db.refresh(plan)
    return {"success": True, **plan_to_response(plan).model_dump(by_alias=True)}


@router.delete("/{plan_id}")
async def delete_plan(
    plan_id: str,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """
    Delete a plan (platform admin only).

    Accounts on the plan are detached from it in the same transaction.
    """
    plan = get_plan_or_404(db, plan_id)
    plan_name = plan.name

    with transaction(db):
        detached_users = db.query(User).filter(User.plan_id == plan_id).update(
            {User.plan_id: None}, synchronize_session=False
        )
        detached_resellers = db.query(Reseller).filter(Reseller.plan_id == plan_id).update(
            {Reseller.plan_id: None}, synchronize_session=False
        )
        db.delete(plan)

    log_admin_action(
        db, current_user, AuditActions.PLAN_DELETE,
        resource_type="plan", resource_id=plan_id,
        details={"name": plan_name, "users": detached_users, "resellers": detached_resellers},
    )

    return {"success": True, "message": "Plan deleted successfully"}


@router.patch("/{plan_id}/toggle", response_model=PlanStatusResponse)
async def toggle_plan(
    plan_id: str,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Flip a plan between active and inactive (platform admin only)."""
    plan = get_plan_or_404(db, plan_id)
    plan.status = "inactive" if plan.status == "active" else "active"
    db.commit()

    log_admin_action(
        db, current_user, AuditActions.PLAN_TOGGLE,
        resource_type="plan", resource_id=plan_id,
        details={"status": plan.status},
    )

    return PlanStatusResponse(id=plan_id, status=plan.status)
