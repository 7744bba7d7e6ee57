"""
Campaigns API Routes

Tenant-scoped campaigns. Status values are bookkeeping only; nothing here
sends messages.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime
import logging

from auth_dependencies import TenantContext, require_feature
from db import get_db
from models import Campaign, Channel, MessageTemplate
from models_rbac import User
from permissions import Feature
from rbac_middleware import ensure_channel_enabled

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])

CampaignStatus = Literal["draft", "scheduled", "running", "paused", "completed", "failed"]


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    channel: Channel
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    audience_id: Optional[str] = None
    audience_count: int = Field(0, ge=0)
    status: CampaignStatus = "draft"
    scheduled_at: Optional[datetime] = None


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    channel: Optional[Channel] = None
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    audience_id: Optional[str] = None
    audience_count: Optional[int] = Field(None, ge=0)
    scheduled_at: Optional[datetime] = None


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


class CampaignResponse(BaseModel):
    id: str
    user_id: int
    name: str
    channel: str
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    audience_id: Optional[str] = None
    audience_count: int = 0
    status: str
    scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CampaignListResponse(BaseModel):
    success: bool = True
    campaigns: List[CampaignResponse]


class CampaignDetailResponse(BaseModel):
    success: bool = True
    campaign: CampaignResponse


def get_owned_campaign_or_404(db: Session, user: User, campaign_id: str) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign or not TenantContext(user, db).can_access_resource(campaign.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign not found"
        )
    return campaign


def resolve_template(db: Session, user: User, template_id: Optional[str]) -> Optional[MessageTemplate]:
    """Look up a template the caller may use, 400 if it does not exist"""
    if not template_id:
        return None
    template = db.query(MessageTemplate).filter(MessageTemplate.id == template_id).first()
    if not template or not TenantContext(user, db).can_access_resource(template.user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Template {template_id} not found"
        )
    return template


@router.get("/", response_model=CampaignListResponse)
async def list_campaigns(
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_VIEW)),
    db: Session = Depends(get_db),
):
    campaigns = (
        db.query(Campaign)
        .filter(Campaign.user_id == current_user.id)
        .order_by(Campaign.created_at.desc())
        .all()
    )
    return CampaignListResponse(campaigns=[CampaignResponse.model_validate(c) for c in campaigns])


@router.get("/{campaign_id}", response_model=CampaignDetailResponse)
async def get_campaign(
    campaign_id: str,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_VIEW)),
    db: Session = Depends(get_db),
):
    campaign = get_owned_campaign_or_404(db, current_user, campaign_id)
    return CampaignDetailResponse(campaign=CampaignResponse.model_validate(campaign))


@router.post("/", response_model=CampaignDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    campaign_data: CampaignCreate,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_CREATE)),
    db: Session = Depends(get_db),
):
    ensure_channel_enabled(current_user, campaign_data.channel.value)
    template = resolve_template(db, current_user, campaign_data.template_id)

    campaign = Campaign(
        user_id=current_user.id,
        name=campaign_data.name.strip(),
        channel=campaign_data.channel.value,
        template_id=template.id if template else None,
        template_name=template.name if template else campaign_data.template_name,
        audience_id=campaign_data.audience_id,
        audience_count=campaign_data.audience_count,
        status=campaign_data.status,
        scheduled_at=campaign_data.scheduled_at,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)

    logger.info(f"Campaign {campaign.id} created by user {current_user.id}")
    return CampaignDetailResponse(campaign=CampaignResponse.model_validate(campaign))


@router.put("/{campaign_id}", response_model=CampaignDetailResponse)
async def update_campaign(
    campaign_id: str,
    campaign_data: CampaignUpdate,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_EDIT)),
    db: Session = Depends(get_db),
):
    campaign = get_owned_campaign_or_404(db, current_user, campaign_id)

    update_data = campaign_data.model_dump(exclude_unset=True)
    for key in ("name", "channel", "audience_count"):
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    if "channel" in update_data:
        update_data["channel"] = campaign_data.channel.value
        ensure_channel_enabled(current_user, update_data["channel"])
    if update_data.get("template_id"):
        template = resolve_template(db, current_user, update_data["template_id"])
        update_data["template_name"] = template.name

    for field, value in update_data.items():
        setattr(campaign, field, value)

    db.commit()
    db.refresh(campaign)

    return CampaignDetailResponse(campaign=CampaignResponse.model_validate(campaign))


@router.put("/{campaign_id}/status", response_model=CampaignDetailResponse)
async def update_campaign_status(
    campaign_id: str,
    status_update: CampaignStatusUpdate,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_EDIT)),
    db: Session = Depends(get_db),
):
    """Pause, resume or complete a campaign"""
    campaign = get_owned_campaign_or_404(db, current_user, campaign_id)
    campaign.status = status_update.status
    db.commit()
    db.refresh(campaign)

    logger.info(f"Campaign {campaign_id} status set to {status_update.status}")
    return CampaignDetailResponse(campaign=CampaignResponse.model_validate(campaign))


@router.post("/{campaign_id}/duplicate", response_model=CampaignDetailResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_campaign(
    campaign_id: str,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_CREATE)),
    db: Session = Depends(get_db),
):
    """Copy a campaign as a new draft"""
    source = get_owned_campaign_or_404(db, current_user, campaign_id)

    copy = Campaign(
        user_id=source.user_id,
        name=f"{source.name} (Copy)",
        channel=source.channel,
        template_id=source.template_id,
        template_name=source.template_name,
        audience_id=source.audience_id,
        audience_count=source.audience_count,
        status="draft",
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)

    return CampaignDetailResponse(campaign=CampaignResponse.model_validate(copy))


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: str,
    current_user: User = Depends(require_feature(Feature.CAMPAIGN_DELETE)),
    db: Session = Depends(get_db),
):
    campaign = get_owned_campaign_or_404(db, current_user, campaign_id)
    db.delete(campaign)
    db.commit()
    return {"success": True, "message": "Campaign deleted"}
