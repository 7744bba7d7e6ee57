"""
RCS Bot Configuration API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime

from auth_dependencies import TenantContext, require_feature
from db import get_db
from models import RcsBot
from models_rbac import User
from permissions import Feature
from services.rcs_bot_service import RcsBotService

router = APIRouter(prefix="/api/rcs", tags=["rcs"])


class BotContact(BaseModel):
    contact_type: Literal["phone", "email", "website"]
    contact_value: str = Field(..., min_length=1, max_length=255)
    label: Optional[str] = Field(None, max_length=100)

    class Config:
        from_attributes = True


class BotMedia(BaseModel):
    media_type: Literal["logo", "banner", "image", "video"]
    media_url: str = Field(..., min_length=1, max_length=500)

    class Config:
        from_attributes = True


class BotFields(BaseModel):
    route_type: Optional[str] = None
    bot_type: Optional[str] = None
    message_type: Optional[str] = None
    billing_category: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    brand_color: Optional[str] = Field(None, max_length=20)
    bot_logo_url: Optional[str] = None
    banner_image_url: Optional[str] = None
    terms_url: Optional[str] = None
    privacy_url: Optional[str] = None
    development_platform: Optional[str] = None
    webhook_url: Optional[str] = None
    callback_url: Optional[str] = None
    languages_supported: Optional[str] = None


class BotCreate(BotFields):
    bot_name: str = Field(..., min_length=1, max_length=255)
    brand_name: str = Field(..., min_length=1, max_length=255)
    agree_all_carriers: bool = False
    status: str = "draft"
    contacts: List[BotContact] = []
    media: List[BotMedia] = []


class BotUpdate(BotFields):
    bot_name: Optional[str] = Field(None, min_length=1, max_length=255)
    brand_name: Optional[str] = Field(None, min_length=1, max_length=255)
    agree_all_carriers: Optional[bool] = None
    status: Optional[str] = None
    contacts: Optional[List[BotContact]] = None
    media: Optional[List[BotMedia]] = None


class BotResponse(BotFields):
    id: int
    user_id: int
    bot_name: str
    brand_name: str
    agree_all_carriers: bool
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BotDetail(BotResponse):
    contacts: List[BotContact] = []
    media: List[BotMedia] = []


class BotListResponse(BaseModel):
    success: bool = True
    bots: List[BotResponse]


class BotDetailResponse(BaseModel):
    success: bool = True
    bot: BotDetail


class BotCreatedResponse(BaseModel):
    success: bool = True
    id: int
    message: str = "Bot configuration created successfully"


def get_owned_bot_or_404(db: Session, user: User, bot_id: int) -> RcsBot:
    bot = db.query(RcsBot).filter(RcsBot.id == bot_id).first()
    if not bot or not TenantContext(user, db).can_access_resource(bot.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bot not found"
        )
    return bot


@router.get("/bots", response_model=BotListResponse)
async def list_bots(
    current_user: User = Depends(require_feature(Feature.INTEGRATION_VIEW)),
    db: Session = Depends(get_db),
):
    query = TenantContext(current_user, db).filter_by_owner(db.query(RcsBot), RcsBot.user_id)
    bots = query.order_by(RcsBot.created_at.desc(), RcsBot.id.desc()).all()
    return BotListResponse(bots=[BotResponse.model_validate(b) for b in bots])


@router.get("/bots/{bot_id}", response_model=BotDetailResponse)
async def get_bot(
    bot_id: int,
    current_user: User = Depends(require_feature(Feature.INTEGRATION_VIEW)),
    db: Session = Depends(get_db),
):
    bot = get_owned_bot_or_404(db, current_user, bot_id)
    return BotDetailResponse(bot=BotDetail.model_validate(bot))


@router.post("/bots", response_model=BotCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_bot(
    bot_data: BotCreate,
    current_user: User = Depends(require_feature(Feature.INTEGRATION_MANAGE)),
    db: Session = Depends(get_db),
):
    """Create a bot with its contacts and media in one transaction"""
    bot = RcsBotService(db).create(
        current_user,
        bot_data.model_dump(exclude={"contacts", "media"}),
        contacts=[c.model_dump() for c in bot_data.contacts],
        media=[m.model_dump() for m in bot_data.media],
    )
    return BotCreatedResponse(id=bot.id)


@router.put("/bots/{bot_id}")
async def update_bot(
    bot_id: int,
    bot_data: BotUpdate,
    current_user: User = Depends(require_feature(Feature.INTEGRATION_MANAGE)),
    db: Session = Depends(get_db),
):
    """Partially update a bot; supplied contacts/media lists replace the old ones"""
    bot = get_owned_bot_or_404(db, current_user, bot_id)

    fields = bot_data.model_dump(exclude_unset=True, exclude={"contacts", "media"})
    for key in ("bot_name", "brand_name", "agree_all_carriers", "status"):
        if key in fields and fields[key] is None:
            del fields[key]

    contacts = None
    if bot_data.contacts is not None:
        contacts = [c.model_dump() for c in bot_data.contacts]
    media = None
    if bot_data.media is not None:
        media = [m.model_dump() for m in bot_data.media]

    if not fields and contacts is None and media is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    RcsBotService(db).update(bot, fields, contacts=contacts, media=media)
    return {"success": True, "message": "Bot configuration updated successfully"}


@router.delete("/bots/{bot_id}")
async def delete_bot(
    bot_id: int,
    current_user: User = Depends(require_feature(Feature.INTEGRATION_MANAGE)),
    db: Session = Depends(get_db),
):
    bot = get_owned_bot_or_404(db, current_user, bot_id)
    RcsBotService(db).delete(bot)
    return {"success": True, "message": "Bot configuration deleted successfully"}
