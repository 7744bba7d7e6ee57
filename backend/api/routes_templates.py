"""
Message Templates API Routes

Tenants author templates for the channels their account is enabled for;
platform admins review them (approve / reject).
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime
import logging

from auth_dependencies import TenantContext, require_feature, require_platform_admin
from db import get_db
from models import Channel, MessageTemplate
from models_rbac import User
from permissions import Feature
from rbac_middleware import ensure_channel_enabled
from services.audit_service import log_admin_action, AuditActions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["templates"])

TemplateStatus = Literal["pending", "approved", "rejected", "draft"]


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    language: str = Field("en", max_length=20)
    category: Optional[str] = None
    channel: Channel
    template_type: Optional[str] = None
    header_type: Optional[str] = None
    header_content: Optional[str] = None
    body: str = Field(..., min_length=1)
    footer: Optional[str] = None
    status: Literal["pending", "draft"] = "pending"


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    language: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = None
    channel: Optional[Channel] = None
    template_type: Optional[str] = None
    header_type: Optional[str] = None
    header_content: Optional[str] = None
    body: Optional[str] = Field(None, min_length=1)
    footer: Optional[str] = None
    status: Optional[Literal["pending", "draft"]] = None


class TemplateStatusUpdate(BaseModel):
    status: TemplateStatus
    rejection_reason: Optional[str] = None


class TemplateResponse(BaseModel):
    id: str
    user_id: int
    name: str
    language: str
    category: Optional[str] = None
    channel: str
    template_type: Optional[str] = None
    header_type: Optional[str] = None
    header_content: Optional[str] = None
    body: str
    footer: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner_name: Optional[str] = None

    class Config:
        from_attributes = True


class TemplateListResponse(BaseModel):
    success: bool = True
    templates: List[TemplateResponse]


class TemplateDetailResponse(BaseModel):
    success: bool = True
    template: TemplateResponse


# Columns an edit cannot clear
_REQUIRED_FIELDS = ("name", "language", "channel", "body", "status")


def get_owned_template_or_404(db: Session, user: User, template_id: str) -> MessageTemplate:
    template = db.query(MessageTemplate).filter(MessageTemplate.id == template_id).first()
    if not template or not TenantContext(user, db).can_access_resource(template.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return template


@router.get("/admin", response_model=TemplateListResponse)
async def list_all_templates(
    status_filter: Optional[TemplateStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Every tenant's templates with the owner's name (platform admin only)"""
    query = db.query(MessageTemplate, User.name).join(User, User.id == MessageTemplate.user_id)
    if status_filter:
        query = query.filter(MessageTemplate.status == status_filter)

    templates = []
    for template, owner_name in query.order_by(MessageTemplate.created_at.desc()).all():
        item = TemplateResponse.model_validate(template)
        item.owner_name = owner_name
        templates.append(item)
    return TemplateListResponse(templates=templates)


@router.get("/", response_model=TemplateListResponse)
async def list_templates(
    current_user: User = Depends(require_feature(Feature.TEMPLATES_VIEW)),
    db: Session = Depends(get_db),
):
    templates = (
        db.query(MessageTemplate)
        .filter(MessageTemplate.user_id == current_user.id)
        .order_by(MessageTemplate.created_at.desc())
        .all()
    )
    return TemplateListResponse(templates=[TemplateResponse.model_validate(t) for t in templates])


@router.post("/", response_model=TemplateDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: TemplateCreate,
    current_user: User = Depends(require_feature(Feature.TEMPLATES_CREATE)),
    db: Session = Depends(get_db),
):
    ensure_channel_enabled(current_user, template_data.channel.value)

    template = MessageTemplate(
        user_id=current_user.id,
        **{**template_data.model_dump(), "channel": template_data.channel.value},
    )
    db.add(template)
    db.commit()
    db.refresh(template)

    logger.info(f"Template {template.id} created by user {current_user.id}")
    return TemplateDetailResponse(template=TemplateResponse.model_validate(template))


@router.put("/{template_id}", response_model=TemplateDetailResponse)
async def update_template(
    template_id: str,
    template_data: TemplateUpdate,
    current_user: User = Depends(require_feature(Feature.TEMPLATES_EDIT)),
    db: Session = Depends(get_db),
):
    template = get_owned_template_or_404(db, current_user, template_id)

    update_data = template_data.model_dump(exclude_unset=True)
    for key in _REQUIRED_FIELDS:
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    if "channel" in update_data:
        update_data["channel"] = template_data.channel.value
        ensure_channel_enabled(current_user, update_data["channel"])

    for field, value in update_data.items():
        setattr(template, field, value)

    db.commit()
    db.refresh(template)

    return TemplateDetailResponse(template=TemplateResponse.model_validate(template))


@router.patch("/{template_id}/status", response_model=TemplateDetailResponse)
async def update_template_status(
    template_id: str,
    status_update: TemplateStatusUpdate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Approve, reject or reset a template (platform admin only)"""
    template = db.query(MessageTemplate).filter(MessageTemplate.id == template_id).first()
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )

    old_status = template.status
    template.status = status_update.status
    template.rejection_reason = (
        status_update.rejection_reason if status_update.status == "rejected" else None
    )
    db.commit()

    log_admin_action(
        db, current_user, AuditActions.TEMPLATE_STATUS_CHANGE,
        resource_type="template", resource_id=template_id,
        details={"from": old_status, "to": status_update.status},
    )

    db.refresh(template)
    return TemplateDetailResponse(template=TemplateResponse.model_validate(template))


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: User = Depends(require_feature(Feature.TEMPLATES_DELETE)),
    db: Session = Depends(get_db),
):
    template = get_owned_template_or_404(db, current_user, template_id)
    db.delete(template)
    db.commit()
    return {"success": True, "message": "Template deleted"}
