"""
Contacts API Routes

Tenant-scoped contact book. Phone numbers are unique per owner.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime
import logging

from auth_dependencies import TenantContext, require_feature
from db import get_db
from models import Channel, Contact
from models_rbac import User
from permissions import Feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])

ContactCategory = Literal["guest", "lead", "customer", "vip"]
ContactStatus = Literal["active", "blocked", "unsubscribed"]


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    category: ContactCategory = "lead"
    channel: Channel = Channel.WHATSAPP
    labels: str = ""
    starred: bool = False
    status: ContactStatus = "active"


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    category: Optional[ContactCategory] = None
    channel: Optional[Channel] = None
    labels: Optional[str] = None
    starred: Optional[bool] = None
    status: Optional[ContactStatus] = None


class ContactResponse(BaseModel):
    id: str
    user_id: int
    name: str
    phone: str
    email: Optional[str] = None
    category: str
    channel: str
    labels: str = ""
    starred: bool
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactListResponse(BaseModel):
    success: bool = True
    contacts: List[ContactResponse]
    total: int


class ContactDetailResponse(BaseModel):
    success: bool = True
    contact: ContactResponse


def get_owned_contact_or_404(db: Session, user: User, contact_id: str) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact or not TenantContext(user, db).can_access_resource(contact.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact not found"
        )
    return contact


def ensure_phone_free(db: Session, owner_id: int, phone: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(Contact).filter(Contact.user_id == owner_id, Contact.phone == phone)
    if exclude_id:
        query = query.filter(Contact.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Contact with this phone already exists"
        )


@router.get("/", response_model=ContactListResponse)
async def list_contacts(
    search: Optional[str] = Query(None, description="Match name, phone or email"),
    category: Optional[str] = Query(None),
    channel: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    view: Optional[Literal["all", "starred", "blacklisted"]] = Query(None),
    current_user: User = Depends(require_feature(Feature.CONTACTS_VIEW)),
    db: Session = Depends(get_db),
):
    """
    List the caller's contacts, newest first.

    view=starred keeps starred contacts, view=blacklisted keeps blocked ones.
    """
    query = TenantContext(current_user, db).filter_by_owner(db.query(Contact), Contact.user_id)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Contact.name.ilike(pattern),
            Contact.phone.ilike(pattern),
            Contact.email.ilike(pattern),
        ))
    if category:
        query = query.filter(Contact.category == category)
    if channel:
        query = query.filter(Contact.channel == channel)
    if status_filter:
        query = query.filter(Contact.status == status_filter)

    if view == "starred":
        query = query.filter(Contact.starred.is_(True))
    elif view == "blacklisted":
        query = query.filter(Contact.status == "blocked")

    contacts = query.order_by(Contact.created_at.desc()).all()
    return ContactListResponse(
        contacts=[ContactResponse.model_validate(c) for c in contacts],
        total=len(contacts),
    )


@router.post("/", response_model=ContactDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact_data: ContactCreate,
    current_user: User = Depends(require_feature(Feature.CONTACTS_CREATE)),
    db: Session = Depends(get_db),
):
    phone = contact_data.phone.strip()
    ensure_phone_free(db, current_user.id, phone)

    contact = Contact(
        user_id=current_user.id,
        name=contact_data.name.strip(),
        phone=phone,
        email=contact_data.email,
        category=contact_data.category,
        channel=contact_data.channel.value,
        labels=contact_data.labels,
        starred=contact_data.starred,
        status=contact_data.status,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)

    return ContactDetailResponse(contact=ContactResponse.model_validate(contact))


@router.put("/{contact_id}", response_model=ContactDetailResponse)
async def update_contact(
    contact_id: str,
    contact_data: ContactUpdate,
    current_user: User = Depends(require_feature(Feature.CONTACTS_EDIT)),
    db: Session = Depends(get_db),
):
    contact = get_owned_contact_or_404(db, current_user, contact_id)

    update_data = {k: v for k, v in contact_data.model_dump(exclude_unset=True).items()
                   if v is not None or k == "email"}
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    if "phone" in update_data:
        update_data["phone"] = update_data["phone"].strip()
        ensure_phone_free(db, contact.user_id, update_data["phone"], exclude_id=contact.id)
    if "channel" in update_data:
        update_data["channel"] = contact_data.channel.value

    for field, value in update_data.items():
        setattr(contact, field, value)

    db.commit()
    db.refresh(contact)

    return ContactDetailResponse(contact=ContactResponse.model_validate(contact))


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    current_user: User = Depends(require_feature(Feature.CONTACTS_DELETE)),
    db: Session = Depends(get_db),
):
    contact = get_owned_contact_or_404(db, current_user, contact_id)
    db.delete(contact)
    db.commit()
    return {"success": True, "message": "Contact deleted"}
