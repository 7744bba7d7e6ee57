"""
Vendor API Routes

Platform admin management of upstream messaging vendors and of the
vendor-user mappings that route a user's traffic to a vendor.
API keys are write-only: reads return a mask, never the stored value.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import AnyHttpUrl, BaseModel, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime
import logging

from auth_dependencies import require_platform_admin
from db import get_db, transaction
from models import Channel, Vendor, VendorUserMapping
from models_rbac import User
from services.audit_service import log_admin_action, AuditActions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vendors", tags=["vendors"])

API_KEY_MASK = "***hidden***"

VendorType = Literal["sms", "whatsapp", "rcs", "email", "voice", "multi"]


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: VendorType
    api_url: AnyHttpUrl
    api_key: Optional[str] = None
    priority: int = Field(1, ge=1)
    status: Literal["active", "inactive"] = "active"
    channels: List[Channel] = Field(..., min_length=1)


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[VendorType] = None
    api_url: Optional[AnyHttpUrl] = None
    api_key: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1)
    status: Optional[Literal["active", "inactive"]] = None
    channels: Optional[List[Channel]] = Field(None, min_length=1)


class VendorResponse(BaseModel):
    id: str
    name: str
    type: str
    api_url: str
    api_key: Optional[str] = None
    priority: int
    status: str
    channels: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VendorListResponse(BaseModel):
    success: bool = True
    vendors: List[VendorResponse]


class VendorDetailResponse(BaseModel):
    success: bool = True
    vendor: VendorResponse


class MappingRequest(BaseModel):
    vendor_id: str
    user_ids: List[int]
    priority: int = Field(1, ge=1)


class MappingResponse(BaseModel):
    id: str
    vendor_id: str
    user_id: int
    priority: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MappingListResponse(BaseModel):
    success: bool = True
    mappings: List[MappingResponse]


def vendor_to_response(vendor: Vendor) -> VendorResponse:
    return VendorResponse(
        id=vendor.id,
        name=vendor.name,
        type=vendor.type,
        api_url=vendor.api_url,
        api_key=API_KEY_MASK if vendor.api_key else None,
        priority=vendor.priority,
        status=vendor.status,
        channels=vendor.channels or [],
        created_at=vendor.created_at,
        updated_at=vendor.updated_at,
    )


def get_vendor_or_404(db: Session, vendor_id: str) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vendor not found"
        )
    return vendor


# Mapping routes are declared before /{vendor_id} so "mappings" is not read as an id

@router.get("/mappings", response_model=MappingListResponse)
async def list_mappings(
    vendor_id: Optional[str] = Query(None),
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """List vendor-user mappings, optionally for one vendor"""
    query = db.query(VendorUserMapping)
    if vendor_id:
        query = query.filter(VendorUserMapping.vendor_id == vendor_id)
    mappings = query.order_by(VendorUserMapping.created_at.desc()).all()
    return MappingListResponse(mappings=[MappingResponse.model_validate(m) for m in mappings])


@router.post("/mappings")
async def replace_mappings(
    mapping_request: MappingRequest,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """
    Replace every mapping of a vendor with the given users.

    The old set is removed and the new set inserted in one transaction.
    """
    get_vendor_or_404(db, mapping_request.vendor_id)

    # Keep first occurrence order, drop repeats
    user_ids = list(dict.fromkeys(mapping_request.user_ids))

    if user_ids:
        found = {uid for (uid,) in db.query(User.id).filter(User.id.in_(user_ids)).all()}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown user ids: {missing}"
            )

    with transaction(db):
        db.query(VendorUserMapping).filter(
            VendorUserMapping.vendor_id == mapping_request.vendor_id
        ).delete(synchronize_session=False)

        db.add_all([
            VendorUserMapping(
                vendor_id=mapping_request.vendor_id,
                user_id=uid,
                priority=mapping_request.priority,
            )
            for uid in user_ids
        ])

    log_admin_action(
        db, current_user, AuditActions.VENDOR_MAPPINGS_REPLACE,
        resource_type="vendor", resource_id=mapping_request.vendor_id,
        details={"user_ids": user_ids},
    )

    return {"success": True, "count": len(user_ids)}


@router.get("/", response_model=VendorListResponse)
async def list_vendors(
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    vendors = db.query(Vendor).order_by(Vendor.name.asc()).all()
    return VendorListResponse(vendors=[vendor_to_response(v) for v in vendors])


@router.get("/{vendor_id}", response_model=VendorDetailResponse)
async def get_vendor(
    vendor_id: str,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    return VendorDetailResponse(vendor=vendor_to_response(get_vendor_or_404(db, vendor_id)))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_vendor(
    vendor_data: VendorCreate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    vendor = Vendor(
        name=vendor_data.name.strip(),
        type=vendor_data.type,
        api_url=str(vendor_data.api_url),
        api_key=vendor_data.api_key or None,
        priority=vendor_data.priority,
        status=vendor_data.status,
        channels=[c.value for c in vendor_data.channels],
    )
    db.add(vendor)
    db.commit()
    db.refresh(vendor)

    logger.info(f"Vendor {vendor.id} ({vendor.name}) created")
    log_admin_action(
        db, current_user, AuditActions.VENDOR_CREATE,
        resource_type="vendor", resource_id=vendor.id,
        details={"name": vendor.name, "type": vendor.type},
    )

    return {"success": True, "id": vendor.id}


@router.put("/{vendor_id}")
async def update_vendor(
    vendor_id: str,
    vendor_data: VendorUpdate,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Partially update a vendor. The stored api_key is only replaced when a new one is sent."""
    vendor = get_vendor_or_404(db, vendor_id)
    update_data = vendor_data.model_dump(exclude_unset=True)

    if not update_data.get("api_key"):
        update_data.pop("api_key", None)
    if "api_url" in update_data:
        update_data["api_url"] = str(vendor_data.api_url) if vendor_data.api_url else None
    if "channels" in update_data:
        update_data["channels"] = [c.value for c in vendor_data.channels or []]

    for field, value in update_data.items():
        if value is None:
            continue
        setattr(vendor, field, value)

    db.commit()

    log_admin_action(
        db, current_user, AuditActions.VENDOR_UPDATE,
        resource_type="vendor", resource_id=vendor_id,
        details={"fields": sorted(update_data)},
    )

    return {"success": True}


@router.delete("/{vendor_id}")
async def delete_vendor(
    vendor_id: str,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Delete a vendor and every mapping that points at it"""
    vendor = get_vendor_or_404(db, vendor_id)

    with transaction(db):
        removed = db.query(VendorUserMapping).filter(
            VendorUserMapping.vendor_id == vendor_id
        ).delete(synchronize_session=False)
        db.delete(vendor)

    log_admin_action(
        db, current_user, AuditActions.VENDOR_DELETE,
        resource_type="vendor", resource_id=vendor_id,
        details={"mappings_removed": removed},
    )

    return {"success": True}
