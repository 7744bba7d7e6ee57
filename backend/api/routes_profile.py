"""
Profile API Routes

The authenticated user's own account: read, edit contact details,
change password or sign-in email.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from typing import Optional
import logging

from auth_dependencies import get_current_user_required
from auth_service import AuthService, AuthenticationError, WeakPasswordError
from db import get_db, get_settings, transaction
from models import Reseller
from models_rbac import User
from schemas import UserResponse, user_to_response
from settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(
        None, max_length=50, validation_alias=AliasChoices("contact_phone", "contactPhone")
    )


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("current_password", "currentPassword")
    )
    new_password: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("new_password", "newPassword")
    )


class ChangeEmailRequest(BaseModel):
    new_email: EmailStr = Field(..., validation_alias=AliasChoices("new_email", "newEmail"))


class ChangeEmailResponse(BaseModel):
    success: bool = True
    message: str = "Email updated successfully"
    token: str
    user: UserResponse


class ProfileResponse(BaseModel):
    success: bool = True
    user: UserResponse


@router.get("/", response_model=ProfileResponse)
async def get_profile(current_user: User = Depends(get_current_user_required)):
    return ProfileResponse(user=user_to_response(current_user, include_permissions=False))


@router.put("/", response_model=ProfileResponse)
async def update_profile(
    update: ProfileUpdate,
    current_user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
):
    """
    Update name, company or contact phone.

    A blank name is ignored; a blank company or phone clears the stored value.
    """
    changed = False

    if update.name is not None and update.name.strip():
        current_user.name = update.name.strip()
        changed = True
    if "company" in update.model_fields_set:
        current_user.company = (update.company or "").strip() or None
        changed = True
    if "contact_phone" in update.model_fields_set:
        current_user.contact_phone = (update.contact_phone or "").strip() or None
        changed = True

    if not changed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No changes provided"
        )

    db.commit()
    db.refresh(current_user)

    return ProfileResponse(user=user_to_response(current_user, include_permissions=False))


@router.put("/change-password")
async def change_password(
    password_request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    auth_service = AuthService(db, settings)

    try:
        auth_service.change_password(
            current_user,
            password_request.current_password,
            password_request.new_password,
        )
    except WeakPasswordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    return {"success": True, "message": "Password updated"}


@router.put("/change-email", response_model=ChangeEmailResponse)
async def change_email(
    email_request: ChangeEmailRequest,
    current_user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Change the sign-in email and return a token carrying the new address.

    A reseller's profile email follows its login account.
    """
    new_email = email_request.new_email.lower()

    taken = db.query(User).filter(User.email == new_email, User.id != current_user.id).first()
    if not taken:
        taken = db.query(Reseller).filter(
            Reseller.email == new_email, Reseller.user_id != current_user.id
        ).first()
    if taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already in use"
        )

    with transaction(db):
        current_user.email = new_email
        if current_user.reseller_profile is not None:
            current_user.reseller_profile.email = new_email
    db.refresh(current_user)

    logger.info(f"User {current_user.id} changed email to {new_email}")
    token = AuthService(db, settings).issue_token(current_user)
    return ChangeEmailResponse(
        token=token,
        user=user_to_response(current_user, include_permissions=False),
    )
