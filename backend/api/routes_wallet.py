"""
Wallet API Routes

Balance and ledger reads for the caller; platform admins can see every
ledger entry and adjust any account's balance.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Literal, Optional, List
from datetime import datetime

from auth_dependencies import require_feature, require_platform_admin
from db import get_db
from models_rbac import User
from permissions import Feature
from services.audit_service import log_admin_action, AuditActions
from services.wallet_service import WalletService, WalletError

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


class AdjustRequest(BaseModel):
    user_id: int
    type: Literal["credit", "debit"]
    amount: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    type: str
    amount: int
    description: str
    status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    client_name: Optional[str] = None

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    success: bool = True
    transactions: List[TransactionResponse]


class BalanceResponse(BaseModel):
    success: bool = True
    credits_available: int
    credits_used: int


class AdjustResponse(BaseModel):
    success: bool = True
    id: int
    credits_available: int
    credits_used: int


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: User = Depends(require_feature(Feature.WALLET_VIEW)),
    db: Session = Depends(get_db),
):
    available, used = WalletService(db).balance(current_user)
    return BalanceResponse(credits_available=available, credits_used=used)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_user: User = Depends(require_feature(Feature.WALLET_VIEW)),
    db: Session = Depends(get_db),
):
    """The caller's own ledger, newest first"""
    entries = WalletService(db).transactions_for(current_user.id, limit=limit)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(e) for e in entries]
    )


@router.get("/admin/transactions", response_model=TransactionListResponse)
async def list_all_transactions(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Every ledger entry with the client's name (platform admin only)"""
    rows = WalletService(db).all_transactions(limit=limit)
    transactions = []
    for entry, client_name in rows:
        item = TransactionResponse.model_validate(entry)
        item.client_name = client_name
        transactions.append(item)
    return TransactionListResponse(transactions=transactions)


@router.post("/adjust", response_model=AdjustResponse)
async def adjust_balance(
    adjust_request: AdjustRequest,
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Credit or debit an account (platform admin only)"""
    user = db.query(User).filter(User.id == adjust_request.user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    try:
        entry = WalletService(db).adjust(
            user,
            adjust_request.type,
            adjust_request.amount,
            adjust_request.description.strip(),
            actor=current_user,
        )
    except WalletError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    log_admin_action(
        db, current_user, AuditActions.WALLET_ADJUST,
        resource_type="user", resource_id=user.id,
        details={"type": adjust_request.type, "amount": adjust_request.amount, "entry": entry.id},
    )

    return AdjustResponse(
        id=entry.id,
        credits_available=user.credits_available,
        credits_used=user.credits_used,
    )
