"""
Wallet Service

Credit balances live on the user row; every movement is recorded as an
immutable WalletTransaction. A balance change and its ledger entry are
always written in the same transaction.
"""

from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from db import transaction
from models import WalletTransaction
from models_rbac import User

logger = logging.getLogger(__name__)

CREDIT = "credit"
DEBIT = "debit"


class WalletError(Exception):
    """Raised when a wallet movement cannot be applied"""
    pass


class InsufficientCreditsError(WalletError):
    pass


class WalletService:
    def __init__(self, db: Session):
        self.db = db

    def balance(self, user: User) -> Tuple[int, int]:
        return user.credits_available or 0, user.credits_used or 0

    def transactions_for(self, user_id: int, limit: Optional[int] = None) -> List[WalletTransaction]:
        query = (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def all_transactions(self, limit: Optional[int] = None) -> List[Tuple[WalletTransaction, str]]:
        """Every ledger entry with the owning account's name, newest first"""
        query = (
            self.db.query(WalletTransaction, User.name)
            .join(User, User.id == WalletTransaction.user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def adjust(self, user: User, kind: str, amount: int, description: str,
               actor: Optional[User] = None) -> WalletTransaction:
        """
        Credit or debit a user's wallet.

        Args:
            user: Account whose balance moves
            kind: "credit" or "debit"
            amount: Positive number of credits
            description: Reason shown in the ledger
            actor: Admin performing the adjustment

        Raises:
            WalletError: Invalid kind or amount
            InsufficientCreditsError: Debit larger than the available balance
        """
        if kind not in (CREDIT, DEBIT):
            raise WalletError(f"Invalid transaction type: {kind}")
        if amount <= 0:
            raise WalletError("Amount must be positive")

        # The balance is moved by a single conditional UPDATE so that
        # concurrent adjustments can neither overdraw nor overwrite each other.
        if kind == CREDIT:
            stmt = (
                update(User)
                .where(User.id == user.id)
                .values(credits_available=User.credits_available + amount)
            )
        else:
            stmt = (
                update(User)
                .where(User.id == user.id, User.credits_available >= amount)
                .values(
                    credits_available=User.credits_available - amount,
                    credits_used=User.credits_used + amount,
                )
            )

        with transaction(self.db):
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount != 1:
                available = self.db.query(User.credits_available).filter(User.id == user.id).scalar()
                if available is None:
                    raise WalletError(f"User {user.id} not found")
                raise InsufficientCreditsError(
                    f"Insufficient credits: {available} available, {amount} requested"
                )

            entry = WalletTransaction(
                user_id=user.id,
                type=kind,
                amount=amount,
                description=description,
                status="completed",
                created_by=actor.id if actor else None,
            )
            self.db.add(entry)
            self.db.flush()

        self.db.refresh(user)
        logger.info(f"Wallet {kind} of {amount} for user {user.id} (entry {entry.id})")
        return entry
