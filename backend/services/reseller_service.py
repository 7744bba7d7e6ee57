"""
Reseller Service

Every reseller profile is paired with exactly one User of role "reseller";
both rows are written together so the pairing never drifts.
"""

from typing import Any, Dict, Iterable, Optional
from sqlalchemy.orm import Session
import logging

from auth_service import validate_password_strength
from auth_utils import hash_password
from db import transaction
from models import Plan, Reseller
from models_rbac import User
from permissions import PermissionEntry, TenantClass, build_matrix, default_matrix
from rbac_middleware import store_permissions

logger = logging.getLogger(__name__)

# Columns copied from the reseller profile onto the paired user
_USER_SYNCED_FIELDS = {"name": "name", "email": "email", "status": "status", "plan_id": "plan_id"}


class ResellerError(Exception):
    """Base error for reseller operations"""
    pass


class ResellerConflictError(ResellerError):
    pass


class ResellerValidationError(ResellerError):
    pass


class ResellerService:
    """Creates and updates reseller/user pairs"""

    def __init__(self, db: Session):
        self.db = db

    def _check_email_free(self, email: str, reseller: Optional[Reseller] = None) -> None:
        user_q = self.db.query(User).filter(User.email == email)
        reseller_q = self.db.query(Reseller).filter(Reseller.email == email)
        if reseller is not None:
            user_q = user_q.filter(User.id != reseller.user_id)
            reseller_q = reseller_q.filter(Reseller.id != reseller.id)

        if user_q.first() or reseller_q.first():
            raise ResellerConflictError("Email already registered")

    def _check_plan(self, plan_id: Optional[str]) -> None:
        if plan_id and not self.db.query(Plan).filter(Plan.id == plan_id).first():
            raise ResellerValidationError(f"Plan {plan_id} does not exist")

    def create(self, data: Dict[str, Any], password: str,
               permissions: Optional[Iterable[PermissionEntry]] = None) -> Reseller:
        """
        Create a reseller profile and its login account in one transaction.

        Raises:
            ResellerConflictError: If the email is used by any user or reseller
            ResellerValidationError: Unknown plan
            WeakPasswordError: Password too short
            UnknownFeatureError: A permission entry is outside the reseller catalog
        """
        email = data["email"].lower()
        self._check_email_free(email)
        self._check_plan(data.get("plan_id"))
        validate_password_strength(password)

        if permissions is None:
            matrix = default_matrix(TenantClass.RESELLER)
        else:
            matrix = build_matrix(permissions, TenantClass.RESELLER, strict=True)

        with transaction(self.db):
            user = User(
                name=data["name"],
                email=email,
                password_hash=hash_password(password),
                role="reseller",
                account_role="admin",
                plan_id=data.get("plan_id"),
                status=data.get("status", "active"),
                channels_enabled=data.get("channels_enabled") or [],
            )
            self.db.add(user)
            self.db.flush()
            store_permissions(self.db, user, matrix)

            reseller = Reseller(user_id=user.id, **{**data, "email": email})
            self.db.add(reseller)
            self.db.flush()

        logger.info(f"Created reseller {reseller.id} paired with user {user.id}")
        return reseller

    def update(self, reseller: Reseller, changes: Dict[str, Any], password: Optional[str] = None,
               permissions: Optional[Iterable[PermissionEntry]] = None) -> Reseller:
        """
        Apply a partial update to a reseller and sync its paired user.

        Only the keys present in ``changes`` are written.
        """
        if "email" in changes:
            changes["email"] = changes["email"].lower()
            self._check_email_free(changes["email"], reseller)
        if "plan_id" in changes:
            self._check_plan(changes["plan_id"])
        if password is not None:
            validate_password_strength(password)

        matrix = None
        if permissions is not None:
            matrix = build_matrix(permissions, TenantClass.RESELLER, strict=True)

        with transaction(self.db):
            for field, value in changes.items():
                setattr(reseller, field, value)

            user = reseller.user
            for field, user_field in _USER_SYNCED_FIELDS.items():
                if field in changes:
                    setattr(user, user_field, changes[field])
            if "channels_enabled" in changes:
                user.channels_enabled = changes["channels_enabled"]
            if password is not None:
                user.password_hash = hash_password(password)
            if matrix is not None:
                store_permissions(self.db, user, matrix)

        logger.info(f"Updated reseller {reseller.id}: {sorted(changes)}")
        return reseller
