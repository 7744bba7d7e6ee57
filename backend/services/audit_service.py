"""
Audit Service
Platform Admin Audit Logging

Records mutations made by platform admins (plans, resellers, vendors,
wallet adjustments, permission changes).
"""

from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
import json
import logging

from models import AdminAuditLog
from models_rbac import User

logger = logging.getLogger(__name__)


class AuditService:
    """Service for recording audit logs."""

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        admin: User,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AdminAuditLog]:
        """
        Log a platform admin action.

        Args:
            admin: The platform admin performing the action
            action: Action being performed (e.g., "plan.create", "wallet.adjust")
            resource_type: Type of resource (e.g., "plan", "vendor")
            resource_id: ID of the specific resource
            details: Additional details about the action

        Returns:
            The created audit log entry, or None for non-admin callers
        """
        if not admin.is_platform_admin:
            logger.warning(f"Attempted to log action for non-admin user {admin.id}")
            return None

        log_entry = AdminAuditLog(
            admin_id=admin.id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            details_json=json.dumps(details, default=str) if details else None,
        )

        self.db.add(log_entry)
        self.db.commit()

        logger.info(
            f"Audit log: Admin {admin.email} performed {action} "
            f"on {resource_type}/{resource_id}"
        )

        return log_entry


# Predefined action types for consistency
class AuditActions:
    """Standard audit action types."""

    # Plan actions
    PLAN_CREATE = "plan.create"
    PLAN_UPDATE = "plan.update"
    PLAN_DELETE = "plan.delete"
    PLAN_TOGGLE = "plan.toggle"

    # Reseller actions
    RESELLER_CREATE = "reseller.create"
    RESELLER_UPDATE = "reseller.update"

    # Vendor actions
    VENDOR_CREATE = "vendor.create"
    VENDOR_UPDATE = "vendor.update"
    VENDOR_DELETE = "vendor.delete"
    VENDOR_MAPPINGS_REPLACE = "vendor.mappings_replace"

    # Client actions
    CLIENT_CREATE = "client.create"
    CLIENT_UPDATE = "client.update"
    CLIENT_IMPERSONATE = "client.impersonate"

    # User actions
    USER_PERMISSIONS_UPDATE = "user.permissions_update"

    # Wallet actions
    WALLET_ADJUST = "wallet.adjust"

    # Template moderation
    TEMPLATE_STATUS_CHANGE = "template.status_change"


def log_admin_action(
    db: Session,
    admin: User,
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[AdminAuditLog]:
    """
    Convenience function for logging admin actions.

    Can be used as a quick one-liner in route handlers:
        log_admin_action(db, current_user, AuditActions.PLAN_CREATE, "plan", plan.id)
    """
    service = AuditService(db)
    return service.log_action(
        admin=admin,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
