"""
Feature Permission Catalog

Every permission a user can hold is a member of the Feature enum. Each tenant
class has its own catalog: user organisations get USER_PERMISSIONS, reseller
accounts get RESELLER_PERMISSIONS. A user's grants are loaded into a
PermissionMatrix keyed by Feature, validated against the catalog for the
user's tenant class.
"""

import enum
import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Feature(str, enum.Enum):
    DASHBOARD_VIEW = "Dashboard - View"

    CHAT_VIEW = "Chat - View"
    CHAT_REPLY = "Chat - Reply"
    CHAT_ASSIGN = "Chat - Assign"
    CHAT_CLOSE = "Chat - Close"

    CONTACTS_VIEW = "Contacts - View"
    CONTACTS_CREATE = "Contacts - Create"
    CONTACTS_EDIT = "Contacts - Edit"
    CONTACTS_DELETE = "Contacts - Delete"

    CAMPAIGN_VIEW = "Campaign - View"
    CAMPAIGN_CREATE = "Campaign - Create"
    CAMPAIGN_EDIT = "Campaign - Edit"
    CAMPAIGN_DELETE = "Campaign - Delete"

    TEMPLATES_VIEW = "Templates - View"
    TEMPLATES_CREATE = "Templates - Create"
    TEMPLATES_EDIT = "Templates - Edit"
    TEMPLATES_DELETE = "Templates - Delete"

    AUTOMATION_VIEW = "Automation - View"
    AUTOMATION_CREATE = "Automation - Create"
    AUTOMATION_EDIT = "Automation - Edit"
    AUTOMATION_DELETE = "Automation - Delete"

    INTEGRATION_VIEW = "Integration - View"
    INTEGRATION_MANAGE = "Integration - Manage"

    REPORTS_VIEW = "Reports - View"
    REPORTS_EXPORT = "Reports - Export"

    SETTINGS_VIEW = "Settings - View"
    SETTINGS_EDIT = "Settings - Edit"

    USERS_VIEW = "Users - View"
    USERS_MANAGE = "Users - Manage"

    WALLET_VIEW = "Wallet - View"
    WALLET_MANAGE = "Wallet - Manage"

    USER_PLANS_VIEW = "User Plans - View"

    # Reseller-only
    CLIENTS_VIEW = "Clients - View"
    CLIENTS_CREATE = "Clients - Create"
    CLIENTS_EDIT = "Clients - Edit"
    PLANS_VIEW = "Plans - View"


class SubRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"


class TenantClass(str, enum.Enum):
    USER = "user"
    RESELLER = "reseller"


USER_PERMISSIONS: FrozenSet[Feature] = frozenset({
    Feature.DASHBOARD_VIEW,
    Feature.CHAT_VIEW, Feature.CHAT_REPLY, Feature.CHAT_ASSIGN, Feature.CHAT_CLOSE,
    Feature.CONTACTS_VIEW, Feature.CONTACTS_CREATE, Feature.CONTACTS_EDIT, Feature.CONTACTS_DELETE,
    Feature.CAMPAIGN_VIEW, Feature.CAMPAIGN_CREATE, Feature.CAMPAIGN_EDIT, Feature.CAMPAIGN_DELETE,
    Feature.TEMPLATES_VIEW, Feature.TEMPLATES_CREATE, Feature.TEMPLATES_EDIT, Feature.TEMPLATES_DELETE,
    Feature.AUTOMATION_VIEW, Feature.AUTOMATION_CREATE, Feature.AUTOMATION_EDIT, Feature.AUTOMATION_DELETE,
    Feature.INTEGRATION_VIEW, Feature.INTEGRATION_MANAGE,
    Feature.REPORTS_VIEW, Feature.REPORTS_EXPORT,
    Feature.SETTINGS_VIEW, Feature.SETTINGS_EDIT,
    Feature.USERS_VIEW, Feature.USERS_MANAGE,
    Feature.WALLET_VIEW,
    Feature.USER_PLANS_VIEW,
})

RESELLER_PERMISSIONS: FrozenSet[Feature] = frozenset({
    Feature.DASHBOARD_VIEW,
    Feature.CLIENTS_VIEW, Feature.CLIENTS_CREATE, Feature.CLIENTS_EDIT,
    Feature.PLANS_VIEW,
    Feature.WALLET_VIEW, Feature.WALLET_MANAGE,
    Feature.REPORTS_VIEW, Feature.REPORTS_EXPORT,
    Feature.SETTINGS_VIEW, Feature.SETTINGS_EDIT,
    Feature.USERS_VIEW, Feature.USERS_MANAGE,
})

# Features a manager does not get by default
_MANAGER_EXCLUDED = frozenset({Feature.USERS_MANAGE, Feature.SETTINGS_EDIT, Feature.WALLET_MANAGE})

# Features an agent gets by default
_AGENT_DEFAULTS = frozenset({
    Feature.DASHBOARD_VIEW,
    Feature.CHAT_VIEW, Feature.CHAT_REPLY, Feature.CHAT_CLOSE,
    Feature.CONTACTS_VIEW,
})


class UnknownFeatureError(ValueError):
    """A permission entry names a feature outside the tenant class catalog"""

    def __init__(self, feature: str, tenant_class: TenantClass):
        self.feature = feature
        self.tenant_class = tenant_class
        super().__init__(f"Unknown feature '{feature}' for {tenant_class.value} accounts")


class PermissionEntry(BaseModel):
    """Grants for one feature, one flag per sub-role"""
    feature: Feature
    admin: bool = False
    manager: bool = False
    agent: bool = False

    def allows(self, sub_role: SubRole) -> bool:
        return bool(getattr(self, sub_role.value))


PermissionMatrix = Dict[Feature, PermissionEntry]


def tenant_class_for_role(role: str) -> TenantClass:
    return TenantClass.RESELLER if role == "reseller" else TenantClass.USER


def catalog_for(tenant_class: TenantClass) -> FrozenSet[Feature]:
    if tenant_class == TenantClass.RESELLER:
        return RESELLER_PERMISSIONS
    return USER_PERMISSIONS


def sorted_catalog(tenant_class: TenantClass) -> List[Feature]:
    """Catalog in declaration order, for stable API output"""
    catalog = catalog_for(tenant_class)
    return [feature for feature in Feature if feature in catalog]


def build_matrix(
    entries: Iterable[Union[PermissionEntry, Mapping]],
    tenant_class: TenantClass,
    strict: bool = False,
) -> PermissionMatrix:
    """
    Build a PermissionMatrix from raw entries.

    Args:
        entries: PermissionEntry objects or mappings with a 'feature' key
        tenant_class: Catalog to validate against
        strict: Raise on entries outside the catalog instead of dropping them

    Returns:
        Mapping of Feature to PermissionEntry (later duplicates win)

    Raises:
        UnknownFeatureError: If strict and an entry is outside the catalog
    """
    catalog = catalog_for(tenant_class)
    matrix: PermissionMatrix = {}

    for raw in entries:
        if isinstance(raw, PermissionEntry):
            name = raw.feature.value
        else:
            name = str(raw.get("feature", ""))

        try:
            feature = Feature(name)
        except ValueError:
            feature = None

        if feature is None or feature not in catalog:
            if strict:
                raise UnknownFeatureError(name, tenant_class)
            logger.warning(f"Ignoring permission for unknown feature '{name}' ({tenant_class.value} catalog)")
            continue

        if isinstance(raw, PermissionEntry):
            entry = raw
        else:
            entry = PermissionEntry(
                feature=feature,
                admin=bool(raw.get("admin", False)),
                manager=bool(raw.get("manager", False)),
                agent=bool(raw.get("agent", False)),
            )
        matrix[feature] = entry

    return matrix


def default_matrix(tenant_class: TenantClass) -> PermissionMatrix:
    """Grants given to a freshly created account"""
    matrix: PermissionMatrix = {}
    for feature in sorted_catalog(tenant_class):
        matrix[feature] = PermissionEntry(
            feature=feature,
            admin=True,
            manager=feature not in _MANAGER_EXCLUDED,
            agent=feature in _AGENT_DEFAULTS,
        )
    return matrix


def has_access(role: str, sub_role: Optional[str], matrix: PermissionMatrix, feature: Feature) -> bool:
    """
    Decide whether an account may use a feature.

    Platform admins can use everything. Everyone else needs an entry for the
    feature whose flag for their sub-role is set; no entry means no access.
    """
    if role == "admin":
        return True

    entry = matrix.get(feature)
    if entry is None:
        return False

    try:
        resolved = SubRole(sub_role or SubRole.ADMIN.value)
    except ValueError:
        return False
    return entry.allows(resolved)


def matrix_to_list(matrix: PermissionMatrix) -> List[dict]:
    """Serialize a matrix as the [{feature, admin, manager, agent}] array clients expect"""
    ordered = [feature for feature in Feature if feature in matrix]
    return [matrix[feature].model_dump(mode="json") for feature in ordered]
