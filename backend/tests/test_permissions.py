"""
Tests for the feature permission catalog, matrix building and enforcement.
"""

import pytest

from conftest import auth_headers, make_user
from models_rbac import UserPermission
from permissions import (
    Feature,
    PermissionEntry,
    TenantClass,
    UnknownFeatureError,
    USER_PERMISSIONS,
    RESELLER_PERMISSIONS,
    build_matrix,
    default_matrix,
    has_access,
    matrix_to_list,
)


class TestHasAccess:
    def test_platform_admin_always_allowed(self):
        assert has_access("admin", "agent", {}, Feature.WALLET_MANAGE)

    def test_missing_feature_denied(self):
        matrix = {Feature.CHAT_VIEW: PermissionEntry(feature=Feature.CHAT_VIEW, admin=True)}
        assert not has_access("user", "admin", matrix, Feature.CONTACTS_VIEW)

    def test_sub_role_flag_decides(self):
        entry = PermissionEntry(feature=Feature.CHAT_VIEW, admin=True, manager=False, agent=True)
        matrix = {Feature.CHAT_VIEW: entry}

        assert has_access("user", "admin", matrix, Feature.CHAT_VIEW)
        assert not has_access("user", "manager", matrix, Feature.CHAT_VIEW)
        assert has_access("user", "agent", matrix, Feature.CHAT_VIEW)

    def test_unknown_sub_role_denied(self):
        entry = PermissionEntry(feature=Feature.CHAT_VIEW, admin=True, manager=True, agent=True)
        assert not has_access("user", "intern", {Feature.CHAT_VIEW: entry}, Feature.CHAT_VIEW)


class TestBuildMatrix:
    def test_non_strict_drops_unknown_features(self):
        matrix = build_matrix([
            {"feature": "Chat - View", "admin": True},
            {"feature": "Teleport - Use", "admin": True},
            {"feature": "Clients - View", "admin": True},
        ], TenantClass.USER)

        assert list(matrix) == [Feature.CHAT_VIEW]
        assert matrix[Feature.CHAT_VIEW].admin is True
        assert matrix[Feature.CHAT_VIEW].agent is False

    def test_strict_raises_on_feature_outside_catalog(self):
        with pytest.raises(UnknownFeatureError) as exc_info:
            build_matrix([{"feature": "Chat - View", "admin": True}], TenantClass.RESELLER, strict=True)
        assert exc_info.value.feature == "Chat - View"

    def test_later_duplicates_win(self):
        matrix = build_matrix([
            {"feature": "Chat - View", "admin": True},
            {"feature": "Chat - View", "admin": False, "agent": True},
        ], TenantClass.USER)

        assert matrix[Feature.CHAT_VIEW].admin is False
        assert matrix[Feature.CHAT_VIEW].agent is True


class TestDefaultMatrix:
    def test_user_defaults_cover_catalog(self):
        matrix = default_matrix(TenantClass.USER)
        assert set(matrix) == USER_PERMISSIONS
        assert all(entry.admin for entry in matrix.values())

    def test_reseller_defaults_cover_catalog(self):
        assert set(default_matrix(TenantClass.RESELLER)) == RESELLER_PERMISSIONS

    def test_agent_defaults_are_narrow(self):
        matrix = default_matrix(TenantClass.USER)
        assert matrix[Feature.CHAT_REPLY].agent is True
        assert matrix[Feature.SETTINGS_EDIT].agent is False
        assert matrix[Feature.SETTINGS_EDIT].manager is False

    def test_matrix_to_list_keeps_declaration_order(self):
        rows = matrix_to_list(default_matrix(TenantClass.USER))
        assert rows[0]["feature"] == "Dashboard - View"
        assert set(rows[0]) == {"feature", "admin", "manager", "agent"}


class TestCatalogEndpoint:
    def test_user_catalog(self, client, user_headers):
        response = client.get("/api/permissions/catalog", headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["tenant_class"] == "user"
        assert len(body["features"]) == len(USER_PERMISSIONS)
        assert "Clients - View" not in body["features"]

    def test_reseller_catalog(self, client, user_headers):
        response = client.get("/api/permissions/catalog?tenant_class=reseller", headers=user_headers)
        assert "Clients - View" in response.json()["features"]

    def test_requires_authentication(self, client):
        assert client.get("/api/permissions/catalog").status_code == 401


class TestUserPermissionsEndpoint:
    def test_replace_permissions(self, client, db_session, admin_headers, tenant_user):
        response = client.put(f"/api/users/{tenant_user.id}/permissions", headers=admin_headers, json={
            "permissions": [
                {"feature": "Chat - View", "admin": True, "manager": True, "agent": True},
                {"feature": "Contacts - View", "admin": True},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert [p["feature"] for p in body["permissions"]] == ["Chat - View", "Contacts - View"]

        fetched = client.get(f"/api/users/{tenant_user.id}/permissions", headers=admin_headers).json()
        assert fetched["permissions"] == body["permissions"]

    def test_feature_outside_catalog_is_400_and_keeps_old_grants(self, client, admin_headers, tenant_user):
        before = client.get(f"/api/users/{tenant_user.id}/permissions", headers=admin_headers).json()

        response = client.put(f"/api/users/{tenant_user.id}/permissions", headers=admin_headers, json={
            "permissions": [
                {"feature": "Chat - View", "admin": True},
                {"feature": "Clients - View", "admin": True},
            ],
        })

        assert response.status_code == 400
        after = client.get(f"/api/users/{tenant_user.id}/permissions", headers=admin_headers).json()
        assert after["permissions"] == before["permissions"]

    def test_unknown_user_is_404(self, client, admin_headers):
        response = client.get("/api/users/4242/permissions", headers=admin_headers)
        assert response.status_code == 404

    def test_non_admin_is_403(self, client, tenant_user, user_headers):
        response = client.get(f"/api/users/{tenant_user.id}/permissions", headers=user_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Admin access required"


class TestFeatureEnforcement:
    def test_agent_denied_feature_outside_defaults(self, client, db_session, settings):
        agent = make_user(db_session, "agent@example.com", account_role="agent")

        response = client.get("/api/wallet/balance", headers=auth_headers(db_session, settings, agent))

        assert response.status_code == 403
        assert response.json()["message"] == "Permission denied. Required: Wallet - View"

    def test_user_without_row_is_denied(self, client, db_session, settings):
        user = make_user(db_session, "bare@example.com", permissions=[
            {"feature": "Dashboard - View", "admin": True},
        ])

        response = client.get("/api/contacts/", headers=auth_headers(db_session, settings, user))
        assert response.status_code == 403

    def test_stored_row_outside_catalog_is_ignored(self, client, db_session, settings):
        user = make_user(db_session, "odd@example.com", permissions=[])
        db_session.add(UserPermission(user_id=user.id, feature="Clients - View", admin=True))
        db_session.add(UserPermission(user_id=user.id, feature="Wallet - View", admin=True))
        db_session.commit()

        response = client.get("/api/auth/me", headers=auth_headers(db_session, settings, user))
        features = [p["feature"] for p in response.json()["user"]["permissions"]]
        assert features == ["Wallet - View"]
