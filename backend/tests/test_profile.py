"""
Tests for the /api/profile routes
"""

import jwt

from auth_utils import verify_password
from conftest import DEFAULT_PASSWORD, TEST_SECRET, auth_headers, make_user
from models import Reseller
from models_rbac import User


class TestProfile:
    def test_get_profile(self, client, tenant_user, user_headers):
        response = client.get("/api/profile/", headers=user_headers)

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "owner@example.com"
        assert user["channels_enabled"] == ["sms", "whatsapp"]

    def test_partial_update(self, client, db_session, tenant_user, user_headers):
        response = client.put("/api/profile/", headers=user_headers, json={
            "company": "Acme Ltd",
            "contactPhone": "+15550123",
        })

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["company"] == "Acme Ltd"
        assert user["contact_phone"] == "+15550123"
        assert user["name"] == "Owner"

    def test_blank_name_is_ignored_and_blank_company_clears(self, client, db_session, tenant_user, user_headers):
        client.put("/api/profile/", headers=user_headers, json={"company": "Acme Ltd"})

        response = client.put("/api/profile/", headers=user_headers, json={"name": "  ", "company": ""})

        assert response.status_code == 200
        db_session.expire_all()
        user = db_session.get(User, tenant_user.id)
        assert user.name == "Owner"
        assert user.company is None

    def test_empty_update_is_400(self, client, user_headers):
        response = client.put("/api/profile/", headers=user_headers, json={})

        assert response.status_code == 400
        assert response.json()["message"] == "No changes provided"

    def test_requires_token(self, client):
        assert client.get("/api/profile/").status_code == 401


class TestChangePassword:
    def test_change_password_camel_case(self, client, db_session, tenant_user, user_headers):
        response = client.put("/api/profile/change-password", headers=user_headers, json={
            "currentPassword": DEFAULT_PASSWORD,
            "newPassword": "brand-new-pass",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Password updated"}
        db_session.expire_all()
        assert verify_password("brand-new-pass", db_session.get(User, tenant_user.id).password_hash)

        login = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "brand-new-pass"})
        assert login.status_code == 200

    def test_wrong_current_password_is_401(self, client, user_headers):
        response = client.put("/api/profile/change-password", headers=user_headers, json={
            "current_password": "not-my-password",
            "new_password": "brand-new-pass",
        })

        assert response.status_code == 401
        assert response.json()["message"] == "Current password incorrect"

    def test_weak_new_password_is_400(self, client, user_headers):
        response = client.put("/api/profile/change-password", headers=user_headers, json={
            "current_password": DEFAULT_PASSWORD,
            "new_password": "short",
        })
        assert response.status_code == 400


class TestChangeEmail:
    def test_new_token_carries_new_email(self, client, db_session, tenant_user, user_headers):
        response = client.put("/api/profile/change-email", headers=user_headers,
                              json={"newEmail": "Renamed@Example.com"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Email updated successfully"
        assert body["user"]["email"] == "renamed@example.com"
        claims = jwt.decode(body["token"], TEST_SECRET, algorithms=["HS256"])
        assert claims["email"] == "renamed@example.com"

        login = client.post("/api/auth/login", json={"email": "renamed@example.com", "password": DEFAULT_PASSWORD})
        assert login.status_code == 200

    def test_email_in_use_is_409(self, client, db_session, user_headers):
        make_user(db_session, "taken@example.com")

        response = client.put("/api/profile/change-email", headers=user_headers,
                              json={"new_email": "taken@example.com"})

        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"

    def test_own_address_is_accepted(self, client, user_headers):
        response = client.put("/api/profile/change-email", headers=user_headers,
                              json={"newEmail": "owner@example.com"})
        assert response.status_code == 200

    def test_invalid_address_is_400(self, client, user_headers):
        response = client.put("/api/profile/change-email", headers=user_headers, json={"newEmail": "not-an-email"})
        assert response.status_code == 400

    def test_reseller_profile_follows(self, client, db_session, settings, admin_headers):
        created = client.post("/api/resellers/", headers=admin_headers, json={
            "name": "Partner",
            "email": "partner@example.com",
            "password": "partner-pass",
        }).json()
        reseller_user = db_session.get(User, created["user_id"])

        response = client.put("/api/profile/change-email", headers=auth_headers(db_session, settings, reseller_user),
                              json={"newEmail": "partner@newdomain.example"})

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Reseller, created["id"]).email == "partner@newdomain.example"
