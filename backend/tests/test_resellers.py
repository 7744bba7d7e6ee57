"""
Tests for reseller management and the reseller/user pairing
"""

from auth_utils import verify_password
from conftest import make_user
from models import Reseller
from models_rbac import User


def reseller_payload(**overrides):
    payload = {
        "name": "Acme Reseller",
        "email": "partner@acme.example",
        "password": "partnerpass",
        "phone": "+15550100",
        "domain": "acme.example",
        "commission_percent": 12.5,
        "channels_enabled": ["sms", "rcs"],
    }
    payload.update(overrides)
    return payload


def create_reseller(client, headers, **overrides):
    response = client.post("/api/resellers/", headers=headers, json=reseller_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateReseller:
    def test_creates_paired_user(self, client, db_session, admin_headers):
        body = create_reseller(client, admin_headers)

        assert body["success"] is True
        db_session.expire_all()
        reseller = db_session.get(Reseller, body["id"])
        user = db_session.get(User, body["user_id"])
        assert reseller.user_id == user.id
        assert user.role == "reseller"
        assert user.email == "partner@acme.example"
        assert user.channels_enabled == ["sms", "rcs"]
        assert verify_password("partnerpass", user.password_hash)

    def test_paired_user_can_log_in(self, client, admin_headers):
        create_reseller(client, admin_headers)

        response = client.post("/api/auth/login", json={
            "email": "partner@acme.example",
            "password": "partnerpass",
        })

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "reseller"

    def test_default_permissions_use_reseller_catalog(self, client, admin_headers):
        body = create_reseller(client, admin_headers)

        detail = client.get(f"/api/resellers/{body['id']}", headers=admin_headers).json()
        features = {p["feature"] for p in detail["reseller"]["permissions"]}
        assert "Clients - View" in features
        assert "Chat - View" not in features

    def test_explicit_permissions_outside_catalog_are_400(self, client, db_session, admin_headers):
        response = client.post("/api/resellers/", headers=admin_headers, json=reseller_payload(
            permissions=[{"feature": "Chat - View", "admin": True}],
        ))

        assert response.status_code == 400
        db_session.expire_all()
        assert db_session.query(User).filter(User.email == "partner@acme.example").count() == 0

    def test_email_used_by_user_is_409(self, client, db_session, admin_headers):
        make_user(db_session, "partner@acme.example")

        response = client.post("/api/resellers/", headers=admin_headers, json=reseller_payload())
        assert response.status_code == 409

    def test_unknown_plan_is_400(self, client, admin_headers):
        response = client.post("/api/resellers/", headers=admin_headers, json=reseller_payload(plan_id="nope"))
        assert response.status_code == 400

    def test_non_admin_is_403(self, client, user_headers):
        response = client.post("/api/resellers/", headers=user_headers, json=reseller_payload())
        assert response.status_code == 403


class TestListResellers:
    def test_newest_first(self, client, admin_headers):
        create_reseller(client, admin_headers, email="first@example.com", name="First")
        create_reseller(client, admin_headers, email="second@example.com", name="Second")

        body = client.get("/api/resellers/", headers=admin_headers).json()

        assert body["total"] == 2
        assert [r["name"] for r in body["resellers"]] == ["Second", "First"]

    def test_unknown_reseller_is_404(self, client, admin_headers):
        assert client.get("/api/resellers/999", headers=admin_headers).status_code == 404


class TestUpdateReseller:
    def test_status_only_update(self, client, db_session, admin_headers):
        body = create_reseller(client, admin_headers)

        response = client.put(f"/api/resellers/{body['id']}", headers=admin_headers, json={"status": "inactive"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        db_session.expire_all()
        reseller = db_session.get(Reseller, body["id"])
        assert reseller.status == "inactive"
        assert reseller.name == "Acme Reseller"
        assert reseller.phone == "+15550100"
        assert reseller.commission_percent == 12.5
        assert reseller.channels_enabled == ["sms", "rcs"]
        assert reseller.user.status == "inactive"

    def test_inactive_reseller_cannot_log_in(self, client, admin_headers):
        body = create_reseller(client, admin_headers)
        client.put(f"/api/resellers/{body['id']}", headers=admin_headers, json={"status": "inactive"})

        response = client.post("/api/auth/login", json={
            "email": "partner@acme.example",
            "password": "partnerpass",
        })
        assert response.status_code == 403

    def test_email_change_follows_to_user(self, client, db_session, admin_headers):
        body = create_reseller(client, admin_headers)

        client.put(f"/api/resellers/{body['id']}", headers=admin_headers, json={"email": "New@Acme.example"})

        db_session.expire_all()
        assert db_session.get(User, body["user_id"]).email == "new@acme.example"

    def test_email_taken_by_other_account_is_409(self, client, db_session, admin_headers):
        body = create_reseller(client, admin_headers)
        make_user(db_session, "someone@example.com")

        response = client.put(f"/api/resellers/{body['id']}", headers=admin_headers,
                              json={"email": "someone@example.com"})
        assert response.status_code == 409

    def test_empty_update_is_400(self, client, admin_headers):
        body = create_reseller(client, admin_headers)

        response = client.put(f"/api/resellers/{body['id']}", headers=admin_headers, json={})

        assert response.status_code == 400
        assert response.json()["message"] == "No fields to update"

    def test_only_null_required_fields_is_400(self, client, admin_headers):
        body = create_reseller(client, admin_headers)

        response = client.put(f"/api/resellers/{body['id']}", headers=admin_headers,
                              json={"name": None, "status": None})

        assert response.status_code == 400
        assert response.json()["message"] == "No fields to update"

    def test_unknown_reseller_is_404(self, client, admin_headers):
        response = client.put("/api/resellers/404", headers=admin_headers, json={"status": "inactive"})
        assert response.status_code == 404
