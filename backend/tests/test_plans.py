"""
Tests for subscription plan CRUD
"""

import uuid

from sqlalchemy import text

from models import AdminAuditLog, Plan
from models_rbac import User
from conftest import make_user


def plan_payload(**overrides):
    payload = {
        "name": "Pro",
        "price": 999,
        "monthly_credits": 50000,
        "client_count": 5,
        "channels_allowed": ["sms", "whatsapp"],
        "automation_limit": -1,
        "campaign_limit": -1,
        "api_access": True,
    }
    payload.update(overrides)
    return payload


def create_plan(client, headers, **overrides):
    response = client.post("/api/plans/", headers=headers, json=plan_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreatePlan:
    def test_pro_plan_is_created_active(self, client, admin_headers):
        create_plan(client, admin_headers, name="Starter", price=99, channels_allowed=["sms"])

        body = create_plan(client, admin_headers)

        assert body["success"] is True
        assert body["status"] == "active"
        assert str(uuid.UUID(body["id"])) == body["id"]

        listed = client.get("/api/plans/").json()
        assert [p["name"] for p in listed["plans"]] == ["Starter", "Pro"]
        pro = listed["plans"][1]
        assert pro["id"] == body["id"]
        assert pro["monthlyCredits"] == 50000
        assert pro["apiAccess"] is True

    def test_channels_keep_their_order(self, client, admin_headers):
        body = create_plan(client, admin_headers, channels_allowed=["whatsapp", "rcs", "sms"])

        fetched = client.get(f"/api/plans/{body['id']}").json()
        assert fetched["plan"]["channelsAllowed"] == ["whatsapp", "rcs", "sms"]

        client.put(f"/api/plans/{body['id']}", headers=admin_headers,
                   json=plan_payload(channels_allowed=["email", "sms"]))
        fetched = client.get(f"/api/plans/{body['id']}").json()
        assert fetched["plan"]["channelsAllowed"] == ["email", "sms"]

    def test_create_and_update_echo_the_read_shape(self, client, admin_headers):
        created = create_plan(client, admin_headers)
        fetched = client.get(f"/api/plans/{created['id']}").json()["plan"]

        assert {k: v for k, v in created.items() if k != "success"} == fetched
        assert "monthly_credits" not in created

        updated = client.put(f"/api/plans/{created['id']}", headers=admin_headers,
                             json=plan_payload(monthly_credits=75000)).json()

        assert updated["monthlyCredits"] == 75000
        assert updated["channelsAllowed"] == ["sms", "whatsapp"]
        assert updated["status"] == "active"

    def test_invalid_payload_is_400(self, client, admin_headers):
        response = client.post("/api/plans/", headers=admin_headers, json=plan_payload(
            price=-1, channels_allowed=[],
        ))

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_unknown_channel_is_400(self, client, admin_headers):
        response = client.post("/api/plans/", headers=admin_headers, json=plan_payload(channels_allowed=["fax"]))
        assert response.status_code == 400

    def test_non_admin_is_403(self, client, user_headers):
        response = client.post("/api/plans/", headers=user_headers, json=plan_payload())
        assert response.status_code == 403

    def test_anonymous_is_401(self, client):
        response = client.post("/api/plans/", json=plan_payload())
        assert response.status_code == 401


class TestReadPlans:
    def test_malformed_channels_read_as_empty(self, client, db_session, admin_headers):
        body = create_plan(client, admin_headers)
        db_session.execute(
            text("UPDATE plan SET channels_allowed = 'not json' WHERE id = :id"),
            {"id": body["id"]},
        )
        db_session.commit()

        listed = client.get("/api/plans/")

        assert listed.status_code == 200
        assert listed.json()["plans"][0]["channelsAllowed"] == []

    def test_inactive_plans_hidden_from_public(self, client, admin_headers, user_headers):
        body = create_plan(client, admin_headers)
        client.patch(f"/api/plans/{body['id']}/toggle", headers=admin_headers)

        assert client.get("/api/plans/").json()["total"] == 0
        assert client.get(f"/api/plans/{body['id']}").status_code == 404

        # the flag only widens the list for platform admins
        assert client.get("/api/plans/?admin=true", headers=user_headers).json()["total"] == 0
        assert client.get("/api/plans/?admin=true", headers=admin_headers).json()["total"] == 1

    def test_unknown_plan_is_404(self, client):
        response = client.get("/api/plans/no-such-plan")
        assert response.status_code == 404
        assert response.json()["message"] == "Plan not found"


class TestUpdatePlan:
    def test_update_replaces_fields(self, client, admin_headers):
        body = create_plan(client, admin_headers)

        response = client.put(f"/api/plans/{body['id']}", headers=admin_headers,
                              json=plan_payload(name="Pro Plus", price=1499, api_access=False))

        assert response.status_code == 200
        plan = client.get(f"/api/plans/{body['id']}").json()["plan"]
        assert plan["name"] == "Pro Plus"
        assert plan["price"] == 1499
        assert plan["apiAccess"] is False

    def test_update_unknown_plan_is_404(self, client, admin_headers):
        response = client.put("/api/plans/missing", headers=admin_headers, json=plan_payload())
        assert response.status_code == 404

    def test_toggle_flips_status(self, client, admin_headers):
        body = create_plan(client, admin_headers)

        first = client.patch(f"/api/plans/{body['id']}/toggle", headers=admin_headers).json()
        second = client.patch(f"/api/plans/{body['id']}/toggle", headers=admin_headers).json()

        assert first["status"] == "inactive"
        assert second["status"] == "active"


class TestDeletePlan:
    def test_delete_detaches_accounts(self, client, db_session, admin_headers):
        body = create_plan(client, admin_headers)
        user = make_user(db_session, "subscriber@example.com")
        user.plan_id = body["id"]
        db_session.commit()

        response = client.delete(f"/api/plans/{body['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Plan deleted successfully"
        db_session.expire_all()
        assert db_session.get(User, user.id).plan_id is None
        assert db_session.get(Plan, body["id"]) is None

    def test_delete_is_audited(self, client, db_session, admin_headers):
        body = create_plan(client, admin_headers)
        client.delete(f"/api/plans/{body['id']}", headers=admin_headers)

        db_session.expire_all()
        actions = [row.action for row in db_session.query(AdminAuditLog).order_by(AdminAuditLog.id)]
        assert actions == ["plan.create", "plan.delete"]
