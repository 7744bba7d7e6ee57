"""
Tests for tenant-scoped contacts, message templates and campaigns
"""

from conftest import auth_headers, make_user
from models import Campaign


def create_contact(client, headers, **overrides):
    payload = {"name": "Jane Doe", "phone": "+15550111", "email": "jane@example.com"}
    payload.update(overrides)
    return client.post("/api/contacts/", headers=headers, json=payload)


def create_template(client, headers, **overrides):
    payload = {"name": "welcome", "channel": "whatsapp", "body": "Hello {{1}}"}
    payload.update(overrides)
    return client.post("/api/templates/", headers=headers, json=payload)


class TestContacts:
    def test_create_and_list(self, client, user_headers):
        response = create_contact(client, user_headers, category="vip")

        assert response.status_code == 201
        contact = response.json()["contact"]
        assert contact["category"] == "vip"
        assert contact["channel"] == "whatsapp"

        listed = client.get("/api/contacts/", headers=user_headers).json()
        assert listed["total"] == 1

    def test_duplicate_phone_is_409(self, client, user_headers):
        create_contact(client, user_headers)

        response = create_contact(client, user_headers, name="Someone Else")

        assert response.status_code == 409
        assert response.json()["message"] == "Contact with this phone already exists"

    def test_same_phone_allowed_for_other_owner(self, client, db_session, settings, user_headers):
        create_contact(client, user_headers)
        other = make_user(db_session, "other@example.com")

        response = create_contact(client, auth_headers(db_session, settings, other))
        assert response.status_code == 201

    def test_filters(self, client, user_headers):
        create_contact(client, user_headers, name="Starred", phone="+1001", starred=True)
        create_contact(client, user_headers, name="Blocked", phone="+1002", status="blocked")
        create_contact(client, user_headers, name="Plain", phone="+1003", email="plain@example.com")

        starred = client.get("/api/contacts/?view=starred", headers=user_headers).json()["contacts"]
        blocked = client.get("/api/contacts/?view=blacklisted", headers=user_headers).json()["contacts"]
        searched = client.get("/api/contacts/?search=plain", headers=user_headers).json()["contacts"]

        assert [c["name"] for c in starred] == ["Starred"]
        assert [c["name"] for c in blocked] == ["Blocked"]
        assert [c["name"] for c in searched] == ["Plain"]

    def test_update_and_delete(self, client, user_headers):
        contact_id = create_contact(client, user_headers).json()["contact"]["id"]

        updated = client.put(f"/api/contacts/{contact_id}", headers=user_headers, json={"starred": True})
        deleted = client.delete(f"/api/contacts/{contact_id}", headers=user_headers)

        assert updated.json()["contact"]["starred"] is True
        assert deleted.status_code == 200
        assert client.get("/api/contacts/", headers=user_headers).json()["total"] == 0

    def test_other_owner_cannot_edit(self, client, db_session, settings, user_headers):
        contact_id = create_contact(client, user_headers).json()["contact"]["id"]
        other = make_user(db_session, "other@example.com")

        response = client.put(f"/api/contacts/{contact_id}", headers=auth_headers(db_session, settings, other),
                              json={"name": "Hijacked"})
        assert response.status_code == 404


class TestTemplates:
    def test_create_pending_template(self, client, user_headers):
        response = create_template(client, user_headers)

        assert response.status_code == 201
        assert response.json()["template"]["status"] == "pending"

    def test_channel_not_enabled_is_403(self, client, user_headers):
        response = create_template(client, user_headers, channel="rcs")

        assert response.status_code == 403
        assert response.json()["message"] == "Channel rcs is not enabled for this account"

    def test_admin_rejects_with_reason(self, client, admin_headers, user_headers):
        template_id = create_template(client, user_headers).json()["template"]["id"]

        response = client.patch(f"/api/templates/{template_id}/status", headers=admin_headers, json={
            "status": "rejected",
            "rejection_reason": "Promotional content in utility template",
        })

        assert response.status_code == 200
        template = response.json()["template"]
        assert template["status"] == "rejected"
        assert template["rejection_reason"] == "Promotional content in utility template"

        approved = client.patch(f"/api/templates/{template_id}/status", headers=admin_headers, json={
            "status": "approved",
            "rejection_reason": "ignored",
        }).json()["template"]
        assert approved["rejection_reason"] is None

    def test_admin_list_has_owner_name(self, client, admin_headers, user_headers):
        create_template(client, user_headers)

        templates = client.get("/api/templates/admin?status=pending", headers=admin_headers).json()["templates"]

        assert len(templates) == 1
        assert templates[0]["owner_name"] == "Owner"

    def test_tenant_cannot_moderate(self, client, user_headers):
        template_id = create_template(client, user_headers).json()["template"]["id"]
        response = client.patch(f"/api/templates/{template_id}/status", headers=user_headers,
                                json={"status": "approved"})
        assert response.status_code == 403


class TestCampaigns:
    def test_create_uses_template_name(self, client, user_headers):
        template = create_template(client, user_headers).json()["template"]

        response = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Spring Sale",
            "channel": "whatsapp",
            "template_id": template["id"],
            "template_name": "something else",
            "audience_count": 120,
        })

        assert response.status_code == 201
        campaign = response.json()["campaign"]
        assert campaign["template_name"] == "welcome"
        assert campaign["status"] == "draft"

    def test_unknown_template_is_400(self, client, user_headers):
        response = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Spring Sale",
            "channel": "sms",
            "template_id": "missing",
        })
        assert response.status_code == 400

    def test_channel_not_enabled_is_403(self, client, user_headers):
        response = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Email blast",
            "channel": "email",
        })
        assert response.status_code == 403

    def test_duplicate_is_new_draft(self, client, db_session, user_headers):
        source = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Spring Sale",
            "channel": "sms",
            "audience_count": 10,
        }).json()["campaign"]
        client.put(f"/api/campaigns/{source['id']}/status", headers=user_headers, json={"status": "running"})

        response = client.post(f"/api/campaigns/{source['id']}/duplicate", headers=user_headers)

        assert response.status_code == 201
        copy = response.json()["campaign"]
        assert copy["id"] != source["id"]
        assert copy["name"] == "Spring Sale (Copy)"
        assert copy["status"] == "draft"
        assert copy["audience_count"] == 10
        db_session.expire_all()
        assert db_session.query(Campaign).count() == 2

    def test_status_update(self, client, user_headers):
        campaign_id = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Launch", "channel": "sms",
        }).json()["campaign"]["id"]

        response = client.put(f"/api/campaigns/{campaign_id}/status", headers=user_headers,
                              json={"status": "paused"})

        assert response.json()["campaign"]["status"] == "paused"

    def test_invalid_status_is_400(self, client, user_headers):
        campaign_id = client.post("/api/campaigns/", headers=user_headers, json={
            "name": "Launch", "channel": "sms",
        }).json()["campaign"]["id"]

        response = client.put(f"/api/campaigns/{campaign_id}/status", headers=user_headers,
                              json={"status": "exploded"})
        assert response.status_code == 400
