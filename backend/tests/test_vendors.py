"""
Tests for vendor management and vendor-user mappings
"""

from conftest import make_user
from models import Vendor, VendorUserMapping


def create_vendor(client, headers, **overrides):
    payload = {
        "name": "Gupshup",
        "type": "sms",
        "api_url": "https://api.vendor.example/v1",
        "api_key": "sk-live-123456",
        "priority": 1,
        "channels": ["sms"],
    }
    payload.update(overrides)
    response = client.post("/api/vendors/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestVendorCrud:
    def test_api_key_is_never_returned(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)

        listed = client.get("/api/vendors/", headers=admin_headers)
        detail = client.get(f"/api/vendors/{vendor_id}", headers=admin_headers)

        assert "sk-live-123456" not in listed.text
        assert "sk-live-123456" not in detail.text
        assert listed.json()["vendors"][0]["api_key"] == "***hidden***"
        db_session.expire_all()
        assert db_session.get(Vendor, vendor_id).api_key == "sk-live-123456"

    def test_vendor_without_key_has_no_mask(self, client, admin_headers):
        vendor_id = create_vendor(client, admin_headers, api_key=None)

        detail = client.get(f"/api/vendors/{vendor_id}", headers=admin_headers).json()
        assert detail["vendor"]["api_key"] is None

    def test_list_is_sorted_by_name(self, client, admin_headers):
        create_vendor(client, admin_headers, name="Zeta")
        create_vendor(client, admin_headers, name="Alpha")

        names = [v["name"] for v in client.get("/api/vendors/", headers=admin_headers).json()["vendors"]]
        assert names == ["Alpha", "Zeta"]

    def test_invalid_url_is_400(self, client, admin_headers):
        response = client.post("/api/vendors/", headers=admin_headers, json={
            "name": "Broken",
            "type": "sms",
            "api_url": "not a url",
            "channels": ["sms"],
        })
        assert response.status_code == 400

    def test_update_keeps_key_when_blank(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)

        response = client.put(f"/api/vendors/{vendor_id}", headers=admin_headers, json={
            "priority": 3,
            "api_key": "",
        })

        assert response.status_code == 200
        db_session.expire_all()
        vendor = db_session.get(Vendor, vendor_id)
        assert vendor.priority == 3
        assert vendor.api_key == "sk-live-123456"

    def test_update_replaces_key(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)

        client.put(f"/api/vendors/{vendor_id}", headers=admin_headers, json={"api_key": "sk-live-rotated"})

        db_session.expire_all()
        assert db_session.get(Vendor, vendor_id).api_key == "sk-live-rotated"

    def test_non_admin_is_403(self, client, user_headers):
        assert client.get("/api/vendors/", headers=user_headers).status_code == 403

    def test_unknown_vendor_is_404(self, client, admin_headers):
        assert client.get("/api/vendors/missing", headers=admin_headers).status_code == 404


class TestVendorMappings:
    def test_replace_is_deduplicated(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)
        alice = make_user(db_session, "alice@example.com")
        bob = make_user(db_session, "bob@example.com")

        response = client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": vendor_id,
            "user_ids": [alice.id, bob.id, alice.id],
            "priority": 2,
        })

        assert response.status_code == 200
        assert response.json()["count"] == 2
        mappings = client.get(f"/api/vendors/mappings?vendor_id={vendor_id}", headers=admin_headers).json()
        assert sorted(m["user_id"] for m in mappings["mappings"]) == sorted([alice.id, bob.id])
        assert {m["priority"] for m in mappings["mappings"]} == {2}

    def test_replace_drops_previous_set(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)
        alice = make_user(db_session, "alice@example.com")
        bob = make_user(db_session, "bob@example.com")

        client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": vendor_id, "user_ids": [alice.id, bob.id],
        })
        client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": vendor_id, "user_ids": [bob.id],
        })

        db_session.expire_all()
        rows = db_session.query(VendorUserMapping).filter(VendorUserMapping.vendor_id == vendor_id).all()
        assert [row.user_id for row in rows] == [bob.id]

    def test_unknown_vendor_is_404(self, client, db_session, admin_headers):
        alice = make_user(db_session, "alice@example.com")

        response = client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": "missing", "user_ids": [alice.id],
        })
        assert response.status_code == 404

    def test_unknown_user_is_400_and_keeps_mappings(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)
        alice = make_user(db_session, "alice@example.com")
        client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": vendor_id, "user_ids": [alice.id],
        })

        response = client.post("/api/vendors/mappings", headers=admin_headers, json={
            "vendor_id": vendor_id, "user_ids": [alice.id, 9999],
        })

        assert response.status_code == 400
        assert "9999" in response.json()["message"]
        db_session.expire_all()
        assert db_session.query(VendorUserMapping).count() == 1

    def test_deleting_vendor_removes_mappings(self, client, db_session, admin_headers):
        vendor_id = create_vendor(client, admin_headers)
        other_id = create_vendor(client, admin_headers, name="Other")
        alice = make_user(db_session, "alice@example.com")
        for vid in (vendor_id, other_id):
            client.post("/api/vendors/mappings", headers=admin_headers, json={
                "vendor_id": vid, "user_ids": [alice.id],
            })

        response = client.delete(f"/api/vendors/{vendor_id}", headers=admin_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Vendor, vendor_id) is None
        remaining = db_session.query(VendorUserMapping).all()
        assert [row.vendor_id for row in remaining] == [other_id]
