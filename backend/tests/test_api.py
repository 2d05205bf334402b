"""
API flow tests

Verifies:
- Rent Now resumes exactly once after login and KYC
- Abandoned pending actions never replay
- A logged-in user's pending action stays with that user
- One open checkout per user
- Checkout endpoints enforce step order and agreement eligibility
- Listing, admin and lender endpoints
"""

from datetime import datetime

from conftest import CLIENT_ID, IMAGE, auth_headers, login, run
from utils.kyc import IdConfidence

RENT_P1 = {"product_id": "p1", "plan": "daily"}
ANON = {"X-Client-Id": CLIENT_ID}


def _bearer(resp) -> dict:
    return {"Authorization": f"Bearer {resp.json()['access_token']}", "X-Client-Id": CLIENT_ID}


def _start_checkout(client, headers) -> str:
    resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=headers)
    assert resp.json()["status"] == "checkout_started", resp.text
    return resp.json()["checkout"]["checkout_id"]


def _to_agreement(client, headers) -> str:
    checkout_id = _start_checkout(client, headers)
    client.post(f"/api/rentals/checkouts/{checkout_id}/condition-report", files={"file": IMAGE}, headers=headers)
    client.post(f"/api/rentals/checkouts/{checkout_id}/confirm-condition", headers=headers)
    return checkout_id


class TestRentNowGate:

    def test_full_flow_from_anonymous_to_order(self, client, stores):
        resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=ANON)
        assert resp.status_code == 200
        assert resp.json()["status"] == "login_required"
        assert resp.json()["pending_action"]["kind"] == "rent_now"

        # login replays Rent Now, which now stops at KYC
        resp = login(client, "renter@gmail.com", client_id=CLIENT_ID)
        assert resp.status_code == 200
        resumed = resp.json()["resumed"]
        assert resumed["status"] == "kyc_required"
        assert resumed["pending_action"]["kind"] == "start_checkout"
        headers = _bearer(resp)

        resp = client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=headers)
        assert resp.json()["step"] == "capture_face"
        assert resp.json()["confidence"] == "High"

        resp = client.post("/api/kyc/face-photo", files={"file": IMAGE}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["user"]["kyc_verified"] is True
        resumed = resp.json()["resumed"]
        assert resumed["status"] == "checkout_started"
        assert resumed["checkout"]["step"] == "condition_check"
        checkout_id = resumed["checkout"]["checkout_id"]

        assert client.get("/api/rentals/pending", headers=ANON).json()["pending_action"] is None

        base = f"/api/rentals/checkouts/{checkout_id}"
        resp = client.post(f"{base}/condition-report", files={"file": IMAGE}, headers=headers)
        assert resp.json()["condition_report"].startswith("- Light scuff")

        resp = client.post(f"{base}/confirm-condition", headers=headers)
        assert resp.json()["step"] == "agreement"

        assert client.post(f"{base}/complete", headers=headers).status_code == 409

        client.patch(f"{base}/agreement", json={"terms_accepted": True, "signature": "Ravi Kumar"}, headers=headers)
        client.post(f"{base}/agreement/id-image", files={"file": IMAGE}, headers=headers)
        resp = client.post(f"{base}/agreement/live-photo", files={"file": IMAGE}, headers=headers)
        assert resp.json()["can_complete"] is True

        resp = client.post(f"{base}/complete", headers=headers)
        assert resp.status_code == 200
        order = resp.json()["order"]
        assert order["status"] == "pending"
        assert order["total_price"] == 2750
        assert order["lender_earnings"] == 2250
        assert order["platform_fee"] == 500
        assert resp.json()["checkout"]["step"] == "success"

        assert len(run(stores.orders.list_orders())) == 1

    def test_verified_user_goes_straight_to_checkout(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=headers)
        assert resp.json()["status"] == "checkout_started"
        assert resp.json()["checkout"]["plan"] == "daily"

    def test_admin_skips_kyc(self, client):
        headers = auth_headers(client, "staff@gmail.com")
        resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=headers)
        assert resp.json()["status"] == "checkout_started"

    def test_abandoned_action_is_not_replayed(self, client):
        client.post("/api/rentals/rent-now", json=RENT_P1, headers=ANON)
        assert client.delete("/api/rentals/pending", headers=ANON).status_code == 200

        resp = login(client, "verified@gmail.com", client_id=CLIENT_ID)
        assert resp.json()["resumed"] is None

    def test_pending_action_scoped_to_client(self, client):
        client.post("/api/rentals/rent-now", json=RENT_P1, headers={"X-Client-Id": "other-client-9"})
        resp = login(client, "verified@gmail.com", client_id=CLIENT_ID)
        assert resp.json()["resumed"] is None

    def test_logout_clears_pending_action(self, client):
        headers = auth_headers(client, "renter@gmail.com")
        resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=headers)
        assert resp.json()["status"] == "kyc_required"

        client.post("/api/auth/logout", headers=headers)
        assert client.get("/api/rentals/pending", headers=ANON).json()["pending_action"] is None

    def test_logging_in_again_still_needs_kyc(self, client, stores):
        headers = auth_headers(client, "renter@gmail.com")
        resp = client.post("/api/rentals/rent-now", json=RENT_P1, headers=headers)
        assert resp.json()["status"] == "kyc_required"

        # the deferred checkout goes back through the gate instead of opening
        resp = login(client, "renter@gmail.com", client_id=CLIENT_ID)
        resumed = resp.json()["resumed"]
        assert resumed["status"] == "kyc_required"
        assert resumed["pending_action"]["kind"] == "start_checkout"
        assert run(stores.orders.list_orders()) == []

    def test_pending_action_hidden_from_other_callers(self, client):
        renter = auth_headers(client, "renter@gmail.com")
        client.post("/api/rentals/rent-now", json=RENT_P1, headers=renter)

        assert client.get("/api/rentals/pending", headers=ANON).json()["pending_action"] is None
        assert client.delete("/api/rentals/pending", headers=ANON).status_code == 200

        other = auth_headers(client, "verified@gmail.com")
        assert client.get("/api/rentals/pending", headers=other).json()["pending_action"] is None

        pending = client.get("/api/rentals/pending", headers=renter).json()["pending_action"]
        assert pending == {"kind": "start_checkout", "product_id": "p1", "plan": "daily"}

    def test_bad_requests(self, client):
        assert client.post("/api/rentals/rent-now", json={"product_id": "nope", "plan": "daily"}, headers=ANON).status_code == 404
        assert client.post("/api/rentals/rent-now", json={"product_id": "p1", "plan": "6"}, headers=ANON).status_code == 400
        assert client.post("/api/rentals/rent-now", json=RENT_P1).status_code == 422


class TestCheckoutEndpoints:

    def test_condition_report_failure_keeps_state(self, client, analyzer):
        headers = auth_headers(client, "verified@gmail.com")
        checkout_id = _start_checkout(client, headers)
        url = f"/api/rentals/checkouts/{checkout_id}/condition-report"

        analyzer.failing.add("analyze_condition")
        assert client.post(url, files={"file": IMAGE}, headers=headers).status_code == 502
        assert client.get(f"/api/rentals/checkouts/{checkout_id}", headers=headers).json()["condition_report"] is None

        analyzer.failing.clear()
        assert client.post(url, files={"file": IMAGE}, headers=headers).status_code == 200
        assert client.post(url, files={"file": IMAGE}, headers=headers).status_code == 409

    def test_agreement_changes_need_agreement_step(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        checkout_id = _start_checkout(client, headers)

        resp = client.patch(f"/api/rentals/checkouts/{checkout_id}/agreement", json={"terms_accepted": True}, headers=headers)
        assert resp.status_code == 409
        resp = client.post(f"/api/rentals/checkouts/{checkout_id}/agreement/id-image", files={"file": IMAGE}, headers=headers)
        assert resp.status_code == 409

    def test_revoked_agreement_blocks_completion(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        checkout_id = _to_agreement(client, headers)
        base = f"/api/rentals/checkouts/{checkout_id}"

        client.patch(f"{base}/agreement", json={"terms_accepted": True, "signature": "Asha"}, headers=headers)
        client.post(f"{base}/agreement/id-image", files={"file": IMAGE}, headers=headers)
        client.post(f"{base}/agreement/live-photo", files={"file": IMAGE}, headers=headers)

        resp = client.patch(f"{base}/agreement", json={"clear_id_image": True}, headers=headers)
        assert resp.json()["can_complete"] is False
        assert client.post(f"{base}/complete", headers=headers).status_code == 409

    def test_other_users_checkout_hidden(self, client):
        owner = auth_headers(client, "verified@gmail.com")
        checkout_id = _start_checkout(client, owner)

        other = auth_headers(client, "lender@gmail.com", client_id="client-0002")
        assert client.get(f"/api/rentals/checkouts/{checkout_id}", headers=other).status_code == 404

    def test_new_rent_now_replaces_open_checkout(self, client, stores):
        headers = auth_headers(client, "verified@gmail.com")
        first = _to_agreement(client, headers)
        second = _start_checkout(client, headers)
        assert first != second

        assert client.get(f"/api/rentals/checkouts/{first}", headers=headers).status_code == 404
        assert client.post(f"/api/rentals/checkouts/{first}/complete", headers=headers).status_code == 404
        assert client.get(f"/api/rentals/checkouts/{second}", headers=headers).json()["step"] == "condition_check"
        assert run(stores.orders.list_orders()) == []

    def test_abandon_checkout(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        checkout_id = _start_checkout(client, headers)
        assert client.delete(f"/api/rentals/checkouts/{checkout_id}", headers=headers).status_code == 200
        assert client.get(f"/api/rentals/checkouts/{checkout_id}", headers=headers).status_code == 404

    def test_non_image_upload_rejected(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        checkout_id = _start_checkout(client, headers)
        resp = client.post(
            f"/api/rentals/checkouts/{checkout_id}/condition-report",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=headers,
        )
        assert resp.status_code == 400


class TestKyc:

    def test_medium_confidence_needs_live_id(self, client, analyzer):
        analyzer.id_confidence = IdConfidence.MEDIUM
        headers = auth_headers(client, "renter@gmail.com")

        resp = client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=headers)
        assert resp.json()["step"] == "capture_live_id"

        assert client.post("/api/kyc/face-photo", files={"file": IMAGE}, headers=headers).status_code == 409

        resp = client.post("/api/kyc/live-id-photo", files={"file": IMAGE}, headers=headers)
        assert resp.json()["step"] == "capture_face"
        assert client.get("/api/kyc/status", headers=headers).json()["step"] == "capture_face"

    def test_low_confidence_blocks(self, client, analyzer, uploader):
        analyzer.id_confidence = IdConfidence.LOW
        headers = auth_headers(client, "renter@gmail.com")

        resp = client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=headers)
        assert resp.json()["step"] == "upload_id"
        assert uploader.uploads == []
        assert client.post("/api/kyc/live-id-photo", files={"file": IMAGE}, headers=headers).status_code == 409

    def test_analyzer_failure(self, client, analyzer):
        analyzer.failing.add("verify_id_document")
        headers = auth_headers(client, "renter@gmail.com")

        assert client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=headers).status_code == 502
        assert client.get("/api/kyc/status", headers=headers).json()["step"] == "upload_id"

    def test_verified_user_cannot_restart(self, client):
        headers = auth_headers(client, "verified@gmail.com")
        assert client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=headers).status_code == 409


class TestAuthApi:

    def test_signup_verify_login(self, client):
        resp = client.post("/api/auth/signup", json={"email": "fresh@gmail.com", "password": "longenough"})
        assert resp.status_code == 200
        token = resp.json()["verification_token"]

        assert login(client, "fresh@gmail.com", "longenough").status_code == 401
        assert client.post("/api/auth/verify-email", json={"token": token}).status_code == 200
        assert login(client, "fresh@gmail.com", "longenough").status_code == 200

    def test_device_limit(self, client):
        for _ in range(3):
            assert login(client, "renter@gmail.com").status_code == 200

        resp = login(client, "renter@gmail.com")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Device limit of 3 reached. Please log out from another device."

    def test_logout_ends_session(self, client):
        headers = auth_headers(client, "renter@gmail.com")
        assert client.get("/api/auth/me", headers=headers).json()["email"] == "renter@gmail.com"

        client.post("/api/auth/logout", headers=headers)
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code in (401, 403)

    def test_wrong_password(self, client):
        resp = login(client, "renter@gmail.com", "not-my-password")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password."


NEW_LISTING = {
    "name": "Camping Tent",
    "description": "Four person dome tent with rain fly",
    "category_id": "outdoor",
    "rental_type": "daily",
    "lender_pricing": {"daily": 400},
    "ai_assessed_quality": "Excellent",
}


class TestProducts:

    def test_browse(self, client):
        resp = client.get("/api/products")
        assert resp.json()["count"] == 1
        item = resp.json()["items"][0]
        assert item["display_pricing"] == {"daily": 2750}
        assert item["plans"] == ["daily"]
        assert "lender_pricing" not in item

        assert client.get("/api/products", params={"price_range": "abc"}).status_code == 400
        assert client.get("/api/products", params={"sort": "newest"}).status_code == 400
        assert client.get("/api/products", params={"category": "tools"}).json()["count"] == 0
        assert len(client.get("/api/products/categories").json()) == 6

    def test_lender_sees_own_pricing(self, client):
        headers = auth_headers(client, "lender@gmail.com")
        data = client.get("/api/products/p1", headers=headers).json()
        assert data["lender_pricing"] == {"daily": 2500}
        assert data["commission_rate"] == 0.15
        assert client.get("/api/products/missing").status_code == 404

    def test_create_listing(self, client):
        headers = auth_headers(client, "lender@gmail.com")
        resp = client.post("/api/products", json=NEW_LISTING, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["display_pricing"] == {"daily": 440}
        assert resp.json()["commission_rate"] == 0.17
        assert client.get("/api/products").json()["count"] == 2

    def test_create_listing_enrichment_failure(self, client, analyzer):
        analyzer.failing.add("suggest_commission_percent")
        headers = auth_headers(client, "lender@gmail.com")

        assert client.post("/api/products", json=NEW_LISTING, headers=headers).status_code == 502
        assert client.get("/api/products").json()["count"] == 1

    def test_update_keeps_commission(self, client, analyzer):
        analyzer.commission_percent = 8
        lender = auth_headers(client, "lender@gmail.com")
        renter = auth_headers(client, "renter@gmail.com", client_id="client-0002")

        update = {**NEW_LISTING, "lender_pricing": {"daily": 3000}}
        assert client.put("/api/products/p1", json=update, headers=renter).status_code == 403

        resp = client.put("/api/products/p1", json=update, headers=lender)
        assert resp.status_code == 200
        assert resp.json()["commission_rate"] == 0.15
        assert resp.json()["display_pricing"] == {"daily": 3300}

    def test_delete_listing(self, client):
        renter = auth_headers(client, "renter@gmail.com")
        assert client.delete("/api/products/p1", headers=renter).status_code == 403

        lender = auth_headers(client, "lender@gmail.com", client_id="client-0002")
        assert client.delete("/api/products/p1", headers=lender).status_code == 200
        assert client.get("/api/products/p1").status_code == 404

    def test_analyze_photo(self, client):
        headers = auth_headers(client, "lender@gmail.com")
        resp = client.post("/api/products/analyze", files={"file": IMAGE}, headers=headers)
        assert resp.json()["quality"] == "Excellent"
        assert resp.json()["category_id"] == "electronics"

    def test_search_by_image(self, client):
        resp = client.post("/api/products/search-by-image", files={"file": IMAGE})
        assert resp.json()["query"] == "camera"
        assert resp.json()["count"] == 1

    def test_upload_product_image(self, client, uploader):
        headers = auth_headers(client, "lender@gmail.com")
        resp = client.post("/api/products/images", files={"file": IMAGE}, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["url"] == uploader.uploads[0]

    def test_reviews(self, client):
        renter = auth_headers(client, "renter@gmail.com")
        resp = client.post("/api/products/p1/reviews", json={"rating": 5, "comment": "Great kit"}, headers=renter)
        assert resp.status_code == 201

        assert len(client.get("/api/products/p1/reviews").json()) == 1
        assert client.get("/api/products/p1").json()["average_rating"] == 5

        lender = auth_headers(client, "lender@gmail.com", client_id="client-0002")
        assert client.post("/api/products/p1/reviews", json={"rating": 5}, headers=lender).status_code == 400
        assert client.post("/api/products/p1/reviews", json={"rating": 6}, headers=renter).status_code == 422


def _seed_order(stores, order_id="DOZO-SEED0001", status="pending"):
    run(stores.orders.insert({
        "id": order_id,
        "product_id": "p1",
        "lender_email": "lender@gmail.com",
        "user_email": "verified@gmail.com",
        "plan": "daily",
        "status": status,
        "total_price": 2750.0,
        "lender_earnings": 2250.0,
        "platform_fee": 500.0,
        "created_at": datetime(2026, 3, 1),
    }))


class TestAdmin:

    def test_dashboard(self, client, stores):
        _seed_order(stores, status="active")
        headers = auth_headers(client, "staff@gmail.com")

        data = client.get("/api/admin/dashboard", headers=headers).json()
        assert data["total_users"] == 4
        assert data["active_rentals"] == 1
        assert data["total_revenue"] == 2750
        assert {"id": "electronics", "name": "Electronics", "count": 1} in data["rentals_by_category"]

    def test_non_admin_forbidden(self, client):
        headers = auth_headers(client, "renter@gmail.com")
        assert client.get("/api/admin/dashboard", headers=headers).status_code == 403

    def test_order_status_lifecycle(self, client, stores):
        _seed_order(stores)
        headers = auth_headers(client, "staff@gmail.com")
        url = "/api/admin/orders/DOZO-SEED0001/status"

        assert client.patch(url, json={"status": "completed"}, headers=headers).status_code == 409
        assert client.patch(url, json={"status": "active"}, headers=headers).json()["status"] == "active"
        assert client.patch(url, json={"status": "completed"}, headers=headers).json()["status"] == "completed"
        assert client.patch("/api/admin/orders/DOZO-NONE/status", json={"status": "active"}, headers=headers).status_code == 404

        orders = client.get("/api/admin/orders", headers=headers).json()
        assert orders["orders"][0]["status"] == "completed"

    def test_create_admin(self, client):
        headers = auth_headers(client, "staff@gmail.com")
        resp = client.post("/api/admin/admins", json={"email": "ops@gmail.com", "password": "longenough"}, headers=headers)
        assert resp.status_code == 201
        assert login(client, "ops@gmail.com", "longenough").json()["user"]["is_admin"] is True

    def test_super_admin_login(self, client):
        resp = login(client, "owner@gmail.com", "owner-pass-123")
        assert resp.status_code == 200
        assert resp.json()["user"]["is_admin"] is True

    def test_view_kyc_documents(self, client, uploader):
        renter = auth_headers(client, "renter@gmail.com")
        client.post("/api/kyc/id-document", files={"file": IMAGE}, headers=renter)

        headers = auth_headers(client, "staff@gmail.com", client_id="client-0002")
        data = client.get("/api/admin/users/renter@gmail.com/kyc", headers=headers).json()
        assert data["step"] == "capture_face"
        assert data["documents"] == {"id_document": uploader.uploads[0]}
        assert client.get("/api/admin/users/nobody@gmail.com/kyc", headers=headers).status_code == 404

    def test_remove_product(self, client):
        headers = auth_headers(client, "staff@gmail.com")
        assert client.delete("/api/admin/products/p1", headers=headers).status_code == 200
        assert client.delete("/api/admin/products/p1", headers=headers).status_code == 404


class TestLender:

    def test_dashboard(self, client, stores):
        _seed_order(stores, status="active")
        headers = auth_headers(client, "lender@gmail.com")

        data = client.get("/api/lender/dashboard", headers=headers).json()
        assert data["total_earnings"] == 2250
        assert data["active_rentals"] == 1
        assert data["listing_count"] == 1

        assert client.get("/api/lender/orders", headers=headers).json()["count"] == 1
        assert client.get("/api/lender/products", headers=headers).json()["count"] == 1

    def test_earnings_survive_deleted_listing(self, client, stores):
        _seed_order(stores, status="active")
        headers = auth_headers(client, "lender@gmail.com")
        assert client.delete("/api/products/p1", headers=headers).status_code == 200

        data = client.get("/api/lender/dashboard", headers=headers).json()
        assert data["listing_count"] == 0
        assert data["total_earnings"] == 2250
        assert data["recent_orders"][0]["id"] == "DOZO-SEED0001"

    def test_renter_has_no_listings(self, client, stores):
        _seed_order(stores)
        headers = auth_headers(client, "renter@gmail.com")
        data = client.get("/api/lender/dashboard", headers=headers).json()
        assert data["listing_count"] == 0
        assert data["total_earnings"] == 0


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
