"""
HTTP surface tests.

Verifies:
- Every business endpoint requires a bearer token (public verify and health excepted)
- Success and error responses share the {"status": ...} envelope
- Role checks on agency writes
- Receipt lifecycle through the API: create -> list -> paid -> void -> conflict
- CSV and PDF responses carry the right content types
"""

import pytest


PROTECTED = [
    ("get", "/api/v1/receipts"),
    ("post", "/api/v1/receipts"),
    ("get", "/api/v1/agencies"),
    ("post", "/api/v1/agencies"),
    ("get", "/api/v1/analytics"),
    ("get", "/api/v1/stats/dashboard"),
    ("get", "/api/v1/stats/today"),
    ("get", "/api/v1/stats/pending"),
    ("get", "/api/v1/export/receipts"),
    ("get", "/api/v1/export/summary"),
    ("get", "/api/v1/auth/me"),
]


def _create(client, headers, **overrides):
    payload = {"agency_id": "789456", "amount": "150.00", "status": "PENDING"}
    payload.update(overrides)
    return client.post("/api/v1/receipts", json=payload, headers=headers)


class TestAuthentication:
    @pytest.mark.parametrize("method,path", PROTECTED)
    def test_requires_token(self, client, db_session, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json["status"] == "error"

    def test_garbage_token_rejected(self, client, db_session):
        response = client.get("/api/v1/receipts", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_login_envelope(self, client, staff_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": staff_user.email, "password": "Password123"},
        )
        assert response.status_code == 200
        body = response.json
        assert body["status"] == "success"
        assert body["data"]["token"]
        assert body["data"]["user"]["email"] == staff_user.email

    def test_login_wrong_password(self, client, staff_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": staff_user.email, "password": "WrongPass1"},
        )
        assert response.status_code == 401
        assert response.json == {"status": "error", "message": "Invalid email or password."}

    def test_logout_revokes_token(self, client, staff_user, login):
        headers = login(staff_user.email)
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 200

        assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


class TestAgencyRoutes:
    def test_staff_cannot_upsert(self, client, staff_headers):
        response = client.post(
            "/api/v1/agencies",
            json={"agency_id": "123123", "agency_name": "New Travel"},
            headers=staff_headers,
        )
        assert response.status_code == 403

    def test_admin_upsert_then_list(self, client, admin_headers):
        response = client.post(
            "/api/v1/agencies",
            json={"agency_id": "123123", "agency_name": "New Travel"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        listed = client.get("/api/v1/agencies", headers=admin_headers).json["data"]["agencies"]
        assert [a["agency_id"] for a in listed] == ["123123"]

    def test_bulk_requires_list(self, client, admin_headers):
        response = client.post(
            "/api/v1/agencies/bulk", json={"agencies": "nope"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json["status"] == "error"

    def test_bulk_counts(self, client, admin_headers):
        response = client.post(
            "/api/v1/agencies/bulk",
            json={"agencies": [
                {"agency_id": "100", "agency_name": "Alpha"},
                {"agency_id": "200", "agency_name": "Beta"},
                {"agency_name": "No Code"},
            ]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json["data"]
        assert data["inserted"] == 2
        assert data["skipped"] == 1


class TestReceiptRoutes:
    def test_create_returns_receipt_and_qr(self, client, agency, staff_headers):
        response = _create(client, staff_headers, remarks="Top-up")
        assert response.status_code == 201
        body = response.json
        assert body["status"] == "success"
        receipt = body["data"]["receipt"]
        assert receipt["amount"] == 150.0
        assert receipt["status"] == "PENDING"
        assert receipt["station"] == "NBO"
        assert receipt["issued_by"] == "Amina Lado"
        assert receipt["agency"]["agency_id"] == "789456"
        assert body["data"]["qr_code"].startswith("data:image/png;base64,")

    def test_create_validation_error(self, client, agency, staff_headers):
        response = _create(client, staff_headers, amount="-5")
        assert response.status_code == 400
        assert response.json["status"] == "error"

    def test_create_unknown_agency(self, client, agency, staff_headers):
        response = _create(client, staff_headers, agency_id="000000")
        assert response.status_code == 404

    def test_lifecycle(self, client, agency, staff_headers):
        receipt_id = _create(client, staff_headers).json["data"]["receipt"]["id"]

        listed = client.get("/api/v1/receipts", headers=staff_headers).json["data"]
        assert listed["pagination"]["total"] == 1

        paid = client.put(
            f"/api/v1/receipts/{receipt_id}", json={"status": "PAID"}, headers=staff_headers
        )
        assert paid.status_code == 200
        assert paid.json["data"]["receipt"]["status"] == "PAID"
        assert paid.json["data"]["receipt"]["payment_date"].endswith("Z")

        voided = client.delete(
            f"/api/v1/receipts/{receipt_id}", json={"reason": "Duplicate"}, headers=staff_headers
        )
        assert voided.status_code == 200
        assert voided.json["data"]["void_reason"] == "Duplicate"

        again = client.delete(
            f"/api/v1/receipts/{receipt_id}", json={"reason": "Again"}, headers=staff_headers
        )
        assert again.status_code == 409
        assert again.json["status"] == "error"

        repay = client.put(
            f"/api/v1/receipts/{receipt_id}", json={"status": "PAID"}, headers=staff_headers
        )
        assert repay.status_code == 409

        listed = client.get("/api/v1/receipts", headers=staff_headers).json["data"]
        assert listed["pagination"]["total"] == 0

    def test_put_rejects_other_statuses(self, client, agency, staff_headers):
        receipt_id = _create(client, staff_headers).json["data"]["receipt"]["id"]
        response = client.put(
            f"/api/v1/receipts/{receipt_id}", json={"status": "VOID"}, headers=staff_headers
        )
        assert response.status_code == 400

    def test_void_requires_reason(self, client, agency, staff_headers):
        receipt_id = _create(client, staff_headers).json["data"]["receipt"]["id"]
        response = client.delete(f"/api/v1/receipts/{receipt_id}", headers=staff_headers)
        assert response.status_code == 400

    def test_missing_receipt(self, client, db_session, staff_headers):
        response = client.get("/api/v1/receipts/does-not-exist", headers=staff_headers)
        assert response.status_code == 404
        assert response.json["status"] == "error"

    def test_bad_date_range(self, client, db_session, staff_headers):
        response = client.get(
            "/api/v1/receipts?date_from=2025-10-10&date_to=2025-10-01", headers=staff_headers
        )
        assert response.status_code == 400

    def test_public_verify(self, client, agency, staff_headers):
        number = _create(client, staff_headers).json["data"]["receipt"]["receipt_number"]

        response = client.get(f"/api/v1/verify/{number}")
        assert response.status_code == 200
        data = response.json["data"]
        assert data["receipt_number"] == number
        assert data["agency_name"] == "Equatoria Travel"
        assert data["is_void"] is False
        assert "contact_email" not in data

        assert client.get("/api/v1/verify/KQ-NOPE").status_code == 404

    def test_pdf(self, client, agency, staff_headers):
        receipt = _create(client, staff_headers).json["data"]["receipt"]

        response = client.get(
            f"/api/v1/receipts/{receipt['id']}/pdf?download=true", headers=staff_headers
        )
        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")
        assert receipt["receipt_number"] in response.headers["Content-Disposition"]


class TestReportRoutes:
    def test_analytics(self, client, agency, staff_headers):
        _create(client, staff_headers, amount="100.00", status="PAID")
        _create(client, staff_headers, amount="200.50")

        data = client.get("/api/v1/analytics", headers=staff_headers).json["data"]
        assert data["totalRevenue"] == pytest.approx(300.5)
        assert data["paidReceipts"] == 1
        assert data["includeVoid"] is False

    def test_dashboard(self, client, agency, staff_headers):
        _create(client, staff_headers, amount="100.00")
        data = client.get("/api/v1/stats/dashboard", headers=staff_headers).json["data"]
        assert data["pending"]["count"] == 1
        assert data["today"]["receipt_count"] == 1

    def test_export_csv(self, client, agency, staff_headers):
        _create(client, staff_headers)
        response = client.get("/api/v1/export/receipts", headers=staff_headers)
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "attachment" in response.headers["Content-Disposition"]
        assert response.data.decode().startswith('"Receipt Number"')

    def test_export_empty_is_404(self, client, agency, staff_headers):
        response = client.get("/api/v1/export/receipts", headers=staff_headers)
        assert response.status_code == 404
        assert response.json["message"] == "No receipts found to export."


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["data"]["database"]["status"] == "healthy"
