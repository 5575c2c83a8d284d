"""
HTTP binding tests.

Verifies:
- Public redemption outcomes map to stable status codes and codes
- Admin routes return the same 401 for missing and wrong credentials
- Issuance validation, export and statistics
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from qrewards.models import SecurityEvent
from qrewards.services import security_service
from qrewards.services.errors import StoreUnavailableError
from qrewards.services.token_store import TokenStore
from qrewards.time_utils import to_utc_z, utcnow


def _issue(client, headers, **overrides):
    payload = {"product_name": "Elite Reward Product", "batch_id": "BATCH2026JAN", "count": 1}
    payload.update(overrides)
    return client.post("/api/admin/batches", json=payload, headers=headers)


# =============================================================================
# REDEMPTION
# =============================================================================


class TestRedeemRoutes:
    def test_redeem_then_already_used(self, client, db_session, admin_headers):
        resp = _issue(client, admin_headers)
        assert resp.status_code == 201
        [token_id] = resp.json["token_ids"]

        first = client.post(f"/api/redeem/{token_id}")
        assert first.status_code == 200
        assert first.json["amount"] == 100
        assert first.json["redeemed_at"].endswith("Z")

        second = client.post(f"/api/redeem/{token_id}")
        assert second.status_code == 409
        assert second.json == {"error": "QR already used", "code": "ALREADY_USED"}

    def test_scan_url_does_not_redeem(self, client, db_session, admin_headers):
        [token_id] = _issue(client, admin_headers).json["token_ids"]

        for _ in range(3):
            resp = client.get(f"/redeem/{token_id}")
            assert resp.status_code == 200
            assert resp.json["state"] == "UNREDEEMED"
            assert resp.json["redeemable"] is True
            assert resp.headers["Cache-Control"] == "no-store"

        assert client.post(f"/api/redeem/{token_id}").status_code == 200

        landing = client.get(f"/redeem/{token_id}")
        assert landing.json["state"] == "REDEEMED"
        assert landing.json["redeemable"] is False

    def test_scan_url_reports_expired_and_unknown(self, client, db_session, admin_headers):
        expiry = to_utc_z(utcnow() - timedelta(days=1))
        [token_id] = _issue(client, admin_headers, expiry_date=expiry).json["token_ids"]

        landing = client.get(f"/redeem/{token_id}")
        assert landing.status_code == 200
        assert landing.json["state"] == "EXPIRED"
        assert landing.json["redeemable"] is False

        assert client.get("/redeem/nonexistent-id").status_code == 404

    def test_unknown_token(self, client, db_session):
        resp = client.post("/api/redeem/nonexistent-id")
        assert resp.status_code == 404
        assert resp.json == {"error": "Invalid QR", "code": "NOT_FOUND"}

    def test_expired_token(self, client, db_session, admin_headers):
        expiry = to_utc_z(utcnow() - timedelta(days=1))
        [token_id] = _issue(client, admin_headers, expiry_date=expiry).json["token_ids"]

        resp = client.post(f"/api/redeem/{token_id}")
        assert resp.status_code == 410
        assert resp.json["code"] == "EXPIRED"

    def test_redeem_needs_no_credential(self, client, db_session, admin_headers):
        [token_id] = _issue(client, admin_headers).json["token_ids"]
        assert client.post(f"/api/redeem/{token_id}", headers={"X-Admin-Password": "wrong"}).status_code == 200

    def test_transient_store_failure(self, client, db_session, monkeypatch):
        def unavailable(self, token_id):
            raise StoreUnavailableError("Token store unavailable, retry later")

        monkeypatch.setattr(TokenStore, "find_by_id", unavailable)

        resp = client.post("/api/redeem/abc")
        assert resp.status_code == 503
        assert resp.json["code"] == "TRANSIENT"
        assert resp.headers["Retry-After"] == "1"


# =============================================================================
# ADMIN GATE
# =============================================================================


class TestAdminGate:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/admin/batches"),
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/product-stats"),
            ("GET", "/api/admin/batches/BATCH2026JAN/tokens"),
            ("GET", "/api/admin/security-events"),
        ],
    )
    def test_requires_admin(self, client, db_session, method, path):
        missing = getattr(client, method.lower())(path)
        wrong = getattr(client, method.lower())(path, headers={"X-Admin-Password": "guess"})

        assert missing.status_code == 401, f"{method} {path} returned {missing.status_code}"
        assert wrong.status_code == 401
        assert missing.json == wrong.json == {"error": "Unauthorized", "code": "UNAUTHORIZED"}

    def test_denials_are_audited(self, client, db_session):
        client.get("/api/admin/stats")
        client.get("/api/admin/stats", headers={"X-Admin-Password": "guess"})

        events = db_session.query(SecurityEvent).filter_by(event_type="ADMIN_ACCESS_DENIED").all()
        assert len(events) == 2
        assert all(e.resource == "/api/admin/stats" and e.success is False for e in events)

    def test_bearer_credential_accepted(self, client, db_session, admin_headers):
        secret = admin_headers["X-Admin-Password"]
        resp = client.get("/api/admin/stats", headers={"Authorization": f"Bearer {secret}"})
        assert resp.status_code == 200

    def test_security_events_listing(self, client, db_session, admin_headers):
        client.get("/api/admin/stats")

        resp = client.get("/api/admin/security-events?event_type=ADMIN_ACCESS_DENIED", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json) == 1
        assert resp.json[0]["action"] == "GET"

    @pytest.mark.parametrize("limit,expected", [("-1", 1), ("0", 1), ("2", 2), ("5000", 3)])
    def test_security_events_limit_is_clamped(self, client, db_session, admin_headers, limit, expected):
        for _ in range(3):
            client.get("/api/admin/stats")

        resp = client.get(f"/api/admin/security-events?limit={limit}", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json) == expected

    def test_denial_still_401_when_audit_write_fails(self, client, db_session, monkeypatch):
        def unavailable(**kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(security_service, "log_security_event", unavailable)

        resp = client.get("/api/admin/stats", headers={"X-Admin-Password": "guess"})
        assert resp.status_code == 401
        assert resp.json == {"error": "Unauthorized", "code": "UNAUTHORIZED"}


# =============================================================================
# ISSUANCE
# =============================================================================


class TestIssueBatch:
    def test_issue_batch(self, client, db_session, admin_headers):
        resp = _issue(client, admin_headers, count=25, batch_id="  B-25  ")

        assert resp.status_code == 201
        assert resp.json["count"] == 25
        assert resp.json["batch_id"] == "B-25"
        assert len(set(resp.json["token_ids"])) == 25

    def test_count_as_numeric_string(self, client, db_session, admin_headers):
        resp = _issue(client, admin_headers, count="3")
        assert resp.status_code == 201
        assert resp.json["count"] == 3

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"count": 0}, "count must be >= 1"),
            ({"count": 501}, "count cannot exceed 500"),
            ({"count": 2.5}, "count must be an integer, not a decimal"),
            ({"count": "1e3"}, "count must be a plain integer (scientific notation not allowed)"),
            ({"count": True}, "count must be an integer"),
            ({"product_name": "   "}, "product_name cannot be blank"),
            ({"product_name": None}, "product_name cannot be null"),
            ({"batch_id": "x" * 65}, "batch_id exceeds max length 64"),
            ({"expiry_date": "not-a-date"}, "expiry_date must be an ISO-8601 datetime"),
            ({"amount_cents": 1000}, "Field not allowed: amount_cents"),
            ({"status": "REDEEMED"}, "Field not allowed: status"),
        ],
    )
    def test_validation_errors(self, client, db_session, admin_headers, overrides, message):
        resp = _issue(client, admin_headers, **overrides)
        assert resp.status_code == 400
        assert resp.json == {"error": message, "code": "VALIDATION"}

    def test_missing_fields(self, client, db_session, admin_headers):
        resp = client.post("/api/admin/batches", json={"count": 1}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Missing required fields: batch_id, product_name"

    def test_non_json_body(self, client, db_session, admin_headers):
        resp = client.post("/api/admin/batches", data="nope", headers=admin_headers)
        assert resp.status_code == 400

    def test_export_batch(self, client, db_session, admin_headers):
        token_ids = _issue(client, admin_headers, count=3, batch_id="EXPORT1").json["token_ids"]

        resp = client.get("/api/admin/batches/EXPORT1/tokens", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 3
        assert [t["token"] for t in resp.json["tokens"]] == token_ids
        assert resp.json["tokens"][0]["redeem_url"] == f"https://rewards.example.com/redeem/{token_ids[0]}"
        assert resp.json["tokens"][0]["status"] == "UNREDEEMED"

    def test_export_unknown_batch(self, client, db_session, admin_headers):
        resp = client.get("/api/admin/batches/NOPE/tokens", headers=admin_headers)
        assert resp.status_code == 404


# =============================================================================
# STATISTICS
# =============================================================================


class TestStats:
    def test_dashboard_and_product_stats(self, client, db_session, admin_headers):
        p_ids = _issue(client, admin_headers, count=3, product_name="P", batch_id="BP").json["token_ids"]
        _issue(client, admin_headers, count=2, product_name="Q", batch_id="BQ")
        client.post(f"/api/redeem/{p_ids[0]}")

        stats = client.get("/api/admin/stats", headers=admin_headers)
        assert stats.status_code == 200
        assert stats.json == {
            "total_issued": 5,
            "redeemed_count": 1,
            "remaining_count": 4,
            "total_reward_paid": 100,
        }

        by_batch = client.get("/api/admin/stats?batch_id=BQ", headers=admin_headers)
        assert by_batch.json["total_issued"] == 2
        assert by_batch.json["redeemed_count"] == 0

        products = client.get("/api/admin/product-stats", headers=admin_headers)
        assert products.status_code == 200
        assert products.json == [
            {"product_name": "P", "total": 3, "redeemed": 1},
            {"product_name": "Q", "total": 2, "redeemed": 0},
        ]


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"
