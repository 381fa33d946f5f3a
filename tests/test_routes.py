from models import db
from models.audit_log import AuditLog
from models.user import User
from services import wallet_ledger

from conftest import auth_headers, future_day, make_user


def _booking_body(type_="paid", time="10:00 AM", cost="50", day=None):
    return {"date": day or future_day(), "time": time, "endTime": None, "type": type_, "cost": cost}


# ---------- health / auth ----------

def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "database": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_google_sign_in_creates_user_and_session(client, app):
    resp = client.post("/auth/google", json={"credential": "google:New@Example.com:New Person"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "user"
    assert body["token"]

    session = client.get("/auth/session")
    assert session.status_code == 200
    assert session.get_json()["user"]["name"] == "New Person"


def test_configured_admin_email_is_promoted_at_sign_in(client):
    resp = client.post("/auth/google", json={"credential": "google:owner@example.com:Owner"})
    assert resp.get_json()["user"]["role"] == "admin"


def test_sign_in_failures(client):
    assert client.post("/auth/google", json={}).status_code == 400
    resp = client.post("/auth/google", json={"credential": "forged"})
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "INVALID_CREDENTIAL"
    assert AuditLog.query.filter_by(action="LOGIN_FAIL").count() == 1


def test_session_requires_auth(client):
    assert client.get("/auth/session").status_code == 401
    assert client.get("/auth/session", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_idle_session_is_retired(client, user):
    from datetime import datetime, timedelta
    from models.session import Session

    headers = auth_headers(user)
    row = Session.query.filter_by(user_id=user.id).one()
    row.last_seen_at = datetime.utcnow() - timedelta(days=1)
    db.session.commit()

    assert client.get("/auth/session", headers=headers).status_code == 401
    assert db.session.get(Session, row.id).revoked is True


def test_cookie_sessions_need_the_csrf_header(client):
    client.post("/auth/google", json={"credential": "google:client@example.com:Client"})

    blocked = client.post("/api/bookings", json=_booking_body())
    assert blocked.status_code == 403
    assert blocked.get_json()["error"] == "CSRF validation failed"

    token = client.get_cookie("csrf_token").value
    ok = client.post("/api/bookings", json=_booking_body(), headers={"X-CSRF-Token": token})
    assert ok.status_code == 201


def test_logout_revokes_the_session(client, user):
    headers = auth_headers(user)
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/session", headers=headers).status_code == 401


# ---------- bookings ----------

def test_create_and_list_bookings(client, user):
    headers = auth_headers(user)

    free = client.post("/api/bookings", json=_booking_body("free", cost=None), headers=headers)
    assert free.status_code == 201
    assert free.get_json()["booking"]["paid"] is True
    assert free.get_json()["message"] == "Booking confirmed"

    paid = client.post("/api/bookings", json=_booking_body(time="2:00 PM"), headers=headers)
    assert paid.status_code == 201
    assert paid.get_json()["booking"]["paid"] is False

    again = client.post("/api/bookings", json=_booking_body("free", time="4:00 PM", cost=None), headers=headers)
    assert again.status_code == 403
    assert again.get_json() == {"error": "Free consultation already used", "code": "FREE_SESSION_USED"}

    clash = client.post("/api/bookings", json=_booking_body(time="2:30 PM"), headers=headers)
    assert clash.status_code == 409
    assert clash.get_json()["error"] == "Selected time slot is not available"

    listed = client.get("/api/bookings", headers=headers).get_json()["data"]["bookings"]
    assert len(listed) == 2


def test_booking_requires_auth(client):
    assert client.post("/api/bookings", json=_booking_body()).status_code == 401


def test_mark_paid_is_admin_only(client, user, admin):
    created = client.post("/api/bookings", json=_booking_body(), headers=auth_headers(user)).get_json()
    booking_id = created["booking"]["id"]

    denied = client.patch(f"/api/bookings/{booking_id}/mark-paid", headers=auth_headers(user))
    assert denied.status_code == 403
    assert denied.get_json()["error"] == "Admin access required"

    ok = client.patch(f"/api/bookings/{booking_id}/mark-paid", headers=auth_headers(admin))
    assert ok.status_code == 200
    assert ok.get_json() == {"message": "Payment confirmed", "id": booking_id}

    twice = client.patch(f"/api/bookings/{booking_id}/mark-paid", headers=auth_headers(admin))
    assert twice.status_code == 409


def test_cancel_route_refunds_to_wallet(client, user, admin):
    created = client.post("/api/bookings", json=_booking_body(day=future_day(45)), headers=auth_headers(user)).get_json()
    booking_id = created["booking"]["id"]
    client.patch(f"/api/bookings/{booking_id}/mark-paid", headers=auth_headers(admin))

    resp = client.post(f"/api/bookings/{booking_id}/cancel", headers=auth_headers(user))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["refunded"] is True
    assert body["booking"]["status"] == "cancelled"
    assert wallet_ledger.find_wallet(user.id).balance == 5000

    assert client.post(f"/api/bookings/{booking_id}/cancel", headers=auth_headers(user)).status_code == 409


def test_cancel_too_close_to_the_session(client, user):
    created = client.post("/api/bookings", json=_booking_body(day=future_day(2)), headers=auth_headers(user)).get_json()
    resp = client.post(f"/api/bookings/{created['booking']['id']}/cancel", headers=auth_headers(user))
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "TOO_LATE_TO_CANCEL"


def test_comment_routes(client, user, admin):
    created = client.post("/api/bookings", json=_booking_body(), headers=auth_headers(user)).get_json()
    booking_id = created["booking"]["id"]

    added = client.post(f"/api/bookings/{booking_id}/comments", json={"comment": "Hi"}, headers=auth_headers(user))
    assert added.status_code == 201
    comment_id = added.get_json()["comment"]["id"]

    dup = client.post(f"/api/bookings/{booking_id}/comments", json={"comment": "Hi again"}, headers=auth_headers(user))
    assert dup.status_code == 409

    edited = client.patch(
        f"/api/bookings/{booking_id}/comments/{comment_id}",
        json={"comment": "Hello"},
        headers=auth_headers(admin),
    )
    assert edited.status_code == 200
    assert edited.get_json()["comment"]["comment"] == "Hello"

    stranger = make_user("stranger@example.com", "Stranger")
    listed = client.get(f"/api/bookings/{booking_id}/comments", headers=auth_headers(stranger))
    assert listed.status_code == 403

    listed = client.get(f"/api/bookings/{booking_id}/comments", headers=auth_headers(user))
    assert [c["user_name"] for c in listed.get_json()["comments"]] == ["Client"]


# ---------- payments ----------

def test_verify_with_wallet(client, user):
    wallet = wallet_ledger.get_or_create(user.id)
    wallet_ledger.credit(wallet.id, "50", "Top-up", performed_by=user.id)

    resp = client.post("/api/payment/verify", json={
        "booking_data": _booking_body(),
        "payment_type": "wallet",
    }, headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["paid"] is True
    assert wallet_ledger.find_wallet(user.id).balance == 0


def test_verify_with_insufficient_wallet(client, user):
    resp = client.post("/api/payment/verify", json={
        "booking_data": _booking_body(),
        "payment_type": "wallet",
    }, headers=auth_headers(user))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Insufficient wallet balance"


def test_verify_with_gateway_failure_returns_the_unpaid_booking(client, user, gateway):
    gateway.add("cs_fail", "50.00", verified=False)
    resp = client.post("/api/payment/verify", json={
        "booking_data": _booking_body(),
        "transaction_id": "cs_fail",
    }, headers=auth_headers(user))
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "Payment verification failed"
    assert body["booking"]["paid"] is False


def test_verify_retry_after_gateway_outage(client, user, gateway):
    headers = auth_headers(user)
    body = {"booking_data": _booking_body(), "transaction_id": "cs_late"}

    gateway.down = True
    first = client.post("/api/payment/verify", json=body, headers=headers)
    assert first.status_code == 400

    gateway.down = False
    gateway.add("cs_late", "50.00")
    again = client.post("/api/payment/verify", json=body, headers=headers)
    assert again.status_code == 200
    assert again.get_json()["booking"]["id"] == first.get_json()["booking"]["id"]
    assert again.get_json()["booking"]["paid"] is True


def test_verify_missing_booking_data(client, user):
    resp = client.post("/api/payment/verify", json={}, headers=auth_headers(user))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing booking data"


def test_initiate(client, user):
    resp = client.post("/api/payment/initiate", json={"amount": 50, "tx_ref": "ref-9"}, headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.get_json()["checkout_link"] == "https://pay.example/ref-9"

    bad = client.post("/api/payment/initiate", json={}, headers=auth_headers(user))
    assert bad.status_code == 400


# ---------- wallet ----------

def test_wallet_routes(client, user, gateway):
    headers = auth_headers(user)

    wallet = client.get("/api/wallet", headers=headers).get_json()
    assert wallet["wallet"]["balance"] == "0.00"
    assert wallet["transactions"] == []

    gateway.add("cs_topup", "40.00")
    topup = client.post("/api/wallet/topup", json={"transaction_id": "cs_topup"}, headers=headers)
    assert topup.status_code == 200
    assert topup.get_json()["wallet"]["balance"] == "40.00"

    replay = client.post("/api/wallet/topup", json={"transaction_id": "cs_topup"}, headers=headers)
    assert replay.status_code == 409

    unverified = client.post("/api/wallet/topup", json={"amount": 1000}, headers=headers)
    assert unverified.status_code == 400

    debit = client.post("/api/wallet/debit", json={"amount": 15, "description": "Session"}, headers=headers)
    assert debit.status_code == 200
    assert debit.get_json()["wallet"]["balance"] == "25.00"

    too_much = client.post("/api/wallet/debit", json={"amount": 100, "description": "Session"}, headers=headers)
    assert too_much.status_code == 400
    assert too_much.get_json()["error"] == "Insufficient wallet balance"

    history = client.get("/api/wallet/transactions?limit=1", headers=headers).get_json()
    assert [t["type"] for t in history["transactions"]] == ["debit"]
    assert history["limit"] == 1


def test_admin_top_up(client, user, admin):
    resp = client.post("/api/wallet/admin/topup", json={
        "userId": user.id, "amount": 20, "description": "Goodwill",
    }, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.get_json()["wallet"]["balance"] == "20.00"

    denied = client.post("/api/wallet/admin/topup", json={
        "userId": user.id, "amount": 20, "description": "Goodwill",
    }, headers=auth_headers(user))
    assert denied.status_code == 403

    missing = client.post("/api/wallet/admin/topup", json={
        "userId": 999, "amount": 20, "description": "Goodwill",
    }, headers=auth_headers(admin))
    assert missing.status_code == 404


# ---------- admin ----------

def test_admin_users_and_roles(client, user, admin):
    users = client.get("/api/admin/users", headers=auth_headers(admin))
    assert users.status_code == 200
    assert {u["email"] for u in users.get_json()} == {user.email, admin.email}

    promoted = client.patch(f"/api/admin/users/{user.id}/role", json={"role": "admin"}, headers=auth_headers(admin))
    assert promoted.status_code == 200
    assert db.session.get(User, user.id).role == "admin"

    assert client.patch(f"/api/admin/users/{user.id}/role", json={}, headers=auth_headers(admin)).status_code == 400
    assert client.patch("/api/admin/users/999/role", json={"role": "user"}, headers=auth_headers(admin)).status_code == 404
    assert client.patch(f"/api/admin/users/{admin.id}/role", json={"role": "user"},
                        headers=auth_headers(admin)).status_code == 403


def test_admin_routes_refuse_users(client, user):
    for path in ("/api/admin/users", "/api/admin/settings", "/api/admin/stats", "/api/admin/audit-logs"):
        assert client.get(path, headers=auth_headers(user)).status_code == 403


def test_admin_settings(client, admin):
    headers = auth_headers(admin)
    assert client.get("/api/admin/settings", headers=headers).get_json()["workStart"] == 9

    updated = client.patch("/api/admin/settings", json={"workStart": 10, "bufferMinutes": 15}, headers=headers)
    assert updated.status_code == 200
    assert updated.get_json()["settings"]["workStart"] == 10

    assert client.get("/api/bookings/availability").get_json()["bufferMinutes"] == 15
    assert client.patch("/api/admin/settings", json={"workEnd": 99}, headers=headers).status_code == 400
    assert len(client.get("/api/admin/settings/history", headers=headers).get_json()) == 1


def test_admin_stats_and_audit_log(client, user, admin):
    client.post("/api/bookings", json=_booking_body(), headers=auth_headers(user))

    stats = client.get("/api/admin/stats", headers=auth_headers(admin)).get_json()
    assert stats["totalBookings"] == 1
    assert stats["totalRevenue"] == 50

    logs = client.get("/api/admin/audit-logs?action=BOOKING_CREATE", headers=auth_headers(admin)).get_json()
    assert len(logs) == 1
    assert logs[0]["metadata"]["type"] == "paid"


def test_out_of_range_amounts_are_validation_errors(client, user, admin):
    headers = auth_headers(user)

    booking = client.post("/api/bookings", json=_booking_body(cost="1e30"), headers=headers)
    assert booking.status_code == 400

    debit = client.post("/api/wallet/debit", json={"amount": "1e30", "description": "Session"}, headers=headers)
    assert debit.status_code == 400

    top_up = client.post("/api/wallet/admin/topup", json={
        "userId": user.id, "amount": "1e30", "description": "Goodwill",
    }, headers=auth_headers(admin))
    assert top_up.status_code == 400
    assert wallet_ledger.find_wallet(user.id).balance == 0
