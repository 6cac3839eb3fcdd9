import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.models.audit_log import AuditLog
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import Payment
from app.services.booking_service import SEAT_HOLDING_STATUSES
from app.services.payment_service import map_gateway_status
from tests.conftest import auth_headers, booking_body


def _pay(client, user, booking, amount=300000, method=None):
    body = {"bookingId": booking["id"], "amount": amount}
    if method:
        body["paymentMethod"] = method
    return client.post("/api/v1/payments", json=body, headers=auth_headers(user))


def _webhook(client, invoice_id, status, token=None):
    headers = {"x-callback-token": token} if token else {}
    payload = {"id": invoice_id, "status": status, "amount": 300000,
               "external_id": "booking-x-1", "paid_amount": 300000}
    return client.post("/api/v1/payments/webhook", json=payload, headers=headers)


def _audit_count(db, action):
    return db.scalar(select(func.count()).select_from(AuditLog).where(AuditLog.action == action))


@pytest.fixture
def invoice(client, user, booking, xendit_configured):
    r = _pay(client, user, booking)
    assert r.status_code == 200, r.text
    return r.json()


def test_create_invoice_unconfigured(client, user, booking, gateway):
    r = _pay(client, user, booking)
    assert r.status_code == 503
    assert r.json()["error"] == "Payment service not configured"
    assert gateway.requests == []


def test_create_invoice(client, db, user, booking, gateway, xendit_configured):
    r = _pay(client, user, booking, method="bank_transfer")

    assert r.status_code == 200
    body = r.json()
    assert body["externalInvoiceId"] == "inv_1"
    assert body["status"] == "PENDING"
    assert body["amount"] == 300000
    assert body["invoiceUrl"] == "https://checkout.example/inv_1"

    [sent] = gateway.requests
    assert sent["external_id"].startswith(f"booking-{booking['id']}-")
    assert sent["description"] == "Bus ticket from Jakarta to Bandung"
    assert sent["currency"] == "IDR"
    assert sent["customer"]["email"] == "rina@example.com"
    assert sent["items"] == [{"name": "Jakarta to Bandung", "quantity": 2, "price": 150000, "category": "Transportation"}]
    assert sent["payment_methods"] == ["BCA", "MANDIRI", "BNI", "BRI"]
    assert sent["metadata"]["bookingId"] == booking["id"]
    assert sent["success_redirect_url"].endswith(f"/payment/success?bookingId={booking['id']}")

    db.expire_all()
    b = db.get(Booking, booking["id"])
    assert b.payment_id == "inv_1"
    assert b.payment.id == body["paymentId"]
    assert b.payment.method == "bank_transfer"


def test_invoice_without_method_lets_customer_choose(client, db, user, booking, gateway, xendit_configured):
    _pay(client, user, booking)
    assert "payment_methods" not in gateway.requests[0]
    assert db.scalars(select(Payment)).one().method == "GATEWAY_DEFAULT"


def test_second_invoice_request_reuses_pending_invoice(client, db, user, booking, gateway, xendit_configured):
    first = _pay(client, user, booking).json()
    second = _pay(client, user, booking, amount=1).json()

    assert second == first
    assert len(gateway.requests) == 1
    assert db.scalar(select(func.count()).select_from(Payment)) == 1

    r = _webhook(client, first["externalInvoiceId"], "PAID")
    assert r.status_code == 200
    assert r.json()["bookingStatus"] == "CONFIRMED"


def test_expired_invoice_is_not_reissued(client, user, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "EXPIRED")
    r = _pay(client, user, booking)
    assert r.status_code == 400
    assert r.json()["code"] == "booking_not_payable"


def test_invoice_for_someone_elses_booking(client, other_user, booking, xendit_configured):
    assert _pay(client, other_user, booking).status_code == 403
    r = client.post("/api/v1/payments", json={"bookingId": "missing", "amount": 1}, headers=auth_headers(other_user))
    assert r.status_code == 404


def test_invoice_without_id_from_gateway(client, user, booking, gateway, xendit_configured):
    gateway.response = {"status": "PENDING"}
    r = _pay(client, user, booking)
    assert r.status_code == 502
    assert r.json()["error"] == "Invalid payment gateway response"


def test_gateway_failure(client, db, user, booking, gateway, xendit_configured):
    gateway.error = "Xendit 400: {'error_code': 'API_VALIDATION_ERROR'}"
    r = _pay(client, user, booking)
    assert r.status_code == 502
    assert r.json()["code"] == "gateway_error"
    assert db.scalar(select(func.count()).select_from(Payment)) == 0


def test_cancelled_booking_is_not_payable(client, user, booking, xendit_configured):
    client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers(user))
    r = _pay(client, user, booking)
    assert r.status_code == 400
    assert r.json()["code"] == "booking_not_payable"


@pytest.mark.parametrize("status,expected", [
    ("PAID", ("PAID", "CONFIRMED")),
    ("settled", ("PAID", "CONFIRMED")),
    ("EXPIRED", ("FAILED", "CANCELLED")),
    ("failed", ("FAILED", "CANCELLED")),
    ("pending", ("PENDING", "PENDING")),
    ("something-new", ("PENDING", "PENDING")),
    (None, ("PENDING", "PENDING")),
    (402, ("PENDING", "PENDING")),
])
def test_status_mapping(status, expected):
    assert map_gateway_status(status) == expected


def test_paid_webhook_confirms_booking(client, db, booking, invoice):
    r = _webhook(client, invoice["externalInvoiceId"], "PAID")

    assert r.status_code == 200
    assert r.json() == {
        "message": "Webhook processed successfully",
        "paymentId": invoice["paymentId"],
        "bookingId": booking["id"],
        "paymentStatus": "PAID",
        "bookingStatus": "CONFIRMED",
    }
    db.expire_all()
    b = db.get(Booking, booking["id"])
    assert (b.status, b.payment_status, b.payment.status) == ("CONFIRMED", "PAID", "PAID")


def test_replayed_webhook_is_a_noop(client, db, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "PAID")
    db.expire_all()
    updated_at = db.get(Payment, invoice["paymentId"]).updated_at

    r = _webhook(client, invoice["externalInvoiceId"], "PAID")

    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "PAID"
    db.expire_all()
    assert db.get(Payment, invoice["paymentId"]).updated_at == updated_at
    assert _audit_count(db, "payment.status_changed") == 1
    assert _audit_count(db, "payment.webhook_received") == 2


def test_expired_webhook_cancels_pending_booking(client, db, booking, invoice):
    r = _webhook(client, invoice["externalInvoiceId"], "EXPIRED")

    assert r.json()["bookingStatus"] == "CANCELLED"
    assert r.json()["paymentStatus"] == "FAILED"
    db.expire_all()
    b = db.get(Booking, booking["id"])
    assert (b.status, b.payment_status) == (BookingStatus.CANCELLED, PaymentStatus.FAILED)


def test_late_failure_does_not_unconfirm(client, db, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "PAID")
    for late in ("EXPIRED", "PENDING"):
        r = _webhook(client, invoice["externalInvoiceId"], late)
        assert r.status_code == 200
        assert r.json()["paymentStatus"] == "PAID"
        assert r.json()["bookingStatus"] == "CONFIRMED"
    assert _audit_count(db, "payment.webhook_ignored") == 2


def test_late_paid_after_expiry_does_not_revive_booking(client, db, other_user, schedule_id, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "EXPIRED")
    r = client.post("/api/v1/bookings", json=booking_body(schedule_id, ["1"]), headers=auth_headers(other_user))
    assert r.status_code == 201
    rebooked = r.json()["id"]

    for late in ("PAID", "PENDING"):
        r = _webhook(client, invoice["externalInvoiceId"], late)
        assert r.status_code == 200
        assert (r.json()["paymentStatus"], r.json()["bookingStatus"]) == ("FAILED", "CANCELLED")
    assert _audit_count(db, "payment.webhook_ignored") == 2

    db.expire_all()
    holders = db.scalars(select(Booking.id).where(Booking.status.in_(SEAT_HOLDING_STATUSES))).all()
    assert holders == [rebooked]


def test_replayed_expiry_is_a_noop(client, db, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "EXPIRED")
    r = _webhook(client, invoice["externalInvoiceId"], "failed")
    assert r.json()["paymentStatus"] == "FAILED"
    assert _audit_count(db, "payment.status_changed") == 1
    assert _audit_count(db, "payment.webhook_ignored") == 0


def test_numeric_status_is_treated_as_pending(client, booking, invoice):
    r = client.post("/api/v1/payments/webhook", json={"id": invoice["externalInvoiceId"], "status": 7})
    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "PENDING"


def test_webhook_after_cancellation_keeps_refund(client, db, user, booking, invoice):
    client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers(user))
    r = _webhook(client, invoice["externalInvoiceId"], "PAID")
    assert r.json()["paymentStatus"] == "REFUNDED"
    assert r.json()["bookingStatus"] == "CANCELLED"


def test_webhook_unknown_invoice(client):
    r = _webhook(client, "inv_nope", "PAID")
    assert r.status_code == 404
    assert r.json()["error"] == "Payment not found"


def test_webhook_without_invoice_id(client):
    r = client.post("/api/v1/payments/webhook", json={"status": "PAID"})
    assert r.status_code == 400


def test_webhook_token_enforced_outside_development(client, monkeypatch, invoice):
    monkeypatch.setattr(settings, "ENV", "production")
    monkeypatch.setattr(settings, "XENDIT_WEBHOOK_TOKEN", "callback-token")

    assert _webhook(client, invoice["externalInvoiceId"], "PAID").status_code == 401
    assert _webhook(client, invoice["externalInvoiceId"], "PAID", token="wrong").status_code == 401
    r = _webhook(client, invoice["externalInvoiceId"], "PAID", token="callback-token")
    assert r.status_code == 200
    assert r.json()["bookingStatus"] == "CONFIRMED"


def test_production_without_configured_token_rejects(client, monkeypatch, invoice):
    monkeypatch.setattr(settings, "ENV", "production")
    monkeypatch.setattr(settings, "XENDIT_WEBHOOK_TOKEN", "")
    assert _webhook(client, invoice["externalInvoiceId"], "PAID", token="anything").status_code == 401


def test_development_skips_token_check(client, invoice):
    assert _webhook(client, invoice["externalInvoiceId"], "PAID", token="whatever").status_code == 200


def test_simulate_webhook(client, db, booking, invoice):
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})

    assert r.status_code == 200
    assert r.json()["bookingStatus"] == "CONFIRMED"
    assert r.json()["paymentStatus"] == "PAID"
    assert _audit_count(db, "payment.simulated") == 1


def test_simulate_does_not_revive_expired_booking(client, db, booking, invoice):
    _webhook(client, invoice["externalInvoiceId"], "EXPIRED")
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})

    assert r.status_code == 200
    assert (r.json()["paymentStatus"], r.json()["bookingStatus"]) == ("FAILED", "CANCELLED")
    db.expire_all()
    assert db.get(Booking, booking["id"]).status == BookingStatus.CANCELLED


def test_simulate_does_not_revive_cancelled_booking(client, db, user, booking, invoice):
    client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers(user))
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})

    assert (r.json()["paymentStatus"], r.json()["bookingStatus"]) == ("REFUNDED", "CANCELLED")
    assert _audit_count(db, "payment.webhook_ignored") == 1


def test_simulate_requires_payment(client, booking):
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})
    assert r.status_code == 404
    assert r.json()["error"] == "Payment not found"
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": "missing"})
    assert r.json()["error"] == "Booking not found"


def test_simulate_disabled(client, monkeypatch, booking, invoice):
    monkeypatch.setattr(settings, "PAYMENT_SIMULATION_ENABLED", False)
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})
    assert r.status_code == 404


def test_simulate_off_by_default_in_production(client, monkeypatch, booking, invoice):
    monkeypatch.setattr(settings, "ENV", "production")
    r = client.post("/api/v1/payments/simulate-webhook", json={"bookingId": booking["id"]})
    assert r.status_code == 404
