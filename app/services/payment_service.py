"""
Payment reconciliation against the Xendit Invoice API.

A booking gets one Payment row, keyed by the gateway's invoice id. Gateway
callbacks (and the simulator) move that row and its booking together:

    paid / settled   -> PAID    / CONFIRMED
    expired / failed -> FAILED  / CANCELLED
    pending, other   -> PENDING / PENDING

Only PENDING moves. PAID, FAILED and REFUNDED are terminal for callbacks, as is
a cancelled booking: a later delivery that would move them elsewhere is
recorded and answered with the current state.
"""
import hmac
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    BookingNotPayable,
    Forbidden,
    GatewayError,
    InvalidGatewayResponse,
    NotFound,
    PaymentServiceUnavailable,
    Unauthorized,
    ValidationFailed,
)
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import Payment
from app.models.user import User
from app.services.audit_service import log_audit
from app.services.xendit_client import XenditClient, XenditConfig, XenditError

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "GATEWAY_DEFAULT"
GATEWAY_ACTOR = "xendit"

PAYMENT_CHANNELS = {
    "credit_card": ["CREDIT_CARD"],
    "gopay": ["GOPAY"],
    "ovo": ["OVO"],
    "dana": ["DANA"],
    "bank_transfer": ["BCA", "MANDIRI", "BNI", "BRI"],
    "qris": ["QRIS"],
}

STICKY_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED)


def build_gateway() -> XenditClient:
    return XenditClient(XenditConfig(
        secret_key=settings.XENDIT_SECRET_KEY,
        api_base=settings.XENDIT_API_BASE,
        timeout=settings.XENDIT_TIMEOUT,
    ))


def map_gateway_status(status) -> tuple[str, str]:
    """Gateway status -> (payment status, booking status)."""
    s = "" if status is None else str(status).strip().lower()
    if s in ("paid", "settled"):
        return PaymentStatus.PAID, BookingStatus.CONFIRMED
    if s in ("expired", "failed"):
        return PaymentStatus.FAILED, BookingStatus.CANCELLED
    if s != "pending":
        logger.warning("unknown gateway status %r, treating as pending", status)
    return PaymentStatus.PENDING, BookingStatus.PENDING


def _invoice_payload(booking: Booking, user: User, amount: int, payment_method: str | None, now: datetime) -> dict:
    route = booking.schedule.route
    seat_count = len(booking.seat_ids or []) or 1
    base_url = settings.APP_PUBLIC_URL.rstrip("/")
    payload = {
        "external_id": f"booking-{booking.id}-{int(now.timestamp() * 1000)}",
        "amount": amount,
        "description": f"Bus ticket from {route.origin} to {route.destination}",
        "customer": {
            "given_names": user.name or "Customer",
            "email": user.email,
            "mobile_number": user.phone or "",
        },
        "success_redirect_url": f"{base_url}/payment/success?bookingId={booking.id}",
        "failure_redirect_url": f"{base_url}/payment/failed?bookingId={booking.id}",
        "currency": settings.GATEWAY_CURRENCY,
        "items": [{
            "name": f"{route.origin} to {route.destination}",
            "quantity": seat_count,
            "price": amount / seat_count,
            "category": "Transportation",
        }],
        "metadata": {
            "bookingId": booking.id,
            "userId": user.id,
            "scheduleId": booking.schedule_id,
            "preferredPaymentMethod": payment_method,
        },
    }
    channels = PAYMENT_CHANNELS.get(payment_method or "")
    if channels:
        payload["payment_methods"] = channels
    return payload


def create_invoice(
    db: Session,
    gateway: XenditClient,
    *,
    booking_id: str,
    user_id: str,
    amount: int,
    payment_method: str | None = None,
    now: datetime,
) -> dict:
    if not settings.XENDIT_SECRET_KEY:
        logger.error("XENDIT_SECRET_KEY is not set; refusing to create invoice")
        raise PaymentServiceUnavailable()

    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id != user_id:
        raise Forbidden()
    if booking.status == BookingStatus.CANCELLED:
        raise BookingNotPayable("Booking is cancelled")
    if booking.payment_status == PaymentStatus.PAID:
        raise BookingNotPayable("Booking is already paid")
    if booking.schedule is None:
        raise NotFound("Schedule not found")

    user = db.get(User, user_id)
    if user is None:
        raise Forbidden()

    payment = booking.payment
    if payment is not None:
        # the earlier invoice stays payable at the gateway, so hand it out again
        if payment.status != PaymentStatus.PENDING:
            raise BookingNotPayable(f"Payment is {payment.status.lower()}")
        logger.info("booking %s already has pending invoice %s", booking.id, payment.external_invoice_id)
        return _invoice_out(payment)

    try:
        invoice = gateway.create_invoice(_invoice_payload(booking, user, amount, payment_method, now))
    except XenditError as e:
        logger.error("invoice creation failed for booking %s: %s", booking.id, e)
        raise GatewayError() from e

    invoice_id = (invoice or {}).get("id")
    if not invoice_id:
        logger.error("gateway returned no invoice id for booking %s: %s", booking.id, invoice)
        raise InvalidGatewayResponse()

    payment = Payment(booking_id=booking.id, external_invoice_id=invoice_id, invoice_url=invoice.get("invoice_url"),
                      amount=amount, method=payment_method or DEFAULT_METHOD, status=PaymentStatus.PENDING)
    db.add(payment)

    booking.payment_id = invoice_id
    booking.payment_status = PaymentStatus.PENDING
    db.flush()
    log_audit(db, actor_user_id=user_id, action="payment.invoice_created", entity_type="payment", entity_id=payment.id,
              details={"bookingId": booking.id, "invoiceId": invoice_id, "amount": amount, "method": payment.method})
    db.commit()
    db.refresh(payment)
    return _invoice_out(payment)


def _invoice_out(payment: Payment) -> dict:
    return {
        "paymentId": payment.id,
        "externalInvoiceId": payment.external_invoice_id,
        "amount": payment.amount,
        "status": payment.status,
        "invoiceUrl": payment.invoice_url,
    }


def _apply_status(db: Session, payment: Payment, booking: Booking, payment_status: str, booking_status: str,
                  *, actor: str, source: str) -> bool:
    """Move a payment and its booking together. Returns False when nothing was written."""
    terminal = payment.status in STICKY_PAYMENT_STATUSES or booking.status == BookingStatus.CANCELLED
    if terminal and (payment.status, booking.status) != (payment_status, booking_status):
        logger.warning("ignoring %s -> %s for payment %s (%s)", payment.status, payment_status, payment.id, source)
        log_audit(db, actor_user_id=actor, action="payment.webhook_ignored", entity_type="payment", entity_id=payment.id,
                  details={"current": payment.status, "requested": payment_status, "source": source})
        return False

    if (payment.status == payment_status
            and booking.payment_status == payment_status
            and booking.status == booking_status):
        return False

    previous = {"paymentStatus": payment.status, "bookingStatus": booking.status}
    payment.status = payment_status
    booking.payment_status = payment_status
    booking.status = booking_status
    log_audit(db, actor_user_id=actor, action="payment.status_changed", entity_type="payment", entity_id=payment.id,
              details={"from": previous, "to": {"paymentStatus": payment_status, "bookingStatus": booking_status},
                       "bookingId": booking.id, "source": source})
    return True


def verify_callback_token(token: str | None) -> None:
    if settings.is_development:
        return
    expected = settings.XENDIT_WEBHOOK_TOKEN
    if not expected or not token or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        logger.error("rejected webhook with invalid callback token")
        raise Unauthorized()


def handle_webhook(db: Session, payload: dict, callback_token: str | None) -> dict:
    logger.info("webhook received: id=%s status=%s external_id=%s",
                payload.get("id"), payload.get("status"), payload.get("external_id"))
    verify_callback_token(callback_token)

    invoice_id = payload.get("id")
    if not invoice_id:
        raise ValidationFailed("Invoice id is required")
    invoice_id = str(invoice_id)

    payment = db.scalars(
        select(Payment).where(Payment.external_invoice_id == invoice_id).with_for_update()
    ).first()
    if payment is None:
        logger.error("payment not found for invoice %s", invoice_id)
        raise NotFound("Payment not found")
    booking = payment.booking

    payment_status, booking_status = map_gateway_status(payload.get("status"))
    log_audit(db, actor_user_id=GATEWAY_ACTOR, action="payment.webhook_received", entity_type="payment", entity_id=payment.id,
              details={k: payload.get(k) for k in ("status", "amount", "paid_amount", "external_id")})
    changed = _apply_status(db, payment, booking, payment_status, booking_status, actor=GATEWAY_ACTOR, source="webhook")
    db.commit()
    if changed:
        logger.info("payment %s now %s, booking %s now %s", payment.id, payment.status, booking.id, booking.status)

    return {
        "message": "Webhook processed successfully",
        "paymentId": payment.id,
        "bookingId": booking.id,
        "paymentStatus": payment.status,
        "bookingStatus": booking.status,
    }


def simulate_webhook(db: Session, booking_id: str) -> dict:
    """Apply a ``paid`` callback without the gateway. Off unless simulation is enabled."""
    if not settings.payment_simulation_enabled:
        raise NotFound()

    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    payment = db.scalars(
        select(Payment).where(Payment.booking_id == booking.id).with_for_update()
    ).first()
    if payment is None:
        raise NotFound("Payment not found")

    log_audit(db, actor_user_id="simulator", action="payment.simulated", entity_type="payment", entity_id=payment.id,
              details={"bookingId": booking.id})
    _apply_status(db, payment, booking, PaymentStatus.PAID, BookingStatus.CONFIRMED, actor="simulator", source="simulation")
    db.commit()

    return {
        "message": "Webhook simulation completed successfully",
        "paymentId": payment.id,
        "bookingId": booking.id,
        "paymentStatus": payment.status,
        "bookingStatus": booking.status,
    }
