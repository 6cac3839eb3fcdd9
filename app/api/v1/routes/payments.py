from fastapi import APIRouter, Body, Depends, Header
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_clock, get_current_user, get_gateway
from app.core.clock import Clock
from app.models.user import User
from app.schemas.payments import PaymentCreate, PaymentCreateOut, SimulateWebhookIn, WebhookOut
from app.services.payment_service import create_invoice, handle_webhook, simulate_webhook
from app.services.xendit_client import XenditClient

router = APIRouter(tags=["payments"])


@router.post("/payments", response_model=PaymentCreateOut)
def create_payment(
    body: PaymentCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    gateway: XenditClient = Depends(get_gateway),
    clock: Clock = Depends(get_clock),
):
    return create_invoice(
        db,
        gateway,
        booking_id=body.bookingId,
        user_id=me.id,
        amount=body.amount,
        payment_method=body.paymentMethod,
        now=clock(),
    )


@router.post("/payments/webhook", response_model=WebhookOut)
def xendit_webhook(
    payload: dict = Body(...),
    x_callback_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    """Xendit invoice callback. The payload is read loosely; only ``id`` and ``status`` drive state."""
    return handle_webhook(db, payload, x_callback_token)


@router.post("/payments/simulate-webhook", response_model=WebhookOut)
def simulate(body: SimulateWebhookIn, db: Session = Depends(get_db)):
    return simulate_webhook(db, body.bookingId)
