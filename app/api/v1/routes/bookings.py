from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_clock, get_current_user
from app.api.v1.routes.schedules import schedule_out
from app.core.clock import Clock
from app.models.booking import Booking
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingOut, PaymentSummary
from app.services.booking_service import cancel_booking, create_booking, get_booking_for_user, list_user_bookings
from app.services.ticket_service import ticket_for_booking

router = APIRouter(tags=["bookings"])


def booking_out(b: Booking, with_schedule: bool = False) -> BookingOut:
    p = b.payment
    return BookingOut(
        id=b.id,
        userId=b.user_id,
        scheduleId=b.schedule_id,
        seatIds=list(b.seat_ids or []),
        passengerDetails=list(b.passenger_details or []),
        totalAmount=b.total_amount,
        status=b.status,
        paymentStatus=b.payment_status,
        paymentId=b.payment_id,
        createdAt=b.created_at,
        schedule=schedule_out(b.schedule).model_dump(mode="json") if with_schedule and b.schedule else None,
        payment=PaymentSummary(id=p.id, externalInvoiceId=p.external_invoice_id, amount=p.amount,
                               method=p.method, status=p.status) if p else None,
    )


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create(body: BookingCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user),
           clock: Clock = Depends(get_clock)):
    booking = create_booking(
        db,
        user_id=me.id,
        schedule_id=body.scheduleId,
        seat_ids=body.seatIds,
        passenger_details=[p.model_dump() for p in body.passengerDetails],
        total_amount=body.totalAmount,
        travel_date=body.travel_date(),
        today=clock().date(),
    )
    return booking_out(booking, with_schedule=True)


@router.get("/bookings", response_model=list[BookingOut])
def my_bookings(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return [booking_out(b, with_schedule=True) for b in list_user_bookings(db, me.id)]


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return booking_out(get_booking_for_user(db, booking_id, me.id), with_schedule=True)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return booking_out(cancel_booking(db, booking_id, me.id))


@router.get("/bookings/{booking_id}/ticket")
def download_ticket(booking_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    booking = get_booking_for_user(db, booking_id, me.id)
    pdf = ticket_for_booking(booking)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{booking.id}.pdf"'},
    )
