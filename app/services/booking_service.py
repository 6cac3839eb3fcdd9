import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import (
    AlreadyCancelled,
    Forbidden,
    InsufficientSeats,
    InternalError,
    NotFound,
    SeatConflict,
    ValidationFailed,
)
from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.schedule import Schedule
from app.services.audit_service import log_audit
from app.services.schedule_service import resolve_schedule

logger = logging.getLogger(__name__)

SEAT_HOLDING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def create_booking(
    db: Session,
    *,
    user_id: str,
    schedule_id: str,
    seat_ids: list[str],
    passenger_details: list[dict],
    total_amount: int,
    travel_date: date | None = None,
    today: date,
) -> Booking:
    if not seat_ids:
        raise ValidationFailed("At least one seat must be selected")
    if len(set(seat_ids)) != len(seat_ids):
        raise ValidationFailed("Duplicate seat ids in request")

    schedule = resolve_schedule(db, schedule_id, travel_date, today=today)
    seat_count = len(seat_ids)

    try:
        # Check-and-decrement in one statement. It also holds the schedule's
        # write lock until commit, so the conflict check below is serialized
        # against other bookings for the same schedule.
        result = db.execute(
            update(Schedule)
            .where(Schedule.id == schedule.id, Schedule.available_seats >= seat_count)
            .values(available_seats=Schedule.available_seats - seat_count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientSeats()

        requested = set(seat_ids)
        held = db.scalars(
            select(Booking.seat_ids).where(
                Booking.schedule_id == schedule.id,
                Booking.status.in_(SEAT_HOLDING_STATUSES),
            )
        ).all()
        if any(requested.intersection(seats or []) for seats in held):
            raise SeatConflict()

        booking = Booking(
            user_id=user_id,
            schedule_id=schedule.id,
            seat_ids=list(seat_ids),
            passenger_details=passenger_details,
            total_amount=total_amount,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )
        db.add(booking)
        db.flush()
        log_audit(db, actor_user_id=user_id, action="booking.created", entity_type="booking", entity_id=booking.id,
                  details={"scheduleId": schedule.id, "seatIds": list(seat_ids), "totalAmount": total_amount})
        db.commit()
    except (InsufficientSeats, SeatConflict) as e:
        db.rollback()
        logger.info("booking rejected on schedule %s: %s", schedule_id, e.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(booking)
    return booking


def cancel_booking(db: Session, booking_id: str, user_id: str) -> Booking:
    """Cancel, return the seats and mark the payment refunded, in one transaction."""
    booking = db.scalars(
        select(Booking).where(Booking.id == booking_id).with_for_update()
    ).first()
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id != user_id:
        raise Forbidden()
    if booking.status == BookingStatus.CANCELLED:
        raise AlreadyCancelled()

    seat_count = len(booking.seat_ids or [])
    try:
        # Conditional on the current status so two concurrent cancels cannot both return seats
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status != BookingStatus.CANCELLED)
            .values(status=BookingStatus.CANCELLED, payment_status=PaymentStatus.REFUNDED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyCancelled()

        seats = db.execute(
            update(Schedule)
            .where(Schedule.id == booking.schedule_id)
            .values(available_seats=Schedule.available_seats + seat_count)
            .execution_options(synchronize_session=False)
        )
        if seats.rowcount != 1:
            logger.warning("booking %s cancelled but schedule %s not found", booking.id, booking.schedule_id)

        payment = booking.payment
        if payment is not None:
            payment.status = PaymentStatus.REFUNDED

        log_audit(db, actor_user_id=user_id, action="booking.cancelled", entity_type="booking", entity_id=booking.id,
                  details={"seatsReleased": seat_count, "paymentId": payment.id if payment else None})
        db.commit()
    except AlreadyCancelled:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("cancellation of booking %s failed; nothing was applied", booking_id)
        raise InternalError() from e

    db.refresh(booking)
    return booking


def get_booking_for_user(db: Session, booking_id: str, user_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id != user_id:
        raise Forbidden()
    return booking


def list_user_bookings(db: Session, user_id: str) -> list[Booking]:
    return list(db.scalars(
        select(Booking)
        .where(Booking.user_id == user_id)
        .options(selectinload(Booking.payment), selectinload(Booking.schedule))
        .order_by(Booking.created_at.desc())
    ))


def confirmed_bookings_for_schedule(db: Session, schedule_id: str) -> list[Booking]:
    """Bookings whose seats are taken on a schedule; drives the seat map."""
    return list(db.scalars(
        select(Booking)
        .where(Booking.schedule_id == schedule_id, Booking.status == BookingStatus.CONFIRMED)
        .order_by(Booking.created_at.asc())
    ))


def booked_seats(db: Session, schedule_id: str) -> list[str]:
    seats: set[str] = set()
    for booking in confirmed_bookings_for_schedule(db, schedule_id):
        seats.update(booking.seat_ids or [])
    return sorted(seats)
