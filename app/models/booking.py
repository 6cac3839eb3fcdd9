from typing import Optional
from sqlalchemy import String, Integer, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base, new_id


class BookingStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    # No FK: a booking may reference a schedule id before it is materialized
    schedule_id: Mapped[str] = mapped_column(String(120), index=True)

    seat_ids: Mapped[list] = mapped_column(JSON, default=list)
    passenger_details: Mapped[list] = mapped_column(JSON, default=list)  # [{name, age, gender}]
    total_amount: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING)
    payment_id: Mapped[str | None] = mapped_column(String(120), nullable=True)  # gateway invoice id

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    schedule: Mapped[Optional["Schedule"]] = relationship(
        primaryjoin="foreign(Booking.schedule_id) == Schedule.id", viewonly=True,
    )
    payment: Mapped[Optional["Payment"]] = relationship(back_populates="booking", uselist=False)
