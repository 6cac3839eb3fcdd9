from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base

class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="ck_schedule_available_seats_non_negative"),
    )

    # Either a plain id or a materialized "generated-{route}-{bus}-{slot}" id
    id: Mapped[str] = mapped_column(String(120), primary_key=True)
    bus_id: Mapped[str] = mapped_column(String(36), ForeignKey("buses.id"), index=True)
    route_id: Mapped[str] = mapped_column(String(36), ForeignKey("routes.id"), index=True)

    # Local wall-clock time in APP_TIMEZONE
    departure_time: Mapped[datetime] = mapped_column(DateTime)
    arrival_time: Mapped[datetime] = mapped_column(DateTime)

    available_seats: Mapped[int] = mapped_column(Integer)
    fare: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    bus: Mapped["Bus"] = relationship()
    route: Mapped["Route"] = relationship()
