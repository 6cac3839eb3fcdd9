from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base, new_id

class Bus(Base):
    __tablename__ = "buses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    operator: Mapped[str] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(60))  # e.g. AC Seater, AC Sleeper, Executive
    total_seats: Mapped[int] = mapped_column(Integer)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    seats: Mapped[list["Seat"]] = relationship(back_populates="bus", order_by="Seat.number")
