from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base, new_id

DEFAULT_DURATION_MINUTES = 180

class Route(Base):
    __tablename__ = "routes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    origin: Mapped[str] = mapped_column(String(120), index=True)
    destination: Mapped[str] = mapped_column(String(120), index=True)
    distance: Mapped[int | None] = mapped_column(Integer, nullable=True)  # km
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    base_fare: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def duration_minutes(self) -> int:
        return self.duration or DEFAULT_DURATION_MINUTES
