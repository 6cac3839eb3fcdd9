from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base, new_id

class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint("bus_id", "number", name="uq_seat_bus_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    bus_id: Mapped[str] = mapped_column(String(36), ForeignKey("buses.id"), index=True)
    number: Mapped[str] = mapped_column(String(10))  # label shown on the seat map, e.g. 1A
    type: Mapped[str] = mapped_column(String(10), default="Window")  # Window|Aisle

    bus: Mapped["Bus"] = relationship(back_populates="seats")
