from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PassengerIn(BaseModel):
    name: str = Field(min_length=1)
    age: int = Field(ge=0)
    gender: Literal["MALE", "FEMALE", "OTHER"]


class BookingCreate(BaseModel):
    scheduleId: str = Field(min_length=1)
    seatIds: List[str] = Field(min_length=1)
    passengerDetails: List[PassengerIn]
    totalAmount: int = Field(ge=0)
    travelDate: Optional[str] = None  # YYYY-MM-DD or ISO datetime; defaults to tomorrow

    @field_validator("seatIds")
    @classmethod
    def unique_seats(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("seatIds must not contain duplicates")
        return v

    @field_validator("travelDate")
    @classmethod
    def parse_travel_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_date_param(v)
        return v

    def travel_date(self) -> Optional[date]:
        return parse_date_param(self.travelDate) if self.travelDate else None


def parse_date_param(value: str) -> date:
    """Accepts ``YYYY-MM-DD`` or a full ISO datetime; the calendar date is what counts."""
    value = value.strip()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


class PaymentSummary(BaseModel):
    id: str
    externalInvoiceId: str
    amount: int
    method: str
    status: str


class BookingOut(BaseModel):
    id: str
    userId: str
    scheduleId: str
    seatIds: List[str]
    passengerDetails: List[dict]
    totalAmount: int
    status: str
    paymentStatus: str
    paymentId: Optional[str] = None
    createdAt: datetime
    schedule: Optional[dict] = None
    payment: Optional[PaymentSummary] = None


class ScheduleBookingOut(BaseModel):
    id: str
    seatIds: List[str]
    status: str
    createdAt: datetime
